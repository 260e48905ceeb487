"""Tests for the async counter and the debounce / throttle combinators."""

import asyncio
import logging

import pytest

from cms_content_compiler.watch.timing import (
    AsyncCounter,
    CounterSnapshot,
    Debounced,
    ThrottleState,
    Throttled,
    limited,
)
from cms_content_compiler.utils.chrono import Chrono


async def settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


async def instant_sleep(delay: float) -> None:
    await asyncio.sleep(0)


def test_async_counter_snapshots():
    async def scenario():
        snapshots = []
        counter = AsyncCounter(on_change=snapshots.append)
        counter.incr()
        counter.incr()
        counter.decr()
        counter.incr()
        counter.clear()
        return counter, snapshots

    counter, snapshots = asyncio.run(scenario())
    assert counter.snapshot() == CounterSnapshot(current=0, max=2, total=3)
    assert [s.current for s in snapshots] == [0, 1, 2, 1, 2, 1, 0]


def test_async_counter_decr_below_zero():
    async def scenario():
        AsyncCounter().decr()

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())


def test_async_counter_wait():
    async def scenario():
        counter = AsyncCounter()
        await asyncio.wait_for(counter.wait(), 1)  # idle: returns at once

        counter.incr()
        waiter = asyncio.create_task(counter.wait())
        await settle()
        assert not waiter.done()
        counter.decr()
        await asyncio.wait_for(waiter, 1)

    asyncio.run(scenario())


def test_throttled_coalesces_pending_calls():
    async def scenario():
        calls = []
        release = asyncio.Event()

        async def work(value):
            calls.append(value)
            if value == 1:
                await release.wait()

        throttled = Throttled(work)
        throttled(1)
        await settle()
        assert throttled.state is ThrottleState.RUNNING

        throttled(2)
        throttled(3)
        assert throttled.state is ThrottleState.RUNNING_WITH_PENDING

        release.set()
        await throttled.wait()
        assert throttled.state is ThrottleState.IDLE
        return calls

    assert asyncio.run(scenario()) == [1, 3]


def test_throttled_survives_failures():
    async def scenario():
        calls = []

        async def work(value):
            calls.append(value)
            raise ValueError("boom")

        throttled = Throttled(work)
        throttled(1)
        await throttled.wait()
        throttled(2)
        await throttled.wait()
        return calls

    assert asyncio.run(scenario()) == [1, 2]


def test_debounced_keeps_the_last_call():
    async def scenario():
        calls = []
        debounced = Debounced(calls.append, 0.5, sleep=instant_sleep)
        debounced(1)
        debounced(2)
        debounced(3)
        assert debounced.scheduled
        await settle()
        assert not debounced.scheduled
        return calls

    assert asyncio.run(scenario()) == [3]


def test_debounced_cancel():
    async def scenario():
        calls = []
        debounced = Debounced(calls.append, 0.5, sleep=instant_sleep)
        debounced(1)
        debounced.cancel()
        await settle()
        return calls

    assert asyncio.run(scenario()) == []


def test_debounced_waits_for_the_sleep():
    async def scenario():
        calls = []
        gate = asyncio.Event()

        async def gated_sleep(delay):
            await gate.wait()

        debounced = Debounced(calls.append, 0.5, sleep=gated_sleep)
        debounced("x")
        await settle()
        assert calls == []
        gate.set()
        await settle()
        return calls

    assert asyncio.run(scenario()) == ["x"]


def test_limited_runs_once_per_burst():
    async def scenario():
        calls = []

        async def work(value):
            calls.append(value)

        trigger = limited(work, 0.5, sleep=instant_sleep)
        for value in range(5):
            trigger(value)
        await settle()
        await trigger.wait()
        return calls

    assert asyncio.run(scenario()) == [4]


def test_chrono_phases_and_report(caplog):
    ticks = iter([0.0, 0.5, 2.0])
    chrono = Chrono(clock=lambda: next(ticks))
    chrono.mark("start")
    chrono.mark("parse")
    chrono.mark("emit")

    assert chrono.phases() == [("parse", 500.0), ("emit", 1500.0)]
    assert chrono.total_ms() == 2000.0
    with caplog.at_level(logging.INFO, logger="cms_content_compiler"):
        chrono.report()
    assert "Total" in caplog.records[-1].getMessage()
    assert "2000.0 ms" in caplog.records[-1].getMessage()


def test_chrono_without_marks():
    assert Chrono().total_ms() == 0.0
