"""Tests for the output folder lock."""

import asyncio
import logging
import os
import time

import pytest

from cms_content_compiler.config.compiler_options import LockOptions
from cms_content_compiler.exceptions import LockError
from cms_content_compiler.file_io.lock import LOCK_DIR_NAME, OutputLock, compiler_lock


async def no_sleep(delay: float) -> None:
    return None


def test_lock_creates_and_removes_lock_dir(tmp_path):
    out = tmp_path / "out"

    async def scenario():
        async with OutputLock(out) as lock:
            assert lock.locked
            assert (out / LOCK_DIR_NAME).is_dir()
        assert not lock.locked

    asyncio.run(scenario())
    assert out.is_dir()
    assert not (out / LOCK_DIR_NAME).exists()


def test_held_lock_is_not_acquired_twice(tmp_path):
    async def scenario():
        async with OutputLock(tmp_path):
            other = OutputLock(tmp_path, LockOptions(retries=2), sleep=no_sleep)
            with pytest.raises(LockError, match="3 attempts"):
                await other.acquire()
            assert not other.locked

    asyncio.run(scenario())


def test_stale_lock_is_taken_over(tmp_path, caplog):
    lock_dir = tmp_path / LOCK_DIR_NAME
    lock_dir.mkdir()
    old = time.time() - 60
    os.utime(lock_dir, (old, old))

    async def scenario():
        async with OutputLock(tmp_path, LockOptions(retries=0), sleep=no_sleep) as lock:
            assert lock.locked

    with caplog.at_level(logging.WARNING, logger="cms_content_compiler"):
        asyncio.run(scenario())
    assert any("Removing stale lock" in record.message for record in caplog.records)
    assert not lock_dir.exists()


def test_fresh_foreign_lock_blocks(tmp_path):
    (tmp_path / LOCK_DIR_NAME).mkdir()

    async def scenario():
        await OutputLock(tmp_path, LockOptions(retries=0), sleep=no_sleep).acquire()

    with pytest.raises(LockError):
        asyncio.run(scenario())
    assert (tmp_path / LOCK_DIR_NAME).is_dir()


def test_slow_hold_is_reported(tmp_path, caplog):
    async def scenario():
        async with OutputLock(tmp_path, LockOptions(warning_threshold_ms=0)):
            await asyncio.sleep(0.01)

    with caplog.at_level(logging.WARNING, logger="cms_content_compiler"):
        asyncio.run(scenario())
    assert any("Lock held after" in record.message for record in caplog.records)


def test_disabled_compiler_lock_is_a_no_op(tmp_path):
    async def scenario():
        async with compiler_lock(tmp_path / "out", enabled=False) as lock:
            return lock

    assert asyncio.run(scenario()) is None
    assert not (tmp_path / "out").exists()
