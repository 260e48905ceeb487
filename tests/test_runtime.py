"""Tests for the query runtime exported by generated modules."""

import pytest

from cms_content_compiler.exceptions import ContentNotFoundError, MultipleContentsFoundError
from cms_content_compiler.runtime import create_runtime, matches


CONTENTS = [
    {"collection": "posts", "slug": "a", "locale": "en", "props": {"tags": ["x", "y"], "seo": {"title": "A"}}},
    {"collection": "posts", "slug": "a", "locale": "fr", "props": {"tags": ["x"], "seo": {"title": "A fr"}}},
    {"collection": "pages", "slug": "b", "locale": None, "props": {}},
]


@pytest.fixture
def runtime():
    return create_runtime(CONTENTS)


def test_matches_is_deep_partial():
    value = {"a": 1, "b": {"c": 2, "d": 3}}
    assert matches(value, {})
    assert matches(value, {"b": {"c": 2}})
    assert not matches(value, {"b": {"c": 3}})
    assert not matches(value, {"missing": None})


def test_matches_lists_element_wise():
    assert matches([1, {"a": 1, "b": 2}], [1, {"a": 1}])
    assert not matches([1, 2], [1])
    assert not matches([1, 2], [1, 2, 3])
    assert not matches("ab", ["a", "b"])


def test_find_all(runtime):
    assert [c["locale"] for c in runtime.find_all({"collection": "posts"})] == ["en", "fr"]
    assert runtime.find_all({"props": {"tags": ["x"]}}) == [CONTENTS[1]]
    assert runtime.find_all({"collection": "nope"}) == []


def test_find_unique(runtime):
    assert runtime.find_unique({"slug": "a", "locale": "fr"}) is CONTENTS[1]
    assert runtime.find_unique({"props": {"seo": {"title": "A"}}}) is CONTENTS[0]


def test_find_unique_errors(runtime):
    with pytest.raises(ContentNotFoundError):
        runtime.find_unique({"slug": "zzz"})
    with pytest.raises(MultipleContentsFoundError) as excinfo:
        runtime.find_unique({"slug": "a"})
    assert excinfo.value.count == 2
    assert excinfo.value.filter == {"slug": "a"}


def test_match_returns_a_predicate(runtime):
    is_page = runtime.match({"collection": "pages"})
    assert [c["slug"] for c in CONTENTS if is_page(c)] == ["b"]
