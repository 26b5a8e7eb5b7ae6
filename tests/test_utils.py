# File: tests/test_utils.py
import pytest

from site_intel.utils import (
    base_url_for,
    chunked,
    normalize_url,
    remove_duplicates,
    resolve_url,
    same_site,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("HTTPS://Example.COM", "https://example.com/"),
        ("https://example.com:443/about/", "https://example.com/about"),
        ("http://example.com:80/a/../b", "http://example.com/b"),
        ("https://example.com/about?x=1#team", "https://example.com/about"),
        ("https://example.com//blog//", "https://example.com/blog"),
        ("https://example.com:8443/", "https://example.com:8443/"),
    ],
)
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected


def test_normalize_url_is_idempotent():
    once = normalize_url("https://Example.com/Team/?ref=nav")
    assert normalize_url(once) == once


def test_base_url_for():
    assert base_url_for("example.com") == "https://example.com/"
    assert base_url_for("http://Example.com/some/path") == "http://example.com/"


def test_same_site_ignores_www():
    assert same_site("https://www.example.com/about", "https://example.com/")
    assert not same_site("https://other.com/", "https://example.com/")
    assert not same_site("mailto:hi@example.com", "https://example.com/")


def test_resolve_url_uses_origin():
    assert resolve_url("/files/brand.pdf", "https://example.com/about/press") == "https://example.com/files/brand.pdf"
    assert resolve_url("https://cdn.example.com/x.pdf", "https://example.com/") == "https://cdn.example.com/x.pdf"


def test_chunked():
    assert [list(c) for c in chunked(list(range(12)), 5)] == [[0, 1, 2, 3, 4], [5, 6, 7, 8, 9], [10, 11]]
    assert list(chunked([], 3)) == []
    with pytest.raises(ValueError):
        list(chunked([1], 0))


def test_remove_duplicates_keeps_order():
    assert remove_duplicates(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
