"""Tests for domain helpers."""

import pytest

from nyxguard.utils.domains import (
    display_domain,
    is_http_url,
    is_punycode_domain,
    normalize_domain,
    truncate_middle,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Example.COM", "example.com"),
        ("www.example.com", "example.com"),
        ("https://www.Example.com:8443/login?next=/", "example.com"),
        ("http://sub.example.co.uk/path", "sub.example.co.uk"),
        ("example.com/path/to/page", "example.com"),
        ("  shop.test  ", "shop.test"),
        ("xn--80ak6aa92e.com", "xn--80ak6aa92e.com"),
    ],
)
def test_normalize_domain(raw, expected):
    assert normalize_domain(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", None, 42, "exa mple.com", "https://", "http://[::1"])
def test_normalize_domain_rejects(raw):
    assert normalize_domain(raw) is None


def test_normalize_domain_is_idempotent():
    once = normalize_domain("https://WWW.Example.com/a")
    assert normalize_domain(once) == once


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://example.com/", True),
        ("http://example.com", True),
        ("ftp://example.com", False),
        ("chrome://extensions", False),
        ("about:blank", False),
        ("example.com", False),
        (None, False),
    ],
)
def test_is_http_url(url, expected):
    assert is_http_url(url) is expected


def test_is_punycode_domain():
    assert is_punycode_domain("xn--p1ai")
    assert is_punycode_domain("login.xn--80ak6aa92e.com")
    assert not is_punycode_domain("example.com")
    assert not is_punycode_domain("")


def test_display_domain_decodes_punycode_labels():
    assert display_domain("xn--bcher-kva.example") == "bücher.example"
    assert display_domain("example.com") == "example.com"


def test_truncate_middle():
    assert truncate_middle("short.test", 20) == "short.test"
    shortened = truncate_middle("averyveryverylongsubdomain.example.com", 20)
    assert len(shortened) == 20
    assert shortened.startswith("averyver")
    assert shortened.endswith("ample.com")
    assert "..." in shortened
