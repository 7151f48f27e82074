"""Domain normalization utilities."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

import idna


def normalize_domain(value: object) -> Optional[str]:
    """
    Normalize a hostname or URL to a comparable domain key.

    - Lowercase
    - Strip scheme, port, path/query/fragment
    - Strip leading "www."
    - Reject empty or whitespace-containing results

    Returns None instead of raising for anything that cannot be parsed.
    """
    if not isinstance(value, str):
        return None
    raw = value.strip().lower()
    if not raw:
        return None

    try:
        host = raw
        if "://" in raw:
            host = urlparse(raw).hostname or ""
        elif "/" in raw:
            host = urlparse(f"http://{raw}").hostname or ""
    except ValueError:
        return None

    host = host.strip().lower()
    if host.startswith("www."):
        host = host[4:]

    if not host or any(ch.isspace() for ch in host):
        return None
    return host


def is_http_url(url: object) -> bool:
    """True when the URL scheme is exactly http or https."""
    if not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_punycode_domain(domain: str) -> bool:
    """True when any dot-separated label is punycode encoded (xn--)."""
    return any(label.startswith("xn--") for label in (domain or "").split("."))


def display_domain(domain: str) -> str:
    """Render punycode labels as Unicode for human-readable output (best-effort)."""
    labels = []
    for label in (domain or "").split("."):
        if label.startswith("xn--"):
            try:
                label = idna.decode(label)
            except (idna.IDNAError, UnicodeError):
                pass
        labels.append(label)
    return ".".join(labels)


def truncate_middle(value: str, max_length: int) -> str:
    """Shorten a long string by replacing its middle with '...'."""
    if len(value) <= max_length:
        return value
    head = (max_length - 3) // 2
    tail = max_length - 3 - head
    return f"{value[:head]}...{value[len(value) - tail:]}"
