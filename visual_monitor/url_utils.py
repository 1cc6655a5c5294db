"""Shared URL utilities: derive stable, filesystem-safe target identifiers."""

from __future__ import annotations

import hashlib
import re
from urllib.parse import urlparse

_NON_ALNUM = re.compile(r"[^a-z0-9]+", re.IGNORECASE)


def validate_url(url: str) -> str:
    """Return the URL unchanged if it is an absolute http(s) URL."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError(f"Not an absolute http(s) URL: {url!r}")
    return url


def slug_from_url(url: str) -> str:
    """Generate a stable identifier from host, path and a hash of the full URL.

    The readable part alone can collide (``/a-b`` and ``/a/b`` both become
    ``a-b``), so a short SHA-1 of the exact URL string is appended.
    """
    parsed = urlparse(url)
    path = parsed.path or "/"
    raw = re.sub(r"/+$", "/", f"{parsed.hostname or ''}{path}")
    readable = _NON_ALNUM.sub("-", raw).strip("-").lower()
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:10]
    return f"{readable}__{digest}"
