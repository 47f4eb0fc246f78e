"""URL sanitization shared by the normalizer and the display sanitizer.

:func:`sanitize_url` keeps only scheme, authority and path of an allowed
URL.  Query strings and fragments are always dropped, which removes the
tracking parameters marketing mail attaches to every link.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import urlsplit, urlunsplit

DEFAULT_SCHEMES = ("http", "https", "mailto")
DEFAULT_MAX_LENGTH = 2048

# Characters that make a reference an invalid URI.
_INVALID_URI_CHARS = re.compile(r"[\s<>\"\\^`{|}]")


def sanitize_url(
    url: str | None,
    allowed_schemes: Iterable[str] = DEFAULT_SCHEMES,
    max_length: int = DEFAULT_MAX_LENGTH,
) -> str | None:
    """Return a cleaned version of *url*, or *None* when it must be dropped.

    Parameters
    ----------
    url:
        Raw ``href`` or ``src`` value.
    allowed_schemes:
        Schemes that survive.  Anything else (``javascript:``, ``data:``,
        ``file:`` ...) is rejected.
    max_length:
        Upper bound on the rebuilt URL.

    Returns
    -------
    str | None
        ``scheme://authority/path`` for absolute URLs, the bare path for
        relative references, or *None* if the URL is blank, malformed,
        disallowed or too long.
    """
    if url is None or not url.strip():
        return None

    candidate = url.strip()
    if _INVALID_URI_CHARS.search(candidate):
        return None

    try:
        parts = urlsplit(candidate)
    except ValueError:
        return None

    if not parts.scheme:
        cleaned = parts.path
        if not cleaned.strip():
            return None
    else:
        schemes = {s.lower() for s in allowed_schemes}
        if parts.scheme.lower() not in schemes:
            return None
        cleaned = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))

    if len(cleaned) > max_length:
        return None
    return cleaned
