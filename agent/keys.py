from __future__ import annotations

import re

MAX_KEY_LENGTH = 50

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def derive_cache_key(query: str) -> str:
    """Normalize free text into a cache key.

    Lower-cases, drops everything but ASCII letters and digits, and keeps
    the first 50 characters. Inputs without any alphanumerics all map to
    the empty key.
    """
    return _NON_ALNUM.sub("", query.lower())[:MAX_KEY_LENGTH]
