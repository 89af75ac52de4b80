"""
Cache key normalization for request paths.
"""

import re

KEY_SUBSTITUTE = "_"

_UNSAFE_KEY_CHARS = re.compile(r"[/\s]")


def normalize_cache_key(path: str) -> str:
    """Map a request path onto its cache key.

    Every ``/`` and whitespace character becomes ``_``. Nothing else is
    escaped, so ``/a b`` and ``/a/b`` share the key ``_a_b``.
    """
    return _UNSAFE_KEY_CHARS.sub(KEY_SUBSTITUTE, path)
