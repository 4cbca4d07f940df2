# utils/hashing.py
"""Stable content fingerprints for cache keys.

FNV-1a (32-bit) over UTF-16 code units. Fast and deterministic, but not
collision resistant; swap ``fingerprint`` for a cryptographic digest if the
cache is ever shared between untrusted projects.
"""

from __future__ import annotations

_FNV_OFFSET_BASIS = 2166136261
_FNV_PRIME = 16777619
_MASK_32 = 0xFFFFFFFF


def fingerprint(text: str) -> str:
    """Return an 8-character hex digest of ``text``."""
    h = _FNV_OFFSET_BASIS
    data = text.encode("utf-16-le", errors="surrogatepass")
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * _FNV_PRIME) & _MASK_32
    return f"{h:08x}"


def composite_cache_key(
    role_name: str, chunk_fingerprint: str, instructions_fingerprint: str
) -> str:
    return f"{role_name}:{chunk_fingerprint}:{instructions_fingerprint}"
