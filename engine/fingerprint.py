"""Content fingerprints used as dedup keys for the result cache."""

from __future__ import annotations

import hashlib
import logging
import zlib

logger = logging.getLogger("condense.fingerprint")

NAMESPACE = "content:"
FALLBACK_NAMESPACE = "content-fallback:"

_URL_TAG = "url:"
_TEXT_TAG = "text:"
_HASH_NAME = "sha256"


def mode_tag(is_url: bool) -> str:
    return _URL_TAG if is_url else _TEXT_TAG


def fingerprint(content: str, is_url: bool, *, hash_name: str = _HASH_NAME) -> str:
    """Derive the cache key for *content* submitted in the given mode.

    The digest is computed over ``"<mode>:" + content`` so the same string
    submitted as text and as a URL never share an entry.  If the hash
    primitive is unavailable the key falls back to a length + CRC32 form under
    a separate namespace, so degraded keys never collide with primary ones.
    """
    tagged = (mode_tag(is_url) + content).encode("utf-8")
    try:
        digest = hashlib.new(hash_name, tagged).hexdigest()
    except ValueError:
        logger.warning("Hash %s unavailable; using fallback fingerprint.", hash_name)
        return f"{FALLBACK_NAMESPACE}{mode_tag(is_url)}{len(tagged)}:{zlib.crc32(tagged):08x}"
    return NAMESPACE + digest
