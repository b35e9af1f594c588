from __future__ import annotations

import hashlib

from .constants import CHECKSUM_LEN


def checksum(data: bytes) -> str:
    """8 hex characters identifying a message across both ends of a transfer."""
    return hashlib.sha1(data).hexdigest()[:CHECKSUM_LEN]
