"""Response stream decoding.

Reconstructs a response body from raw provider fragments.
"""

from .decoder import (
    DEFAULT_FALLBACK_THRESHOLD,
    DecodedFragment,
    FragmentKind,
    StreamDecoder,
    decode_all,
    payload_from,
)
from .scanner import ScanResult, ScanStatus, scan_balanced

__all__ = [
    "DEFAULT_FALLBACK_THRESHOLD",
    "DecodedFragment",
    "FragmentKind",
    "ScanResult",
    "ScanStatus",
    "StreamDecoder",
    "decode_all",
    "payload_from",
    "scan_balanced",
]
