"""
Binary result encoder for the capture host.

Layout:
  [count: u8] then per field [field id: u8][len+1: u8][utf-8 value][0x00]

An empty result is a single zero count byte. Values over 254 bytes are cut
at a character boundary and a warning is logged.
"""

import logging
import struct
from typing import Any, List, Sequence, Tuple

logger = logging.getLogger(__name__)

EMPTY_RESULT = b"\x00"
MAX_FIELDS = 255
MAX_VALUE_BYTES = 254


def _value_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _truncate_utf8(data: bytes, limit: int) -> bytes:
    if len(data) <= limit:
        return data
    # drop any partial multi-byte character left at the cut
    return data[:limit].decode("utf-8", errors="ignore").encode("utf-8")


class WiseResultEncoder:
    @property
    def empty_result(self) -> bytes:
        return EMPTY_RESULT

    def encode(self, pairs: Sequence[Tuple[int, Any]]) -> bytes:
        if len(pairs) > MAX_FIELDS:
            raise ValueError(f"cannot encode more than {MAX_FIELDS} fields")
        out = bytearray(struct.pack("B", len(pairs)))
        for field_id, value in pairs:
            raw = _value_text(value).encode("utf-8")
            data = _truncate_utf8(raw, MAX_VALUE_BYTES)
            if len(data) < len(raw):
                logger.warning("Truncated value of field %d from %d to %d bytes", field_id, len(raw), len(data))
            out += struct.pack("BB", field_id, len(data) + 1)
            out += data
            out += b"\x00"
        return bytes(out)

    def decode(self, blob: bytes) -> List[Tuple[int, str]]:
        """Inverse of encode(). Raises ValueError on a truncated blob."""
        if not blob:
            raise ValueError("empty blob")
        count = blob[0]
        offset = 1
        pairs = []
        for _ in range(count):
            if offset + 2 > len(blob):
                raise ValueError("truncated field header")
            field_id, length = struct.unpack_from("BB", blob, offset)
            start = offset + 2
            end = start + length - 1
            if length == 0 or end >= len(blob):
                raise ValueError("truncated field value")
            pairs.append((field_id, blob[start:end].decode("utf-8")))
            offset = end + 1
        return pairs
