"""
Tuple key parser.

Turns the opaque flow identifier handed to us by the capture system into a
LookupKey. Two shapes are accepted:

  Two-part form (exactly one comma):
    "<idOrTime>;<l4proto>,<...;proto;sip;sport;dip;dport>"
    A purely numeric first token on the left is the flow's Unix timestamp
    (seconds). The right part is split on ';' and its last five non-empty
    tokens are (proto, sip, sport, dip, dport).

  Token run (anything else):
    "<...> proto sip sport dip dport" separated by ';', '|' or whitespace.
    Same last-five rule, no timestamp.

Parsing never raises: malformed input comes back as a ParseFailure so the
caller can answer with an empty result.
"""

import re
from typing import List, Optional, Union

from models import L4Protocol, LookupKey, ParseFailure

_DIGITS = re.compile(r"[0-9]+")
_TOKEN_SEPARATORS = re.compile(r"[;|\s]+")

# IANA protocol numbers we know by name
_PROTOCOL_NUMBERS = {
    "6": L4Protocol.tcp.value,
    "17": L4Protocol.udp.value,
}


def _is_numeric(token: str) -> bool:
    return bool(_DIGITS.fullmatch(token))


def normalize_protocol(token: Optional[str]) -> str:
    """'6' -> 'TCP', '17' -> 'UDP', other numbers unchanged, names uppercased."""
    token = token or ""
    if _is_numeric(token):
        return _PROTOCOL_NUMBERS.get(token, token)
    return token.upper()


def _key_from_tokens(tokens: List[str], timestamp: Optional[int]) -> LookupKey:
    proto, sip, sport, dip, dport = tokens[-5:]
    return LookupKey(
        protocol=normalize_protocol(proto),
        source_ip=sip,
        source_port=sport,
        dest_ip=dip,
        dest_port=dport,
        timestamp=timestamp,
    )


def parse_tuple_key(raw: object) -> Union[LookupKey, ParseFailure]:
    text = str(raw).strip()

    parts = text.split(",")
    if len(parts) == 2:
        left, right = parts
        id_or_time = left.split(";")[0]
        tokens = [t for t in right.split(";") if t]
        if len(tokens) < 5:
            return ParseFailure(raw=text, reason=f"expected 5 flow tokens after ',', got {len(tokens)}")
        timestamp = int(id_or_time) if _is_numeric(id_or_time) else None
        return _key_from_tokens(tokens, timestamp)

    tokens = [t for t in _TOKEN_SEPARATORS.split(text) if t]
    if len(tokens) >= 5:
        return _key_from_tokens(tokens, None)

    return ParseFailure(raw=text, reason=f"expected at least 5 flow tokens, got {len(tokens)}")
