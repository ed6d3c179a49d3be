"""
Backend response mapping: JSON payload -> EnrichedFields.

app_risk arrives in several shapes depending on the backend version:
  list   -> one 'id=.., risk="..", severity=.., score=..' entry per risk, joined with ' | '
  object -> compact JSON
  scalar -> its string form
  absent -> RISK_PLACEHOLDER
Every other field falls back to the EnrichedFields defaults when absent, null
or unusable. Object or list values of string fields become compact JSON;
fractional values of integer fields are rounded.
"""

import json
import logging
import math
from typing import Any, Optional, Union

from models import NOT_AVAILABLE, EnrichedFields, FieldKind, MalformedResponse

logger = logging.getLogger(__name__)

RISK_PLACEHOLDER = NOT_AVAILABLE
RISK_SEPARATOR = " | "

# Fields rendered to text; everything else is numeric
_STRING_FIELDS = frozenset(
    name for name, info in EnrichedFields.model_fields.items() if info.annotation is str
)


def render_value(value: Any) -> str:
    """String form of a JSON value as it appears inside a risk summary."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return _compact_json(value)
    return str(value)


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _format_risk_entry(entry: Any) -> str:
    if not isinstance(entry, dict):
        return render_value(entry)
    score = entry.get("score")
    score_text = _compact_json(score) if score else ""
    return (
        f"id={render_value(entry.get('id'))}, "
        f"risk=\"{render_value(entry.get('risk'))}\", "
        f"severity={render_value(entry.get('severity'))}, "
        f"score={score_text}"
    )


def format_app_risk(app_risk: Any) -> str:
    if isinstance(app_risk, list):
        return RISK_SEPARATOR.join(_format_risk_entry(entry) for entry in app_risk)
    if isinstance(app_risk, dict):
        return _compact_json(app_risk)
    if app_risk:
        return render_value(app_risk)
    return RISK_PLACEHOLDER


def field_kind(name: str) -> FieldKind:
    annotation = EnrichedFields.model_fields[name].annotation
    if annotation is str:
        return FieldKind.string
    if annotation is int:
        return FieldKind.integer
    return FieldKind.float


def _coerce_string(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return _compact_json(value)
    return render_value(value)


def _coerce_number(name: str, value: Any) -> Optional[Union[int, float]]:
    """Numeric value for one field, or None when the value is unusable."""
    integer_field = field_kind(name) is FieldKind.integer
    if isinstance(value, int):
        return int(value) if integer_field else float(value)
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    if integer_field:
        # fractional counts/scores are rounded rather than discarded
        return int(round(number))
    return number


def map_response(payload: Any) -> Union[EnrichedFields, MalformedResponse]:
    """
    Map a decoded JSON payload onto EnrichedFields, one field at a time.

    A value that cannot be used for its field leaves that field at its
    default (with a warning); the rest of the payload is kept.
    """
    if not isinstance(payload, dict):
        return MalformedResponse(message=f"expected a JSON object, got {type(payload).__name__}")

    values = {"app_risk": format_app_risk(payload.get("app_risk"))}
    for name in EnrichedFields.model_fields:
        value = payload.get(name)
        if name == "app_risk" or value is None:
            continue
        if name in _STRING_FIELDS:
            values[name] = _coerce_string(value)
            continue
        number = _coerce_number(name, value)
        if number is None:
            logger.warning("Ignoring unusable %s value from backend: %r", name, value)
            continue
        values[name] = number

    return EnrichedFields(**values)
