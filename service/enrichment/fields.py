"""
Output field registry.

The record encoder identifies fields by small integers. The registry hands
those out in registration order and keeps the definition strings the capture
host needs to declare the fields on its side.
"""

from dataclasses import dataclass
from typing import Dict, List

from enrichment.response import field_kind
from models import EnrichedFields, FieldKind

# Friendly names, in EnrichedFields order
_FRIENDLY_NAMES = {
    "app_category": "App Category",
    "app_protocol": "App Protocol",
    "app_risk": "App Risk",
    "duration": "Flow Duration (s)",
    "protocol": "L4 Protocol",
    "src2dst_bytes": "Src→Dst Bytes",
    "dst2src_bytes": "Dst→Src Bytes",
    "src2dst_packets": "Src→Dst Packets",
    "dst2src_packets": "Dst→Src Packets",
    "data_ratio": "Data Ratio",
    "iat_flow_avg": "IAT Flow Avg",
    "pktlen_c_to_s_avg": "C→S Pktlen Avg",
    "pktlen_s_to_c_avg": "S→C Pktlen Avg",
    "tcp_ack_count": "TCP ACK Count",
    "tcp_psh_count": "TCP PSH Count",
    "encrypted": "Encrypted",
    "breed": "App Breed",
    "confidence": "Detection Confidence",
    "risk_score_total": "Total Risk Score",
}


@dataclass(frozen=True)
class FieldDefinition:
    expression: str
    kind: FieldKind
    friendly: str

    def definition(self) -> str:
        return f"field:{self.expression};db:{self.expression};kind:{self.kind.value};friendly:{self.friendly}"


class FieldRegistry:
    def __init__(self):
        self._fields: List[FieldDefinition] = []
        self._ids: Dict[str, int] = {}

    def add_field(self, field: FieldDefinition) -> int:
        """Register a field and return its id. Re-registering returns the existing id."""
        if field.expression in self._ids:
            return self._ids[field.expression]
        if len(self._fields) >= 255:
            raise ValueError("field registry is full (255 fields)")
        field_id = len(self._fields)
        self._fields.append(field)
        self._ids[field.expression] = field_id
        return field_id

    def get(self, field_id: int) -> FieldDefinition:
        return self._fields[field_id]

    def items(self) -> List[tuple]:
        return list(enumerate(self._fields))

    def __len__(self) -> int:
        return len(self._fields)


def register_enrichment_fields(registry: FieldRegistry, source_name: str) -> Dict[str, int]:
    """Declare every EnrichedFields attribute under '<source_name>.' and map attribute -> id."""
    ids = {}
    for name in EnrichedFields.model_fields:
        definition = FieldDefinition(
            expression=f"{source_name}.{name}",
            kind=field_kind(name),
            friendly=_FRIENDLY_NAMES.get(name, name),
        )
        ids[name] = registry.add_field(definition)
    return ids
