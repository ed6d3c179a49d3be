"""
Pydantic models - the data contracts for the service.

Separating models from routes lets us reuse schemas across the lookup
pipeline, the API, and tests without circular imports.
"""

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict


class L4Protocol(str, Enum):
    tcp = "TCP"
    udp = "UDP"


class FieldKind(str, Enum):
    string = "string"
    integer = "integer"
    float = "float"


# ── Lookup key (parsed tuple key) ─────────────────────────────────────────────


class LookupKey(BaseModel):
    """Structured form of a tuple key. Immutable once parsed."""

    model_config = ConfigDict(frozen=True)

    protocol: str
    source_ip: str
    source_port: str
    dest_ip: str
    dest_port: str
    timestamp: Optional[int] = None


# ── Enrichment result (what the backend tells us about a flow) ───────────────

NOT_AVAILABLE = "N/A"


class EnrichedFields(BaseModel):
    """
    One enrichment result. Field order is the encoding order.

    Absent values take the defaults below: 0 for numeric fields, "N/A" for
    string fields.
    """

    app_category: str = NOT_AVAILABLE
    app_protocol: str = NOT_AVAILABLE
    app_risk: str = NOT_AVAILABLE
    duration: float = 0
    protocol: str = NOT_AVAILABLE
    src2dst_bytes: int = 0
    dst2src_bytes: int = 0
    src2dst_packets: int = 0
    dst2src_packets: int = 0
    data_ratio: float = 0
    iat_flow_avg: float = 0
    pktlen_c_to_s_avg: float = 0
    pktlen_s_to_c_avg: float = 0
    tcp_ack_count: int = 0
    tcp_psh_count: int = 0
    encrypted: int = 0
    breed: str = NOT_AVAILABLE
    confidence: str = NOT_AVAILABLE
    risk_score_total: int = 0


# ── Lookup outcomes (internal result type, converted at the source boundary) ──


class _Outcome(BaseModel):
    model_config = ConfigDict(frozen=True)


class Success(_Outcome):
    enriched: EnrichedFields


class ParseFailure(_Outcome):
    raw: str
    reason: str


class ConfigurationMissing(_Outcome):
    setting: str


class NetworkFailure(_Outcome):
    message: str
    status_code: Optional[int] = None


class MalformedResponse(_Outcome):
    message: str


LookupOutcome = Union[Success, ParseFailure, ConfigurationMissing, NetworkFailure, MalformedResponse]


# ── API response models ───────────────────────────────────────────────────────


class FieldDefinitionResponse(BaseModel):
    id: int
    expression: str
    kind: FieldKind
    friendly: str
    definition: str


class TupleLookupResponse(BaseModel):
    key: str
    parsed: Optional[LookupKey] = None
    enriched: bool
    enrichment: Dict[str, str]


class HealthStatus(str, Enum):
    ok = "ok"
    degraded = "degraded"


class HealthResponse(BaseModel):
    status: HealthStatus
    enrich_host: Optional[str] = None
    queue_depth: int
    worker_running: bool
    stats: Dict[str, int]


class FieldListResponse(BaseModel):
    source: str
    fields: List[FieldDefinitionResponse]
