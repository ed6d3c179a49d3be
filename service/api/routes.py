import logging

from enrichment.tuple_key import parse_tuple_key
from fastapi import APIRouter, Query, Request, Response
from lookup.source import FlowTupleSource
from models import (
    FieldDefinitionResponse,
    FieldListResponse,
    HealthResponse,
    HealthStatus,
    LookupKey,
    TupleLookupResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _source(request: Request) -> FlowTupleSource:
    return request.app.state.source


@router.get("/tuple", response_model=TupleLookupResponse)
async def lookup_tuple(
    request: Request,
    key: str = Query(..., min_length=1, description="Tuple key of the flow to enrich"),
):
    """
    Enriches one flow and returns the decoded fields as JSON.

    Always 200: a flow that could not be enriched (bad key, backend down,
    no host configured) comes back with enriched=false and no fields.
    """
    source = _source(request)
    blob = await source.lookup(key)
    parsed = parse_tuple_key(key)
    enrichment = source.decode(blob)
    return TupleLookupResponse(
        key=key,
        parsed=parsed if isinstance(parsed, LookupKey) else None,
        enriched=bool(enrichment),
        enrichment=enrichment,
    )


@router.get("/tuple/raw")
async def lookup_tuple_raw(
    request: Request,
    key: str = Query(..., min_length=1, description="Tuple key of the flow to enrich"),
):
    """Same lookup as /tuple, answered with the binary encoded result."""
    blob = await _source(request).lookup(key)
    return Response(content=blob, media_type="application/octet-stream")


@router.get("/fields", response_model=FieldListResponse)
def list_fields(request: Request):
    """Field definitions the capture host must declare before using /tuple/raw results."""
    source = _source(request)
    return FieldListResponse(
        source=source.source_name,
        fields=[
            FieldDefinitionResponse(
                id=field_id,
                expression=field.expression,
                kind=field.kind,
                friendly=field.friendly,
                definition=field.definition(),
            )
            for field_id, field in source.registry.items()
        ],
    )


@router.get("/health", response_model=HealthResponse)
def health(request: Request):
    """
    Lightweight health check. Does NOT call the enrichment backend.

    Status semantics:
      ok       - backend host configured
      degraded - no backend host; every lookup answers with the empty result
    """
    source = _source(request)
    return HealthResponse(
        status=HealthStatus.ok if source.configured else HealthStatus.degraded,
        enrich_host=source.backend_host,
        queue_depth=source.queue.pending_count,
        worker_running=source.queue.is_running,
        stats=dict(source.stats),
    )
