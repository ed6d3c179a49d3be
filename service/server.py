"""
FastAPI application entry point.

Startup sequence (via lifespan):
  1. Open one shared httpx.AsyncClient for the enrichment backend
  2. Register the output fields and build the ordered lookup queue
  3. Expose the tuple source on app.state for the routes

Shutdown waits up to shutdown_grace_seconds for queued lookups to drain,
then answers whatever is left with the empty result.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager

import httpx
import uvicorn
from api.routes import router
from config import settings
from enrichment.client import FlowEnrichmentClient
from enrichment.encoder import WiseResultEncoder
from enrichment.fields import FieldRegistry
from fastapi import FastAPI
from lookup.source import FlowTupleSource
from lookup.task_queue import OrderedTaskQueue

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def build_source(http_client: httpx.AsyncClient) -> FlowTupleSource:
    encoder = WiseResultEncoder()
    backend = FlowEnrichmentClient(
        host=settings.enrich_host,
        http_client=http_client,
        port=settings.enrich_port,
        path=settings.enrich_path,
        timeout_seconds=settings.request_timeout_seconds,
        max_attempts=settings.max_attempts,
    )
    return FlowTupleSource(
        backend=backend,
        queue=OrderedTaskQueue(empty_result=encoder.empty_result),
        encoder=encoder,
        registry=FieldRegistry(),
        source_name=settings.source_name,
    )


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Manage startup and shutdown lifecycle."""
    logger.info("Starting Flow Enrichment Connector")

    async with httpx.AsyncClient(timeout=settings.request_timeout_seconds) as http_client:
        source = build_source(http_client)
        application.state.source = source

        if settings.enrich_host:
            logger.info("Enrichment backend: %s:%d", settings.enrich_host, settings.enrich_port)
        else:
            logger.error("enrich_host is not set - every lookup will return an empty result")

        yield  # Application runs here

        try:
            await asyncio.wait_for(source.queue.join(), timeout=settings.shutdown_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning("Lookup queue did not drain within %.0fs", settings.shutdown_grace_seconds)
            await source.queue.abort()

    logger.info("Service shutdown complete")


app = FastAPI(
    title="Flow Enrichment Connector",
    description=(
        "Enriches network flows identified by tuple keys with application "
        "protocol, risk and flow statistics from an external enrichment "
        "backend, serializing lookups through an ordered single-flight queue."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


if __name__ == "__main__":
    uvicorn.run("server:app", host="0.0.0.0", port=8005, reload=False)
