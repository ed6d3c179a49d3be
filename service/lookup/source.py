"""
Tuple enrichment source: the public lookup entry point.

  tuple key → parse → OrderedTaskQueue → backend fetch → encode → callback(None, blob)

The callback's error slot is always None. Every failure (bad tuple key,
no backend host, network trouble, malformed payload) is logged here and
answered with the empty result, so a failed enrichment never holds up the
flow record it belongs to.
"""

import asyncio
import logging
from collections import Counter
from typing import Dict, Optional

from enrichment.base import EnrichmentBackend
from enrichment.encoder import WiseResultEncoder
from enrichment.fields import FieldRegistry, register_enrichment_fields
from enrichment.tuple_key import parse_tuple_key
from lookup.task_queue import LookupTask, OrderedTaskQueue, ResultCallback
from models import (
    ConfigurationMissing,
    EnrichedFields,
    LookupKey,
    LookupOutcome,
    MalformedResponse,
    NetworkFailure,
    ParseFailure,
    Success,
)

logger = logging.getLogger(__name__)

_OUTCOME_STATS = {
    Success: "enriched",
    ParseFailure: "parse_failures",
    ConfigurationMissing: "configuration_missing",
    NetworkFailure: "network_failures",
    MalformedResponse: "malformed_responses",
}


class FlowTupleSource:
    def __init__(
        self,
        backend: EnrichmentBackend,
        queue: OrderedTaskQueue,
        encoder: WiseResultEncoder,
        registry: FieldRegistry,
        source_name: str = "flowenrich",
    ):
        self._backend = backend
        self._queue = queue
        self._encoder = encoder
        self._registry = registry
        self.source_name = source_name
        self._field_ids: Dict[str, int] = register_enrichment_fields(registry, source_name)
        self.stats: Counter = Counter({"requests": 0, **{name: 0 for name in _OUTCOME_STATS.values()}})

    @property
    def empty_result(self) -> bytes:
        return self._encoder.empty_result

    @property
    def configured(self) -> bool:
        return self._backend.configured

    @property
    def backend_host(self) -> Optional[str]:
        return self._backend.host

    @property
    def queue(self) -> OrderedTaskQueue:
        return self._queue

    @property
    def registry(self) -> FieldRegistry:
        return self._registry

    def encode(self, fields: EnrichedFields) -> bytes:
        values = fields.model_dump()
        return self._encoder.encode([(self._field_ids[name], values[name]) for name in self._field_ids])

    def resolve(self, outcome: LookupOutcome, tuple_key: str = "") -> bytes:
        """Convert an internal outcome into the encoded result handed to callers."""
        self.stats[_OUTCOME_STATS[type(outcome)]] += 1

        if isinstance(outcome, Success):
            return self.encode(outcome.enriched)
        if isinstance(outcome, ParseFailure):
            logger.warning("Tuple key parse failed (%s): %r", outcome.reason, outcome.raw)
        elif isinstance(outcome, ConfigurationMissing):
            logger.error("No enrichment backend host configured (%s)", outcome.setting)
        elif isinstance(outcome, NetworkFailure):
            logger.error("Enrichment lookup failed for %s: %s", tuple_key, outcome.message)
        else:
            logger.error("Malformed enrichment response for %s: %s", tuple_key, outcome.message)
        return self.empty_result

    def get_tuple(self, tuple_key: str, callback: ResultCallback) -> Optional[LookupTask]:
        """
        Queue an enrichment lookup for one tuple key.

        Must be called from the event loop. The callback always receives
        (None, result); the result is the empty result when nothing could be
        looked up. Returns the queued task, or None when the lookup was
        answered immediately.
        """
        self.stats["requests"] += 1

        parsed = parse_tuple_key(tuple_key)
        if isinstance(parsed, ParseFailure):
            callback(None, self.resolve(parsed))
            return None
        if not self._backend.configured:
            callback(None, self.resolve(ConfigurationMissing(setting="enrich_host")))
            return None

        return self._queue.enqueue(
            LookupTask(
                run=self._make_run(parsed, tuple_key, callback),
                callback=callback,
                key=parsed,
                timestamp=parsed.timestamp,
            )
        )

    def _make_run(self, key: LookupKey, tuple_key: str, callback: ResultCallback):
        async def run() -> None:
            outcome = await self._backend.fetch(key)
            callback(None, self.resolve(outcome, tuple_key))

        return run

    async def lookup(self, tuple_key: str) -> bytes:
        """Awaitable form of get_tuple()."""
        future = asyncio.get_running_loop().create_future()

        def _done(_error: Optional[BaseException], result: bytes) -> None:
            if not future.done():
                future.set_result(result)

        self.get_tuple(tuple_key, _done)
        return await future

    def decode(self, blob: bytes) -> Dict[str, str]:
        """Decode an encoded result into {short field name: value}."""
        prefix = f"{self.source_name}."
        decoded = {}
        for field_id, value in self._encoder.decode(blob):
            expression = self._registry.get(field_id).expression
            decoded[expression[len(prefix):] if expression.startswith(prefix) else expression] = value
        return decoded
