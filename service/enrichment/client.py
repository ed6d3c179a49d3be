"""
HTTP client for the flow enrichment backend.

  GET http://<host>:<port>/enrich?src_ip=&dest_ip=&src_port=&dst_port=&proto=&t=

Every call carries a fixed timeout. Retries use tenacity and are off by
default (max_attempts=1); when enabled they only cover timeouts, network
errors and 5xx responses - 4xx means WE sent a bad request.

fetch() never raises for backend trouble: failures come back as
NetworkFailure / MalformedResponse / ConfigurationMissing outcomes.
"""

import logging
from typing import Dict, Optional

import httpx
from enrichment.base import EnrichmentBackend
from enrichment.response import map_response
from models import (
    ConfigurationMissing,
    LookupKey,
    LookupOutcome,
    MalformedResponse,
    NetworkFailure,
    Success,
)
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = logging.getLogger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TimeoutException):
        return True
    if isinstance(exc, httpx.NetworkError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


def build_params(key: LookupKey) -> Dict[str, str]:
    params = {
        "src_ip": key.source_ip,
        "dest_ip": key.dest_ip,
        "src_port": key.source_port,
        "dst_port": key.dest_port,
        "proto": key.protocol,
    }
    if key.timestamp is not None:
        params["t"] = str(key.timestamp)
    return params


class FlowEnrichmentClient(EnrichmentBackend):
    def __init__(
        self,
        host: Optional[str],
        http_client: httpx.AsyncClient,
        port: int = 5000,
        path: str = "/enrich",
        timeout_seconds: float = 5.0,
        max_attempts: int = 1,
    ):
        self._host = host
        self._http = http_client
        self._port = port
        self._path = path
        self._timeout = timeout_seconds
        self._max_attempts = max(1, max_attempts)

    @property
    def configured(self) -> bool:
        return bool(self._host)

    @property
    def host(self) -> Optional[str]:
        return self._host

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self._port}{self._path}"

    async def _get(self, params: Dict[str, str]) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential_jitter(initial=0.5, max=4),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                response = await self._http.get(self.url, params=params, timeout=self._timeout)
                response.raise_for_status()
        return response

    async def fetch(self, key: LookupKey) -> LookupOutcome:
        if not self.configured:
            return ConfigurationMissing(setting="enrich_host")

        try:
            response = await self._get(build_params(key))
        except httpx.HTTPStatusError as exc:
            return NetworkFailure(
                message=f"backend returned HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            )
        except httpx.TimeoutException:
            return NetworkFailure(message=f"backend timed out after {self._timeout:g}s")
        except httpx.HTTPError as exc:
            return NetworkFailure(message=f"{type(exc).__name__}: {exc}")

        try:
            payload = response.json()
        except ValueError as exc:
            return MalformedResponse(message=f"response is not JSON: {exc}")

        mapped = map_response(payload)
        if isinstance(mapped, MalformedResponse):
            return mapped
        return Success(enriched=mapped)
