"""
Object store client for Gateway.

Talks to a Supabase-compatible storage API: datasets live at
``<data_bucket>/<dataset_id>/data.json`` and usage logs are uploaded to
``<logs_bucket>/<dataset_id>/<timestamp_key>.json``.
"""

import time
from typing import Optional, TYPE_CHECKING
from urllib.parse import quote

import httpx

from shared.logging import get_logger
from shared.errors import ExternalServiceError, ObjectNotFoundError
from shared.circuit_breaker import CircuitBreaker

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

SERVICE_NAME = "object_store"


class ObjectStoreClient:
    """Client for the dataset and log buckets."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        data_bucket: str = "api-data",
        logs_bucket: str = "api-logs",
        timeout: float = 10.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.data_bucket = data_bucket
        self.logs_bucket = logs_bucket
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("gateway.object_store")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=30.0,
            name=SERVICE_NAME,
            ignored_exceptions=(ObjectNotFoundError,),
        )

    def _headers(self) -> dict:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }

    def _object_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/{bucket}/{quote(path)}"

    async def fetch(self, dataset_id: str) -> bytes:
        """Download the authoritative snapshot of a dataset."""
        url = self._object_url(self.data_bucket, f"{dataset_id}/data.json")

        async def _download() -> bytes:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=self._headers())

            if response.status_code == 200:
                self.logger.debug("Dataset downloaded", dataset_id=dataset_id, size=len(response.content))
                return response.content

            # Storage reports missing objects as 404, older releases as 400
            if response.status_code in (400, 404):
                raise ObjectNotFoundError(
                    SERVICE_NAME,
                    f"Dataset {dataset_id} not found",
                    details={"status_code": response.status_code},
                )

            raise ExternalServiceError(
                SERVICE_NAME,
                f"Unexpected status {response.status_code}",
                details={"status_code": response.status_code, "body": response.text},
            )

        start = time.perf_counter()
        result = "error"
        try:
            content = await self.circuit_breaker.call(_download)
            result = "ok"
            return content
        except ExternalServiceError:
            raise
        except Exception as exc:
            self.logger.error("Object store error", error=str(exc), dataset_id=dataset_id)
            raise ExternalServiceError(
                SERVICE_NAME,
                str(exc),
                details={"dataset_id": dataset_id},
            ) from exc
        finally:
            self._record_fetch(result, time.perf_counter() - start)

    async def put_log(self, dataset_id: str, timestamp_key: str, entry: bytes) -> None:
        """Upload one usage log entry."""
        url = self._object_url(self.logs_bucket, f"{dataset_id}/{timestamp_key}.json")
        headers = {**self._headers(), "Content-Type": "application/json"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(url, content=entry, headers=headers)

        if response.status_code not in (200, 201):
            raise ExternalServiceError(
                SERVICE_NAME,
                f"Log upload failed with status {response.status_code}",
                details={"status_code": response.status_code, "body": response.text},
            )

    def _record_fetch(self, result: str, duration: float) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.observe_histogram("object_store_fetch_duration_seconds", duration, result=result)
        except Exception as exc:  # pragma: no cover - metrics failures should never break fetches
            self.logger.debug("Failed to record fetch metrics", error=str(exc))
