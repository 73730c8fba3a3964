"""
Fire-and-forget usage logging.

Each API call is recorded as one JSON document in the logs bucket. Uploads
run as background tasks; a failed upload is logged and counted, never
raised to the request that produced it.
"""

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Protocol, Set, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

REDACTED_HEADERS = frozenset({"x-api-key", "authorization", "apikey", "cookie"})


class LogSink(Protocol):
    async def put_log(self, dataset_id: str, timestamp_key: str, entry: bytes) -> None: ...


def format_timestamp(value: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {
        name: ("[redacted]" if name.lower() in REDACTED_HEADERS else value)
        for name, value in headers.items()
    }


class UsageLogger:
    """Schedules usage log uploads without blocking the caller."""

    def __init__(self, sink: LogSink, metrics: Optional["MetricsCollector"] = None):
        self.sink = sink
        self.metrics = metrics
        self.logger = get_logger("gateway.usage_logger")
        self._pending: Set[asyncio.Task] = set()

    def build_entry(
        self,
        *,
        tenant_name: str,
        endpoint_name: str,
        dataset_id: str,
        method: str,
        path: str,
        headers: Mapping[str, str],
        operation: str,
        query: Mapping[str, str],
        status_code: int,
        body: Any,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(now or datetime.now(timezone.utc)),
            "tenantName": tenant_name,
            "endpointName": endpoint_name,
            "apiId": dataset_id,
            "request": {
                "method": method,
                "path": path,
                "headers": redact_headers(headers),
                "operation": operation,
                "query": dict(query),
            },
            "response": {
                "statusCode": status_code,
                "body": body,
            },
        }

    def schedule(self, dataset_id: str, entry: Dict[str, Any]) -> asyncio.Task:
        """Start the upload in the background and return immediately."""
        # Suffix keeps two calls in the same millisecond from colliding
        timestamp_key = f"{entry['timestamp']}-{uuid.uuid4().hex[:8]}"
        task = asyncio.get_running_loop().create_task(self._upload(dataset_id, timestamp_key, entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _upload(self, dataset_id: str, timestamp_key: str, entry: Dict[str, Any]) -> None:
        try:
            payload = json.dumps(entry, default=str).encode("utf-8")
            await self.sink.put_log(dataset_id, timestamp_key, payload)
        except Exception as exc:
            self.logger.error("Error logging API call", dataset_id=dataset_id, error=str(exc))
            if self.metrics:
                self.metrics.increment_counter("usage_log_failures_total")

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for uploads still in flight."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
