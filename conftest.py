"""
Shared fixtures for gateway tests.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import pytest

from shared.errors import ObjectNotFoundError
from service_gateway.app.adapters.credential_client import ApiCredential
from service_gateway.app.caching.scratch_store import ScratchStore


class FakeObjectStore:
    """In-memory object store recording every call."""

    def __init__(self, datasets: Optional[Dict[str, Any]] = None):
        self.datasets: Dict[str, Any] = dict(datasets or {})
        self.fetch_calls: List[str] = []
        self.logs: List[Tuple[str, str, bytes]] = []
        self.fetch_error: Optional[Exception] = None
        self.log_error: Optional[Exception] = None
        self.fetch_delay = 0.0

    async def fetch(self, dataset_id: str) -> bytes:
        self.fetch_calls.append(dataset_id)
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        if self.fetch_error is not None:
            raise self.fetch_error
        if dataset_id not in self.datasets:
            raise ObjectNotFoundError("object_store", f"Dataset {dataset_id} not found")
        data = self.datasets[dataset_id]
        return data if isinstance(data, bytes) else json.dumps(data).encode("utf-8")

    async def put_log(self, dataset_id: str, timestamp_key: str, entry: bytes) -> None:
        if self.log_error is not None:
            raise self.log_error
        self.logs.append((dataset_id, timestamp_key, entry))

    def log_entries(self) -> List[Dict[str, Any]]:
        return [json.loads(entry) for _, _, entry in self.logs]


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCredentials:
    """Credential lookup backed by a dict keyed on (tenant, endpoint, key)."""

    def __init__(self):
        self.records: Dict[Tuple[str, str, str], ApiCredential] = {}
        self.calls: List[Tuple[str, str, str]] = []

    def add(self, tenant_name: str, endpoint_name: str, api_key: str, dataset_id: str,
            method: str = "GET", status: str = "active") -> ApiCredential:
        credential = ApiCredential(
            id=dataset_id,
            tenant_name=tenant_name,
            endpoint_name=endpoint_name,
            method=method,
            status=status,
        )
        self.records[(tenant_name, endpoint_name, api_key)] = credential
        return credential

    async def lookup(self, tenant_name: str, endpoint_name: str, api_key: str) -> Optional[ApiCredential]:
        self.calls.append((tenant_name, endpoint_name, api_key))
        return self.records.get((tenant_name, endpoint_name, api_key))


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def credentials():
    return FakeCredentials()


@pytest.fixture
def scratch(tmp_path):
    return ScratchStore(str(tmp_path / "api-cache"))
