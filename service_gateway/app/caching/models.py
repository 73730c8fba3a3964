"""
Dataset cache types.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Union

Scalar = Union[str, int, float, bool, None]
Record = Dict[str, Scalar]


@dataclass(frozen=True)
class CacheMetadata:
    """Freshness information for one cached dataset."""

    dataset_id: str
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, now: float, expiration_seconds: float) -> bool:
        return self.age(now) < expiration_seconds

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheMetadata":
        return cls(dataset_id=str(data["dataset_id"]), fetched_at=float(data["fetched_at"]))


class MetadataIndex:
    """In-process metadata lookup, one per cache instance.

    Holds only what the scratch directory already has; after a restart it
    starts empty and is rehydrated lazily.
    """

    def __init__(self):
        self._entries: Dict[str, CacheMetadata] = {}

    def get(self, dataset_id: str) -> Optional[CacheMetadata]:
        return self._entries.get(dataset_id)

    def set(self, metadata: CacheMetadata) -> None:
        self._entries[metadata.dataset_id] = metadata

    def discard(self, dataset_id: str) -> None:
        self._entries.pop(dataset_id, None)

    def __len__(self) -> int:
        return len(self._entries)


def validate_records(payload: Any) -> List[Record]:
    """Check that a decoded payload is a list of JSON objects."""
    if not isinstance(payload, list):
        raise ValueError(f"dataset payload must be a JSON array, got {type(payload).__name__}")
    for index, record in enumerate(payload):
        if not isinstance(record, dict):
            raise ValueError(f"record {index} is not a JSON object")
    return payload
