"""
Local scratch directory backing the dataset cache.

Each dataset has two files: ``<id>-data.json`` holding the records and
``<id>-metadata.json`` holding the fetch timestamp. Both are published by
writing a temp file in the same directory and renaming it over the target,
so readers see either the previous or the new file, never a partial one.
"""

import asyncio
import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, List, Optional
from urllib.parse import quote, unquote

from shared.logging import get_logger
from .models import CacheMetadata, Record, validate_records

DATA_SUFFIX = "-data.json"
METADATA_SUFFIX = "-metadata.json"
TEMP_SUFFIX = ".tmp"


class ScratchStore:
    """Durable-for-process-lifetime file store for cache entries."""

    def __init__(self, cache_dir: str):
        self.cache_dir = Path(cache_dir)
        self.logger = get_logger("gateway.scratch_store")

    def _file_stem(self, dataset_id: str) -> str:
        return quote(dataset_id, safe="-_.")

    def data_path(self, dataset_id: str) -> Path:
        return self.cache_dir / f"{self._file_stem(dataset_id)}{DATA_SUFFIX}"

    def metadata_path(self, dataset_id: str) -> Path:
        return self.cache_dir / f"{self._file_stem(dataset_id)}{METADATA_SUFFIX}"

    async def read_payload(self, dataset_id: str) -> List[Record]:
        """Load cached records. Raises OSError or ValueError when unreadable."""
        path = self.data_path(dataset_id)

        def _read() -> List[Record]:
            with open(path, "r", encoding="utf-8") as handle:
                return validate_records(json.load(handle))

        return await asyncio.to_thread(_read)

    async def write_payload(self, dataset_id: str, records: List[Record]) -> None:
        await asyncio.to_thread(self._write_atomic, self.data_path(dataset_id), records)

    async def read_metadata(self, dataset_id: str) -> Optional[CacheMetadata]:
        """Load durable metadata; missing or unreadable files count as absent."""
        path = self.metadata_path(dataset_id)

        def _read() -> Optional[CacheMetadata]:
            try:
                with open(path, "r", encoding="utf-8") as handle:
                    return CacheMetadata.from_dict(json.load(handle))
            except FileNotFoundError:
                return None
            except (OSError, ValueError, KeyError, TypeError) as exc:
                self.logger.warning("Ignoring unreadable cache metadata", dataset_id=dataset_id, error=str(exc))
                return None

        return await asyncio.to_thread(_read)

    async def write_metadata(self, metadata: CacheMetadata) -> None:
        await asyncio.to_thread(self._write_atomic, self.metadata_path(metadata.dataset_id), metadata.to_dict())

    async def remove(self, dataset_id: str) -> None:
        """Delete both files of an entry; metadata goes first."""

        def _remove() -> None:
            for path in (self.metadata_path(dataset_id), self.data_path(dataset_id)):
                with contextlib.suppress(FileNotFoundError):
                    path.unlink()

        await asyncio.to_thread(_remove)

    async def list_dataset_ids(self) -> List[str]:
        """Dataset ids that have a metadata file."""

        def _scan() -> List[str]:
            if not self.cache_dir.is_dir():
                return []
            return sorted(
                unquote(path.name[: -len(METADATA_SUFFIX)])
                for path in self.cache_dir.iterdir()
                if path.name.endswith(METADATA_SUFFIX)
            )

        return await asyncio.to_thread(_scan)

    async def sweep_orphans(self) -> List[str]:
        """Delete leftover temp files and payloads without a metadata file.

        Only safe while no writer is active, i.e. at startup.
        """

        def _sweep() -> List[str]:
            if not self.cache_dir.is_dir():
                return []
            names = {path.name for path in self.cache_dir.iterdir()}
            removed = []
            for name in sorted(names):
                is_temp = name.startswith(".") and name.endswith(TEMP_SUFFIX)
                is_orphan_payload = (
                    name.endswith(DATA_SUFFIX)
                    and f"{name[: -len(DATA_SUFFIX)]}{METADATA_SUFFIX}" not in names
                )
                if is_temp or is_orphan_payload:
                    with contextlib.suppress(FileNotFoundError):
                        (self.cache_dir / name).unlink()
                    removed.append(name)
            return removed

        return await asyncio.to_thread(_sweep)

    def _write_atomic(self, path: Path, data: Any) -> None:
        """Write JSON to a temp file in the target directory, then rename it into place."""
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=TEMP_SUFFIX)

        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, separators=(",", ":"))
            os.replace(temp_path, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(temp_path)
            raise
