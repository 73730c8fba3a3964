"""
Gateway caching package.

Read-through dataset cache between the gateway and the object store. Cache
state is disposable: it lives in a local scratch directory and an
in-process index, both of which may vanish with the instance at any time.
"""

from .dataset_cache import DatasetCache
from .models import CacheMetadata, MetadataIndex
from .scratch_store import ScratchStore

__all__ = [
    "CacheMetadata",
    "DatasetCache",
    "MetadataIndex",
    "ScratchStore",
]
