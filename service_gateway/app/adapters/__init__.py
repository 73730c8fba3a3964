"""
Adapters package for the Gateway Service.

HTTP client wrappers for the backing store. These adapters encapsulate:

- Base URLs and request shapes
- Circuit breakers
- Error handling that maps to shared errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .credential_client import ApiCredential, CredentialClient
from .object_store_client import ObjectStoreClient

__all__ = [
    "ApiCredential",
    "CredentialClient",
    "ObjectStoreClient",
]
