"""
Request handling for tenant API calls.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Protocol

from shared.logging import get_logger, set_tenant_context
from shared.errors import (
    AuthenticationError,
    AuthorizationError,
    GatewayException,
    MethodNotAllowedError,
    ValidationError,
)
from ..adapters.credential_client import ApiCredential
from ..caching.dataset_cache import DatasetCache
from ..caching.models import Record
from ..query import filter_engine
from .usage_logger import UsageLogger

SUPPORTED_OPERATIONS = frozenset({"search"})


class CredentialLookup(Protocol):
    async def lookup(self, tenant_name: str, endpoint_name: str, api_key: str) -> Optional[ApiCredential]: ...


@dataclass
class ApiRequest:
    """Transport-independent view of one inbound call."""

    tenant_name: str
    endpoint_name: str
    operation: str
    method: str
    path: str
    api_key: Optional[str] = None
    query_string: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def routing_tokens(self) -> List[str]:
        return [self.tenant_name, self.endpoint_name, self.operation]


class ApiUsageService:
    """Authenticates a call, loads its dataset and filters it."""

    def __init__(
        self,
        credentials: CredentialLookup,
        dataset_cache: DatasetCache,
        usage_logger: UsageLogger,
    ):
        self.credentials = credentials
        self.dataset_cache = dataset_cache
        self.usage_logger = usage_logger
        self.logger = get_logger("gateway.api_usage")

    async def handle(self, request: ApiRequest) -> List[Record]:
        set_tenant_context(request.tenant_name)
        credential = await self.authenticate(request)
        set_tenant_context(dataset_id=credential.dataset_id)
        query = filter_engine.parse_query_string(request.query_string)

        try:
            result = await self._search(request, credential, query)
        except GatewayException as exc:
            status_code = exc.status_code if exc.status_code < 500 else 500
            self._log_call(request, credential, query, status_code, {"error": exc.message})
            raise

        self._log_call(request, credential, query, 200, result)
        return result

    async def authenticate(self, request: ApiRequest) -> ApiCredential:
        if not request.api_key:
            raise AuthenticationError("API key is missing")

        credential = await self.credentials.lookup(request.tenant_name, request.endpoint_name, request.api_key)
        if credential is None or not credential.is_active:
            raise AuthorizationError("Invalid or inactive API")

        if not credential.allows_method(request.method):
            raise MethodNotAllowedError(
                "Method not allowed for this API",
                details={"allowed": credential.method.upper()},
            )
        return credential

    async def _search(self, request: ApiRequest, credential: ApiCredential, query: Mapping[str, str]) -> List[Record]:
        if request.operation not in SUPPORTED_OPERATIONS:
            raise ValidationError("Unknown operation", details={"operation": request.operation})

        records = await self.dataset_cache.get(credential.dataset_id, request.routing_tokens)
        predicates = filter_engine.parse_predicates(query)
        result = filter_engine.apply(records, predicates)

        self.logger.info(
            "Query processed",
            dataset_id=credential.dataset_id,
            predicates=len(predicates),
            matched=len(result),
            total=len(records),
        )
        return result

    def _log_call(
        self,
        request: ApiRequest,
        credential: ApiCredential,
        query: Mapping[str, str],
        status_code: int,
        body,
    ) -> None:
        entry = self.usage_logger.build_entry(
            tenant_name=request.tenant_name,
            endpoint_name=request.endpoint_name,
            dataset_id=credential.dataset_id,
            method=request.method,
            path=request.path,
            headers=request.headers,
            operation=request.operation,
            query=query,
            status_code=status_code,
            body=body,
        )
        self.usage_logger.schedule(credential.dataset_id, entry)
