"""
API Gateway service for tenant datasets.
"""

from typing import Optional

from fastapi import Request

from shared.base_service import BaseService
from shared.config import ServiceConfig
from service_gateway.app.adapters.credential_client import CredentialClient
from service_gateway.app.adapters.object_store_client import ObjectStoreClient
from service_gateway.app.caching.dataset_cache import DatasetCache, DatasetSource
from service_gateway.app.caching.scratch_store import ScratchStore
from service_gateway.app.domain.api_usage import ApiRequest, ApiUsageService, CredentialLookup
from service_gateway.app.domain.usage_logger import LogSink, UsageLogger

API_METHODS = ["GET", "POST", "PUT", "DELETE"]


class GatewayService(BaseService):
    """API Gateway service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        object_store: Optional[ObjectStoreClient] = None,
        credentials: Optional[CredentialLookup] = None,
        dataset_source: Optional[DatasetSource] = None,
        log_sink: Optional[LogSink] = None,
    ):
        super().__init__("gateway", 8000, config=config)

        self.object_store = object_store or ObjectStoreClient(
            self.config.object_store_url,
            self.config.object_store_key,
            data_bucket=self.config.data_bucket,
            logs_bucket=self.config.logs_bucket,
            timeout=self.config.store_timeout_seconds,
            metrics=self.metrics,
        )
        self.credentials = credentials or CredentialClient(
            self.config.object_store_url,
            self.config.object_store_key,
            table=self.config.credentials_table,
            timeout=self.config.store_timeout_seconds,
        )
        self.dataset_cache = DatasetCache(
            dataset_source or self.object_store,
            ScratchStore(self.config.cache_dir),
            expiration_seconds=self.config.cache_expiration_seconds,
            bypass_tokens=self.config.bypass_tokens,
            metrics=self.metrics,
        )
        self.usage_logger = UsageLogger(log_sink or self.object_store, metrics=self.metrics)
        self.api_usage = ApiUsageService(self.credentials, self.dataset_cache, self.usage_logger)

        @self.app.on_event("startup")
        async def _startup():
            # Entries left by an earlier process on this instance may be stale
            await self.dataset_cache.purge_expired()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.usage_logger.drain()

        self._setup_gateway_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.gateway_service = self

    def _setup_gateway_routes(self):
        """Set up gateway-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "gateway",
                "message": "Dataset Gateway - API Gateway",
                "version": "1.0.0",
            }

        @self.app.get("/v1/cache/stats")
        async def get_cache_stats():
            """Dataset cache counters and configuration."""
            return self.dataset_cache.stats()

        @self.app.api_route("/v1/api/use/{tenant_name}/{endpoint_name}/{operation}", methods=API_METHODS)
        async def use_api(tenant_name: str, endpoint_name: str, operation: str, request: Request):
            """Query the dataset behind a tenant API."""
            api_request = ApiRequest(
                tenant_name=tenant_name,
                endpoint_name=endpoint_name,
                operation=operation,
                method=request.method,
                path=request.url.path,
                api_key=request.headers.get("x-api-key"),
                query_string=request.url.query,
                headers=dict(request.headers),
            )
            return await self.api_usage.handle(api_request)


def create_app(**kwargs):
    """Create FastAPI application."""
    service = GatewayService(**kwargs)
    return service.app


if __name__ == "__main__":
    service = GatewayService()
    service.run()
