"""
Credential lookup client for Gateway.
"""

from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from shared.logging import get_logger
from shared.errors import ExternalServiceError
from shared.circuit_breaker import CircuitBreaker

SERVICE_NAME = "credential_lookup"


class ApiCredential(BaseModel):
    """One configured API: who may call it and which dataset it serves."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    dataset_id: str = Field(alias="id")
    tenant_name: str
    endpoint_name: str
    method: str = "GET"
    status: str = "inactive"

    @field_validator("dataset_id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> Any:
        # int8 primary keys arrive as JSON numbers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("method", "status", mode="before")
    @classmethod
    def default_when_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def allows_method(self, method: str) -> bool:
        return self.method.upper() == method.upper()


class CredentialClient:
    """Looks up API records through the PostgREST interface of the store."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        table: str = "apis",
        timeout: float = 10.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.table = table
        self.timeout = timeout
        self.logger = get_logger("gateway.credential_client")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=30.0,
            name=SERVICE_NAME,
        )

    async def lookup(self, tenant_name: str, endpoint_name: str, api_key: str) -> Optional[ApiCredential]:
        """Return the API record matching all three values, or None."""
        params = {
            "select": "*",
            "tenant_name": f"eq.{tenant_name}",
            "endpoint_name": f"eq.{endpoint_name}",
            "api_key": f"eq.{api_key}",
        }

        async def _query():
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}/rest/v1/{self.table}",
                    params=params,
                    headers={
                        "apikey": self.api_key,
                        "Authorization": f"Bearer {self.api_key}",
                        "Accept": "application/json",
                    },
                )

            if response.status_code != 200:
                raise ExternalServiceError(
                    SERVICE_NAME,
                    f"Unexpected status {response.status_code}",
                    details={"status_code": response.status_code},
                )
            return response.json()

        try:
            rows = await self.circuit_breaker.call(_query)
        except ExternalServiceError:
            raise
        except Exception as exc:
            self.logger.error("Credential lookup error", error=str(exc))
            raise ExternalServiceError(SERVICE_NAME, str(exc)) from exc

        return self._single(rows, tenant_name, endpoint_name)

    def _single(self, rows: Any, tenant_name: str, endpoint_name: str) -> Optional[ApiCredential]:
        # Ambiguous matches are rejected like a missing record
        if not isinstance(rows, list) or len(rows) != 1:
            self.logger.info(
                "No unique API record",
                tenant_name=tenant_name,
                endpoint_name=endpoint_name,
                matches=len(rows) if isinstance(rows, list) else None,
            )
            return None

        row: Dict[str, Any] = rows[0]
        try:
            return ApiCredential.model_validate(row)
        except ValidationError as exc:
            self.logger.error(
                "Malformed API record",
                tenant_name=tenant_name,
                endpoint_name=endpoint_name,
                error=str(exc),
            )
            raise ExternalServiceError(
                SERVICE_NAME,
                "Malformed API record",
                details={"errors": exc.error_count()},
            ) from exc
