"""
Domain logic for the Gateway Service.

Request processing that does not belong to adapters or the HTTP layer:
authenticating tenant API calls, serving their datasets and recording usage.
"""

from .api_usage import ApiRequest, ApiUsageService
from .usage_logger import UsageLogger

__all__ = [
    "ApiRequest",
    "ApiUsageService",
    "UsageLogger",
]
