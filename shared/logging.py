"""
Shared logging configuration for the dataset gateway.

Every event is rendered as one JSON line carrying the service name, the
logger name and whatever request context is bound: ``request_id`` for the
HTTP request, ``tenant_name`` and ``dataset_id`` once the call has been
attributed to a tenant API.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Request-scoped correlation context
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
tenant_name_var: ContextVar[Optional[str]] = ContextVar('tenant_name', default=None)
dataset_id_var: ContextVar[Optional[str]] = ContextVar('dataset_id', default=None)

_CONTEXT_VARS = (
    ("request_id", request_id_var),
    ("tenant_name", tenant_name_var),
    ("dataset_id", dataset_id_var),
)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_correlation_context,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger(service_name).setLevel(level)


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to log events."""
    # "gateway.dataset_cache" -> service "gateway"
    logger_name = event_dict.get("logger", "")
    if logger_name:
        event_dict.setdefault("service", logger_name.split(".")[0])
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy bound request context into the event unless the call site set it."""
    for key, var in _CONTEXT_VARS:
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind the request ID, generating one when the caller sent none."""
    if not request_id:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_tenant_context(tenant_name: Optional[str] = None, dataset_id: Optional[str] = None):
    """Attribute the current request to a tenant API."""
    if tenant_name:
        tenant_name_var.set(tenant_name)
    if dataset_id:
        dataset_id_var.set(dataset_id)


def clear_context():
    """Clear all context variables."""
    for _, var in _CONTEXT_VARS:
        var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
