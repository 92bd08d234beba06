"""
Shared logging configuration for the LTI Consumer services.

Log lines are JSON. Correlation fields (request id, and the Tool a request
was attributed to) are bound with structlog's contextvars support and are
merged into every event logged while the request is handled.
"""

import sys
import uuid
import logging
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace


# Correlation fields bound per request
CORRELATION_KEYS = ("request_id", "client_id", "deployment_id")


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            ServiceNameAdder(service_name),
            add_trace_context,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


class ServiceNameAdder:
    """Tag events with the service and the component that logged them.

    Component loggers are named ``"<service>.<component>"``.
    """

    def __init__(self, service_name: str):
        self.service_name = service_name

    def __call__(self, logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", self.service_name)
        _, _, component = event_dict.get("logger", "").partition(".")
        if component:
            event_dict["component"] = component
        return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add OpenTelemetry trace and span ids when a span is recording."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = trace.format_trace_id(span_context.trace_id)
        event_dict["span_id"] = trace.format_span_id(span_context.span_id)
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind the request id, generating one when the caller sent none."""
    request_id = request_id or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id


def set_tool_context(client_id: Optional[str] = None, deployment_id: Optional[str] = None):
    """Attribute the rest of the request's log lines to a Tool."""
    context = {k: v for k, v in (("client_id", client_id), ("deployment_id", deployment_id)) if v}
    if context:
        structlog.contextvars.bind_contextvars(**context)


def clear_context():
    structlog.contextvars.unbind_contextvars(*CORRELATION_KEYS)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
