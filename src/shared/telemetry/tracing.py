"""Utility functions and decorators for distributed tracing"""
import asyncio
import logging
from collections.abc import Callable
from functools import wraps

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

logger = logging.getLogger(__name__)

# Argument names never copied onto spans
_SENSITIVE_ARGS = frozenset({"password", "token", "secret", "data", "content"})


def traced(operation_name: str | None = None, attributes: dict | None = None):
    """
    Decorator to create a span for a function

    Usage:
        @traced("document.trash")
        async def trash(self, document):
            ...

    Args:
        operation_name: Name of the operation (defaults to function name)
        attributes: Additional attributes to add to the span
    """

    def decorator(func: Callable) -> Callable:
        span_name = operation_name or f"{func.__module__}.{func.__name__}"

        def _start(span, kwargs):
            if attributes:
                for key, value in attributes.items():
                    span.set_attribute(key, value)
            for key, value in kwargs.items():
                if not key.startswith("_") and key not in _SENSITIVE_ARGS:
                    span.set_attribute(f"arg.{key}", str(value))

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            tracer = trace.get_tracer(__name__)
            with tracer.start_as_current_span(span_name) as span:
                _start(span, kwargs)
                try:
                    result = await func(*args, **kwargs)
                    span.set_status(Status(StatusCode.OK))
                    return result
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            tracer = trace.get_tracer(__name__)
            with tracer.start_as_current_span(span_name) as span:
                _start(span, kwargs)
                try:
                    result = func(*args, **kwargs)
                    span.set_status(Status(StatusCode.OK))
                    return result
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def add_span_attributes(**attributes):
    """
    Add attributes to the current span

    Usage:
        add_span_attributes(doc_id="doc-1", outcome="ok")
    """
    span = trace.get_current_span()
    if span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)


def add_span_event(name: str, attributes: dict | None = None):
    """
    Add an event to the current span

    Usage:
        add_span_event("transition.step", {"step": "copy"})
    """
    span = trace.get_current_span()
    if span:
        span.add_event(name, attributes=attributes or {})
