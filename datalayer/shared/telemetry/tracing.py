"""OpenTelemetry span helpers.

Only the OpenTelemetry API is used; spans are no-ops unless the host
installs a tracer provider.
"""

import inspect
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import wraps
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

_tracer = trace.get_tracer("datalayer")


@contextmanager
def start_span(name: str, attributes: dict | None = None) -> Iterator[trace.Span]:
    """Run the block inside a new current span.

    The span ends OK, or with ERROR status and the exception recorded when
    the block raises; the exception always propagates.
    """
    with _tracer.start_as_current_span(
        name, record_exception=False, set_status_on_exception=False
    ) as span:
        for key, value in (attributes or {}).items():
            span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
        span.set_status(Status(StatusCode.OK))


def traced(name: str | None = None, attributes: dict | None = None) -> Callable:
    """Decorator running each call of a sync or async function in start_span.

    Args:
        name: Span name; defaults to '<module>.<qualname>'.
        attributes: Attributes set on every span.
    """

    def decorator(func: Callable) -> Callable:
        span_name = name or f"{func.__module__}.{func.__qualname__}"

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with start_span(span_name, attributes):
                    return await func(*args, **kwargs)

            return async_wrapper

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with start_span(span_name, attributes):
                return func(*args, **kwargs)

        return wrapper

    return decorator


def add_span_attributes(**attributes: str | int | float | bool) -> None:
    """Set attributes on the current span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attributes(attributes)


def add_span_event(name: str, attributes: dict | None = None) -> None:
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes=attributes or {})
