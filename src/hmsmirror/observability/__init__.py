"""
Observability utilities for hmsmirror.

OpenTelemetry is an optional dependency. When it is not installed every
component falls back to a NullTracer.

Example:
    >>> from hmsmirror.observability import create_tracer
    >>>
    >>> class MyComponent:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
"""

from hmsmirror.observability.attributes import (
    ATTR_DATA_STRATEGY,
    ATTR_DATABASE,
    ATTR_ENVIRONMENT,
    ATTR_GLM_SIZE,
    ATTR_LOCATION,
    ATTR_PHASE_STATE,
    ATTR_RUN_ID,
    ATTR_STATEMENT_COUNT,
    ATTR_STRATEGY,
    ATTR_TABLE,
    ATTR_TRANSLATION_LEVEL,
)
from hmsmirror.observability.tracer import (
    OTEL_AVAILABLE,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    "OTEL_AVAILABLE",
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_RUN_ID",
    "ATTR_DATA_STRATEGY",
    "ATTR_DATABASE",
    "ATTR_TABLE",
    "ATTR_ENVIRONMENT",
    "ATTR_STATEMENT_COUNT",
    "ATTR_STRATEGY",
    "ATTR_PHASE_STATE",
    "ATTR_LOCATION",
    "ATTR_TRANSLATION_LEVEL",
    "ATTR_GLM_SIZE",
]
