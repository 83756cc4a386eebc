"""
Unit tests for tracer protocol and implementations.

Tests for:
- Tracer Protocol (runtime_checkable)
- NullTracer class
- OpenTelemetryTracer class
- MockTracer class
- create_tracer() factory function
- Span attribute constants
"""

from __future__ import annotations

import contextlib
from typing import Any

import pytest

from hmsmirror.observability import (
    ATTR_DATABASE,
    ATTR_RUN_ID,
    ATTR_TABLE,
    OTEL_AVAILABLE,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)
from hmsmirror.observability import attributes


class TestTracerProtocol:
    """Tests for Tracer protocol."""

    def test_null_tracer_implements_protocol(self):
        assert isinstance(NullTracer(), Tracer)

    @pytest.mark.skipif(not OTEL_AVAILABLE, reason="OTEL not installed")
    def test_otel_tracer_implements_protocol(self):
        assert isinstance(OpenTelemetryTracer(__name__), Tracer)

    def test_mock_tracer_implements_protocol(self):
        assert isinstance(MockTracer(), Tracer)

    def test_custom_implementation_matches_protocol(self):
        """Custom implementations can match the protocol."""

        class CustomTracer:
            def span(self, name: str, attributes: dict[str, Any] | None = None):
                return contextlib.nullcontext()

            @property
            def enabled(self) -> bool:
                return False

        assert isinstance(CustomTracer(), Tracer)


class TestNullTracer:
    """Tests for NullTracer."""

    def test_span_yields_none(self):
        tracer = NullTracer()
        with tracer.span("hmsmirror.test", {ATTR_RUN_ID: "run-1"}) as span:
            assert span is None

    def test_is_disabled(self):
        assert NullTracer().enabled is False

    def test_exceptions_propagate(self):
        tracer = NullTracer()
        with pytest.raises(ValueError, match="boom"):
            with tracer.span("hmsmirror.test"):
                raise ValueError("boom")


@pytest.mark.skipif(not OTEL_AVAILABLE, reason="OTEL not installed")
class TestOpenTelemetryTracer:
    """Tests for OpenTelemetryTracer."""

    def test_is_enabled(self):
        assert OpenTelemetryTracer(__name__).enabled is True

    def test_span_yields_span(self):
        tracer = OpenTelemetryTracer(__name__)
        with tracer.span("hmsmirror.test", {ATTR_TABLE: "orders"}) as span:
            assert span is not None


class TestMockTracer:
    """Tests for MockTracer."""

    def test_records_spans_with_attributes(self):
        tracer = MockTracer()

        with tracer.span("hmsmirror.glm.match", {ATTR_DATABASE: "sales"}):
            pass
        with tracer.span("hmsmirror.dispatcher.resolve"):
            pass

        assert tracer.span_names == ["hmsmirror.glm.match", "hmsmirror.dispatcher.resolve"]
        assert tracer.spans[0] == ("hmsmirror.glm.match", {ATTR_DATABASE: "sales"})
        assert tracer.spans[1] == ("hmsmirror.dispatcher.resolve", None)

    def test_clear(self):
        tracer = MockTracer()
        with tracer.span("hmsmirror.test"):
            pass

        tracer.clear()

        assert tracer.span_names == []

    def test_is_enabled(self):
        assert MockTracer().enabled is True


class TestCreateTracer:
    """Tests for create_tracer()."""

    def test_disabled_returns_null_tracer(self):
        assert isinstance(create_tracer(__name__, enable_tracing=False), NullTracer)

    @pytest.mark.skipif(not OTEL_AVAILABLE, reason="OTEL not installed")
    def test_enabled_returns_otel_tracer(self):
        assert isinstance(create_tracer(__name__, enable_tracing=True), OpenTelemetryTracer)

    @pytest.mark.skipif(OTEL_AVAILABLE, reason="OTEL installed")
    def test_enabled_without_otel_returns_null_tracer(self):
        assert isinstance(create_tracer(__name__, enable_tracing=True), NullTracer)


class TestAttributes:
    """Tests for the span attribute constants."""

    def test_attributes_are_namespaced(self):
        names = [name for name in dir(attributes) if name.startswith("ATTR_")]
        assert names
        for name in names:
            assert getattr(attributes, name).startswith("hmsmirror.")

    def test_attributes_are_unique(self):
        values = [getattr(attributes, n) for n in dir(attributes) if n.startswith("ATTR_")]
        assert len(values) == len(set(values))
