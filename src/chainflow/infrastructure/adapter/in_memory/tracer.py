from typing import Any, Mapping

from chainflow.application.port import Span, Tracer


class NullSpan(Span):
    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def end(self, status: str, error: str | None = None) -> None:
        pass


class NullTracer(Tracer):
    """Tracer that records nothing; the engine's default."""

    def start_span(self, name: str, attributes: Mapping[str, Any] | None = None) -> Span:
        return NullSpan()


class RecordedSpan(Span):
    """A span kept in memory so tests can inspect what the engine traced."""

    def __init__(self, name: str, attributes: Mapping[str, Any] | None = None):
        self.name = name
        self.attributes: dict[str, Any] = dict(attributes or {})
        self.status: str | None = None
        self.error: str | None = None
        self.ended = False

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def end(self, status: str, error: str | None = None) -> None:
        self.status = status
        self.error = error
        self.ended = True


class InMemoryTracer(Tracer):
    def __init__(self):
        self.spans: list[RecordedSpan] = []

    def start_span(self, name: str, attributes: Mapping[str, Any] | None = None) -> Span:
        span = RecordedSpan(name, attributes)
        self.spans.append(span)
        return span
