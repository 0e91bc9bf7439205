import logging
import time
from typing import Any, Mapping

from chainflow.application.port import Span, Tracer

logger = logging.getLogger(__name__)


class LoggingSpan(Span):
    def __init__(self, name: str, attributes: Mapping[str, Any] | None, log: logging.Logger):
        self.name = name
        self.attributes: dict[str, Any] = dict(attributes or {})
        self._log = log
        self._started = time.perf_counter()

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def end(self, status: str, error: str | None = None) -> None:
        duration_ms = (time.perf_counter() - self._started) * 1000
        extra = {"span": self.name, "status": status, "duration_ms": round(duration_ms, 3), **self.attributes}
        if error is None:
            self._log.info("Step %s %s in %.1fms", self.name, status, duration_ms, extra={"workflow": extra})
        else:
            extra["error"] = error
            self._log.warning(
                "Step %s %s in %.1fms: %s", self.name, status, duration_ms, error, extra={"workflow": extra}
            )


class LoggingTracer(Tracer):
    """Emits one log record per finished span, with structured fields under ``record.workflow``."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log if log is not None else logger

    def start_span(self, name: str, attributes: Mapping[str, Any] | None = None) -> Span:
        self.log.debug("Step %s started", name)
        return LoggingSpan(name, attributes, self.log)
