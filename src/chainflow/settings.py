"""Runtime settings read from the environment.

Values are read on every call so that a process can be reconfigured between
runs (and tests can monkeypatch the environment). Defaults match
``ExecutionOptions``.

Environment:
    CHAINFLOW_RETRIES        extra attempts for ``onError: retry`` steps
    CHAINFLOW_RETRY_BACKOFF  base backoff in seconds, doubled per attempt
    CHAINFLOW_HTTP_TIMEOUT   per-request HTTP timeout in seconds, "none" disables
    CHAINFLOW_LOG_SPANS      "true" to trace steps through the logging tracer
"""

import os


def _int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _str(key: str, default: str) -> str:
    return os.getenv(key, default)


def retries() -> int:
    return _int("CHAINFLOW_RETRIES", 2)


def retry_backoff() -> float:
    return _float("CHAINFLOW_RETRY_BACKOFF", 0.1)


def http_timeout() -> float | None:
    raw = _str("CHAINFLOW_HTTP_TIMEOUT", "30").strip().lower()
    if raw in {"", "none", "0"}:
        return None
    return float(raw)


def log_spans() -> bool:
    return _str("CHAINFLOW_LOG_SPANS", "false").strip().lower() in {"true", "1", "yes", "y"}
