from dataclasses import dataclass
from enum import Enum

SUPPORTED_VERSION = "1.0"

# ERC-7579 execution modes (bytes32)
SINGLE_MODE = "0x" + "00" * 32
BATCH_MODE = "0x01" + "00" * 31


class StepType(str, Enum):
    HTTP = "http"
    ONCHAIN = "onchain"
    ONCHAIN_BATCH = "onchain_batch"
    CONDITION = "condition"
    TRANSFORM = "transform"


class OnErrorPolicy(str, Enum):
    FAIL = "fail"
    SKIP = "skip"
    RETRY = "retry"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class VariableType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    ADDRESS = "address"
    UINT256 = "uint256"
    BOOLEAN = "boolean"


@dataclass
class ExecutionOptions:
    """Tunable parameters for a workflow run.

    ``retries`` and ``retry_backoff`` only apply to steps declaring
    ``onError: retry``. ``http_timeout`` bounds requests made with the
    per-request HTTP client; an injected client keeps its own timeout.
    """

    retries: int = 2
    retry_backoff: float = 0.1
    http_timeout: float | None = 30.0
    supported_version: str = SUPPORTED_VERSION
    deadline_offset: int = 300
    deadline_hour_offset: int = 3600
    deadline_day_offset: int = 86400

    @classmethod
    def from_env(cls) -> "ExecutionOptions":
        """Build options from ``CHAINFLOW_*`` environment variables."""
        from chainflow import settings

        return cls(
            retries=settings.retries(),
            retry_backoff=settings.retry_backoff(),
            http_timeout=settings.http_timeout(),
        )


@dataclass(frozen=True)
class RunParams:
    """Runtime parameters supplied by the caller of a workflow run."""

    wallet: str
    chain_id: int
    session_id: str
    session_key_address: str
    input: dict | None = None
