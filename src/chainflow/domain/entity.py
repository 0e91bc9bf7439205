import re
from typing import Any, ClassVar, Literal

import msgspec

from chainflow.domain.value_object import OnErrorPolicy, StepStatus, StepType, VariableType

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class HttpStepConfig(msgspec.Struct, rename="camel", forbid_unknown_fields=True):
    """HTTP call either through a stored proxy (``proxyId``) or an inline ``url``."""

    proxy_id: str | None = None
    url: str | None = None
    method: HttpMethod | None = None
    headers: dict[str, Any] | None = None
    body_mapping: Any = None


class OnchainOperation(msgspec.Struct, rename="camel", forbid_unknown_fields=True):
    """A single contract call.

    Calldata comes from exactly one source, checked in this order: a pre-built
    ``calldata`` expression, ``selector`` + ``abiFragment`` + ``argsMapping``,
    or a bare ``selector`` for no-argument calls.
    """

    target: str = ""
    name: str | None = None
    value: str | int | None = None
    calldata: str | None = None
    selector: str | None = None
    abi_fragment: str | dict[str, Any] | None = None
    args_mapping: dict[str, Any] | None = None

    @property
    def label(self) -> str:
        return self.name or "unnamed"


class OnchainBatchConfig(msgspec.Struct, forbid_unknown_fields=True):
    operations: list[OnchainOperation] = msgspec.field(default_factory=list)


class ConditionConfig(msgspec.Struct, rename="camel", forbid_unknown_fields=True):
    """Boolean evaluation of an expression.

    ``onTrue``/``onFalse`` are labels naming other steps; execution stays
    linear and they are only checked by the validator.
    """

    expression: Any = None
    on_true: str | None = None
    on_false: str | None = None


class TransformConfig(msgspec.Struct, forbid_unknown_fields=True):
    expression: Any = None


class Step(msgspec.Struct, tag_field="type", rename="camel", forbid_unknown_fields=True):
    """Base class for workflow steps, tagged by ``type``."""

    kind: ClassVar[StepType]

    id: str = ""
    name: str = ""
    output_as: str = ""
    on_error: OnErrorPolicy = OnErrorPolicy.FAIL
    # Accepted for definition compatibility; the engine does not act on them
    input_mapping: dict[str, str] | None = None
    requires_approval: bool | None = None

    @property
    def label(self) -> str:
        return self.name or self.id

    def problems(self) -> list[str]:
        """Return the structural problems of this step's own configuration."""
        return []


class HttpStep(Step, kw_only=True, tag="http"):
    kind = StepType.HTTP

    http: HttpStepConfig | None = None

    def problems(self) -> list[str]:
        if self.http is None:
            return [f'HTTP step "{self.id}" missing http configuration']
        if not self.http.proxy_id and not self.http.url:
            return [f'HTTP step "{self.id}" must have either proxyId or url']
        if self.http.proxy_id and self.http.url:
            return [f'HTTP step "{self.id}" must not have both proxyId and url']
        return []


class OnchainStep(Step, kw_only=True, tag="onchain"):
    kind = StepType.ONCHAIN

    onchain: OnchainOperation | None = None

    def problems(self) -> list[str]:
        if self.onchain is None:
            return [f'On-chain step "{self.id}" missing onchain configuration']
        if not self.onchain.target:
            return [f'On-chain step "{self.id}" missing target']
        return []


class OnchainBatchStep(Step, kw_only=True, tag="onchain_batch"):
    kind = StepType.ONCHAIN_BATCH

    onchain_batch: OnchainBatchConfig | None = msgspec.field(default=None, name="onchain_batch")

    def problems(self) -> list[str]:
        if self.onchain_batch is None:
            return [f'On-chain batch step "{self.id}" missing onchain_batch configuration']
        if not self.onchain_batch.operations:
            return [f'On-chain batch step "{self.id}" must have at least one operation']
        return [
            f'On-chain batch step "{self.id}" operation {index} missing target'
            for index, operation in enumerate(self.onchain_batch.operations)
            if not operation.target
        ]


class ConditionStep(Step, kw_only=True, tag="condition"):
    kind = StepType.CONDITION

    condition: ConditionConfig | None = None

    def problems(self) -> list[str]:
        if self.condition is None or self.condition.expression in (None, ""):
            return [f'Condition step "{self.id}" missing condition expression']
        return []


class TransformStep(Step, kw_only=True, tag="transform"):
    kind = StepType.TRANSFORM

    transform: TransformConfig | None = None

    def problems(self) -> list[str]:
        if self.transform is None or self.transform.expression in (None, ""):
            return [f'Transform step "{self.id}" missing transform expression']
        return []


StepTypes = HttpStep | OnchainStep | OnchainBatchStep | ConditionStep | TransformStep


class AllowedDynamicTarget(msgspec.Struct, forbid_unknown_fields=True):
    address: str
    name: str | None = None
    description: str | None = None

    def is_well_formed(self) -> bool:
        return bool(_ADDRESS_RE.match(self.address))


class ScopeConfig(msgspec.Struct, rename="camel", forbid_unknown_fields=True):
    """Allow-listed dynamic call targets, enforced by the permissioning layer."""

    allowed_dynamic_targets: list[AllowedDynamicTarget] = msgspec.field(default_factory=list)


class WorkflowDefinition(msgspec.Struct, rename="camel", forbid_unknown_fields=True):
    """Represents a workflow: ordered steps plus an output mapping."""

    version: str = ""
    steps: list[StepTypes] = msgspec.field(default_factory=list)
    output_mapping: dict[str, Any] = msgspec.field(default_factory=dict)
    scope_config: ScopeConfig | None = None


class VariableDefinition(msgspec.Struct, forbid_unknown_fields=True):
    """Declared workflow input variable."""

    name: str
    type: VariableType = VariableType.STRING
    required: bool = False
    default: str | int | float | bool | None = None
    description: str | None = None


class StepResult(msgspec.Struct, forbid_unknown_fields=True):
    """Outcome of one step within a run."""

    success: bool
    output: Any = None
    error: str | None = None
    status: StepStatus = StepStatus.SUCCEEDED
    attempts: int = 1


class ValidationReport(msgspec.Struct, forbid_unknown_fields=True):
    valid: bool
    errors: list[str] = msgspec.field(default_factory=list)


class WorkflowResult(msgspec.Struct, rename="camel", forbid_unknown_fields=True):
    """Result of running a workflow: overall success, mapped output and all step results."""

    success: bool
    output: dict[str, Any] = msgspec.field(default_factory=dict)
    step_results: dict[str, StepResult] = msgspec.field(default_factory=dict)
    error: str | None = None

    def to_dict(self):
        """Convert the WorkflowResult to a dictionary."""
        return msgspec.to_builtins(self)

    def to_json(self) -> str:
        """Convert the WorkflowResult to a JSON string."""
        return msgspec.json.encode(self).decode()

    def to_yaml(self) -> str:
        """Convert the WorkflowResult to a YAML string."""
        return msgspec.yaml.encode(self).decode()
