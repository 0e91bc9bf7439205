import re
from typing import Any, Mapping

import msgspec

from chainflow.domain.entity import ConditionStep, StepTypes, ValidationReport, VariableDefinition, WorkflowDefinition
from chainflow.domain.error import ValidationError
from chainflow.domain.value_object import SUPPORTED_VERSION, VariableType

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_UINT_RE = re.compile(r"^\d+$")


def validate_workflow(
    data: WorkflowDefinition | Mapping[str, Any], supported_version: str = SUPPORTED_VERSION
) -> ValidationReport:
    """Check the workflow structure without executing anything.

    Never raises: malformed input is reported as an error in the returned
    report.

    :param data: A decoded WorkflowDefinition or its raw JSON-like mapping
    :type data: WorkflowDefinition | Mapping[str, Any]
    :param supported_version: The schema version the engine accepts
    :type supported_version: str
    :returns: Whether the definition is valid, and every problem found
    :rtype: ValidationReport
    """
    if not isinstance(data, WorkflowDefinition):
        try:
            data = msgspec.convert(data, type=WorkflowDefinition)
        except msgspec.ValidationError as e:
            return ValidationReport(valid=False, errors=[f"Malformed workflow definition: {e}"])

    errors: list[str] = []
    if data.version != supported_version:
        errors.append(f"Unsupported workflow version: {data.version}")
    if not data.steps:
        errors.append("Workflow must have at least one step")

    seen_ids: set[str] = set()
    for step in data.steps:
        if not step.id:
            errors.append("Step missing id")
        elif step.id in seen_ids:
            errors.append(f"Duplicate step id: {step.id}")
        else:
            seen_ids.add(step.id)
        if not step.output_as:
            errors.append(f'Step "{step.id}" missing outputAs')
        errors.extend(step.problems())

    errors.extend(_output_key_collisions(data.steps))
    errors.extend(_unknown_branch_targets(data.steps, seen_ids))
    if data.scope_config is not None:
        for target in data.scope_config.allowed_dynamic_targets:
            if not target.is_well_formed():
                errors.append(f"Invalid allowed dynamic target address: {target.address}")
    return ValidationReport(valid=not errors, errors=errors)


def _output_key_collisions(steps: list[StepTypes]) -> list[str]:
    # Each step owns its id and its alias; a key written twice would break write-once context semantics.
    errors = []
    owners: dict[str, str] = {}
    for step in steps:
        if not step.id:
            continue
        keys = [step.id]
        if step.output_as and step.output_as != step.id:
            keys.append(step.output_as)
        for key in keys:
            owner = owners.setdefault(key, step.id)
            if owner != step.id:
                errors.append(f'Step "{step.id}" writes output key "{key}" already used by step "{owner}"')
    return errors


def _unknown_branch_targets(steps: list[StepTypes], known_ids: set[str]) -> list[str]:
    errors = []
    for step in steps:
        if not isinstance(step, ConditionStep) or step.condition is None:
            continue
        for label in (step.condition.on_true, step.condition.on_false):
            if label and label not in known_ids:
                errors.append(f'Condition step "{step.id}" references unknown step "{label}"')
    return errors


class InputBinder:
    """Binds caller input to declared workflow variables.

    Applies defaults for optional variables, enforces required ones and checks
    each supplied value against its declared type. String forms of numbers and
    booleans are coerced, the way the rest of the input arrives over JSON.
    """

    def bind(
        self, variables: list[VariableDefinition] | list[dict[str, Any]], raw: Mapping[str, Any] | None
    ) -> dict[str, Any]:
        """Return the bound input; raises ValidationError listing every problem."""
        variables = msgspec.convert(variables, type=list[VariableDefinition])
        bound: dict[str, Any] = dict(raw or {})
        errors: list[str] = []
        for var in variables:
            if bound.get(var.name) is None:
                default = None if var.required else self._default(var)
                if default is not None:
                    bound[var.name] = default
                elif var.required:
                    errors.append(f"Missing required input: {var.name}")
                continue
            try:
                bound[var.name] = self._coerce(bound[var.name], var.type)
            except ValueError as e:
                errors.append(f"Invalid input '{var.name}': {e}")
        if errors:
            raise ValidationError(errors, prefix="Invalid input")
        return bound

    def _default(self, var: VariableDefinition) -> Any:
        # Legacy definitions store every default as a string
        default = var.default
        if isinstance(default, str):
            if var.type == VariableType.NUMBER:
                try:
                    return float(default)
                except ValueError:
                    return None
            if var.type == VariableType.BOOLEAN:
                return default.strip().lower() == "true"
        return default

    def _coerce(self, value: Any, target: VariableType) -> Any:
        if target == VariableType.STRING:
            if not isinstance(value, str):
                raise ValueError(f"expected a string, got {type(value).__name__}")
            return value
        if target == VariableType.ADDRESS:
            if not isinstance(value, str) or not _ADDRESS_RE.match(value):
                raise ValueError("Invalid address format")
            return value
        if target == VariableType.UINT256:
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                return str(value)
            if not isinstance(value, str) or not _UINT_RE.match(value):
                raise ValueError("Must be a numeric string (uint256)")
            return value
        if target == VariableType.NUMBER:
            if isinstance(value, bool):
                raise ValueError("expected a number, got bool")
            if isinstance(value, (int, float)):
                return value
            if isinstance(value, str):
                v = value.strip()
                return int(v) if _UINT_RE.match(v) else float(v)
            raise ValueError(f"expected a number, got {type(value).__name__}")
        if target == VariableType.BOOLEAN:
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                v = value.strip().lower()
                if v in {"true", "1", "yes", "y"}:
                    return True
                if v in {"false", "0", "no", "n"}:
                    return False
            raise ValueError(f"expected a boolean, got {value!r}")
        return value


def bind_inputs(
    variables: list[VariableDefinition] | list[dict[str, Any]], raw: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Bind caller input against declared variables using an InputBinder."""
    return InputBinder().bind(variables, raw)
