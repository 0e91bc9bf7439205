import logging
from dataclasses import replace
from typing import Any, Mapping

import msgspec

from chainflow.application.port import Context, WorkflowEngine
from chainflow.domain.entity import Step, ValidationReport, VariableDefinition, WorkflowDefinition, WorkflowResult
from chainflow.domain.error import ValidationError
from chainflow.domain.service import bind_inputs, validate_workflow
from chainflow.domain.value_object import SUPPORTED_VERSION, ExecutionOptions, RunParams

logger = logging.getLogger(__name__)


class OutputRegistrar:
    """Handles registration of step outputs into a run's context."""

    def register(self, context: Context, step: Step, output: Any) -> None:
        """Record the output under the step id and, when distinct, under its ``outputAs`` alias."""
        context.record_output(step.id, output)
        if step.output_as and step.output_as != step.id:
            context.record_output(step.output_as, output)

    def register_skipped(self, context: Context, step: Step) -> None:
        context.record_skipped(step.id)


def load_workflow(
    data: Mapping[str, Any] | str | bytes | WorkflowDefinition, supported_version: str = SUPPORTED_VERSION
) -> WorkflowDefinition:
    """Decodes and validates a workflow from JSON text or a Python dictionary.

    Args:
        data: The workflow as JSON, a dictionary or an already decoded WorkflowDefinition.
        supported_version: The schema version the engine accepts.

    Returns:
        The validated WorkflowDefinition.

    Raises:
        ValidationError: listing every problem found.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = msgspec.json.decode(data)
        except msgspec.DecodeError as e:
            raise ValidationError([f"Malformed workflow JSON: {e}"]) from e
    if not isinstance(data, WorkflowDefinition):
        try:
            data = msgspec.convert(data, type=WorkflowDefinition)
        except msgspec.ValidationError as e:
            raise ValidationError([f"Malformed workflow definition: {e}"]) from e

    report = validate_workflow(data, supported_version)
    if not report.valid:
        raise ValidationError(report.errors)
    return data


async def execute_workflow(workflow: WorkflowDefinition, params: RunParams, engine: WorkflowEngine) -> WorkflowResult:
    """Runs the given workflow using the specified workflow engine and returns a WorkflowResult."""
    return await engine.run(workflow, params)


class WorkflowClient:
    """
    Provides a high-level interface for validating, loading and running workflows.

    Note:
        Infrastructure wiring (the engine, its handler factory and the
        collaborators) is done in a composition root and injected here.
    """

    def __init__(self, workflow_engine: WorkflowEngine, execution_options: ExecutionOptions | None = None):
        self.engine = workflow_engine
        self.execution_options = execution_options if execution_options is not None else ExecutionOptions()

    def validate(self, workflow: Mapping[str, Any] | WorkflowDefinition) -> ValidationReport:
        return validate_workflow(workflow, self.execution_options.supported_version)

    async def run(
        self,
        workflow: Mapping[str, Any] | str | bytes | WorkflowDefinition,
        params: RunParams,
        variables: list[VariableDefinition] | list[dict[str, Any]] | None = None,
    ) -> WorkflowResult:
        """
        Loads and executes a workflow, binding ``params.input`` against
        ``variables`` first when they are given. Returns a WorkflowResult.
        """
        definition = load_workflow(workflow, self.execution_options.supported_version)
        if variables is not None:
            params = replace(params, input=bind_inputs(variables, params.input))
        logger.info("Running workflow with %d steps", len(definition.steps))
        return await execute_workflow(definition, params, self.engine)
