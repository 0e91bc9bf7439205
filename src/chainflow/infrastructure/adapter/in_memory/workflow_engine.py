import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from chainflow.application.adapter import PathResolver, WorkflowContext
from chainflow.application.port import ExpressionResolver, HandlerFactory, Tracer, WorkflowEngine
from chainflow.application.service import OutputRegistrar
from chainflow.domain.entity import Step, StepResult, WorkflowDefinition, WorkflowResult
from chainflow.domain.error import ConfigurationError, ExternalCallError, ResolutionError, WorkflowError
from chainflow.domain.value_object import ExecutionOptions, OnErrorPolicy, RunParams, StepStatus
from chainflow.infrastructure.adapter.in_memory.tracer import NullTracer

logger = logging.getLogger(__name__)


def is_transient(error: Exception) -> bool:
    """External call failures and unexpected exceptions may succeed on a later attempt."""
    return isinstance(error, ExternalCallError) or not isinstance(error, WorkflowError)


class InMemoryWorkflowEngine(WorkflowEngine):
    """Workflow engine that executes steps strictly in order using step handlers.

    Every run gets a fresh WorkflowContext; nothing is shared between runs.
    """

    def __init__(
        self,
        handler_factory: HandlerFactory,
        registrar: OutputRegistrar | None = None,
        values: ExpressionResolver | None = None,
        tracer: Tracer | None = None,
        execution_options: ExecutionOptions | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.handler_factory = handler_factory
        self.registrar = registrar if registrar is not None else OutputRegistrar()
        self.values = values if values is not None else PathResolver()
        self.tracer = tracer if tracer is not None else NullTracer()
        self.execution_options = execution_options if execution_options is not None else ExecutionOptions()
        self.clock = clock
        self.sleep = sleep

    async def run(self, workflow: WorkflowDefinition, params: RunParams) -> WorkflowResult:
        """Executes each step of the workflow in order and returns a WorkflowResult."""
        context = WorkflowContext(params, self.execution_options, self.clock)
        step_results: dict[str, StepResult] = {}

        for step in workflow.steps:
            span = self.tracer.start_span(step.label, {"step.id": step.id, "step.type": step.kind.value})
            output, error, attempts = await self._execute(step, context)
            span.set_attribute("attempts", attempts)

            if error is None:
                try:
                    self.registrar.register(context, step, output)
                except KeyError as e:
                    error = ConfigurationError(f"Output key already written: {e.args[0]}", cause=e)

            if error is None:
                step_results[step.id] = StepResult(success=True, output=output, attempts=attempts)
                span.end(StepStatus.SUCCEEDED.value)
                continue

            message = str(error)
            if step.on_error == OnErrorPolicy.SKIP:
                if step.id not in context.steps:
                    self.registrar.register_skipped(context, step)
                step_results[step.id] = StepResult(
                    success=False, error=message, status=StepStatus.SKIPPED, attempts=attempts
                )
                span.end(StepStatus.SKIPPED.value, message)
                logger.warning("Step %s skipped after error: %s", step.id, message)
                continue

            step_results[step.id] = StepResult(success=False, error=message, status=StepStatus.FAILED, attempts=attempts)
            span.end(StepStatus.FAILED.value, message)
            logger.error("Step %s failed: %s", step.id, message)
            return WorkflowResult(
                success=False,
                step_results=step_results,
                error=f'Step "{step.label}" failed: {message}',
            )

        try:
            output = self.values.resolve_all(workflow.output_mapping, context)
        except ResolutionError as e:
            logger.error("Output mapping failed: %s", e)
            return WorkflowResult(success=False, step_results=step_results, error=f"Output mapping failed: {e}")
        return WorkflowResult(success=True, output=output, step_results=step_results)

    async def _execute(self, step: Step, context: WorkflowContext) -> tuple[Any, Exception | None, int]:
        """Run the step's handler, retrying transient errors for ``onError: retry`` steps.

        Returns the output, the final error (None on success) and the number of attempts made.
        """
        retries = self.execution_options.retries if step.on_error == OnErrorPolicy.RETRY else 0
        attempt = 0
        while True:
            attempt += 1
            try:
                handler = self.handler_factory.get_handler(step)
                return await handler.execute(step, context), None, attempt
            except Exception as e:
                if attempt > retries or not is_transient(e):
                    return None, e, attempt
                # Exponential backoff: base, 2*base, 4*base, ...
                delay = self.execution_options.retry_backoff * (2 ** (attempt - 1))
                logger.warning("Step %s attempt %d failed: %s; retrying in %.2fs", step.id, attempt, e, delay)
                await self.sleep(delay)
