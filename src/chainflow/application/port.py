from abc import ABC, abstractmethod
from typing import Any, Mapping

from chainflow.domain.entity import Step, WorkflowDefinition, WorkflowResult
from chainflow.domain.value_object import RunParams


class WorkflowEngine(ABC):
    """Abstract base class defining the workflow engine interface."""

    @abstractmethod
    async def run(self, workflow: WorkflowDefinition, params: RunParams) -> WorkflowResult:
        """
        Runs the given workflow.

        :param workflow: The workflow to execute
        :type workflow: WorkflowDefinition
        :param params: Wallet, chain, session and input for this run
        :type params: RunParams
        :returns: The result of executing the workflow
        :rtype: WorkflowResult
        """
        ...


class Context(ABC):
    """Abstract interface for the per-run workflow context."""

    @abstractmethod
    def namespace(self) -> dict[str, Any]:
        """
        Expose the context as plain builtins for path traversal.

        :returns: Mapping of top-level names (``wallet``, ``input``, ``steps``...) to values
        :rtype: dict[str, Any]
        """

    @abstractmethod
    def record_output(self, key: str, output: Any) -> None:
        """
        Record a step output under ``key``, wrapped as ``{"output": output}``.

        :param key: Step id or output alias
        :type key: str
        :param output: The step's output value
        :type output: Any
        :raises: KeyError if the key has already been written
        """

    @abstractmethod
    def record_skipped(self, key: str) -> None:
        """
        Record that the step with ``key`` was skipped.

        :param key: Step id
        :type key: str
        :raises: KeyError if the key has already been written
        """


class ExpressionResolver(ABC):
    """Abstract interface for resolving ``$.`` expressions against a context."""

    @abstractmethod
    def resolve(self, expression: Any, context: Context) -> Any:
        """
        Resolve a single value; non-expressions are returned unchanged.

        :param expression: A ``$.path`` string or any other value
        :type expression: Any
        :param context: The context to read from
        :type context: Context
        :returns: The referenced value
        :rtype: Any
        :raises: ResolutionError if a path segment is missing
        """

    @abstractmethod
    def resolve_all(self, node: Any, context: Context) -> Any:
        """
        Resolve every expression leaf in a nested structure.

        :param node: A dict, list or scalar whose string leaves may be expressions
        :type node: Any
        :param context: The context to read from
        :type context: Context
        :returns: A copy of ``node`` with every expression replaced
        :rtype: Any
        :raises: ResolutionError if any path segment is missing
        """


class StepHandler(ABC):
    """Abstract handler interface for executing one kind of workflow step."""

    @abstractmethod
    async def execute(self, step: Any, context: Context) -> Any:
        """
        Execute a workflow step and return its output.

        :param step: The workflow step to execute
        :type step: Any
        :param context: The run's context, read-only for handlers
        :type context: Context
        :returns: The step output
        :rtype: Any
        """
        ...


class HandlerFactory(ABC):
    """Abstract factory for creating step handlers."""

    @abstractmethod
    def get_handler(self, step: Step) -> StepHandler:
        """
        Get a handler for the given step.

        :param step: The step to get a handler for
        :type step: Step
        :returns: A handler capable of executing the step
        :rtype: StepHandler
        :raises: ConfigurationError for an unknown step variant
        """


class Span(ABC):
    """A single traced unit of work, normally one step attempt sequence."""

    @abstractmethod
    def set_attribute(self, key: str, value: Any) -> None: ...

    @abstractmethod
    def end(self, status: str, error: str | None = None) -> None: ...


class Tracer(ABC):
    """Abstract interface for step-level tracing."""

    @abstractmethod
    def start_span(self, name: str, attributes: Mapping[str, Any] | None = None) -> Span:
        """
        Start a span.

        :param name: Span name, the step label
        :type name: str
        :param attributes: Initial span attributes
        :type attributes: Mapping[str, Any] | None
        :returns: The started span; callers must ``end`` it
        :rtype: Span
        """
