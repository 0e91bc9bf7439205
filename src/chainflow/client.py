import asyncio
from typing import Any, Mapping

from chainflow.application.service import WorkflowClient
from chainflow.domain.entity import ValidationReport, VariableDefinition, WorkflowDefinition, WorkflowResult
from chainflow.domain.value_object import RunParams


class Client:
    """
    Unified client façade for workflow execution.

    The Client is the only thing users interact with. It exposes .validate(),
    .run() and .run_sync(), and holds the chosen backend's workflow client
    under the hood.
    """

    def __init__(self, backend: WorkflowClient):
        """
        Initialize the client with a backend workflow client.

        Args:
            backend: The configured workflow client (e.g. an InMemoryClient)
        """
        self._backend = backend

    @property
    def engine(self):
        return self._backend.engine

    def validate(self, workflow: Mapping[str, Any] | WorkflowDefinition) -> ValidationReport:
        """
        Check a workflow definition without running it.

        Args:
            workflow: The workflow definition as a dictionary or WorkflowDefinition

        Returns:
            A ValidationReport listing every problem found
        """
        return self._backend.validate(workflow)

    async def run(
        self,
        workflow: Mapping[str, Any] | str | bytes | WorkflowDefinition,
        params: RunParams,
        variables: list[VariableDefinition] | list[dict[str, Any]] | None = None,
    ) -> WorkflowResult:
        """
        Execute a workflow.

        Args:
            workflow: The workflow definition as JSON, a dictionary or WorkflowDefinition
            params: Wallet, chain id, session and caller input for this run
            variables: Optional declared input variables to bind ``params.input`` against

        Returns:
            The workflow execution result

        Raises:
            ValidationError: If the definition or the input is invalid
        """
        return await self._backend.run(workflow, params, variables)

    def run_sync(
        self,
        workflow: Mapping[str, Any] | str | bytes | WorkflowDefinition,
        params: RunParams,
        variables: list[VariableDefinition] | list[dict[str, Any]] | None = None,
    ) -> WorkflowResult:
        """Execute a workflow from synchronous code; must not be called inside a running event loop."""
        return asyncio.run(self.run(workflow, params, variables))
