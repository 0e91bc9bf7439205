import httpx

from chainflow.application.adapter import PathResolver
from chainflow.application.port import Tracer
from chainflow.application.service import OutputRegistrar, WorkflowClient
from chainflow.domain.port import WorkflowCollaborators
from chainflow.domain.value_object import ExecutionOptions
from chainflow.infrastructure.adapter.in_memory.handler_factory import InMemoryHandlerFactory
from chainflow.infrastructure.adapter.in_memory.workflow_engine import InMemoryWorkflowEngine


class InMemoryClient(WorkflowClient):
    pass


def create(
    collaborators: WorkflowCollaborators,
    execution_options: ExecutionOptions | None = None,
    http_client: httpx.AsyncClient | None = None,
    tracer: Tracer | None = None,
) -> InMemoryClient:
    execution_options = execution_options if execution_options is not None else ExecutionOptions()
    values = PathResolver()
    handler_factory = InMemoryHandlerFactory(
        collaborators=collaborators,
        values=values,
        execution_options=execution_options,
        http_client=http_client,
    )

    workflow_engine = InMemoryWorkflowEngine(
        handler_factory=handler_factory,
        registrar=OutputRegistrar(),
        values=values,
        tracer=tracer,
        execution_options=execution_options,
    )

    return InMemoryClient(workflow_engine=workflow_engine, execution_options=execution_options)
