import httpx

from chainflow import settings
from chainflow.application.port import Tracer
from chainflow.backend import BackendType
from chainflow.client import Client
from chainflow.domain.port import WorkflowCollaborators
from chainflow.domain.value_object import ExecutionOptions
from chainflow.infrastructure.adapter.in_memory.client import create as create_in_memory_client
from chainflow.infrastructure.adapter.logging.tracer import LoggingTracer


def create(
    collaborators: WorkflowCollaborators,
    backend: BackendType = BackendType.IN_MEMORY,
    execution_options: ExecutionOptions | None = None,
    http_client: httpx.AsyncClient | None = None,
    tracer: Tracer | None = None,
) -> Client:
    """
    Factory function to create a Client with the specified backend.

    Args:
        collaborators: Proxy lookup, header decryption and transaction execution
        backend: The backend type to use for workflow execution
        execution_options: Run options; read from CHAINFLOW_* environment variables when omitted
        http_client: Optional shared HTTP client for HTTP steps
        tracer: Optional step tracer; a LoggingTracer when CHAINFLOW_LOG_SPANS is set

    Returns:
        A configured Client instance

    Raises:
        ValueError: If the backend type is unsupported
    """
    if execution_options is None:
        execution_options = ExecutionOptions.from_env()
    if tracer is None and settings.log_spans():
        tracer = LoggingTracer()

    if backend == BackendType.IN_MEMORY:
        in_memory_client = create_in_memory_client(
            collaborators,
            execution_options=execution_options,
            http_client=http_client,
            tracer=tracer,
        )
        return Client(backend=in_memory_client)

    else:
        raise ValueError(f"Unsupported backend: {backend}")
