import httpx

from chainflow.application.adapter import ConditionStepHandler, HttpStepHandler, TransformStepHandler
from chainflow.application.calldata import CalldataBuilder
from chainflow.application.onchain import OnchainBatchStepHandler, OnchainStepHandler, OperationEncoder
from chainflow.application.port import ExpressionResolver, HandlerFactory, StepHandler
from chainflow.domain.entity import ConditionStep, HttpStep, OnchainBatchStep, OnchainStep, Step, TransformStep
from chainflow.domain.error import ConfigurationError
from chainflow.domain.port import WorkflowCollaborators
from chainflow.domain.value_object import ExecutionOptions


class InMemoryHandlerFactory(HandlerFactory):
    def __init__(
        self,
        collaborators: WorkflowCollaborators,
        values: ExpressionResolver,
        execution_options: ExecutionOptions,
        http_client: httpx.AsyncClient | None = None,
        builder: CalldataBuilder | None = None,
    ):
        self.collaborators = collaborators
        self.values = values
        self.execution_options = execution_options
        self.http_client = http_client
        self.encoder = OperationEncoder(values, builder)

    def get_handler(self, step: Step) -> StepHandler:
        if isinstance(step, HttpStep):
            return HttpStepHandler(self.collaborators, self.values, self.execution_options, self.http_client)
        elif isinstance(step, OnchainStep):
            return OnchainStepHandler(self.collaborators, self.encoder)
        elif isinstance(step, OnchainBatchStep):
            return OnchainBatchStepHandler(self.collaborators, self.encoder)
        elif isinstance(step, ConditionStep):
            return ConditionStepHandler(self.values)
        elif isinstance(step, TransformStep):
            return TransformStepHandler(self.values)
        else:
            raise ConfigurationError(f"Unknown step type: {type(step).__name__}")
