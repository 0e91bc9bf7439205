"""
Chainflow - declarative workflows mixing HTTP calls and on-chain transactions

Steps run in order, thread data between each other through ``$.`` path
expressions and encode contract calls from ABI fragments.
"""

from chainflow.backend import BackendType
from chainflow.client import Client
from chainflow.domain.entity import StepResult, ValidationReport, VariableDefinition, WorkflowDefinition, WorkflowResult
from chainflow.domain.error import (
    ConfigurationError,
    EncodingError,
    ExternalCallError,
    PermissionDeniedError,
    ResolutionError,
    ValidationError,
    WorkflowError,
)
from chainflow.domain.port import ProxyRecord, TransactionReceipt, TransactionRequest, WorkflowCollaborators
from chainflow.domain.service import validate_workflow
from chainflow.domain.value_object import ExecutionOptions, RunParams
from chainflow.factory import create

__all__ = [
    "Client",
    "BackendType",
    "create",
    "ExecutionOptions",
    "RunParams",
    "WorkflowCollaborators",
    "ProxyRecord",
    "TransactionRequest",
    "TransactionReceipt",
    "WorkflowDefinition",
    "VariableDefinition",
    "WorkflowResult",
    "StepResult",
    "ValidationReport",
    "validate_workflow",
    "WorkflowError",
    "ConfigurationError",
    "ResolutionError",
    "ValidationError",
    "EncodingError",
    "ExternalCallError",
    "PermissionDeniedError",
]
