import logging
import re

import msgspec

from chainflow.application.adapter import WorkflowContext
from chainflow.application.calldata import (
    Call,
    CalldataBuilder,
    encode_batch_calls,
    normalize_hex,
    pack_single_call,
    parse_uint,
)
from chainflow.application.port import ExpressionResolver, StepHandler
from chainflow.domain.entity import OnchainBatchStep, OnchainOperation, OnchainStep
from chainflow.domain.error import (
    ConfigurationError,
    ExternalCallError,
    InvalidTargetError,
    PermissionDeniedError,
    WorkflowError,
)
from chainflow.domain.port import TransactionReceipt, TransactionRequest, WorkflowCollaborators
from chainflow.domain.value_object import BATCH_MODE, SINGLE_MODE

logger = logging.getLogger(__name__)

_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Ways the session layer reports a call target outside the allow-list
PERMISSION_SIGNALS = ("TARGET_NOT_ALLOWED", "0xe356c1d3", "Target not allowed")


class OperationEncoder:
    """Resolves one on-chain operation into a concrete call (target, value, calldata)."""

    def __init__(self, values: ExpressionResolver, builder: CalldataBuilder | None = None):
        self.values = values
        self.builder = builder if builder is not None else CalldataBuilder()

    def build(self, operation: OnchainOperation, context: WorkflowContext) -> Call:
        target = self.values.resolve(operation.target, context)
        if not isinstance(target, str) or not _ADDRESS.match(target):
            raise InvalidTargetError(operation.target, target)

        value = 0
        if operation.value not in (None, ""):
            value = parse_uint(self.values.resolve(operation.value, context), f"value for '{operation.label}'")

        if operation.calldata is not None:
            calldata = normalize_hex(self.values.resolve(operation.calldata, context), "calldata")
        elif operation.selector is not None and operation.abi_fragment is not None and operation.args_mapping is not None:
            args = self.values.resolve_all(operation.args_mapping, context)
            calldata = self.builder.build(operation.abi_fragment, args, operation.selector)
        elif operation.selector is not None:
            calldata = normalize_hex(operation.selector, "selector")
        else:
            raise ConfigurationError("Operation must have either calldata, or selector + abiFragment + argsMapping")

        logger.debug("Built operation %s: target=%s value=%d", operation.label, target, value)
        return Call(target=target, value=value, data=calldata)


async def submit_transaction(
    collaborators: WorkflowCollaborators,
    request: TransactionRequest,
    calls: list[tuple[Call, OnchainOperation]],
) -> TransactionReceipt:
    """Submit a payload and normalise the receipt.

    Collaborator failures that signal a disallowed target are raised as
    PermissionDeniedError naming the offending call(s), whether or not the
    collaborator raised a workflow error. Other workflow errors pass through
    and every remaining failure becomes ExternalCallError.
    """
    try:
        receipt = await collaborators.execute_transaction(request)
    except Exception as e:
        message = str(e)
        named = isinstance(e, PermissionDeniedError) and e.target
        if not named and any(signal in message for signal in PERMISSION_SIGNALS):
            target = ", ".join(call.target for call, _ in calls)
            operation = ", ".join(op.label for _, op in calls)
            logger.warning("Target not allowed by session %s: %s (%s)", request.session_id, target, operation)
            raise PermissionDeniedError(
                f"Target not allowed for operation '{operation}' ({target}): {message}",
                target=target,
                operation=operation,
                cause=e,
            ) from e
        if isinstance(e, WorkflowError):
            raise
        raise ExternalCallError(f"Transaction failed: {message}", cause=e) from e

    if isinstance(receipt, TransactionReceipt):
        return receipt
    try:
        return msgspec.convert(receipt, type=TransactionReceipt)
    except msgspec.ValidationError as e:
        raise ExternalCallError(f"Malformed transaction receipt: {e}", cause=e) from e


class OnchainStepHandler(StepHandler):
    """Executes a single contract call in single-call mode."""

    def __init__(self, collaborators: WorkflowCollaborators, encoder: OperationEncoder):
        self.collaborators = collaborators
        self.encoder = encoder

    async def execute(self, step: OnchainStep, context: WorkflowContext) -> dict[str, str]:
        if step.onchain is None:
            raise ConfigurationError(f'On-chain step "{step.id}" missing onchain configuration')
        call = self.encoder.build(step.onchain, context)
        request = TransactionRequest(
            session_id=context.session_id,
            mode=SINGLE_MODE,
            execution_data=pack_single_call(call.target, call.value, call.data),
        )
        receipt = await submit_transaction(self.collaborators, request, [(call, step.onchain)])
        logger.info("Step %s submitted transaction %s", step.id, receipt.tx_hash)
        return {"txHash": receipt.tx_hash}


class OnchainBatchStepHandler(StepHandler):
    """Executes several contract calls atomically as one batch transaction."""

    def __init__(self, collaborators: WorkflowCollaborators, encoder: OperationEncoder):
        self.collaborators = collaborators
        self.encoder = encoder

    async def execute(self, step: OnchainBatchStep, context: WorkflowContext) -> dict[str, str]:
        if step.onchain_batch is None or not step.onchain_batch.operations:
            raise ConfigurationError(f'On-chain batch step "{step.id}" must have at least one operation')
        operations = step.onchain_batch.operations
        calls = [self.encoder.build(op, context) for op in operations]
        request = TransactionRequest(
            session_id=context.session_id,
            mode=BATCH_MODE,
            execution_data=encode_batch_calls(calls),
        )
        receipt = await submit_transaction(self.collaborators, request, list(zip(calls, operations)))
        logger.info("Step %s submitted batch of %d calls as %s", step.id, len(calls), receipt.tx_hash)
        return {"txHash": receipt.tx_hash}
