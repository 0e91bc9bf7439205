import logging
from typing import Any, Iterable, Mapping

import msgspec
from eth_utils import encode_hex, keccak

from chainflow.application.calldata import Call, decode_batch_calls, unpack_single_call
from chainflow.domain.port import ProxyRecord, TransactionReceipt, TransactionRequest, WorkflowCollaborators
from chainflow.domain.value_object import BATCH_MODE

logger = logging.getLogger(__name__)


class TargetNotAllowed(Exception):
    """Raised by the in-memory executor for a call outside ``allowed_targets``."""


class InMemoryCollaborators(WorkflowCollaborators):
    """Collaborators backed by plain dictionaries, for tests and dry runs.

    Proxy headers are stored unencrypted (a mapping or a JSON object string).
    Submitted transactions are recorded in ``transactions`` and answered with
    a deterministic hash of the payload. When ``allowed_targets`` is given,
    payloads calling any other address are rejected the way a session key's
    allow-list would reject them.
    """

    def __init__(
        self,
        proxies: Mapping[str, ProxyRecord | Mapping[str, Any]] | None = None,
        allowed_targets: Iterable[str] | None = None,
    ):
        self.proxies: dict[str, ProxyRecord | Mapping[str, Any]] = dict(proxies or {})
        self.allowed_targets = {t.lower() for t in allowed_targets} if allowed_targets is not None else None
        self.transactions: list[TransactionRequest] = []

    def add_proxy(self, proxy_id: str, proxy: ProxyRecord | Mapping[str, Any]) -> None:
        self.proxies[proxy_id] = proxy

    async def get_proxy(self, proxy_id: str) -> ProxyRecord | Mapping[str, Any] | None:
        return self.proxies.get(proxy_id)

    def decrypt_headers(self, encrypted: Any) -> dict[str, str]:
        if isinstance(encrypted, (str, bytes)):
            encrypted = msgspec.json.decode(encrypted)
        return {str(k): str(v) for k, v in encrypted.items()}

    async def execute_transaction(self, request: TransactionRequest) -> TransactionReceipt:
        calls = self.calls(request)
        if self.allowed_targets is not None:
            for call in calls:
                if call.target.lower() not in self.allowed_targets:
                    raise TargetNotAllowed(f"TARGET_NOT_ALLOWED: {call.target}")
        self.transactions.append(request)
        tx_hash = encode_hex(keccak(hexstr=request.execution_data))
        logger.debug("Recorded transaction %s with %d call(s)", tx_hash, len(calls))
        return TransactionReceipt(tx_hash=tx_hash)

    @staticmethod
    def calls(request: TransactionRequest) -> list[Call]:
        """Decode the calls carried by a recorded request."""
        if request.mode == BATCH_MODE:
            return decode_batch_calls(request.execution_data)
        return [unpack_single_call(request.execution_data)]
