from abc import ABC, abstractmethod
from typing import Any, Mapping

import msgspec


class ProxyRecord(msgspec.Struct, rename="camel"):
    """Stored API proxy: target URL, method and (encrypted) headers."""

    target_url: str
    http_method: str = "GET"
    encrypted_headers: Any = None


class TransactionRequest(msgspec.Struct, rename="camel", frozen=True):
    """Execution payload handed to the transaction collaborator.

    ``mode`` selects the wire format of ``execution_data``: the packed single
    call or the encoded batch envelope. Both are ``0x``-prefixed hex strings.
    """

    session_id: str
    mode: str
    execution_data: str


class TransactionReceipt(msgspec.Struct, rename="camel"):
    tx_hash: str


class WorkflowCollaborators(ABC):
    """External services the engine depends on.

    Implemented by the surrounding application (database, key management,
    relayer); the engine only calls through this interface.
    """

    @abstractmethod
    async def get_proxy(self, proxy_id: str) -> ProxyRecord | Mapping[str, Any] | None:
        """
        Look up a stored API proxy.

        :param proxy_id: Identifier of the proxy record
        :type proxy_id: str
        :returns: The proxy record, or None when no such proxy exists
        :rtype: ProxyRecord | Mapping[str, Any] | None
        """
        ...

    @abstractmethod
    def decrypt_headers(self, encrypted: Any) -> dict[str, str]:
        """
        Decrypt the header blob stored with a proxy.

        :param encrypted: The encrypted header payload as stored
        :type encrypted: Any
        :returns: Plain header name to value mapping
        :rtype: dict[str, str]
        """
        ...

    @abstractmethod
    async def execute_transaction(self, request: TransactionRequest) -> TransactionReceipt | Mapping[str, Any]:
        """
        Sign and submit an execution payload for the session.

        :param request: Session id, execution mode and encoded payload
        :type request: TransactionRequest
        :returns: The submitted transaction's hash
        :rtype: TransactionReceipt | Mapping[str, Any]
        """
        ...
