"""
Tests for InMemoryCollaborators.
"""

import pytest

from chainflow.application.calldata import Call, encode_batch_calls, pack_single_call
from chainflow.domain.port import ProxyRecord, TransactionReceipt, TransactionRequest
from chainflow.domain.value_object import BATCH_MODE, SINGLE_MODE
from chainflow.infrastructure.adapter.in_memory.collaborators import InMemoryCollaborators, TargetNotAllowed

TOKEN = "0x" + "33" * 20
ROUTER = "0x" + "44" * 20


class TestInMemoryCollaborators:
    """Test cases for InMemoryCollaborators."""

    @pytest.mark.asyncio
    async def test_proxy_lookup(self):
        """Test registered and missing proxies."""
        proxy = ProxyRecord(target_url="https://api.example.com")
        collaborators = InMemoryCollaborators({"p1": proxy})
        collaborators.add_proxy("p2", {"targetUrl": "https://other.example.com"})

        assert await collaborators.get_proxy("p1") is proxy
        assert await collaborators.get_proxy("p2") == {"targetUrl": "https://other.example.com"}
        assert await collaborators.get_proxy("missing") is None

    def test_decrypt_headers(self):
        """Test plaintext header payloads."""
        collaborators = InMemoryCollaborators()

        assert collaborators.decrypt_headers({"X-Key": 1}) == {"X-Key": "1"}
        assert collaborators.decrypt_headers('{"X-Key": "v"}') == {"X-Key": "v"}

    @pytest.mark.asyncio
    async def test_records_transactions(self):
        """Test that submitted requests are recorded with a deterministic hash."""
        collaborators = InMemoryCollaborators()
        request = TransactionRequest(session_id="s", mode=SINGLE_MODE, execution_data=pack_single_call(TOKEN, 0, "0x01"))

        first = await collaborators.execute_transaction(request)
        second = await collaborators.execute_transaction(request)

        assert isinstance(first, TransactionReceipt)
        assert first.tx_hash.startswith("0x") and len(first.tx_hash) == 66
        assert first == second
        assert collaborators.transactions == [request, request]

    @pytest.mark.asyncio
    async def test_decodes_recorded_calls(self):
        """Test decoding the calls of single and batch requests."""
        single = TransactionRequest(session_id="s", mode=SINGLE_MODE, execution_data=pack_single_call(TOKEN, 2, "0x"))
        calls = [Call(target=TOKEN, value=0, data="0x01"), Call(target=ROUTER, value=0, data="0x02")]
        batch = TransactionRequest(session_id="s", mode=BATCH_MODE, execution_data=encode_batch_calls(calls))

        assert InMemoryCollaborators.calls(single) == [Call(target=TOKEN, value=2, data="0x")]
        assert InMemoryCollaborators.calls(batch) == calls

    @pytest.mark.asyncio
    async def test_allowed_targets(self):
        """Test that calls outside the allow-list are rejected."""
        collaborators = InMemoryCollaborators(allowed_targets=[TOKEN])
        calls = [Call(target=TOKEN, value=0, data="0x"), Call(target=ROUTER, value=0, data="0x")]
        request = TransactionRequest(session_id="s", mode=BATCH_MODE, execution_data=encode_batch_calls(calls))

        with pytest.raises(TargetNotAllowed, match="TARGET_NOT_ALLOWED"):
            await collaborators.execute_transaction(request)
        assert collaborators.transactions == []
