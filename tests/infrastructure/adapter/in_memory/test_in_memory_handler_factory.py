"""
Tests for InMemoryHandlerFactory.
"""

from unittest.mock import Mock

import httpx
import pytest

from chainflow.application.adapter import (
    ConditionStepHandler,
    HttpStepHandler,
    PathResolver,
    TransformStepHandler,
)
from chainflow.application.onchain import OnchainBatchStepHandler, OnchainStepHandler
from chainflow.domain.entity import ConditionStep, HttpStep, OnchainBatchStep, OnchainStep, Step, TransformStep
from chainflow.domain.error import ConfigurationError
from chainflow.domain.port import WorkflowCollaborators
from chainflow.domain.value_object import ExecutionOptions
from chainflow.infrastructure.adapter.in_memory.handler_factory import InMemoryHandlerFactory


class TestInMemoryHandlerFactory:
    """Test cases for InMemoryHandlerFactory."""

    def setup_method(self):
        """Setup test fixtures."""
        self.collaborators = Mock(spec=WorkflowCollaborators)
        self.http_client = httpx.AsyncClient()
        self.factory = InMemoryHandlerFactory(
            self.collaborators, PathResolver(), ExecutionOptions(), http_client=self.http_client
        )

    @pytest.mark.parametrize(
        "step, handler_type",
        [
            (HttpStep(id="h"), HttpStepHandler),
            (OnchainStep(id="o"), OnchainStepHandler),
            (OnchainBatchStep(id="b"), OnchainBatchStepHandler),
            (ConditionStep(id="c"), ConditionStepHandler),
            (TransformStep(id="t"), TransformStepHandler),
        ],
    )
    def test_dispatch_by_variant(self, step, handler_type):
        """Test that each step variant gets its handler."""
        assert isinstance(self.factory.get_handler(step), handler_type)

    def test_http_handler_shares_client(self):
        """Test that the injected HTTP client is passed on."""
        handler = self.factory.get_handler(HttpStep(id="h"))

        assert handler.http_client is self.http_client
        assert handler.collaborators is self.collaborators

    def test_onchain_handlers_share_encoder(self):
        """Test that on-chain handlers use one operation encoder."""
        single = self.factory.get_handler(OnchainStep(id="o"))
        batch = self.factory.get_handler(OnchainBatchStep(id="b"))

        assert single.encoder is batch.encoder is self.factory.encoder

    def test_unknown_step(self):
        """Test that an unknown variant raises ConfigurationError."""

        class CustomStep(Step, tag="custom"):
            pass

        with pytest.raises(ConfigurationError, match="Unknown step type: CustomStep"):
            self.factory.get_handler(CustomStep(id="x"))
