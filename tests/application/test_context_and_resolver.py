"""
Tests for the workflow context and expression resolution.

This module tests:
- StepOutputs and WorkflowContext
- PathResolver and the module-level resolve helpers
- is_expression / extract_expression_refs
"""

import msgspec
import pytest

from chainflow.application.adapter import (
    PathResolver,
    StepOutputs,
    WorkflowContext,
    extract_expression_refs,
    is_expression,
    resolve_all_expressions,
    resolve_expression,
)
from chainflow.domain.error import ResolutionError
from chainflow.domain.value_object import ExecutionOptions, RunParams

NOW = 1_700_000_000
WALLET = "0x" + "aa" * 20
SESSION_KEY = "0x" + "bb" * 20


def make_context(**input_values) -> WorkflowContext:
    params = RunParams(
        wallet=WALLET,
        chain_id=8453,
        session_id="0x" + "cc" * 32,
        session_key_address=SESSION_KEY,
        input=input_values,
    )
    return WorkflowContext(params, clock=lambda: NOW)


class TestStepOutputs:
    """Test cases for StepOutputs."""

    def test_record_and_read(self):
        """Test recording and reading entries."""
        outputs = StepOutputs()
        outputs.record("a", {"output": 1})

        assert outputs["a"] == {"output": 1}
        assert list(outputs) == ["a"]
        assert len(outputs) == 1
        assert "a" in outputs

    def test_write_once(self):
        """Test that a key cannot be written twice."""
        outputs = StepOutputs()
        outputs.record("a", {"output": 1})

        with pytest.raises(KeyError):
            outputs.record("a", {"output": 2})
        assert outputs["a"] == {"output": 1}

    def test_no_item_assignment(self):
        """Test that entries cannot be assigned directly."""
        outputs = StepOutputs()

        with pytest.raises(TypeError):
            outputs["a"] = 1


class TestWorkflowContext:
    """Test cases for WorkflowContext."""

    def test_computed_deadlines(self):
        """Test deadline values derived from the creation timestamp."""
        ctx = make_context()

        assert ctx.timestamp == NOW
        assert dict(ctx.computed) == {"deadline": NOW + 300, "deadlineHour": NOW + 3600, "deadlineDay": NOW + 86400}

    def test_computed_offsets_from_options(self):
        """Test that deadline offsets come from ExecutionOptions."""
        params = RunParams(wallet=WALLET, chain_id=1, session_id="s", session_key_address=SESSION_KEY)

        ctx = WorkflowContext(params, ExecutionOptions(deadline_offset=60), clock=lambda: NOW)

        assert ctx.computed["deadline"] == NOW + 60
        assert ctx.input == {}

    def test_computed_read_only(self):
        """Test that computed values cannot be modified."""
        ctx = make_context()

        with pytest.raises(TypeError):
            ctx.computed["deadline"] = 0

    def test_input_copied(self):
        """Test that the context does not share the caller's input dict."""
        raw = {"amount": "1"}
        params = RunParams(wallet=WALLET, chain_id=1, session_id="s", session_key_address=SESSION_KEY, input=raw)

        ctx = WorkflowContext(params)
        raw["amount"] = "2"

        assert ctx.input == {"amount": "1"}

    def test_record_output_and_skip(self):
        """Test output wrapping and skipped markers."""
        ctx = make_context()
        ctx.record_output("a", 5)
        ctx.record_skipped("b")

        assert ctx.steps["a"] == {"output": 5}
        assert ctx.steps["b"] is None


class TestPathResolver:
    """Test cases for PathResolver."""

    def setup_method(self):
        """Setup test fixtures."""
        self.resolver = PathResolver()
        self.ctx = make_context(amount="1000", tokens=["0x1", "0x2"])
        self.ctx.record_output("quotes", [{"quoteId": "q1", "price": 10}, {"quoteId": "q2", "price": 11}])
        self.ctx.record_output("swap", {"txHash": "0xabc"})
        self.ctx.record_skipped("skipped")

    def test_top_level_values(self):
        """Test resolving runtime parameters."""
        assert self.resolver.resolve("$.wallet", self.ctx) == WALLET
        assert self.resolver.resolve("$.chainId", self.ctx) == 8453
        assert self.resolver.resolve("$.timestamp", self.ctx) == NOW
        assert self.resolver.resolve("$.sessionKeyAddress", self.ctx) == SESSION_KEY
        assert self.resolver.resolve("$.session.keyAddress", self.ctx) == SESSION_KEY
        assert self.resolver.resolve("$.session.id", self.ctx) == self.ctx.session_id

    def test_input_and_steps(self):
        """Test resolving input and step output paths."""
        assert self.resolver.resolve("$.input.amount", self.ctx) == "1000"
        assert self.resolver.resolve("$.input.tokens[1]", self.ctx) == "0x2"
        assert self.resolver.resolve("$.steps.swap.output.txHash", self.ctx) == "0xabc"
        assert self.resolver.resolve("$.steps.quotes.output[0].quoteId", self.ctx) == "q1"
        assert self.resolver.resolve("$.computed.deadline", self.ctx) == NOW + 300

    def test_preserves_type(self):
        """Test that structured values are returned as-is."""
        assert self.resolver.resolve("$.steps.quotes.output[1]", self.ctx) == {"quoteId": "q2", "price": 11}
        assert self.resolver.resolve("$.steps.swap", self.ctx) == {"output": {"txHash": "0xabc"}}

    def test_context_mappings_copied(self):
        """Test that whole context objects resolve to detached plain dicts."""
        computed = self.resolver.resolve("$.computed", self.ctx)
        steps = self.resolver.resolve("$.steps", self.ctx)
        inputs = self.resolver.resolve("$.input", self.ctx)

        assert type(computed) is dict
        assert computed == {"deadline": NOW + 300, "deadlineHour": NOW + 3600, "deadlineDay": NOW + 86400}
        assert type(steps) is dict
        assert steps["swap"] == {"output": {"txHash": "0xabc"}}
        assert steps["skipped"] is None
        inputs["tokens"].append("0x3")
        steps["swap"]["output"]["txHash"] = "0xdef"
        assert self.ctx.input["tokens"] == ["0x1", "0x2"]
        assert self.resolver.resolve("$.steps.swap.output.txHash", self.ctx) == "0xabc"

    def test_non_expressions_unchanged(self):
        """Test that only whole-string expressions are resolved."""
        for value in ("hello", "$.input.amount is 5", " $.wallet", "$.", "$wallet", 5, 1.5, True, None):
            assert self.resolver.resolve(value, self.ctx) == value

    def test_missing_key(self):
        """Test that a missing key names the expression."""
        with pytest.raises(ResolutionError) as exc:
            self.resolver.resolve("$.steps.nope.output", self.ctx)

        assert exc.value.expression == "$.steps.nope.output"

    def test_index_out_of_range(self):
        """Test that an out-of-range index fails."""
        with pytest.raises(ResolutionError):
            self.resolver.resolve("$.steps.quotes.output[5].quoteId", self.ctx)

    def test_traversal_into_scalar(self):
        """Test traversal into strings and numbers fails."""
        with pytest.raises(ResolutionError):
            self.resolver.resolve("$.wallet.length", self.ctx)
        with pytest.raises(ResolutionError):
            self.resolver.resolve("$.input.amount[0]", self.ctx)

    def test_index_on_mapping(self):
        """Test that indexing a mapping fails."""
        with pytest.raises(ResolutionError):
            self.resolver.resolve("$.steps.swap.output[0]", self.ctx)

    def test_skipped_step(self):
        """Test that a skipped step is None and cannot be traversed."""
        assert self.resolver.resolve("$.steps.skipped", self.ctx) is None
        with pytest.raises(ResolutionError):
            self.resolver.resolve("$.steps.skipped.output", self.ctx)

    def test_struct_outputs_traversed(self):
        """Test traversal through msgspec Struct outputs."""

        class Quote(msgspec.Struct):
            quote_id: str

        self.ctx.record_output("struct", Quote(quote_id="q9"))

        assert self.resolver.resolve("$.steps.struct.output.quote_id", self.ctx) == "q9"

    def test_resolve_all_nested(self):
        """Test recursive resolution of nested structures."""
        node = {
            "to": "$.wallet",
            "amounts": ["$.input.amount", 7, ("$.steps.quotes.output[0].price",)],
            "meta": {"literal": "text", "none": None},
        }

        resolved = self.resolver.resolve_all(node, self.ctx)

        assert resolved == {
            "to": WALLET,
            "amounts": ["1000", 7, [10]],
            "meta": {"literal": "text", "none": None},
        }
        assert extract_expression_refs(resolved) == []

    def test_resolve_all_idempotent(self):
        """Test that resolving an already resolved structure changes nothing."""
        node = {"a": "$.input.amount", "b": ["$.steps.swap.output"]}

        once = self.resolver.resolve_all(node, self.ctx)

        assert self.resolver.resolve_all(once, self.ctx) == once

    def test_resolve_all_propagates_failures(self):
        """Test that a missing nested path fails the whole resolution."""
        with pytest.raises(ResolutionError):
            self.resolver.resolve_all({"a": ["$.input.missing"]}, self.ctx)

    def test_module_helpers(self):
        """Test the module-level helpers."""
        assert resolve_expression("$.input.amount", self.ctx) == "1000"
        assert resolve_all_expressions(["$.chainId"], self.ctx) == [8453]


class TestExpressionHelpers:
    """Test cases for is_expression and extract_expression_refs."""

    def test_is_expression(self):
        """Test the syntactic expression check."""
        assert is_expression("$.wallet")
        assert is_expression("$.steps.q.output[0].id")
        assert not is_expression("$.steps.q output")
        assert not is_expression("$.steps..q")
        assert not is_expression("wallet")
        assert not is_expression(1)

    def test_extract_refs(self):
        """Test collecting references from nested data."""
        node = {"a": "$.input.x", "b": [1, "$.steps.s.output", {"c": "plain"}], "d": ("$.wallet",)}

        assert extract_expression_refs(node) == ["$.input.x", "$.steps.s.output", "$.wallet"]
