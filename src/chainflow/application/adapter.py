import logging
import re
import time
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping

import httpx
import msgspec

from chainflow.application.port import Context, ExpressionResolver, StepHandler
from chainflow.domain.entity import ConditionStep, HttpStep, TransformStep
from chainflow.domain.error import ConfigurationError, ExternalCallError, ResolutionError
from chainflow.domain.port import ProxyRecord, WorkflowCollaborators
from chainflow.domain.value_object import ExecutionOptions, RunParams

logger = logging.getLogger(__name__)

_EXPRESSION = re.compile(r"\$\.[^\s.\[\]]+(?:\.[^\s.\[\]]+|\[\d+\])*")
_TOKEN = re.compile(r"[^.\[\]]+|\[\d+\]")

_BODY_METHODS = {"POST", "PUT", "PATCH"}


class StepOutputs(Mapping[str, Any]):
    """Append-only mapping of step id/alias to recorded output.

    Each key is written at most once per run; there is no way to replace or
    remove an entry.
    """

    def __init__(self):
        self._entries: dict[str, Any] = {}

    def __getitem__(self, key: str) -> Any:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, key: str, value: Any) -> None:
        if key in self._entries:
            raise KeyError(f"Step output already recorded: {key}")
        self._entries[key] = value


class WorkflowContext(Context):
    """Holds the runtime parameters, caller input and outputs of completed steps for one run."""

    def __init__(
        self,
        params: RunParams,
        execution_options: ExecutionOptions | None = None,
        clock: Callable[[], float] = time.time,
    ):
        options = execution_options if execution_options is not None else ExecutionOptions()
        self.wallet = params.wallet
        self.chain_id = params.chain_id
        self.session_id = params.session_id
        self.session_key_address = params.session_key_address
        self.timestamp = int(clock())
        self.input: dict[str, Any] = dict(params.input or {})
        self.steps = StepOutputs()
        self.computed = MappingProxyType(
            {
                "deadline": self.timestamp + options.deadline_offset,
                "deadlineHour": self.timestamp + options.deadline_hour_offset,
                "deadlineDay": self.timestamp + options.deadline_day_offset,
            }
        )

    def namespace(self) -> dict[str, Any]:
        return {
            "wallet": self.wallet,
            "chainId": self.chain_id,
            "sessionId": self.session_id,
            "sessionKeyAddress": self.session_key_address,
            "timestamp": self.timestamp,
            "input": self.input,
            "steps": self.steps,
            "computed": self.computed,
            "session": {"id": self.session_id, "keyAddress": self.session_key_address},
        }

    def record_output(self, key: str, output: Any) -> None:
        self.steps.record(key, {"output": output})

    def record_skipped(self, key: str) -> None:
        self.steps.record(key, None)


def is_expression(value: Any) -> bool:
    """Return True when ``value`` is a string consisting entirely of one ``$.`` path."""
    return isinstance(value, str) and _EXPRESSION.fullmatch(value) is not None


def extract_expression_refs(node: Any) -> list[str]:
    """Collect every expression in a nested structure, in traversal order."""
    if is_expression(node):
        return [node]
    if isinstance(node, Mapping):
        return [ref for v in node.values() for ref in extract_expression_refs(v)]
    if isinstance(node, (list, tuple)):
        return [ref for v in node for ref in extract_expression_refs(v)]
    return []


class PathResolver(ExpressionResolver):
    """Resolves ``$.name(.field|[index])*`` expressions against a workflow context.

    Rules:
    - Only a string that is exactly one expression is resolved; the referenced
      value keeps its type and is returned as a plain copy, never as a
      mapping owned by the context. Every other value,
      including strings that merely contain ``$.``, is returned unchanged.
    - A missing key, an out-of-range index or traversal into a scalar or None
      raises ResolutionError naming the expression.
    """

    def resolve(self, expression: Any, context: Context) -> Any:
        if not is_expression(expression):
            return expression
        parts = _TOKEN.findall(expression[2:])
        current: Any = context.namespace()
        try:
            for p in parts:
                if isinstance(current, msgspec.Struct):
                    current = msgspec.to_builtins(current)
                if p.startswith("["):
                    if not isinstance(current, (list, tuple)):
                        raise TypeError(p)
                    current = current[int(p[1:-1])]
                else:
                    if not isinstance(current, Mapping):
                        raise TypeError(p)
                    current = current[p]
        except (KeyError, IndexError, TypeError):
            logger.debug("Unresolvable expression %s", expression)
            raise ResolutionError(expression) from None
        return _detach(current)

    def resolve_all(self, node: Any, context: Context) -> Any:
        if isinstance(node, str):
            return self.resolve(node, context)
        if isinstance(node, Mapping):
            return {k: self.resolve_all(v, context) for k, v in node.items()}
        if isinstance(node, (list, tuple)):
            return [self.resolve_all(v, context) for v in node]
        return node


def _detach(value: Any) -> Any:
    # Context mappings leave the resolver as plain dicts and lists
    if isinstance(value, Mapping):
        return {k: _detach(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_detach(v) for v in value]
    return value


_default_resolver = PathResolver()


def resolve_expression(expression: Any, context: Context) -> Any:
    """Resolve a single expression with the default PathResolver."""
    return _default_resolver.resolve(expression, context)


def resolve_all_expressions(node: Any, context: Context) -> Any:
    """Resolve every expression leaf of ``node`` with the default PathResolver."""
    return _default_resolver.resolve_all(node, context)


class HttpStepHandler(StepHandler):
    """Performs an HTTP request through a stored proxy or an inline URL."""

    def __init__(
        self,
        collaborators: WorkflowCollaborators,
        values: ExpressionResolver,
        execution_options: ExecutionOptions,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.collaborators = collaborators
        self.values = values
        self.execution_options = execution_options
        self.http_client = http_client

    async def execute(self, step: HttpStep, context: Context) -> Any:
        config = step.http
        if config is None:
            raise ConfigurationError(f'HTTP step "{step.id}" missing http configuration')
        if config.proxy_id and config.url:
            raise ConfigurationError(f'HTTP step "{step.id}" must not have both proxyId and url')

        headers: dict[str, str] = {"Content-Type": "application/json"}
        if config.proxy_id:
            proxy = await self.collaborators.get_proxy(config.proxy_id)
            if proxy is None:
                raise ConfigurationError(f"Proxy not found: {config.proxy_id}")
            if not isinstance(proxy, ProxyRecord):
                try:
                    proxy = msgspec.convert(proxy, type=ProxyRecord)
                except msgspec.ValidationError as e:
                    raise ConfigurationError(f"Malformed proxy record {config.proxy_id}: {e}", cause=e) from e
            url = proxy.target_url
            method = (proxy.http_method or "GET").upper()
            if proxy.encrypted_headers:
                headers.update(self.collaborators.decrypt_headers(proxy.encrypted_headers))
        elif config.url:
            url = config.url
            method = config.method or "GET"
        else:
            raise ConfigurationError("HTTP step must have either proxyId or url")

        if config.headers:
            resolved = self.values.resolve_all(config.headers, context)
            headers.update({k: str(v) for k, v in resolved.items()})

        content = None
        if config.body_mapping is not None and method in _BODY_METHODS:
            content = msgspec.json.encode(self.values.resolve_all(config.body_mapping, context))

        logger.debug("HTTP %s %s for step %s", method, url, step.id)
        response = await self._send(method, url, headers, content)
        if not response.is_success:
            raise ExternalCallError(
                f"HTTP request failed: {response.status_code} {response.reason_phrase} - {response.text}",
                status=response.status_code,
                body=response.text,
            )

        if "application/json" in response.headers.get("content-type", ""):
            try:
                return msgspec.json.decode(response.content)
            except msgspec.DecodeError as e:
                raise ExternalCallError(
                    f"Malformed JSON response: {e}", status=response.status_code, body=response.text, cause=e
                ) from e
        return response.text

    async def _send(self, method: str, url: str, headers: dict[str, str], content: bytes | None) -> httpx.Response:
        try:
            if self.http_client is not None:
                return await self.http_client.request(method, url, headers=headers, content=content)
            async with httpx.AsyncClient(timeout=self.execution_options.http_timeout) as client:
                return await client.request(method, url, headers=headers, content=content)
        except httpx.HTTPError as e:
            raise ExternalCallError(f"HTTP request failed: {e}", cause=e) from e


class ConditionStepHandler(StepHandler):
    """Evaluates an expression to a boolean using Python truthiness."""

    def __init__(self, values: ExpressionResolver):
        self.values = values

    async def execute(self, step: ConditionStep, context: Context) -> bool:
        if step.condition is None:
            raise ConfigurationError(f'Condition step "{step.id}" missing condition expression')
        return bool(self.values.resolve_all(step.condition.expression, context))


class TransformStepHandler(StepHandler):
    """Returns the expression (or structure of expressions) fully resolved."""

    def __init__(self, values: ExpressionResolver):
        self.values = values

    async def execute(self, step: TransformStep, context: Context) -> Any:
        if step.transform is None:
            raise ConfigurationError(f'Transform step "{step.id}" missing transform expression')
        return self.values.resolve_all(step.transform.expression, context)
