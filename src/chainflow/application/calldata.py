"""Contract call encoding.

Builds calldata from a single-function ABI fragment and named arguments, and
packs calls into the two execution payload formats: a single call
(``target ‖ value ‖ calldata``) and a batch of ``(address,uint256,bytes)[]``.
"""

import logging
import re
from typing import Any, Mapping

import eth_abi
import msgspec
from eth_abi.exceptions import ABITypeError, DecodingError, ParseError
from eth_abi.exceptions import EncodingError as AbiEncodingError
from eth_utils import decode_hex, encode_hex, function_signature_to_4byte_selector

from chainflow.domain.error import EncodingError, MissingArgumentError

logger = logging.getLogger(__name__)

_FUNCTION_PREFIX = re.compile(r"^function\s+")
_IDENTIFIER = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_ELEMENTARY = re.compile(r"[A-Za-z][A-Za-z0-9]*")
_ARRAY_SUFFIX = re.compile(r"(?:\[\d*\])*")
_HEX = re.compile(r"^0[xX](?:[0-9a-fA-F]{2})*$")
_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Keywords that may sit between a parameter's type and its name
_QUALIFIERS = {"memory", "calldata", "storage", "indexed", "payable"}
_ALIASES = {"uint": "uint256", "int": "int256", "byte": "bytes1"}

BATCH_CALL_TYPE = "(address,uint256,bytes)[]"
_ABI_ERRORS = (AbiEncodingError, ParseError, ABITypeError, ValueError, TypeError, OverflowError)


class AbiParameter(msgspec.Struct, frozen=True):
    """A function input: its name and canonical type, with components for tuples."""

    name: str
    type: str
    components: tuple["AbiParameter", ...] = ()


class AbiFunction(msgspec.Struct, frozen=True):
    """A single contract function, parsed from a human-readable or structured fragment."""

    name: str
    inputs: tuple[AbiParameter, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.type for p in self.inputs)})"

    @property
    def selector(self) -> str:
        return encode_hex(function_signature_to_4byte_selector(self.signature))

    @classmethod
    def parse(cls, fragment: str) -> "AbiFunction":
        """Parse ``[function] NAME(type [location] [name], ...) [modifiers] [returns (...)]``.

        Tuple parameters may be written ``(t1,t2)`` or ``tuple(t1 a, t2 b)``, each
        with optional array suffixes. Anything after the parameter list is ignored.
        """
        text = _FUNCTION_PREFIX.sub("", fragment.strip())
        match = _IDENTIFIER.match(text)
        if not match:
            raise EncodingError(f"Invalid ABI fragment: {fragment}")
        rest = text[match.end():].lstrip()
        if not rest.startswith("("):
            raise EncodingError(f"Invalid ABI fragment: {fragment}")
        params, _ = _split_group(rest, fragment)
        inputs = tuple(_parse_parameter(p, fragment) for p in _split_top_level(params))
        return cls(name=match.group(), inputs=inputs)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AbiFunction":
        """Build from the JSON ABI form ``{"name": ..., "inputs": [{"name", "type", "components"?}]}``."""
        name = data.get("name")
        if not isinstance(name, str) or not _IDENTIFIER.fullmatch(name):
            raise EncodingError(f"Invalid ABI fragment: missing function name in {dict(data)!r}")
        return cls(name=name, inputs=tuple(_parameter_from_dict(p) for p in data.get("inputs") or []))

    @classmethod
    def from_fragment(cls, fragment: str | Mapping[str, Any] | list) -> "AbiFunction":
        """Accept a human-readable fragment, a JSON ABI entry, or a one-function JSON ABI list."""
        if isinstance(fragment, str):
            stripped = fragment.strip()
            if not stripped.startswith(("{", "[")):
                return cls.parse(stripped)
            try:
                fragment = msgspec.json.decode(stripped)
            except msgspec.DecodeError as e:
                raise EncodingError(f"Invalid ABI fragment: {e}", cause=e) from e
        if isinstance(fragment, list):
            functions = [f for f in fragment if isinstance(f, Mapping) and f.get("type", "function") == "function"]
            if len(functions) != 1:
                raise EncodingError(f"ABI fragment must describe exactly one function, found {len(functions)}")
            fragment = functions[0]
        if isinstance(fragment, Mapping):
            return cls.from_dict(fragment)
        raise EncodingError(f"Unsupported ABI fragment: {fragment!r}")

    def order_arguments(self, args: Mapping[str, Any]) -> list[Any]:
        """Return the argument values in parameter order, coerced to their ABI types."""
        ordered = []
        for index, param in enumerate(self.inputs):
            key = param.name or str(index)
            if args.get(key) is None:
                raise MissingArgumentError(key, self.name)
            ordered.append(_coerce(args[key], param.type, param.components, key))
        return ordered

    def encode_call(self, args: Mapping[str, Any]) -> str:
        """Encode ``selector ‖ abi.encode(args)`` as a ``0x`` hex string."""
        values = self.order_arguments(args)
        try:
            encoded = eth_abi.encode([p.type for p in self.inputs], values)
        except _ABI_ERRORS as e:
            raise EncodingError(f"Cannot encode arguments for {self.signature}: {e}", cause=e) from e
        return encode_hex(function_signature_to_4byte_selector(self.signature) + encoded)


class CalldataBuilder:
    """Builds calldata for one operation from its ABI fragment and resolved arguments."""

    def build(
        self, fragment: str | Mapping[str, Any] | list, args: Mapping[str, Any], selector: str | None = None
    ) -> str:
        function = AbiFunction.from_fragment(fragment)
        if selector is not None and normalize_hex(selector, "selector").lower() != function.selector:
            raise EncodingError(
                f"Selector {selector} does not match {function.signature} (expected {function.selector})"
            )
        calldata = function.encode_call(args)
        logger.debug("Encoded %s (%d bytes)", function.signature, (len(calldata) - 2) // 2)
        return calldata


class Call(msgspec.Struct, frozen=True):
    """One contract call inside an execution payload."""

    target: str
    value: int
    data: str


def normalize_hex(value: Any, label: str) -> str:
    """Return ``value`` as an even-length ``0x`` hex string."""
    if isinstance(value, (bytes, bytearray)):
        return encode_hex(bytes(value))
    if isinstance(value, str):
        prefixed = value if value[:2].lower() == "0x" else "0x" + value
        if _HEX.match(prefixed):
            return "0x" + prefixed[2:]
    raise EncodingError(f"Invalid {label}: expected hex data, got {value!r}")


def parse_uint(value: Any, label: str = "value") -> int:
    """Coerce an int, decimal string or ``0x`` string to an unsigned 256-bit integer."""
    number = _to_int(value, label)
    if not 0 <= number < 2**256:
        raise EncodingError(f"Invalid {label}: {value!r} is out of range for uint256")
    return number


def pack_single_call(target: str, value: int, calldata: str) -> str:
    """Pack ``target(20) ‖ value(32, big-endian) ‖ calldata``."""
    if not _ADDRESS.match(target):
        raise EncodingError(f"Invalid target address: {target!r}")
    data = decode_hex(normalize_hex(calldata, "calldata"))
    return encode_hex(decode_hex(target) + parse_uint(value).to_bytes(32, "big") + data)


def unpack_single_call(execution_data: str) -> Call:
    raw = decode_hex(normalize_hex(execution_data, "execution data"))
    if len(raw) < 52:
        raise EncodingError(f"Execution data too short for a single call: {len(raw)} bytes")
    return Call(target=encode_hex(raw[:20]), value=int.from_bytes(raw[20:52], "big"), data=encode_hex(raw[52:]))


def encode_batch_calls(calls: list[Call]) -> str:
    """ABI-encode calls as ``(address,uint256,bytes)[]``."""
    rows = [(c.target.lower(), parse_uint(c.value), decode_hex(normalize_hex(c.data, "calldata"))) for c in calls]
    try:
        return encode_hex(eth_abi.encode([BATCH_CALL_TYPE], [rows]))
    except _ABI_ERRORS as e:
        raise EncodingError(f"Cannot encode batch calls: {e}", cause=e) from e


def decode_batch_calls(execution_data: str) -> list[Call]:
    raw = decode_hex(normalize_hex(execution_data, "execution data"))
    try:
        (rows,) = eth_abi.decode([BATCH_CALL_TYPE], raw)
    except DecodingError as e:
        raise EncodingError(f"Cannot decode batch calls: {e}", cause=e) from e
    return [Call(target=target.lower(), value=value, data=encode_hex(data)) for target, value, data in rows]


def _split_group(text: str, fragment: str) -> tuple[str, str]:
    # text starts with "("; returns the balanced inner text and the remainder
    depth = 0
    for index, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return text[1:index], text[index + 1:]
    raise EncodingError(f"Unbalanced parentheses in ABI fragment: {fragment}")


def _split_top_level(text: str) -> list[str]:
    if not text.strip():
        return []
    parts, depth, start = [], 0, 0
    for index, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append(text[start:index].strip())
            start = index + 1
    parts.append(text[start:].strip())
    return parts


def _parse_parameter(text: str, fragment: str) -> AbiParameter:
    if not text:
        raise EncodingError(f"Empty parameter in ABI fragment: {fragment}")
    components: tuple[AbiParameter, ...] = ()
    if text.startswith("tuple("):
        text = text[len("tuple"):]
    if text.startswith("("):
        inner, rest = _split_group(text, fragment)
        components = tuple(_parse_parameter(p, fragment) for p in _split_top_level(inner))
        base = "(" + ",".join(c.type for c in components) + ")"
    else:
        match = _ELEMENTARY.match(text)
        if not match:
            raise EncodingError(f"Invalid parameter type '{text}' in ABI fragment: {fragment}")
        base = _ALIASES.get(match.group(), match.group())
        rest = text[match.end():]
    suffix = _ARRAY_SUFFIX.match(rest).group()
    words = [w for w in rest[len(suffix):].split() if w not in _QUALIFIERS]
    if len(words) > 1:
        raise EncodingError(f"Invalid parameter '{text}' in ABI fragment: {fragment}")
    return AbiParameter(name=words[0] if words else "", type=base + suffix, components=components)


def _parameter_from_dict(data: Mapping[str, Any]) -> AbiParameter:
    raw_type = str(data.get("type", ""))
    components: tuple[AbiParameter, ...] = ()
    if raw_type.startswith("tuple"):
        components = tuple(_parameter_from_dict(c) for c in data.get("components") or [])
        abi_type = "(" + ",".join(c.type for c in components) + ")" + raw_type[len("tuple"):]
    else:
        match = _ELEMENTARY.match(raw_type)
        if not match:
            raise EncodingError(f"Invalid parameter type: {raw_type!r}")
        abi_type = _ALIASES.get(match.group(), match.group()) + raw_type[match.end():]
    return AbiParameter(name=str(data.get("name") or ""), type=abi_type, components=components)


def _to_int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise EncodingError(f"Invalid {label}: expected an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        v = value.strip()
        try:
            if v.lower().startswith(("0x", "-0x")):
                return int(v, 16)
            return int(v)
        except ValueError:
            pass
    raise EncodingError(f"Invalid {label}: expected an integer, got {value!r}")


def _coerce(value: Any, abi_type: str, components: tuple[AbiParameter, ...], label: str) -> Any:
    if abi_type.endswith("]"):
        if not isinstance(value, (list, tuple)):
            raise EncodingError(f"Argument '{label}' must be an array for type {abi_type}")
        element = abi_type[: abi_type.rindex("[")]
        return [_coerce(v, element, components, f"{label}[{i}]") for i, v in enumerate(value)]
    if abi_type.startswith("("):
        if isinstance(value, Mapping):
            missing = [c.name for c in components if value.get(c.name) is None]
            if missing:
                raise MissingArgumentError(f"{label}.{missing[0]}")
            value = [value[c.name] for c in components]
        if not isinstance(value, (list, tuple)) or len(value) != len(components):
            raise EncodingError(f"Argument '{label}' must be a tuple of {len(components)} values")
        return tuple(
            _coerce(v, c.type, c.components, f"{label}.{c.name or i}") for i, (v, c) in enumerate(zip(value, components))
        )
    if abi_type.startswith(("uint", "int")):
        return _to_int(value, f"argument '{label}'")
    if abi_type == "bool":
        if isinstance(value, str):
            v = value.strip().lower()
            if v in {"true", "1"}:
                return True
            if v in {"false", "0"}:
                return False
        if isinstance(value, (bool, int)) and value in (0, 1):
            return bool(value)
        raise EncodingError(f"Invalid argument '{label}': expected a boolean, got {value!r}")
    if abi_type == "address":
        if not isinstance(value, str) or not _ADDRESS.match(value):
            raise EncodingError(f"Invalid argument '{label}': expected an address, got {value!r}")
        return value.lower()
    if abi_type.startswith("bytes"):
        return decode_hex(normalize_hex(value, f"argument '{label}'"))
    return value
