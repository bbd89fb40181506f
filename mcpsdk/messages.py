"""JSON-RPC 2.0 messages: identifiers, requests, responses and their wire form."""

from __future__ import annotations

import dataclasses
import json
import math
from dataclasses import dataclass
from typing import Any, Optional, Union

from .wire import ERR_INVALID_REQUEST, ERR_PARSE, WIRE_VERSION, WireError, wrap_error


@dataclass(frozen=True)
class ID:
    """A request identifier: a string, an integer, or nothing."""

    value: Union[int, str, None] = None

    def __post_init__(self) -> None:
        v = self.value
        if v is not None and (isinstance(v, bool) or not isinstance(v, (int, str))):
            raise TypeError(f"invalid ID type {type(v).__name__}")

    def is_valid(self) -> bool:
        """Report whether the ID is set; the empty ID is not valid."""
        return self.value is not None

    def raw(self) -> Union[int, str, None]:
        """Return the underlying value."""
        return self.value


def string_id(s: str) -> ID:
    """Create a string request identifier."""
    return ID(str(s))


def int64_id(i: int) -> ID:
    """Create an integer request identifier."""
    if isinstance(i, bool):
        raise TypeError("invalid ID type bool")
    return ID(int(i))


def make_id(v: Any) -> ID:
    """Coerce a decoded JSON value (null, number or string) to an ID."""
    if v is None:
        return ID()
    if isinstance(v, str):
        return ID(v)
    if isinstance(v, int) and not isinstance(v, bool):
        return ID(v)
    if isinstance(v, float) and math.isfinite(v):
        return ID(int(v))
    raise wrap_error(ERR_PARSE, f"invalid ID type {type(v).__name__}")


@dataclass
class Request:
    """A message asking the peer to do something.

    With a valid ID it is a call; without one it is a notification.
    """

    method: str
    id: ID = ID()
    params: Any = None

    def is_call(self) -> bool:
        return self.id.is_valid()


@dataclass
class Response:
    """A reply to a call, carrying either a result or an error."""

    id: ID
    result: Any = None
    error: Optional[BaseException] = None


Message = Union[Request, Response]


def _default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _to_json_value(obj: Any) -> Any:
    if obj is None:
        return None
    return json.loads(json.dumps(obj, default=_default))


def new_notification(method: str, params: Any = None) -> Request:
    """Build a notification for ``method``; params are normalised to JSON values."""
    return Request(method=method, params=_to_json_value(params))


def new_call(id: ID, method: str, params: Any = None) -> Request:
    """Build a call with the given ID; params are normalised to JSON values."""
    return Request(method=method, id=id, params=_to_json_value(params))


def new_response(id: ID, result: Any, error: Optional[BaseException] = None) -> Response:
    """Build a response to the call with ``id``."""
    return Response(id=id, result=_to_json_value(result), error=error)


def to_wire_error(err: Optional[BaseException]) -> Optional[WireError]:
    """Convert any error to a WireError.

    A plain error takes the code of the first WireError in its cause chain,
    and keeps its own message.
    """
    if err is None:
        return None
    if isinstance(err, WireError):
        return err
    result = WireError(0, str(err))
    seen = set()
    cause = err.__cause__
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        if isinstance(cause, WireError):
            result.code = cause.code
            break
        cause = cause.__cause__
    return result


def _wire_form(msg: Message) -> dict[str, Any]:
    wire: dict[str, Any] = {"jsonrpc": WIRE_VERSION}
    if isinstance(msg, Request):
        if msg.id.is_valid():
            wire["id"] = msg.id.value
        if msg.method:
            wire["method"] = msg.method
        if msg.params is not None:
            wire["params"] = msg.params
    elif isinstance(msg, Response):
        if msg.id.is_valid():
            wire["id"] = msg.id.value
        if msg.result is not None:
            wire["result"] = msg.result
        err = to_wire_error(msg.error)
        if err is not None:
            wire["error"] = err.to_wire()
    else:
        raise TypeError(f"not a JSON-RPC message: {type(msg).__name__}")
    return wire


def _dump(wire: dict[str, Any], **kwargs: Any) -> str:
    try:
        return json.dumps(wire, ensure_ascii=False, default=_default, **kwargs)
    except (TypeError, ValueError) as err:
        raise ValueError(f"marshaling jsonrpc message: {err}") from err


def encode_message(msg: Message) -> bytes:
    """Serialise a message to its compact wire form."""
    return _dump(_wire_form(msg), separators=(",", ":")).encode("utf-8")


def encode_indent(msg: Message, prefix: str, indent: str) -> bytes:
    """Like encode_message, but indented; each line after the first starts with prefix."""
    text = _dump(_wire_form(msg), indent=indent)
    return text.replace("\n", "\n" + prefix).encode("utf-8")


def decode_message(data: Union[bytes, str]) -> Message:
    """Parse wire data into a Request (when it has a method) or a Response."""
    try:
        wire = json.loads(data)
    except ValueError as err:
        raise ValueError(f"unmarshaling jsonrpc message: {err}") from err
    if not isinstance(wire, dict):
        raise ValueError("unmarshaling jsonrpc message: expected a JSON object")

    tag = wire.get("jsonrpc", "")
    if tag != WIRE_VERSION:
        raise ValueError(
            f"invalid message version tag {json.dumps(tag)}; expected {json.dumps(WIRE_VERSION)}"
        )

    method = wire.get("method")
    if method is None:
        method = ""
    if not isinstance(method, str):
        raise ValueError("unmarshaling jsonrpc message: method must be a string")

    msg_id = make_id(wire.get("id"))
    if method:
        return Request(method=method, id=msg_id, params=wire.get("params"))

    if not msg_id.is_valid():
        raise WireError.from_wire(ERR_INVALID_REQUEST.to_wire())

    error = None
    raw_error = wire.get("error")
    if raw_error is not None:
        try:
            error = WireError.from_wire(raw_error)
        except TypeError as err:
            raise ValueError(f"unmarshaling jsonrpc message: {err}") from err
    return Response(id=msg_id, result=wire.get("result"), error=error)