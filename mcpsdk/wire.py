"""JSON-RPC 2.0 error objects and the standard error codes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

WIRE_VERSION = "2.0"


class WireError(Exception):
    """A structured JSON-RPC error, as carried in a response."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"WireError(code={self.code!r}, message={self.message!r}, data={self.data!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WireError):
            return NotImplemented
        return (self.code, self.message, self.data) == (other.code, other.message, other.data)

    def __hash__(self) -> int:
        return hash((self.code, self.message))

    def matches(self, other: object) -> bool:
        """Report whether ``other`` is a wire error with the same code."""
        return isinstance(other, WireError) and self.code == other.code

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON object form of the error."""
        wire: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            wire["data"] = self.data
        return wire

    @classmethod
    def from_wire(cls, data: Any) -> WireError:
        """Build an error from its decoded JSON object form."""
        if not isinstance(data, Mapping):
            raise TypeError("error must be a JSON object")
        code = data.get("code", 0)
        if code is None:
            code = 0
        if isinstance(code, bool) or not isinstance(code, int):
            raise TypeError(f"error code must be an integer, not {type(code).__name__}")
        message = data.get("message", "")
        if message is None:
            message = ""
        if not isinstance(message, str):
            raise TypeError(f"error message must be a string, not {type(message).__name__}")
        return cls(code, message, data.get("data"))


def new_error(code: int, message: str) -> WireError:
    """Return an error that encodes on the wire with the given code."""
    return WireError(code, message)


def wrap_error(base: WireError, detail: Any) -> WireError:
    """Return a copy of ``base`` whose message carries extra detail.

    The result keeps the code of ``base``, so it still matches it.
    """
    err = WireError(base.code, f"{base.message}: {detail}", base.data)
    err.__cause__ = base
    return err


ERR_PARSE = new_error(-32700, "JSON RPC parse error")
ERR_INVALID_REQUEST = new_error(-32600, "JSON RPC invalid request")
ERR_METHOD_NOT_FOUND = new_error(-32601, "JSON RPC method not found")
ERR_INVALID_PARAMS = new_error(-32602, "JSON RPC invalid params")
ERR_INTERNAL = new_error(-32603, "JSON RPC internal error")

# Extensions to the specification used by this implementation.
ERR_SERVER_OVERLOADED = new_error(-32000, "JSON RPC overloaded")
ERR_UNKNOWN = new_error(-32001, "JSON RPC unknown error")
ERR_SERVER_CLOSING = new_error(-32004, "JSON RPC server is closing")
ERR_CLIENT_CLOSING = new_error(-32003, "JSON RPC client is closing")