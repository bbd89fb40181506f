"""Public JSON-RPC message helpers for transport authors."""

from __future__ import annotations

from typing import Any, Union

from . import messages as _messages
from .messages import ID, Message, Request, Response

__all__ = ["ID", "Message", "Request", "Response", "make_id", "encode_message", "decode_message"]


def make_id(v: Any) -> ID:
    """Coerce a decoded JSON value (null, number or string) to an ID."""
    return _messages.make_id(v)


def encode_message(msg: Message) -> bytes:
    """Serialise a message to its wire format."""
    return _messages.encode_message(msg)


def decode_message(data: Union[bytes, str]) -> Message:
    """Parse wire data into a Request or a Response."""
    return _messages.decode_message(data)