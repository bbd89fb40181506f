"""Message framing: turning byte streams into JSON-RPC message readers and writers."""

from __future__ import annotations

import io
import json
import re
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Optional

from .handlers import Context
from .messages import Message, decode_message, encode_message

_CHUNK = 4096
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_DECIMAL = re.compile(r"[+-]?[0-9]+", re.ASCII)

_QUOTE = ord('"')
_BACKSLASH = ord("\\")
_OPEN = frozenset(b"{[")
_CLOSE = frozenset(b"}]")
_WHITESPACE = frozenset(b" \t\r\n")
_DELIMITERS = frozenset(b',:{}[]"')


def _check(ctx: Optional[Context]) -> None:
    if ctx is not None and ctx.cancelled:
        raise ctx.error


def _binary(stream: Any) -> Any:
    if isinstance(stream, io.TextIOBase):
        raw = getattr(stream, "buffer", None)
        if raw is not None:
            return raw
    return stream


class _InputBuffer:
    """Buffers a byte stream so lines, fixed sizes and JSON values can be taken from it."""

    def __init__(self, stream: Any) -> None:
        source = _binary(stream)
        self._read = getattr(source, "read1", None) or source.read
        self._buf = bytearray()
        self._eof = False

    def _fill(self) -> bool:
        if self._eof:
            return False
        chunk = self._read(_CHUNK)
        if not chunk:
            self._eof = True
            return False
        self._buf += chunk
        return True

    def _take(self, n: int) -> bytes:
        data = bytes(self._buf[:n])
        del self._buf[:n]
        return data

    def readline(self) -> bytes:
        """Return bytes up to and including a newline, or whatever is left at EOF."""
        start = 0
        while True:
            idx = self._buf.find(b"\n", start)
            if idx >= 0:
                return self._take(idx + 1)
            start = len(self._buf)
            if not self._fill():
                return self._take(len(self._buf))

    def read_exact(self, n: int) -> bytes:
        """Return n bytes, or fewer if the stream ends first."""
        while len(self._buf) < n and self._fill():
            pass
        return self._take(n)

    def json_value(self) -> Optional[bytes]:
        """Return the bytes of the next JSON value, or None at a clean EOF."""
        pos = 0
        while True:
            while pos < len(self._buf) and self._buf[pos] in _WHITESPACE:
                pos += 1
            if pos < len(self._buf):
                break
            if not self._fill():
                self._buf.clear()
                return None
        del self._buf[:pos]

        i = 0
        depth = 0
        in_string = False
        escaped = False
        while True:
            n = len(self._buf)
            while i < n:
                c = self._buf[i]
                if in_string:
                    if escaped:
                        escaped = False
                    elif c == _BACKSLASH:
                        escaped = True
                    elif c == _QUOTE:
                        in_string = False
                        if depth == 0:
                            return self._take(i + 1)
                elif c == _QUOTE:
                    in_string = True
                elif c in _OPEN:
                    depth += 1
                elif c in _CLOSE:
                    depth -= 1
                    if depth <= 0:
                        return self._take(i + 1)
                elif depth == 0 and i > 0 and (c in _WHITESPACE or c in _DELIMITERS):
                    return self._take(i)
                i += 1
            if not self._fill():
                if depth == 0 and not in_string:
                    return self._take(len(self._buf))
                raise ValueError("unexpected EOF")


class Reader(ABC):
    """Reads whole JSON-RPC messages from a stream."""

    @abstractmethod
    def read(self, ctx: Optional[Context]) -> Message:
        """Return the next message; raise EOFError when the stream ends cleanly."""


class Writer(ABC):
    """Writes whole JSON-RPC messages to a stream."""

    @abstractmethod
    def write(self, ctx: Optional[Context], msg: Message) -> None:
        """Send one message."""


class Framer(ABC):
    """Wraps byte streams into message readers and writers."""

    @abstractmethod
    def reader(self, stream: BinaryIO) -> Reader:
        """Wrap a byte reader into a message reader."""

    @abstractmethod
    def writer(self, stream: BinaryIO) -> Writer:
        """Wrap a byte writer into a message writer."""


def _send(stream: Any, *parts: bytes) -> None:
    for part in parts:
        stream.write(part)
    flush = getattr(stream, "flush", None)
    if flush is not None:
        flush()


def _encode(msg: Message) -> bytes:
    try:
        return encode_message(msg)
    except ValueError as err:
        raise ValueError(f"marshaling message: {err}") from err


class RawReader(Reader):
    """Reads messages written back to back, relying on JSON syntax for boundaries."""

    def __init__(self, stream: BinaryIO) -> None:
        self._in = _InputBuffer(stream)

    def read(self, ctx: Optional[Context]) -> Message:
        _check(ctx)
        value = self._in.json_value()
        if value is None:
            raise EOFError("EOF")
        return decode_message(value)


class RawWriter(Writer):
    """Writes messages with no framing around them."""

    def __init__(self, stream: BinaryIO) -> None:
        self._out = _binary(stream)

    def write(self, ctx: Optional[Context], msg: Message) -> None:
        _check(ctx)
        _send(self._out, _encode(msg))


class RawFramer(Framer):
    """Frames messages as bare JSON values."""

    def reader(self, stream: BinaryIO) -> RawReader:
        return RawReader(stream)

    def writer(self, stream: BinaryIO) -> RawWriter:
        return RawWriter(stream)


def _parse_content_length(value: str) -> int:
    if not _DECIMAL.fullmatch(value):
        raise ValueError(f"failed parsing Content-Length: {value}")
    length = int(value)
    if not _INT32_MIN <= length <= _INT32_MAX:
        raise ValueError(f"failed parsing Content-Length: {value}")
    if length <= 0:
        raise ValueError(f"invalid Content-Length: {length}")
    return length


class HeaderReader(Reader):
    """Reads messages preceded by HTTP-style headers carrying Content-Length."""

    def __init__(self, stream: BinaryIO) -> None:
        self._in = _InputBuffer(stream)

    def read(self, ctx: Optional[Context]) -> Message:
        _check(ctx)
        first = True
        content_length = 0
        while True:
            raw = self._in.readline()
            if not raw.endswith(b"\n"):
                if first and not raw:
                    raise EOFError("EOF")
                raise ValueError("failed reading header line: unexpected EOF")
            first = False
            line = raw.decode("utf-8", errors="replace").strip()
            if not line:
                break
            name, colon, value = line.partition(":")
            if not colon:
                raise ValueError(f"invalid header line {json.dumps(line)}")
            if name == "Content-Length":
                content_length = _parse_content_length(value.strip())
        if content_length == 0:
            raise ValueError("missing Content-Length header")
        data = self._in.read_exact(content_length)
        if len(data) < content_length:
            raise ValueError("unexpected EOF")
        return decode_message(data)


class HeaderWriter(Writer):
    """Writes each message after a Content-Length header."""

    def __init__(self, stream: BinaryIO) -> None:
        self._out = _binary(stream)

    def write(self, ctx: Optional[Context], msg: Message) -> None:
        _check(ctx)
        data = _encode(msg)
        _send(self._out, f"Content-Length: {len(data)}\r\n\r\n".encode("ascii"), data)


class HeaderFramer(Framer):
    """Frames messages with Content-Length headers, as LSP does."""

    def reader(self, stream: BinaryIO) -> HeaderReader:
        return HeaderReader(stream)

    def writer(self, stream: BinaryIO) -> HeaderWriter:
        return HeaderWriter(stream)


def raw_framer() -> RawFramer:
    """Return a framer that sends messages with no wrapping."""
    return RawFramer()


def header_framer() -> HeaderFramer:
    """Return a framer that sends messages with Content-Length headers."""
    return HeaderFramer()