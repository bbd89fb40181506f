"""Listeners and dialers over network sockets and in-memory pipes."""

from __future__ import annotations

import os
import socket
import threading
from typing import Any, Optional

from .handlers import Context

_ACCEPT_POLL = 0.05
_RECV_SIZE = 65536
_TCP_FAMILIES = {
    "tcp": socket.AF_UNSPEC,
    "tcp4": socket.AF_INET,
    "tcp6": socket.AF_INET6,
}


def _closed_error() -> ConnectionAbortedError:
    return ConnectionAbortedError("use of closed network connection")


class _SocketStream:
    """A connected socket used as a byte stream that can be read, written and closed."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._lock = threading.Lock()
        self._closed = False

    def read1(self, size: int = -1) -> bytes:
        """Return up to ``size`` bytes; an empty result means the peer closed."""
        if size is None or size < 0:
            size = _RECV_SIZE
        return self._sock.recv(size)

    read = read1

    def write(self, data: bytes) -> int:
        self._sock.sendall(data)
        return len(data)

    def flush(self) -> None:
        """Nothing is buffered; writes go straight to the socket."""

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()


def _split_host_port(address: str) -> tuple[str, int]:
    if address.startswith("["):
        end = address.find("]")
        if end < 0 or address[end + 1 : end + 2] != ":":
            raise ValueError(f"invalid address {address!r}")
        host, port = address[1:end], address[end + 2 :]
    else:
        host, sep, port = address.rpartition(":")
        if not sep:
            raise ValueError(f"missing port in address {address!r}")
        if ":" in host:
            raise ValueError(f"too many colons in address {address!r}")
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None


def _tcp_family(network: str) -> int:
    try:
        return _TCP_FAMILIES[network]
    except KeyError:
        raise ValueError(f"unknown network {network!r}") from None


def _format_address(sockname: Any) -> str:
    if isinstance(sockname, (str, bytes)):
        return os.fsdecode(sockname)
    host, port = sockname[0], sockname[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _no_delay(sock: socket.socket) -> None:
    try:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    except OSError:
        pass


class NetListener:
    """Accepts connections on a listening socket."""

    def __init__(self, sock: socket.socket, network: str) -> None:
        self._sock = sock
        self._network = "unix" if network == "unix" else "tcp"
        self._address = _format_address(sock.getsockname())
        self._closed = threading.Event()
        sock.settimeout(_ACCEPT_POLL)

    @property
    def network(self) -> str:
        return self._network

    @property
    def address(self) -> str:
        return self._address

    def accept(self, ctx: Optional[Context]) -> _SocketStream:
        """Block until a connection arrives; raise ConnectionAbortedError once closed."""
        while True:
            if self._closed.is_set():
                raise _closed_error()
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                if self._closed.is_set():
                    raise _closed_error() from None
                raise
            conn.settimeout(None)
            if self._network == "tcp":
                _no_delay(conn)
            return _SocketStream(conn)

    def close(self) -> None:
        """Stop listening; connections already accepted stay open."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._sock.close()
        if self._network == "unix":
            os.remove(self._address)

    def dialer(self) -> NetDialer:
        """Return a dialer that connects to this listener."""
        return NetDialer(self._network, self._address)


class NetDialer:
    """Connects to a network address."""

    def __init__(self, network: str, address: str) -> None:
        if network != "unix":
            _tcp_family(network)
        self.network = network
        self.address = address

    def dial(self, ctx: Optional[Context]) -> _SocketStream:
        """Open a new connection to the address."""
        if self.network == "unix":
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            try:
                sock.connect(self.address)
            except BaseException:
                sock.close()
                raise
            return _SocketStream(sock)

        host, port = _split_host_port(self.address)
        family = _tcp_family(self.network)
        last: Optional[OSError] = None
        for fam, kind, proto, _, sockaddr in socket.getaddrinfo(
            host or "localhost", port, family, socket.SOCK_STREAM
        ):
            sock = socket.socket(fam, kind, proto)
            try:
                sock.connect(sockaddr)
            except OSError as err:
                sock.close()
                last = err
                continue
            _no_delay(sock)
            return _SocketStream(sock)
        raise last if last is not None else OSError(f"no address found for {self.address!r}")


def net_listener(ctx: Optional[Context], network: str, address: str) -> NetListener:
    """Listen on ``address`` for the given network ("tcp", "tcp4", "tcp6" or "unix")."""
    if network == "unix":
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(address)
            sock.listen()
        except BaseException:
            sock.close()
            raise
        return NetListener(sock, network)

    family = _tcp_family(network)
    host, port = _split_host_port(address)
    infos = socket.getaddrinfo(host or None, port, family, socket.SOCK_STREAM, 0, socket.AI_PASSIVE)
    fam, _, _, _, sockaddr = infos[0]
    sock = socket.create_server(sockaddr, family=fam)
    return NetListener(sock, network)


def net_dialer(network: str, address: str) -> NetDialer:
    """Return a dialer for the given network and address."""
    return NetDialer(network, address)


class PipeListener:
    """A listener whose connections are in-memory socket pairs.

    It can only be reached through its own dialer; each dial hands the far
    end of a new pair to a waiting accept.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._closed = False
        self._offer: Optional[_SocketStream] = None

    def accept(self, ctx: Optional[Context]) -> _SocketStream:
        """Block until dialed or closed, preferring closed if already so."""
        with self._cond:
            while not self._closed and self._offer is None:
                self._cond.wait()
            if self._closed:
                raise _closed_error()
            stream = self._offer
            self._offer = None
            self._cond.notify_all()
            return stream

    def close(self) -> None:
        """Unblock pending accepts and dials; later ones fail."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def dialer(self) -> PipeListener:
        return self

    def dial(self, ctx: Optional[Context]) -> _SocketStream:
        """Create a pipe and wait for an accept to take its far end."""
        a, b = socket.socketpair()
        client, server = _SocketStream(a), _SocketStream(b)
        with self._cond:
            while not self._closed and self._offer is not None:
                self._cond.wait()
            if not self._closed:
                self._offer = server
                self._cond.notify_all()
                while self._offer is server and not self._closed:
                    self._cond.wait()
                if self._offer is not server:
                    return client
                self._offer = None
                self._cond.notify_all()
        client.close()
        server.close()
        raise _closed_error()


def net_pipe_listener(ctx: Optional[Context]) -> PipeListener:
    """Return a listener that connects through in-memory pipes."""
    return PipeListener()