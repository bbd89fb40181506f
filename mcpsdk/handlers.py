"""Handler interfaces, signalling exceptions and a cancellable context."""

from __future__ import annotations

import threading
import weakref
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from concurrent.futures import CancelledError
from types import MappingProxyType
from typing import Any, Optional

from .messages import Request


class NotHandledError(Exception):
    """Raised by a handler or preempter that does not handle a request.

    When a handler raises it for a call, the peer is told the method was not found.
    """

    def __init__(self, message: str = "JSON RPC not handled") -> None:
        super().__init__(message)


class AsyncResponseError(Exception):
    """Raised by a handler that will send its response later.

    It must not be raised for notifications, which get no response.
    """

    def __init__(self, message: str = "JSON RPC asynchronous response") -> None:
        super().__init__(message)


class IdleTimeoutError(Exception):
    """Raised when serving timed out waiting for new connections."""

    def __init__(self, message: str = "timed out waiting for new connections") -> None:
        super().__init__(message)


class Context:
    """Carries values and a cancellation signal across a request's work.

    Children are cancelled with their parent. A detached context keeps the
    values but is cut off from its parent's cancellation.
    """

    def __init__(self, values: Optional[Mapping[Any, Any]] = None) -> None:
        self._values = MappingProxyType(dict(values or {}))
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: weakref.WeakSet[Context] = weakref.WeakSet()

    @property
    def values(self) -> Mapping[Any, Any]:
        return self._values

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def error(self) -> Optional[CancelledError]:
        """The cancellation error, or None while the context is live."""
        return CancelledError("context canceled") if self._event.is_set() else None

    def cancel(self) -> None:
        """Cancel this context and every child derived from it."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            children = list(self._children)
            self._children.clear()
        for child in children:
            child.cancel()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or until timeout; report whether it was cancelled."""
        return self._event.wait(timeout)

    def child(self) -> Context:
        """Return a context with the same values that is cancelled with this one."""
        kid = Context(self._values)
        with self._lock:
            if not self._event.is_set():
                self._children.add(kid)
                return kid
        kid.cancel()
        return kid

    def detach(self) -> Context:
        """Return a context with the same values but no link to this one's cancellation."""
        return Context(self._values)


class Preempter(ABC):
    """Handles messages before they are queued to the main handler."""

    @abstractmethod
    def preempt(self, ctx: Context, req: Request) -> Any:
        """Handle ``req`` or raise NotHandledError to let it be queued.

        Must not block.
        """


class Handler(ABC):
    """Handles queued messages on a connection, one at a time."""

    @abstractmethod
    def handle(self, ctx: Context, req: Request) -> Any:
        """Return a result for a call (None for a notification), or raise."""


class PreempterFunc(Preempter):
    """A Preempter backed by a plain function."""

    def __init__(self, func: Callable[[Context, Request], Any]) -> None:
        self._func = func

    def preempt(self, ctx: Context, req: Request) -> Any:
        return self._func(ctx, req)


class HandlerFunc(Handler):
    """A Handler backed by a plain function."""

    def __init__(self, func: Callable[[Context, Request], Any]) -> None:
        self._func = func

    def handle(self, ctx: Context, req: Request) -> Any:
        return self._func(ctx, req)


class DefaultHandler(Preempter, Handler):
    """Handles nothing: every request is declined."""

    def preempt(self, ctx: Context, req: Request) -> Any:
        raise NotHandledError()

    def handle(self, ctx: Context, req: Request) -> Any:
        raise NotHandledError()


class AsyncResult:
    """An operation that finishes once and records the first error it met."""

    def __init__(self) -> None:
        self._ready = threading.Event()
        self._lock = threading.Lock()
        self._first_error: Optional[BaseException] = None

    def done(self) -> None:
        """Mark the operation finished."""
        with self._lock:
            if self._ready.is_set():
                raise RuntimeError("done called twice")
            self._ready.set()

    def wait(self) -> Optional[BaseException]:
        """Block until finished, then return the first error recorded, if any."""
        self._ready.wait()
        with self._lock:
            return self._first_error

    def set_error(self, err: BaseException) -> None:
        """Record ``err`` unless an earlier error was already recorded."""
        with self._lock:
            if self._first_error is None:
                self._first_error = err