import threading
from concurrent.futures import CancelledError

import pytest

from mcpsdk.handlers import (
    AsyncResponseError,
    AsyncResult,
    Context,
    DefaultHandler,
    HandlerFunc,
    IdleTimeoutError,
    NotHandledError,
    PreempterFunc,
)
from mcpsdk.messages import new_notification


def test_error_messages():
    assert str(NotHandledError()) == "JSON RPC not handled"
    assert str(AsyncResponseError()) == "JSON RPC asynchronous response"
    assert str(IdleTimeoutError()) == "timed out waiting for new connections"


def test_cancel_sets_state():
    ctx = Context()
    assert not ctx.cancelled
    assert ctx.error is None
    ctx.cancel()
    assert ctx.cancelled
    assert isinstance(ctx.error, CancelledError)
    assert ctx.wait(0)


def test_wait_times_out_when_live():
    assert Context().wait(0.01) is False


def test_child_cancelled_with_parent():
    parent = Context({"k": 1})
    kid = parent.child()
    grandkid = kid.child()
    assert kid.values["k"] == 1
    parent.cancel()
    assert kid.cancelled
    assert grandkid.cancelled


def test_child_cancel_does_not_reach_parent():
    parent = Context()
    kid = parent.child()
    kid.cancel()
    assert kid.cancelled
    assert not parent.cancelled


def test_child_of_cancelled_parent_is_cancelled():
    parent = Context()
    parent.cancel()
    assert parent.child().cancelled


def test_detach_keeps_values_not_cancellation():
    parent = Context({"name": "value"})
    detached = parent.detach()
    parent.cancel()
    assert not detached.cancelled
    assert detached.values["name"] == "value"


def test_values_are_read_only():
    ctx = Context({"a": 1})
    with pytest.raises(TypeError):
        ctx.values["a"] = 2
    assert ctx.values["a"] == 1


def test_default_handler_declines():
    handler = DefaultHandler()
    req = new_notification("x", None)
    with pytest.raises(NotHandledError):
        handler.handle(Context(), req)
    with pytest.raises(NotHandledError):
        handler.preempt(Context(), req)


def test_function_adapters():
    req = new_notification("echo", [1])
    handler = HandlerFunc(lambda ctx, r: r.method)
    preempter = PreempterFunc(lambda ctx, r: r.params)
    assert handler.handle(Context(), req) == "echo"
    assert preempter.preempt(Context(), req) == [1]


def test_async_result_keeps_first_error():
    result = AsyncResult()
    first = ValueError("first")
    result.set_error(first)
    result.set_error(ValueError("second"))
    result.done()
    assert result.wait() is first


def test_async_result_without_error():
    result = AsyncResult()
    result.done()
    assert result.wait() is None


def test_async_result_done_twice():
    result = AsyncResult()
    result.done()
    with pytest.raises(RuntimeError):
        result.done()


def test_async_result_wait_blocks_until_done():
    result = AsyncResult()
    seen = []
    thread = threading.Thread(target=lambda: seen.append(result.wait()))
    thread.start()
    err = KeyError("k")
    result.set_error(err)
    result.done()
    thread.join(5)
    assert seen == [err]