import json
from dataclasses import dataclass

import pytest

from mcpsdk.messages import (
    ID,
    Request,
    Response,
    decode_message,
    encode_indent,
    encode_message,
    int64_id,
    make_id,
    new_call,
    new_notification,
    new_response,
    string_id,
    to_wire_error,
)
from mcpsdk.wire import (
    ERR_INVALID_PARAMS,
    ERR_INVALID_REQUEST,
    ERR_PARSE,
    WireError,
    new_error,
    wrap_error,
)

WIRE_CASES = [
    ("notification", new_notification("alive", None), b'{"jsonrpc":"2.0","method":"alive"}'),
    ("call", new_call(string_id("msg1"), "ping", None), b'{"jsonrpc":"2.0","id":"msg1","method":"ping"}'),
    ("response", new_response(string_id("msg2"), "pong", None), b'{"jsonrpc":"2.0","id":"msg2","result":"pong"}'),
    ("numerical id", new_call(int64_id(1), "poke", None), b'{"jsonrpc":"2.0","id":1,"method":"poke"}'),
    (
        "computing fix edits",
        new_response(int64_id(3), None, new_error(0, "computing fix edits")),
        b"""{
        "jsonrpc":"2.0",
        "id":3,
        "error":{
            "code":0,
            "message":"computing fix edits"
        }
    }""",
    ),
]


def _compact(data):
    return json.dumps(json.loads(data), separators=(",", ":")).encode()


@pytest.mark.parametrize("name,msg,encoded", WIRE_CASES, ids=[c[0] for c in WIRE_CASES])
def test_wire_message(name, msg, encoded):
    assert encode_message(msg) == _compact(encoded)
    assert decode_message(encoded) == msg


def test_make_id_variants():
    assert make_id(None) == ID()
    assert not make_id(None).is_valid()
    assert make_id(1.0) == int64_id(1)
    assert make_id(7) == int64_id(7)
    assert make_id("a") == string_id("a")
    assert make_id("a").raw() == "a"


@pytest.mark.parametrize("value", [[1], {"a": 1}, True])
def test_make_id_rejects_other_types(value):
    with pytest.raises(WireError) as info:
        make_id(value)
    assert info.value.matches(ERR_PARSE)


def test_is_call():
    assert new_call(int64_id(1), "m", None).is_call()
    assert not new_notification("m", None).is_call()


def test_decode_bad_version():
    with pytest.raises(ValueError, match="invalid message version tag"):
        decode_message(b'{"jsonrpc":"1.0","method":"x"}')


def test_decode_bad_json():
    with pytest.raises(ValueError, match="unmarshaling jsonrpc message"):
        decode_message(b"{not json")


def test_decode_response_without_id():
    with pytest.raises(WireError) as info:
        decode_message(b'{"jsonrpc":"2.0","result":1}')
    assert info.value.matches(ERR_INVALID_REQUEST)


def test_decode_request_params():
    msg = decode_message(b'{"jsonrpc":"2.0","id":"x","method":"join","params":["a","b"]}')
    assert isinstance(msg, Request)
    assert msg.params == ["a", "b"]
    assert msg.id == string_id("x")


def test_to_wire_error_chain():
    assert to_wire_error(None) is None
    base = new_error(5, "five")
    assert to_wire_error(base) is base
    outer = RuntimeError("outer")
    outer.__cause__ = wrap_error(ERR_INVALID_PARAMS, "detail")
    converted = to_wire_error(outer)
    assert converted.to_wire() == {"code": -32602, "message": "outer"}
    assert to_wire_error(ValueError("plain")).to_wire() == {"code": 0, "message": "plain"}


def test_plain_error_response_round_trip():
    resp = Response(id=int64_id(4), error=ValueError("boom"))
    decoded = decode_message(encode_message(resp))
    assert decoded.error == WireError(0, "boom")
    assert decoded.result is None


def test_dataclass_params_normalised():
    @dataclass
    class Params:
        name: str
        count: int

    call = new_call(int64_id(2), "m", Params("x", 3))
    assert call.params == {"name": "x", "count": 3}
    assert decode_message(encode_message(call)) == call


def test_unserialisable_params_raise():
    with pytest.raises(TypeError):
        new_call(int64_id(2), "m", object())


def test_encode_indent_round_trip():
    msg = new_call(string_id("a"), "m", {"k": [1, 2]})
    out = encode_indent(msg, ">", "  ")
    lines = out.decode().split("\n")
    assert len(lines) > 1
    assert all(line.startswith(">") for line in lines[1:])
    plain = encode_indent(msg, "", "  ")
    assert decode_message(plain) == msg


def test_encode_rejects_non_message():
    with pytest.raises(TypeError):
        encode_message("not a message")