# mcpsdk

A small library for JSON-RPC 2.0 messaging with no dependencies. It covers
message types and their wire form, stream framing, and socket and pipe
transports. It also ships two tool backends: a knowledge graph and a store
for sequential-thinking sessions.

## Modules

- `mcpsdk.messages` defines `ID`, `Request` and `Response`, along with
  `new_call`, `new_notification` and `new_response`. Its
  `encode_message`, `encode_indent` and `decode_message` turn messages
  into wire bytes and back. `make_id`, `string_id` and `int64_id` build
  identifiers.
- `mcpsdk.jsonrpc` re-exports the message types together with `make_id`,
  `encode_message` and `decode_message`. It is meant for transport code.
- `mcpsdk.wire` provides `WireError`, the error object carried in responses,
  plus `new_error` and `wrap_error`. It also holds the standard codes, such as
  `ERR_PARSE`, `ERR_INVALID_REQUEST`, `ERR_METHOD_NOT_FOUND`,
  `ERR_INVALID_PARAMS` and `ERR_INTERNAL`, and the extension codes
  `ERR_SERVER_OVERLOADED`, `ERR_UNKNOWN`, `ERR_SERVER_CLOSING` and
  `ERR_CLIENT_CLOSING`.
- `mcpsdk.handlers` contains:
  - the `Preempter` and `Handler` interfaces, with `PreempterFunc`,
    `HandlerFunc` and `DefaultHandler`;
  - the signalling exceptions `NotHandledError`, `AsyncResponseError` and
    `IdleTimeoutError`;
  - `Context`, a cancellable carrier of values with `child()` and
    `detach()`;
  - `AsyncResult`.
- `mcpsdk.frame` has two framers. `raw_framer()` writes bare JSON values
  back to back. `header_framer()` writes each message after a
  `Content-Length` header. Each framer wraps a byte stream in a `Reader`
  or a `Writer`.
- `mcpsdk.net` offers `net_listener` and `net_dialer` for TCP (`"tcp"`,
  `"tcp4"`, `"tcp6"`) and Unix sockets. `net_pipe_listener` gives a
  listener whose connections are in-memory socket pairs, reached through its
  own `dialer()`.
- `mcpsdk.util` has the `sorted_items`, `key_list`, `field_json_info`
  and `wrapf` helpers. `wrapf` is a context manager that prefixes errors
  raised in its block.
- `mcpsdk.knowledge` provides `KnowledgeBase`, a graph of `Entity`,
  `Relation` and `Observation` records kept in a `MemoryStore` or a
  `FileStore`.
- `mcpsdk.thinking` provides `SessionStore` along with `start_thinking`,
  `continue_thinking`, `review_thinking` and `thinking_history`.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Encoding messages

```python
from mcpsdk.messages import new_call, encode_message, decode_message, string_id

msg = new_call(string_id("msg1"), "ping", None)
data = encode_message(msg)          # b'{"jsonrpc":"2.0","id":"msg1","method":"ping"}'
assert decode_message(data) == msg
```

A message that has a method decodes as a `Request`. One without a method
decodes as a `Response`, and a response without an ID raises a `WireError`.

## Framing a stream

```python
import io
from mcpsdk.frame import header_framer
from mcpsdk.messages import new_notification

out = io.BytesIO()
header_framer().writer(out).write(None, new_notification("alive"))
# out now holds b'Content-Length: 34\r\n\r\n{"jsonrpc":"2.0","method":"alive"}'

reader = header_framer().reader(io.BytesIO(out.getvalue()))
print(reader.read(None))            # Request(method='alive', ...)
reader.read(None)                   # raises EOFError: the stream ended cleanly
```

## Knowledge graph

```python
from mcpsdk.knowledge import KnowledgeBase, MemoryStore, Entity, Relation

kb = KnowledgeBase(MemoryStore())
kb.create_entities([Entity("Alice", "Person", ["Likes coffee"])])
kb.create_relations([Relation("Alice", "Bob", "friend")])
print(kb.search_nodes("coffee").entities)
```

`FileStore(path)` stores the graph as a JSON array in a file that only its
owner can read. If `add_observations` names an entity that does not exist,
it raises `LookupError`.

## Thinking sessions

```python
from mcpsdk.thinking import (
    SessionStore, StartThinkingArgs, ContinueThinkingArgs,
    start_thinking, continue_thinking, review_thinking, thinking_history,
)

store = SessionStore()
start_thinking(store, StartThinkingArgs(problem="Sort a list", session_id="s1"))
continue_thinking(store, ContinueThinkingArgs(session_id="s1", thought="Try merge sort"))
print(review_thinking(store, "s1"))
print(thinking_history(store, "thinking://sessions"))   # JSON of every session
```

## What it does not do

The package has no connection layer. Nothing in it matches responses to
outgoing calls, runs `Handler` or `Preempter` objects on incoming requests,
or serves accepted connections. The handler interfaces and `Context` are
defined, but you drive them from your own code. The listeners and dialers
in `mcpsdk.net` only produce byte streams, and you pair those streams with
`mcpsdk.frame` yourself. The package installs no command-line programs.