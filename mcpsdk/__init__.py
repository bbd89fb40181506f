"""JSON-RPC 2.0 messages, framing and socket transports, with knowledge-graph and thinking-session backends."""

__version__ = "0.1.0"