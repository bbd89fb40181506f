"""Sequential thinking sessions: step-by-step thoughts with revisions and branches."""

from __future__ import annotations

import dataclasses
import json
import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlsplit

BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
DEFAULT_ESTIMATED_STEPS = 5
HISTORY_MIME_TYPE = "application/json"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(t: datetime) -> str:
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    text = t.isoformat()
    return text[:-6] + "Z" if text.endswith("+00:00") else text


@dataclass
class Thought:
    """A single step in the thinking process."""

    index: int
    content: str
    created: datetime = field(default_factory=_now)
    revised: bool = False
    parent_index: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form of the thought."""
        data: dict[str, Any] = {
            "index": self.index,
            "content": self.content,
            "created": _timestamp(self.created),
            "revised": self.revised,
        }
        if self.parent_index is not None:
            data["parentIndex"] = self.parent_index
        return data


@dataclass
class ThinkingSession:
    """An active thinking session about one problem."""

    id: str
    problem: str
    thoughts: list[Thought] = field(default_factory=list)
    current_thought: int = 0
    estimated_total: int = 0
    status: str = "active"
    created: datetime = field(default_factory=_now)
    last_activity: datetime = field(default_factory=_now)
    branches: list[str] = field(default_factory=list)
    version: int = 0

    def clone(self) -> ThinkingSession:
        """Return a deep copy of the session."""
        return dataclasses.replace(
            self,
            thoughts=[dataclasses.replace(t) for t in self.thoughts],
            branches=list(self.branches),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form of the session."""
        data: dict[str, Any] = {
            "id": self.id,
            "problem": self.problem,
            "thoughts": [t.to_dict() for t in self.thoughts],
            "currentThought": self.current_thought,
            "estimatedTotal": self.estimated_total,
            "status": self.status,
            "created": _timestamp(self.created),
            "lastActivity": _timestamp(self.last_activity),
        }
        if self.branches:
            data["branches"] = list(self.branches)
        data["version"] = self.version
        return data


class SessionStore:
    """Holds thinking sessions by ID, with optimistic concurrency on updates.

    Stored sessions are never modified in place: updates work on copies and
    replace the stored session only if its version is unchanged.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, ThinkingSession] = {}

    def session(self, id: str) -> Optional[ThinkingSession]:
        """Return the stored session with ``id``, or None."""
        with self._lock:
            return self._sessions.get(id)

    def set_session(self, session: ThinkingSession) -> None:
        """Store or replace a session."""
        with self._lock:
            self._sessions[session.id] = session

    def compare_and_swap(
        self, session_id: str, update: Callable[[ThinkingSession], ThinkingSession]
    ) -> None:
        """Apply ``update`` to a copy of the session and store it if nothing changed meanwhile.

        Retries on a version conflict; raises LookupError if the session is
        missing, and lets any error from ``update`` through.
        """
        while True:
            with self._lock:
                current = self._sessions.get(session_id)
                if current is None:
                    raise LookupError(f"session {session_id} not found")
                copy = current.clone()
                old_version = current.version

            updated = update(copy)

            with self._lock:
                current = self._sessions.get(session_id)
                if current is None:
                    raise LookupError(f"session {session_id} not found")
                if current.version != old_version:
                    continue
                updated.version = old_version + 1
                self._sessions[session_id] = updated
                return

    def sessions(self) -> list[ThinkingSession]:
        """Return every stored session."""
        with self._lock:
            return list(self._sessions.values())

    def sessions_snapshot(self) -> list[ThinkingSession]:
        """Return deep copies of every stored session."""
        with self._lock:
            return [s.clone() for s in self._sessions.values()]

    def session_snapshot(self, id: str) -> Optional[ThinkingSession]:
        """Return a deep copy of the session with ``id``, or None."""
        with self._lock:
            session = self._sessions.get(id)
            return session.clone() if session is not None else None


@dataclass
class StartThinkingArgs:
    """Arguments for starting a thinking session."""

    problem: str
    session_id: str = ""
    estimated_steps: int = 0


@dataclass
class ContinueThinkingArgs:
    """Arguments for adding, revising or branching a thought."""

    session_id: str
    thought: str
    next_needed: Optional[bool] = None
    revise_step: Optional[int] = None
    create_branch: bool = False
    estimated_total: int = 0


def rand_text() -> str:
    """Return 26 random base32 characters (at least 128 bits of randomness)."""
    return "".join(BASE32_ALPHABET[b % 32] for b in secrets.token_bytes(26))


def start_thinking(store: SessionStore, args: StartThinkingArgs) -> str:
    """Begin a new session and return a message describing it."""
    session_id = args.session_id or rand_text()
    estimated = args.estimated_steps or DEFAULT_ESTIMATED_STEPS
    now = _now()
    store.set_session(
        ThinkingSession(
            id=session_id,
            problem=args.problem,
            estimated_total=estimated,
            status="active",
            created=now,
            last_activity=now,
        )
    )
    return (
        f"Started thinking session '{session_id}' for problem: {args.problem}\n"
        f"Estimated steps: {estimated}\n"
        "Ready for your first thought."
    )


def _revise(store: SessionStore, args: ContinueThinkingArgs, step: int) -> str:
    def update(session: ThinkingSession) -> ThinkingSession:
        index = step - 1
        if not 0 <= index < len(session.thoughts):
            raise ValueError(f"invalid step number: {step}")
        thought = session.thoughts[index]
        thought.content = args.thought
        thought.revised = True
        session.last_activity = _now()
        return session

    store.compare_and_swap(args.session_id, update)
    return f"Revised step {step} in session '{args.session_id}':\n{args.thought}"


def _branch(store: SessionStore, args: ContinueThinkingArgs) -> str:
    branch: Optional[ThinkingSession] = None

    def update(session: ThinkingSession) -> ThinkingSession:
        nonlocal branch
        branch_id = f"{args.session_id}_branch_{len(session.branches) + 1}"
        session.branches.append(branch_id)
        session.last_activity = _now()
        now = _now()
        branch = ThinkingSession(
            id=branch_id,
            problem=session.problem + " (Alternative branch)",
            thoughts=[dataclasses.replace(t) for t in session.thoughts],
            current_thought=len(session.thoughts),
            estimated_total=session.estimated_total,
            status="active",
            created=now,
            last_activity=now,
        )
        return session

    store.compare_and_swap(args.session_id, update)
    assert branch is not None
    store.set_session(branch)
    return (
        f"Created branch '{branch.id}' from session '{args.session_id}'. "
        "You can now continue thinking in either session."
    )


def continue_thinking(store: SessionStore, args: ContinueThinkingArgs) -> str:
    """Add the next thought, revise an earlier one, or branch the session.

    Returns a message describing what was done.
    """
    if args.revise_step is not None:
        return _revise(store, args, args.revise_step)
    if args.create_branch:
        return _branch(store, args)

    progress = ""
    status_msg = ""

    def update(session: ThinkingSession) -> ThinkingSession:
        nonlocal progress, status_msg
        thought_id = len(session.thoughts) + 1
        session.thoughts.append(Thought(index=thought_id, content=args.thought))
        session.current_thought = thought_id
        session.last_activity = _now()
        if args.estimated_total > 0:
            session.estimated_total = args.estimated_total
        if args.next_needed is False:
            session.status = "completed"
        progress = f"Step {thought_id}"
        if session.estimated_total > 0:
            progress += f" of ~{session.estimated_total}"
        if session.status == "completed":
            status_msg = "\n✓ Thinking process completed!"
        else:
            status_msg = "\nReady for next thought..."
        return session

    store.compare_and_swap(args.session_id, update)
    return f"Session '{args.session_id}' - {progress}:\n{args.thought}{status_msg}"


def review_thinking(store: SessionStore, session_id: str) -> str:
    """Return a full review of a session's thinking process."""
    session = store.session_snapshot(session_id)
    if session is None:
        raise LookupError(f"session {session_id} not found")
    lines = [
        f"=== Thinking Review: {session.id} ===",
        f"Problem: {session.problem}",
        f"Status: {session.status}",
        f"Steps: {len(session.thoughts)} of ~{session.estimated_total}",
    ]
    if session.branches:
        lines.append(f"Branches: {', '.join(session.branches)}")
    lines.append("")
    lines.append("--- Thought Sequence ---")
    for number, thought in enumerate(session.thoughts, start=1):
        suffix = " (revised)" if thought.revised else ""
        lines.append(f"{number}. {thought.content}{suffix}")
    return "\n".join(lines) + "\n"


def thinking_history(store: SessionStore, uri: str) -> str:
    """Return session data as indented JSON for a ``thinking://`` URI.

    ``thinking://sessions`` lists every session; ``thinking://<id>`` gives one.
    The result has the MIME type ``HISTORY_MIME_TYPE``.
    """
    try:
        parts = urlsplit(uri)
    except ValueError:
        raise ValueError(f"invalid thinking resource URI: {uri}") from None
    if parts.scheme != "thinking":
        raise ValueError(f"invalid thinking resource URI scheme: {parts.scheme}")
    session_id = parts.netloc.rpartition("@")[2]

    if session_id == "sessions":
        data: Any = [s.to_dict() for s in store.sessions_snapshot()]
    else:
        session = store.session_snapshot(session_id)
        if session is None:
            raise LookupError(f"session {session_id} not found")
        data = session.to_dict()
    return json.dumps(data, indent=2, ensure_ascii=False)