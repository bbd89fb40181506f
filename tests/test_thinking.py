import json

import pytest

from mcpsdk.thinking import (
    BASE32_ALPHABET,
    ContinueThinkingArgs,
    SessionStore,
    StartThinkingArgs,
    ThinkingSession,
    Thought,
    continue_thinking,
    rand_text,
    review_thinking,
    start_thinking,
    thinking_history,
)


@pytest.fixture
def store():
    return SessionStore()


def test_start_thinking(store):
    args = StartThinkingArgs(
        problem="How to implement a binary search algorithm",
        session_id="test_session",
        estimated_steps=5,
    )
    text = start_thinking(store, args)
    assert "test_session" in text
    assert "How to implement a binary search algorithm" in text

    session = store.session("test_session")
    assert session is not None
    assert session.problem == args.problem
    assert session.estimated_total == 5
    assert session.status == "active"


def test_start_thinking_defaults(store):
    text = start_thinking(store, StartThinkingArgs(problem="p"))
    sessions = store.sessions()
    assert len(sessions) == 1
    assert len(sessions[0].id) == 26
    assert sessions[0].estimated_total == 5
    assert "Estimated steps: 5" in text


def test_continue_thinking(store):
    start_thinking(store, StartThinkingArgs(problem="Test problem", session_id="test_continue", estimated_steps=3))
    thought = "First thought: I need to understand the problem"
    text = continue_thinking(store, ContinueThinkingArgs(session_id="test_continue", thought=thought))
    assert "Step 1" in text
    assert text == (
        "Session 'test_continue' - Step 1 of ~3:\n" + thought + "\nReady for next thought..."
    )

    session = store.session("test_continue")
    assert len(session.thoughts) == 1
    assert session.thoughts[0].content == thought
    assert session.current_thought == 1
    assert session.version == 1


def test_continue_thinking_with_completion(store):
    start_thinking(store, StartThinkingArgs(problem="Simple test", session_id="test_completion"))
    text = continue_thinking(
        store,
        ContinueThinkingArgs(session_id="test_completion", thought="Final thought", next_needed=False),
    )
    assert "completed" in text
    assert store.session("test_completion").status == "completed"


def test_continue_thinking_updates_estimate(store):
    start_thinking(store, StartThinkingArgs(problem="p", session_id="s"))
    text = continue_thinking(store, ContinueThinkingArgs(session_id="s", thought="t", estimated_total=9))
    assert "Step 1 of ~9" in text
    assert store.session("s").estimated_total == 9


def test_continue_thinking_revision(store):
    store.set_session(
        ThinkingSession(
            id="test_revision",
            problem="Test problem",
            thoughts=[Thought(index=1, content="Original thought"), Thought(index=2, content="Second thought")],
            current_thought=2,
            estimated_total=3,
        )
    )
    text = continue_thinking(
        store,
        ContinueThinkingArgs(session_id="test_revision", thought="Revised first thought", revise_step=1),
    )
    assert "Revised step 1" in text
    updated = store.session("test_revision")
    assert updated.thoughts[0].content == "Revised first thought"
    assert updated.thoughts[0].revised is True
    assert updated.thoughts[1].revised is False


def test_revision_does_not_mutate_previous_snapshot(store):
    original = ThinkingSession(id="s", problem="p", thoughts=[Thought(index=1, content="a")])
    store.set_session(original)
    continue_thinking(store, ContinueThinkingArgs(session_id="s", thought="b", revise_step=1))
    assert original.thoughts[0].content == "a"
    assert store.session("s").thoughts[0].content == "b"


def test_continue_thinking_branching(store):
    store.set_session(
        ThinkingSession(
            id="test_branch",
            problem="Test problem",
            thoughts=[Thought(index=1, content="First thought")],
            current_thought=1,
            estimated_total=3,
        )
    )
    text = continue_thinking(
        store,
        ContinueThinkingArgs(session_id="test_branch", thought="Alternative approach", create_branch=True),
    )
    assert "Created branch" in text

    updated = store.session("test_branch")
    assert len(updated.branches) == 1
    branch_id = updated.branches[0]
    assert "test_branch_branch_" in branch_id
    assert branch_id == "test_branch_branch_1"

    branch = store.session(branch_id)
    assert branch is not None
    assert len(branch.thoughts) == 1
    assert branch.problem == "Test problem (Alternative branch)"
    assert branch.current_thought == 1


def test_review_thinking(store):
    store.set_session(
        ThinkingSession(
            id="test_review",
            problem="Complex problem",
            thoughts=[
                Thought(index=1, content="First thought"),
                Thought(index=2, content="Second thought", revised=True),
                Thought(index=3, content="Final thought"),
            ],
            current_thought=3,
            estimated_total=3,
            status="completed",
            branches=["test_review_branch_1"],
        )
    )
    review = review_thinking(store, "test_review")
    assert "test_review" in review
    assert "Complex problem" in review
    assert "completed" in review
    assert "Steps: 3 of ~3" in review
    assert "First thought" in review
    assert "(revised)" in review
    assert "test_review_branch_1" in review
    assert "2. Second thought (revised)\n" in review


def test_thinking_history(store):
    store.set_session(
        ThinkingSession(
            id="session1", problem="Problem 1", thoughts=[Thought(index=1, content="Thought 1")],
            current_thought=1, estimated_total=2,
        )
    )
    store.set_session(
        ThinkingSession(
            id="session2", problem="Problem 2", thoughts=[Thought(index=1, content="Thought 1")],
            current_thought=1, estimated_total=3, status="completed",
        )
    )
    sessions = json.loads(thinking_history(store, "thinking://sessions"))
    assert len(sessions) == 2
    assert {s["id"] for s in sessions} == {"session1", "session2"}

    one = json.loads(thinking_history(store, "thinking://session1"))
    assert one["id"] == "session1"
    assert one["problem"] == "Problem 1"
    assert one["thoughts"][0]["content"] == "Thought 1"
    assert "branches" not in one


def test_thinking_history_errors(store):
    with pytest.raises(ValueError):
        thinking_history(store, "http://sessions")
    with pytest.raises(LookupError):
        thinking_history(store, "thinking://missing")


def test_invalid_operations(store):
    with pytest.raises(LookupError):
        continue_thinking(store, ContinueThinkingArgs(session_id="nonexistent", thought="Some thought"))
    with pytest.raises(LookupError):
        review_thinking(store, "nonexistent")

    store.set_session(
        ThinkingSession(id="test_invalid", problem="Test", thoughts=[Thought(index=1, content="Thought")])
    )
    with pytest.raises(ValueError, match="invalid step number: 5"):
        continue_thinking(
            store, ContinueThinkingArgs(session_id="test_invalid", thought="Revised", revise_step=5)
        )
    assert store.session("test_invalid").version == 0


def test_compare_and_swap_increments_version(store):
    store.set_session(ThinkingSession(id="s", problem="p"))

    def update(session):
        session.status = "paused"
        return session

    store.compare_and_swap("s", update)
    store.compare_and_swap("s", update)
    assert store.session("s").version == 2
    assert store.session("s").status == "paused"


def test_snapshot_is_independent(store):
    store.set_session(ThinkingSession(id="s", problem="p", thoughts=[Thought(index=1, content="a")]))
    snap = store.session_snapshot("s")
    snap.thoughts[0].content = "changed"
    snap.branches.append("x")
    assert store.session("s").thoughts[0].content == "a"
    assert store.session("s").branches == []
    assert store.session_snapshot("missing") is None


def test_rand_text():
    text = rand_text()
    assert len(text) == 26
    assert set(text) <= set(BASE32_ALPHABET)