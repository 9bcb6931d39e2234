"""Completion checks, progress and the session status machine."""

from __future__ import annotations

import pytest

from questionflow.errors import SessionStateError
from questionflow.logic.completion import can_complete, missing_required, progress, transition
from questionflow.models.session import SessionStatus

from flow_builders import form, graph_of, question, rule, session_with


def _required_form():
    return form(
        question("Q1", 1, required=True),
        question("Q2", 2, required=True, rules=[rule("Q1", "equals", "Yes")]),
        question("Q3", 3),
    )


def test_cannot_complete_while_questions_remain():
    graph = graph_of(_required_form())
    session = session_with(Q1="Yes")
    assert can_complete(session, graph) is False


def test_hidden_required_question_does_not_block_completion():
    graph = graph_of(_required_form())
    session = session_with(Q1="No", Q3="x")
    assert can_complete(session, graph) is True


def test_required_question_without_record_blocks_completion():
    graph = graph_of(_required_form())
    session = session_with(Q1="Yes", Q3="x")
    # Q2 is behind the frontier and has no record
    assert missing_required(session, graph) == ["Q2"]
    assert can_complete(session, graph) is False


def test_progress_counts_visible_and_answered():
    graph = graph_of(_required_form())
    session = session_with(Q1="Yes")
    p = progress(session, graph)
    assert p.visible_count == 3
    assert p.answered_count == 1
    assert p.completion_percentage == pytest.approx(33.33)
    assert p.missing_required == ["Q2"]
    assert p.can_complete is False
    assert session.answers.keys() == {"Q1"}


def test_progress_reports_completable_session():
    graph = graph_of(_required_form())
    session = session_with(Q1="Yes", Q2="a", Q3="b")
    p = progress(session, graph)
    assert p.completion_percentage == 100.0
    assert p.can_complete is True


def test_transition_to_completed_stamps_completed_at():
    session = session_with()
    transition(session, SessionStatus.COMPLETED)
    assert session.status == SessionStatus.COMPLETED
    assert session.completed_at is not None
    assert session.is_terminal


def test_pause_records_reason_and_resume_clears_it():
    session = session_with()
    transition(session, SessionStatus.PAUSED, reason="user_left")
    assert session.abandon_reason == "user_left"
    transition(session, SessionStatus.IN_PROGRESS)
    assert session.status == SessionStatus.IN_PROGRESS
    assert session.abandon_reason is None


@pytest.mark.parametrize(
    "start,target",
    [
        (SessionStatus.COMPLETED, SessionStatus.IN_PROGRESS),
        (SessionStatus.COMPLETED, SessionStatus.PAUSED),
        (SessionStatus.ABANDONED, SessionStatus.IN_PROGRESS),
        (SessionStatus.PAUSED, SessionStatus.COMPLETED),
        (SessionStatus.PAUSED, SessionStatus.PAUSED),
        (SessionStatus.IN_PROGRESS, SessionStatus.IN_PROGRESS),
    ],
)
def test_disallowed_transitions_raise(start, target):
    session = session_with()
    session.status = start
    with pytest.raises(SessionStateError) as exc:
        transition(session, target)
    assert exc.value.code == f"SESSION_{start.value.upper()}"
    assert session.status == start
