"""SQL-backed repository and session store on SQLite."""

from __future__ import annotations

import pytest
from sqlalchemy import text as sql_text
from sqlalchemy.exc import OperationalError

from questionflow.db.migrations_runner import apply_migrations
from questionflow.errors import SessionNotFoundError
from questionflow.logic.flow_service import FlowService
from questionflow.logic.repository_sql import SqlFormRepository, SqlSessionStore
from questionflow.models.session import ResponseSession, SessionStatus

from flow_builders import form, question, rule, scenario_form


def test_migrations_are_journaled_and_not_reapplied(sqlite_engine):
    assert apply_migrations(sqlite_engine) == []
    with sqlite_engine.connect() as conn:
        names = [r[0] for r in conn.execute(sql_text("SELECT filename FROM schema_migrations"))]
    assert names == ["001_flow_schema.sql"]


def test_form_round_trip_keeps_rules_and_order(sqlite_engine):
    repo = SqlFormRepository(sqlite_engine)
    original = form(
        question("Q1", 1, question_type="single_choice", options=["a", "b"]),
        question("Q2", 2, required=True, rules=[rule("Q1", "in_list", ["a"])]),
        question("Q3", 3, combinator="OR", rules=[rule("Q1", "matches_pattern", "^b"), rule("Q2", "greater_than", 3)]),
    )
    repo.save(original)
    loaded = repo.get("form-1")
    assert [q.id for q in loaded.questions] == ["Q1", "Q2", "Q3"]
    assert loaded.questions[0].options == ["a", "b"]
    assert loaded.questions[1].required is True
    assert loaded.questions[2].rules == original.questions[2].rules
    assert repo.get("missing") is None


def test_saving_a_form_again_replaces_its_questions(sqlite_engine):
    repo = SqlFormRepository(sqlite_engine)
    repo.save(form(question("Q1", 1), question("Q2", 2)))
    repo.save(form(question("Q1", 1)))
    assert [q.id for q in repo.get("form-1").questions] == ["Q1"]


def test_session_answers_persist_through_the_service(sqlite_engine):
    service = FlowService(SqlFormRepository(sqlite_engine), SqlSessionStore(sqlite_engine))
    service.register_form(scenario_form())
    session = service.start_session("form-ab")
    service.submit_answer(session.id, "Q1", "Yes")
    service.submit_answer(session.id, "Q2", "X")
    service.submit_answer(session.id, "Q1", "No")

    stored = SqlSessionStore(sqlite_engine).get(session.id)
    assert stored.answers["Q1"].value == "No"
    assert stored.answers["Q1"].revision_count == 2
    assert stored.answers["Q2"].skipped is True
    assert stored.answers["Q2"].value is None

    result = service.submit_answer(session.id, "Q3", "done")
    assert result.completed is True
    stored = SqlSessionStore(sqlite_engine).get(session.id)
    assert stored.status == SessionStatus.COMPLETED
    assert stored.completed_at is not None


def test_answer_rows_are_unique_per_question(sqlite_engine):
    service = FlowService(SqlFormRepository(sqlite_engine), SqlSessionStore(sqlite_engine))
    service.register_form(scenario_form())
    session = service.start_session("form-ab")
    for value in ("Yes", "Yes", "No", "Yes"):
        service.submit_answer(session.id, "Q1", value)
    with sqlite_engine.connect() as conn:
        count = conn.execute(
            sql_text("SELECT COUNT(*) FROM answer_record WHERE session_id = :sid AND question_id = 'Q1'"),
            {"sid": session.id},
        ).scalar_one()
    assert count == 1


def test_failure_mid_cascade_rolls_back_the_triggering_write(sqlite_engine):
    class FailingSkipStore(SqlSessionStore):
        def _upsert_answer(self, conn, record):
            if record.skipped:
                conn.execute(sql_text("SELECT * FROM no_such_table"))
            super()._upsert_answer(conn, record)

    forms = SqlFormRepository(sqlite_engine)
    good = FlowService(forms, SqlSessionStore(sqlite_engine))
    good.register_form(scenario_form())
    session = good.start_session("form-ab")
    good.submit_answer(session.id, "Q1", "Yes")
    good.submit_answer(session.id, "Q2", "X")

    # Q1 -> "No" rewrites Q1, drops Q2 and then skips it; the skip write fails
    bad = FlowService(forms, FailingSkipStore(sqlite_engine))
    with pytest.raises(OperationalError):
        bad.submit_answer(session.id, "Q1", "No")

    stored = SqlSessionStore(sqlite_engine).get(session.id)
    assert stored.answers["Q1"].value == "Yes"
    assert stored.answers["Q1"].revision_count == 1
    assert stored.answers["Q2"].value == "X"
    assert stored.answers["Q2"].skipped is False


def test_records_removed_behind_the_frontier_are_deleted(sqlite_engine):
    service = FlowService(SqlFormRepository(sqlite_engine), SqlSessionStore(sqlite_engine))
    service.register_form(
        form(
            question("Q1", 1, question_type="yes_no"),
            question("Q2", 2, rules=[rule("Q1", "equals", "Yes")]),
            question("Q3", 3, rules=[rule("Q2", "is_not_empty")]),
            question("Q4", 4),
            question("Q5", 5),
        )
    )
    session = service.start_session("form-1")
    for qid, value in (("Q1", "Yes"), ("Q2", "a"), ("Q3", "b"), ("Q4", "c")):
        service.submit_answer(session.id, qid, value)
    result = service.submit_answer(session.id, "Q1", "No")
    assert result.invalidated == ["Q2", "Q3"]
    assert result.next_question.id == "Q5"
    stored = SqlSessionStore(sqlite_engine).get(session.id)
    assert set(stored.answers) == {"Q1", "Q4"}


def test_commit_for_unknown_session_raises(sqlite_engine):
    store = SqlSessionStore(sqlite_engine)
    ghost = ResponseSession(id="ghost", form_id="form-1")
    with pytest.raises(SessionNotFoundError):
        store.commit(ghost, ghost)


def test_metadata_update_merges(sqlite_engine):
    service = FlowService(SqlFormRepository(sqlite_engine), SqlSessionStore(sqlite_engine))
    service.register_form(scenario_form())
    session = service.start_session("form-ab")
    service.submit_answer(session.id, "Q1", "Yes")
    store = SqlSessionStore(sqlite_engine)
    assert store.update_answer_metadata(session.id, "Q1", {"a": 1}) is True
    assert store.update_answer_metadata(session.id, "Q1", {"b": 2}) is True
    assert store.get(session.id).answers["Q1"].metadata == {"a": 1, "b": 2}
    assert store.update_answer_metadata(session.id, "Q9", {"c": 3}) is False


def test_forms_may_reuse_question_ids(sqlite_engine):
    service = FlowService(SqlFormRepository(sqlite_engine), SqlSessionStore(sqlite_engine))
    service.register_form(scenario_form("form-a"))
    service.register_form(scenario_form("form-b"))

    forms = SqlFormRepository(sqlite_engine)
    assert [q.id for q in forms.get("form-a").questions] == ["Q1", "Q2", "Q3"]
    assert [q.id for q in forms.get("form-b").questions] == ["Q1", "Q2", "Q3"]

    first = service.start_session("form-a")
    second = service.start_session("form-b")
    assert service.submit_answer(first.id, "Q1", "Yes").next_question.id == "Q2"
    assert service.submit_answer(second.id, "Q1", "No").next_question.id == "Q3"

    # Replacing one form leaves the other's questions alone
    forms.save(form(question("Q1", 1), form_id="form-a"))
    assert [q.id for q in forms.get("form-a").questions] == ["Q1"]
    assert [q.id for q in forms.get("form-b").questions] == ["Q1", "Q2", "Q3"]
