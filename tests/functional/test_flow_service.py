"""Flow service: locking, commit, completion trigger, enrichment and status flows."""

from __future__ import annotations

import threading
import time

import pytest

from questionflow.errors import FormNotFoundError, SessionNotFoundError, SessionStateError
from questionflow.logic import events
from questionflow.logic.enrichment import EnrichmentDispatcher
from questionflow.logic.flow_service import FlowService
from questionflow.logic.session_store import InMemoryFormRepository, InMemorySessionStore
from questionflow.models.session import SessionStatus

from flow_builders import form, question, scenario_form


def _service(**kwargs) -> FlowService:
    return FlowService(InMemoryFormRepository(), InMemorySessionStore(), **kwargs)


def test_scenario_a_hidden_question_is_skipped(memory_service):
    memory_service.register_form(scenario_form())
    session = memory_service.start_session("form-ab")
    memory_service.submit_answer(session.id, "Q1", "No")
    current = memory_service.get_current_question(session.id)
    assert current.question.id == "Q3"
    stored = memory_service.get_session(session.id)
    assert stored.answers["Q2"].skipped is True


def test_scenario_b_change_removes_dependent_answer(memory_service):
    memory_service.register_form(scenario_form())
    session = memory_service.start_session("form-ab")
    assert memory_service.submit_answer(session.id, "Q1", "Yes").next_question.id == "Q2"
    memory_service.submit_answer(session.id, "Q2", "X")
    result = memory_service.submit_answer(session.id, "Q1", "No")
    assert result.invalidated == ["Q2"]
    stored = memory_service.get_session(session.id)
    assert stored.answers["Q2"].skipped is True
    published = events.get_buffered_events()
    assert {"type": events.ANSWERS_INVALIDATED, "payload": {"session_id": session.id, "question_ids": ["Q2"]}} in published


def test_scenario_c_completion_fires_exactly_once():
    fired: list[str] = []
    service = _service(completion_trigger=fired.append)

    service.register_form(
        form(question("Q1", 1, required=True), question("Q2", 2, required=True), form_id="form-c")
    )
    session = service.start_session("form-c")
    assert service.submit_answer(session.id, "Q1", "a").completed is False
    result = service.submit_answer(session.id, "Q2", "b")
    assert result.completed is True
    assert result.status == SessionStatus.COMPLETED
    # Further reads and writes do not complete again
    service.get_current_question(session.id)
    again = service.submit_answer(session.id, "Q2", "changed")
    assert again.completed is True
    assert fired == [session.id]
    assert service.get_session(session.id).answers["Q2"].value == "b"


def test_scenario_d_resume_returns_same_pending_question(memory_service):
    memory_service.register_form(scenario_form())
    session = memory_service.start_session("form-ab")
    memory_service.submit_answer(session.id, "Q1", "Yes")
    before = memory_service.get_current_question(session.id).question

    paused = memory_service.abandon(session.id, "user_left")
    assert paused.status == SessionStatus.PAUSED
    assert paused.abandon_reason == "user_left"
    peek = memory_service.get_current_question(session.id)
    assert peek.status == SessionStatus.PAUSED
    assert peek.question.id == before.id

    resumed = memory_service.resume(session.id)
    assert resumed.status == SessionStatus.IN_PROGRESS
    assert resumed.question == before
    assert memory_service.get_session(session.id).abandon_reason is None
    types = [e["type"] for e in events.get_buffered_events()]
    assert events.SESSION_PAUSED in types and events.SESSION_RESUMED in types


def test_paused_session_rejects_answers_until_resumed(memory_service):
    memory_service.register_form(scenario_form())
    session = memory_service.start_session("form-ab")
    memory_service.abandon(session.id, "user_left")
    with pytest.raises(SessionStateError):
        memory_service.submit_answer(session.id, "Q1", "Yes")
    with pytest.raises(SessionStateError):
        memory_service.abandon(session.id, "again")


def test_non_resumable_abandon_is_terminal(memory_service):
    memory_service.register_form(scenario_form())
    session = memory_service.start_session("form-ab")
    abandoned = memory_service.abandon(session.id, "gave_up", resumable=False)
    assert abandoned.status == SessionStatus.ABANDONED
    with pytest.raises(SessionStateError):
        memory_service.resume(session.id)
    assert memory_service.get_current_question(session.id).question is None


def test_resume_requires_paused_session(memory_service):
    memory_service.register_form(scenario_form())
    session = memory_service.start_session("form-ab")
    with pytest.raises(SessionStateError):
        memory_service.resume(session.id)


def test_empty_form_completes_on_first_read():
    fired: list[str] = []
    service = _service(completion_trigger=fired.append)
    service.register_form(form(form_id="empty"))
    session = service.start_session("empty")
    current = service.get_current_question(session.id)
    assert current.question is None
    assert current.status == SessionStatus.COMPLETED
    assert fired == [session.id]


def test_completion_trigger_failure_does_not_fail_submission():
    def boom(session_id):
        raise RuntimeError("downstream unavailable")

    service = _service(completion_trigger=boom)
    service.register_form(scenario_form())
    session = service.start_session("form-ab")
    service.submit_answer(session.id, "Q1", "No")
    result = service.submit_answer(session.id, "Q3", "x")
    assert result.completed is True
    assert service.get_session(session.id).status == SessionStatus.COMPLETED


def test_default_completion_trigger_publishes_event(memory_service):
    memory_service.register_form(scenario_form())
    session = memory_service.start_session("form-ab")
    memory_service.submit_answer(session.id, "Q1", "No")
    memory_service.submit_answer(session.id, "Q3", "x")
    completed = [e for e in events.get_buffered_events() if e["type"] == events.SESSION_COMPLETED]
    assert completed == [{"type": events.SESSION_COMPLETED, "payload": {"session_id": session.id}}]


def test_failed_commit_leaves_stored_session_untouched():
    class FailingStore(InMemorySessionStore):
        fail = False

        def commit(self, before, after):
            if self.fail:
                raise RuntimeError("disk full")
            super().commit(before, after)

    store = FailingStore()
    service = FlowService(InMemoryFormRepository(), store)
    service.register_form(scenario_form())
    session = service.start_session("form-ab")
    service.submit_answer(session.id, "Q1", "Yes")
    service.submit_answer(session.id, "Q2", "X")

    store.fail = True
    with pytest.raises(RuntimeError):
        service.submit_answer(session.id, "Q1", "No")
    stored = service.get_session(session.id)
    assert stored.answers["Q1"].value == "Yes"
    assert stored.answers["Q2"].value == "X"


def test_unknown_ids_raise_not_found(memory_service):
    with pytest.raises(FormNotFoundError):
        memory_service.start_session("nope")
    with pytest.raises(SessionNotFoundError):
        memory_service.get_current_question("nope")
    with pytest.raises(SessionNotFoundError):
        memory_service.submit_answer("nope", "Q1", "x")


def test_concurrent_duplicate_submissions_write_once(memory_service):
    memory_service.register_form(scenario_form())
    session = memory_service.start_session("form-ab")
    results = []

    def worker():
        results.append(memory_service.submit_answer(session.id, "Q1", "Yes"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert {r.next_question.id for r in results} == {"Q2"}
    stored = memory_service.get_session(session.id)
    assert stored.answers["Q1"].revision_count == 1


def test_progress_for_session(memory_service):
    memory_service.register_form(scenario_form())
    session = memory_service.start_session("form-ab")
    memory_service.submit_answer(session.id, "Q1", "No")
    p = memory_service.progress(session.id)
    assert p.visible_count == 2
    assert p.answered_count == 1
    assert p.completion_percentage == 50.0


class TestEnrichment:
    def _run(self, enricher, *, timeout=5.0):
        dispatcher = EnrichmentDispatcher(enricher, timeout_seconds=timeout, max_workers=1)
        service = _service(enrichment=dispatcher)
        service.register_form(scenario_form())
        session = service.start_session("form-ab")
        return service, dispatcher, session

    def test_result_is_attached_as_metadata(self):
        service, dispatcher, session = self._run(lambda s, q, a: {"sentiment": "positive"})
        result = service.submit_answer(session.id, "Q1", "Yes")
        dispatcher.shutdown(wait=True)
        assert result.next_question.id == "Q2"
        assert service.get_session(session.id).answers["Q1"].metadata == {"sentiment": "positive"}

    def test_failure_is_ignored(self):
        def broken(s, q, a):
            raise ValueError("model offline")

        service, dispatcher, session = self._run(broken)
        result = service.submit_answer(session.id, "Q1", "Yes")
        dispatcher.shutdown(wait=True)
        assert result.errors == []
        assert result.next_question.id == "Q2"
        assert service.get_session(session.id).answers["Q1"].metadata is None

    def test_late_result_is_discarded(self):
        def slow(s, q, a):
            time.sleep(0.2)
            return {"late": True}

        service, dispatcher, session = self._run(slow, timeout=0.05)
        service.submit_answer(session.id, "Q1", "Yes")
        dispatcher.shutdown(wait=True)
        assert service.get_session(session.id).answers["Q1"].metadata is None

    def test_result_for_a_superseded_revision_is_discarded(self):
        release = threading.Event()
        calls = []

        def gated(s, q, a):
            calls.append(a.value)
            if len(calls) == 1:
                release.wait(5)
                return {"for": "first"}
            return None

        service, dispatcher, session = self._run(gated)
        service.submit_answer(session.id, "Q1", "Yes")
        service.submit_answer(session.id, "Q1", "No")
        release.set()
        dispatcher.shutdown(wait=True)
        stored = service.get_session(session.id).answers["Q1"]
        assert stored.value == "No"
        assert stored.metadata is None
