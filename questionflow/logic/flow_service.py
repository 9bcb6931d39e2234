"""Flow service: the entry point used by the HTTP routes.

Every mutating call follows the same shape: take the per-session lock, load a
snapshot from the store, run the pure logic on a working copy, and commit the
difference in one store transaction. Side effects that must not block or
fail the request (completion workflow, enrichment) run only after the commit.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional, Tuple

from questionflow.errors import FormNotFoundError, SessionNotFoundError
from questionflow.logic import events
from questionflow.logic.completion import can_complete, progress as compute_progress, transition
from questionflow.logic.dependency_graph import DependencyGraph, build_graph
from questionflow.logic.enrichment import EnrichmentDispatcher
from questionflow.logic.pipeline import submit
from questionflow.logic.question_types import HandlerFactory, handler_for
from questionflow.logic.session_locks import SessionLocks
from questionflow.logic.session_store import FormRepository, SessionStore
from questionflow.logic.traversal import next_question, pending_question
from questionflow.models.api import CurrentQuestion, Progress, SubmitResult
from questionflow.models.question import Form, Question
from questionflow.models.session import ResponseSession, SessionStatus, utcnow

logger = logging.getLogger(__name__)

CompletionTrigger = Callable[[str], None]


class FlowService:
    def __init__(
        self,
        forms: FormRepository,
        sessions: SessionStore,
        *,
        handler_factory: HandlerFactory = handler_for,
        completion_trigger: CompletionTrigger = events.publish_completion,
        enrichment: Optional[EnrichmentDispatcher] = None,
        locks: Optional[SessionLocks] = None,
    ) -> None:
        self.forms = forms
        self.sessions = sessions
        self._handler_factory = handler_factory
        self._completion_trigger = completion_trigger
        self._enrichment = enrichment
        self._locks = locks if locks is not None else SessionLocks()
        self._graphs: Dict[str, DependencyGraph] = {}
        self._graphs_lock = threading.Lock()

    # Forms

    def register_form(self, form: Form) -> DependencyGraph:
        """Validate and store a form; raises FormDefinitionError when invalid."""
        graph = build_graph(form)
        stamped = form.model_copy(update={"questions": list(graph.questions)})
        self.forms.save(stamped)
        with self._graphs_lock:
            self._graphs[form.id] = graph
        return graph

    def get_form(self, form_id: str) -> Form:
        form = self.forms.get(form_id)
        if form is None:
            raise FormNotFoundError(f"form {form_id} not found")
        return form

    def _graph(self, form_id: str) -> DependencyGraph:
        with self._graphs_lock:
            graph = self._graphs.get(form_id)
        if graph is not None:
            return graph
        graph = build_graph(self.get_form(form_id))
        with self._graphs_lock:
            self._graphs[form_id] = graph
        return graph

    # Sessions

    def start_session(self, form_id: str) -> ResponseSession:
        self._graph(form_id)
        return self.sessions.create(form_id)

    def get_session(self, session_id: str) -> ResponseSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"session {session_id} not found")
        return session

    def _commit(self, before: ResponseSession, after: ResponseSession) -> None:
        if after != before:
            self.sessions.commit(before, after)

    def _fire_completion(self, session_id: str) -> None:
        try:
            self._completion_trigger(session_id)
        except Exception:
            logger.error("completion_trigger_failed session_id=%s", session_id, exc_info=True)

    @staticmethod
    def _advance(working: ResponseSession, graph: DependencyGraph) -> Tuple[Optional[Question], bool]:
        """Move an in-progress working copy to its next question, completing it when none remains."""
        now = utcnow()
        question = next_question(working, graph, now=now)
        if question is None and can_complete(working, graph, now=now):
            transition(working, SessionStatus.COMPLETED, now=now)
            return None, True
        return question, False

    def get_current_question(self, session_id: str) -> CurrentQuestion:
        """Return the question to show now, completing the session when nothing remains."""
        with self._locks.hold(session_id):
            before = self.get_session(session_id)
            graph = self._graph(before.form_id)
            if before.status == SessionStatus.PAUSED:
                question, _hidden = pending_question(before, graph)
                return CurrentQuestion(session_id=session_id, status=before.status, question=question)
            if before.status != SessionStatus.IN_PROGRESS:
                return CurrentQuestion(session_id=session_id, status=before.status, question=None)

            working = before.model_copy(deep=True)
            question, completed_now = self._advance(working, graph)
            self._commit(before, working)
        if completed_now:
            self._fire_completion(session_id)
        return CurrentQuestion(session_id=session_id, status=working.status, question=question)

    def submit_answer(self, session_id: str, question_id: str, value: Any) -> SubmitResult:
        with self._locks.hold(session_id):
            before = self.get_session(session_id)
            graph = self._graph(before.form_id)
            working = before.model_copy(deep=True)
            outcome = submit(
                working,
                graph,
                question_id,
                value,
                handler_factory=self._handler_factory,
            )
            self._commit(before, working)

        result = outcome.result
        if outcome.written is not None:
            events.publish(
                events.ANSWER_SAVED,
                {
                    "session_id": session_id,
                    "question_id": question_id,
                    "revision_count": outcome.written.revision_count,
                },
            )
            if result.invalidated:
                events.publish(
                    events.ANSWERS_INVALIDATED,
                    {"session_id": session_id, "question_ids": list(result.invalidated)},
                )
            if self._enrichment is not None:
                self._enrichment.dispatch(
                    working,
                    graph.question(question_id),
                    outcome.written,
                    self._apply_enrichment,
                )
        if outcome.completed_now:
            self._fire_completion(session_id)
        return result

    def _apply_enrichment(
        self,
        session_id: str,
        question_id: str,
        revision_count: int,
        metadata: Dict[str, Any],
    ) -> None:
        # Only attach metadata to the exact revision it was computed for
        with self._locks.hold(session_id):
            session = self.sessions.get(session_id)
            record = session.answers.get(question_id) if session is not None else None
            if record is None or record.skipped or record.revision_count != revision_count:
                logger.info(
                    "enrichment_discarded session_id=%s question_id=%s revision=%s",
                    session_id,
                    question_id,
                    revision_count,
                )
                return
            self.sessions.update_answer_metadata(session_id, question_id, metadata)
        logger.info("enrichment_applied session_id=%s question_id=%s", session_id, question_id)

    def abandon(self, session_id: str, reason: str, *, resumable: bool = True) -> ResponseSession:
        """Pause the session (resumable) or abandon it for good."""
        target = SessionStatus.PAUSED if resumable else SessionStatus.ABANDONED
        with self._locks.hold(session_id):
            before = self.get_session(session_id)
            working = before.model_copy(deep=True)
            transition(working, target, reason=reason)
            self._commit(before, working)
        event_type = events.SESSION_PAUSED if resumable else events.SESSION_ABANDONED
        events.publish(event_type, {"session_id": session_id, "reason": reason})
        return working

    def resume(self, session_id: str) -> CurrentQuestion:
        """Resume a paused session and return the question it was waiting on."""
        with self._locks.hold(session_id):
            before = self.get_session(session_id)
            graph = self._graph(before.form_id)
            working = before.model_copy(deep=True)
            transition(working, SessionStatus.IN_PROGRESS)
            question, completed_now = self._advance(working, graph)
            self._commit(before, working)
        events.publish(events.SESSION_RESUMED, {"session_id": session_id})
        if completed_now:
            self._fire_completion(session_id)
        return CurrentQuestion(session_id=session_id, status=working.status, question=question)

    def progress(self, session_id: str) -> Progress:
        session = self.get_session(session_id)
        return compute_progress(session, self._graph(session.form_id))

    def shutdown(self) -> None:
        if self._enrichment is not None:
            self._enrichment.shutdown()


__all__ = ["FlowService", "CompletionTrigger"]
