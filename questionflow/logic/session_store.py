"""Key-value stores for forms and response sessions.

Sessions are read as detached snapshots and written back through `commit`,
which applies the difference between the snapshot the caller loaded and the
state the caller produced as one all-or-nothing unit. The in-memory
implementations here back local development and tests; the SQL-backed ones
live in `repository_sql`.
"""

from __future__ import annotations

import abc
import logging
import threading
import uuid
from typing import Dict, List, Optional, Tuple

from questionflow.errors import SessionNotFoundError
from questionflow.models.question import Form
from questionflow.models.session import AnswerRecord, ResponseSession, utcnow

logger = logging.getLogger(__name__)


def diff_answers(
    before: ResponseSession,
    after: ResponseSession,
) -> Tuple[List[AnswerRecord], List[str]]:
    """Return (records to upsert, question ids to delete) between two snapshots."""
    upserts = [
        record
        for qid, record in after.answers.items()
        if before.answers.get(qid) != record
    ]
    deletes = [qid for qid in before.answers if qid not in after.answers]
    return upserts, deletes


class FormRepository(abc.ABC):
    @abc.abstractmethod
    def save(self, form: Form) -> None: ...

    @abc.abstractmethod
    def get(self, form_id: str) -> Optional[Form]: ...

    @abc.abstractmethod
    def delete(self, form_id: str) -> bool: ...


class SessionStore(abc.ABC):
    @abc.abstractmethod
    def create(self, form_id: str) -> ResponseSession: ...

    @abc.abstractmethod
    def get(self, session_id: str) -> Optional[ResponseSession]: ...

    @abc.abstractmethod
    def commit(self, before: ResponseSession, after: ResponseSession) -> None:
        """Persist `after` atomically, given the `before` snapshot it came from."""

    @abc.abstractmethod
    def delete(self, session_id: str) -> bool: ...

    @abc.abstractmethod
    def update_answer_metadata(self, session_id: str, question_id: str, metadata: dict) -> bool: ...

    @staticmethod
    def new_session_id() -> str:
        return str(uuid.uuid4())


class InMemoryFormRepository(FormRepository):
    def __init__(self) -> None:
        self._forms: Dict[str, Form] = {}
        self._lock = threading.Lock()

    def save(self, form: Form) -> None:
        with self._lock:
            self._forms[form.id] = form.model_copy(deep=True)

    def get(self, form_id: str) -> Optional[Form]:
        with self._lock:
            form = self._forms.get(form_id)
            return form.model_copy(deep=True) if form is not None else None

    def delete(self, form_id: str) -> bool:
        with self._lock:
            return self._forms.pop(form_id, None) is not None


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: Dict[str, ResponseSession] = {}
        self._lock = threading.Lock()

    def create(self, form_id: str) -> ResponseSession:
        session = ResponseSession(id=self.new_session_id(), form_id=form_id)
        with self._lock:
            self._sessions[session.id] = session
        logger.info("session_created session_id=%s form_id=%s backend=memory", session.id, form_id)
        return session.model_copy(deep=True)

    def get(self, session_id: str) -> Optional[ResponseSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.model_copy(deep=True) if session is not None else None

    def commit(self, before: ResponseSession, after: ResponseSession) -> None:
        upserts, deletes = diff_answers(before, after)
        staged = after.model_copy(deep=True)
        with self._lock:
            if before.id not in self._sessions:
                raise SessionNotFoundError(f"session {before.id} not found")
            # Single reference swap; readers see either the old or the new state
            self._sessions[before.id] = staged
        logger.info(
            "session_commit session_id=%s upserts=%s deletes=%s status=%s backend=memory",
            before.id,
            len(upserts),
            len(deletes),
            staged.status.value,
        )

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def update_answer_metadata(self, session_id: str, question_id: str, metadata: dict) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            record = session.answers.get(question_id) if session is not None else None
            if record is None:
                return False
            merged = dict(record.metadata or {})
            merged.update(metadata)
            session.answers[question_id] = record.model_copy(update={"metadata": merged})
            session.updated_at = utcnow()
        return True


__all__ = [
    "diff_answers",
    "FormRepository",
    "SessionStore",
    "InMemoryFormRepository",
    "InMemorySessionStore",
]
