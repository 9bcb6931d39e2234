"""SQL-backed form repository and session store.

Uses SQLAlchemy Core `text()` statements against the schema in
`questionflow/migrations/`. A session commit (status change, answer upserts
and cascade deletes) runs inside a single `engine.begin()` transaction, so a
failure at any step rolls back the triggering write together with the whole
cascade.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from questionflow.db.base import get_engine
from questionflow.errors import SessionNotFoundError
from questionflow.logic.session_store import FormRepository, SessionStore, diff_answers
from questionflow.models.question import Form, Question
from questionflow.models.rules import RuleSet
from questionflow.models.session import AnswerRecord, ResponseSession, SessionStatus, utcnow

logger = logging.getLogger(__name__)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_ts(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _loads(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    return json.loads(value)


class SqlFormRepository(FormRepository):
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine or get_engine()

    def save(self, form: Form) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                sql_text(
                    """
                    INSERT INTO form (form_id, title, created_at) VALUES (:fid, :title, :at)
                    ON CONFLICT (form_id) DO UPDATE SET title = excluded.title
                    """
                ),
                {"fid": form.id, "title": form.title, "at": _ts(utcnow())},
            )
            conn.execute(sql_text("DELETE FROM form_question WHERE form_id = :fid"), {"fid": form.id})
            for q in form.questions:
                conn.execute(
                    sql_text(
                        """
                        INSERT INTO form_question (question_id, form_id, position, question_type, title,
                                                   required, conditional_enabled, rules_json, options_json)
                        VALUES (:qid, :fid, :pos, :qtype, :title, :req, :cond, :rules, :opts)
                        """
                    ),
                    {
                        "qid": q.id,
                        "fid": form.id,
                        "pos": q.position,
                        "qtype": q.question_type,
                        "title": q.title,
                        "req": bool(q.required),
                        "cond": bool(q.conditional_enabled),
                        "rules": q.rules.model_dump_json(),
                        "opts": json.dumps(q.options) if q.options is not None else None,
                    },
                )
        logger.info("form_saved form_id=%s questions=%s backend=sql", form.id, len(form.questions))

    def get(self, form_id: str) -> Optional[Form]:
        with self._engine.connect() as conn:
            head = conn.execute(
                sql_text("SELECT form_id, title FROM form WHERE form_id = :fid"),
                {"fid": form_id},
            ).fetchone()
            if head is None:
                return None
            rows = conn.execute(
                sql_text(
                    """
                    SELECT question_id, position, question_type, title, required,
                           conditional_enabled, rules_json, options_json
                    FROM form_question
                    WHERE form_id = :fid
                    ORDER BY position ASC
                    """
                ),
                {"fid": form_id},
            ).fetchall()
        questions = [
            Question(
                id=str(r[0]),
                form_id=form_id,
                position=int(r[1]),
                question_type=str(r[2]),
                title=r[3],
                required=bool(r[4]),
                conditional_enabled=bool(r[5]),
                rules=RuleSet.model_validate_json(r[6]),
                options=_loads(r[7]),
            )
            for r in rows
        ]
        return Form(id=str(head[0]), title=head[1], questions=questions)

    def delete(self, form_id: str) -> bool:
        with self._engine.begin() as conn:
            conn.execute(sql_text("DELETE FROM form_question WHERE form_id = :fid"), {"fid": form_id})
            result = conn.execute(sql_text("DELETE FROM form WHERE form_id = :fid"), {"fid": form_id})
        return bool(result.rowcount)


class SqlSessionStore(SessionStore):
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine or get_engine()

    def create(self, form_id: str) -> ResponseSession:
        session = ResponseSession(id=self.new_session_id(), form_id=form_id)
        with self._engine.begin() as conn:
            conn.execute(
                sql_text(
                    """
                    INSERT INTO response_session (session_id, form_id, status, abandon_reason,
                                                  created_at, updated_at, completed_at)
                    VALUES (:sid, :fid, :status, NULL, :created, :updated, NULL)
                    """
                ),
                {
                    "sid": session.id,
                    "fid": form_id,
                    "status": session.status.value,
                    "created": _ts(session.created_at),
                    "updated": _ts(session.updated_at),
                },
            )
        logger.info("session_created session_id=%s form_id=%s backend=sql", session.id, form_id)
        return session

    def get(self, session_id: str) -> Optional[ResponseSession]:
        with self._engine.connect() as conn:
            row = conn.execute(
                sql_text(
                    """
                    SELECT session_id, form_id, status, abandon_reason, created_at, updated_at, completed_at
                    FROM response_session
                    WHERE session_id = :sid
                    """
                ),
                {"sid": session_id},
            ).fetchone()
            if row is None:
                return None
            answer_rows = conn.execute(
                sql_text(
                    """
                    SELECT question_id, value_json, skipped, answered_at, revision_count, metadata_json
                    FROM answer_record
                    WHERE session_id = :sid
                    """
                ),
                {"sid": session_id},
            ).fetchall()
        answers: Dict[str, AnswerRecord] = {}
        for a in answer_rows:
            answers[str(a[0])] = AnswerRecord(
                session_id=session_id,
                question_id=str(a[0]),
                value=_loads(a[1]),
                skipped=bool(a[2]),
                answered_at=_parse_ts(a[3]),
                revision_count=int(a[4] or 0),
                metadata=_loads(a[5]),
            )
        return ResponseSession(
            id=str(row[0]),
            form_id=str(row[1]),
            status=SessionStatus(str(row[2])),
            abandon_reason=row[3],
            created_at=_parse_ts(row[4]),
            updated_at=_parse_ts(row[5]),
            completed_at=_parse_ts(row[6]),
            answers=answers,
        )

    def _update_session_row(self, conn: Connection, session: ResponseSession) -> None:
        result = conn.execute(
            sql_text(
                """
                UPDATE response_session
                SET status = :status, abandon_reason = :reason, updated_at = :updated, completed_at = :completed
                WHERE session_id = :sid
                """
            ),
            {
                "sid": session.id,
                "status": session.status.value,
                "reason": session.abandon_reason,
                "updated": _ts(session.updated_at),
                "completed": _ts(session.completed_at),
            },
        )
        if not result.rowcount:
            raise SessionNotFoundError(f"session {session.id} not found")

    def _upsert_answer(self, conn: Connection, record: AnswerRecord) -> None:
        conn.execute(
            sql_text(
                """
                INSERT INTO answer_record (session_id, question_id, value_json, skipped, answered_at,
                                           revision_count, metadata_json)
                VALUES (:sid, :qid, :vjson, :skipped, :at, :rev, :meta)
                ON CONFLICT (session_id, question_id)
                DO UPDATE SET value_json = excluded.value_json,
                              skipped = excluded.skipped,
                              answered_at = excluded.answered_at,
                              revision_count = excluded.revision_count,
                              metadata_json = excluded.metadata_json
                """
            ),
            {
                "sid": record.session_id,
                "qid": record.question_id,
                "vjson": json.dumps(record.value) if record.value is not None else None,
                "skipped": bool(record.skipped),
                "at": _ts(record.answered_at),
                "rev": int(record.revision_count),
                "meta": json.dumps(record.metadata) if record.metadata is not None else None,
            },
        )

    def _delete_answer(self, conn: Connection, session_id: str, question_id: str) -> None:
        conn.execute(
            sql_text("DELETE FROM answer_record WHERE session_id = :sid AND question_id = :qid"),
            {"sid": session_id, "qid": question_id},
        )

    def commit(self, before: ResponseSession, after: ResponseSession) -> None:
        upserts, deletes = diff_answers(before, after)
        try:
            with self._engine.begin() as conn:
                self._update_session_row(conn, after)
                for record in upserts:
                    self._upsert_answer(conn, record)
                for question_id in deletes:
                    self._delete_answer(conn, after.id, question_id)
        except SQLAlchemyError:
            logger.error(
                "session_commit_failed session_id=%s; transaction rolled back",
                after.id,
                exc_info=True,
            )
            raise
        logger.info(
            "session_commit session_id=%s upserts=%s deletes=%s status=%s backend=sql",
            after.id,
            len(upserts),
            len(deletes),
            after.status.value,
        )

    def delete(self, session_id: str) -> bool:
        with self._engine.begin() as conn:
            conn.execute(sql_text("DELETE FROM answer_record WHERE session_id = :sid"), {"sid": session_id})
            result = conn.execute(
                sql_text("DELETE FROM response_session WHERE session_id = :sid"),
                {"sid": session_id},
            )
        return bool(result.rowcount)

    def update_answer_metadata(self, session_id: str, question_id: str, metadata: dict) -> bool:
        with self._engine.begin() as conn:
            row = conn.execute(
                sql_text(
                    "SELECT metadata_json FROM answer_record WHERE session_id = :sid AND question_id = :qid"
                ),
                {"sid": session_id, "qid": question_id},
            ).fetchone()
            if row is None:
                return False
            merged = dict(_loads(row[0]) or {})
            merged.update(metadata)
            conn.execute(
                sql_text(
                    "UPDATE answer_record SET metadata_json = :meta WHERE session_id = :sid AND question_id = :qid"
                ),
                {"meta": json.dumps(merged), "sid": session_id, "qid": question_id},
            )
        return True


__all__ = ["SqlFormRepository", "SqlSessionStore"]
