"""Best-effort asynchronous answer enrichment.

An enricher is any callable `(session, question, answer) -> dict | None`.
Calls run on a background thread pool; the submitting request never waits for
them. Results that arrive after the configured timeout are discarded, and
enricher failures are logged and dropped. A result only ever lands in the
answer's `metadata` through the `apply` callback supplied by the caller.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from questionflow.models.question import Question
from questionflow.models.session import AnswerRecord, ResponseSession

logger = logging.getLogger(__name__)

Enricher = Callable[[ResponseSession, Question, AnswerRecord], Optional[Dict[str, Any]]]
ApplyMetadata = Callable[[str, str, int, Dict[str, Any]], None]


class EnrichmentDispatcher:
    def __init__(
        self,
        enricher: Enricher,
        *,
        timeout_seconds: float = 10.0,
        max_workers: int = 2,
    ) -> None:
        self._enricher = enricher
        self._timeout = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="enrichment")

    def dispatch(
        self,
        session: ResponseSession,
        question: Question,
        answer: AnswerRecord,
        apply: ApplyMetadata,
    ) -> Future:
        """Schedule enrichment of `answer`; never raises into the caller."""
        started = time.monotonic()
        future = self._executor.submit(self._enricher, session, question, answer)

        def _done(fut: Future) -> None:
            elapsed = time.monotonic() - started
            try:
                metadata = fut.result()
            except Exception:
                logger.error(
                    "enrichment_failed session_id=%s question_id=%s",
                    session.id,
                    question.id,
                    exc_info=True,
                )
                return
            if elapsed > self._timeout:
                logger.warning(
                    "enrichment_timeout session_id=%s question_id=%s elapsed=%.2f",
                    session.id,
                    question.id,
                    elapsed,
                )
                return
            if not metadata:
                return
            try:
                apply(session.id, question.id, answer.revision_count, dict(metadata))
            except Exception:
                logger.error(
                    "enrichment_apply_failed session_id=%s question_id=%s",
                    session.id,
                    question.id,
                    exc_info=True,
                )

        future.add_done_callback(_done)
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


__all__ = ["Enricher", "ApplyMetadata", "EnrichmentDispatcher"]
