"""Form construction invariants and the dependents index.

A form is accepted only when question ids are unique, positions are unique
positive integers, and every rule references a question of the same form at a
strictly lower position. The last condition makes the dependency graph acyclic
by construction, so traversal and invalidation need no cycle guard.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from questionflow.errors import FormDefinitionError, QuestionNotFoundError
from questionflow.models.question import Form, Question

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Validated, position-ordered view of a form with a dependents index."""

    def __init__(self, form: Form) -> None:
        self.form_id = form.id
        ordered = sorted(form.questions, key=lambda q: q.position)
        self._check_invariants(form.id, ordered)
        # Stamp the owning form onto each question for downstream consumers
        self.questions: List[Question] = [
            q if q.form_id == form.id else q.model_copy(update={"form_id": form.id})
            for q in ordered
        ]
        self._by_id: Dict[str, Question] = {q.id: q for q in self.questions}
        self._dependents: Dict[str, List[Question]] = {q.id: [] for q in self.questions}
        for q in self.questions:
            for source_id in sorted(q.source_question_ids):
                self._dependents[source_id].append(q)

    @staticmethod
    def _check_invariants(form_id: str, ordered: List[Question]) -> None:
        seen_ids: set[str] = set()
        seen_positions: set[int] = set()
        for q in ordered:
            if q.form_id is not None and q.form_id != form_id:
                raise FormDefinitionError(
                    f"question {q.id} belongs to form {q.form_id}, not {form_id}",
                    code="FORM_QUESTION_FOREIGN",
                )
            if q.id in seen_ids:
                raise FormDefinitionError(f"duplicate question id {q.id}", code="FORM_QUESTION_ID_DUPLICATE")
            if q.position in seen_positions:
                raise FormDefinitionError(
                    f"duplicate position {q.position} in form {form_id}",
                    code="FORM_POSITION_DUPLICATE",
                )
            seen_ids.add(q.id)
            seen_positions.add(q.position)

        positions = {q.id: q.position for q in ordered}
        for q in ordered:
            for rule in q.rules.items:
                source = rule.source_question_id
                if source not in positions:
                    raise FormDefinitionError(
                        f"question {q.id} references unknown question {source}",
                        code="FORM_RULE_SOURCE_UNKNOWN",
                    )
                if positions[source] >= q.position:
                    raise FormDefinitionError(
                        f"question {q.id} (position {q.position}) depends on {source} "
                        f"(position {positions[source]}); sources must precede their dependents",
                        code="FORM_RULE_SOURCE_NOT_BEFORE",
                    )

    def question(self, question_id: str) -> Question:
        try:
            return self._by_id[question_id]
        except KeyError:
            raise QuestionNotFoundError(
                f"question {question_id} not found in form {self.form_id}"
            ) from None

    def has_question(self, question_id: str) -> bool:
        return question_id in self._by_id

    def dependents_of(self, question_id: str) -> List[Question]:
        """Questions whose rule set references `question_id`, by position."""
        return list(self._dependents.get(question_id, ()))

    def position_of(self, question_id: str) -> int | None:
        q = self._by_id.get(question_id)
        return q.position if q is not None else None

    def after(self, position: int) -> List[Question]:
        return [q for q in self.questions if q.position > position]


def build_graph(form: Form) -> DependencyGraph:
    graph = DependencyGraph(form)
    logger.info(
        "form_graph_built form_id=%s questions=%s conditional=%s",
        form.id,
        len(graph.questions),
        sum(1 for q in graph.questions if q.has_conditional_logic),
    )
    return graph


__all__ = ["DependencyGraph", "build_graph"]
