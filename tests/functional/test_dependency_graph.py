"""Form construction invariants and the dependents index."""

from __future__ import annotations

import pytest

from questionflow.errors import FormDefinitionError, QuestionNotFoundError
from questionflow.logic.dependency_graph import DependencyGraph, build_graph

from flow_builders import form, question, rule


def test_questions_are_ordered_by_position_and_stamped_with_form():
    graph = DependencyGraph(form(question("B", 2), question("A", 1), question("C", 7)))
    assert [q.id for q in graph.questions] == ["A", "B", "C"]
    assert {q.form_id for q in graph.questions} == {"form-1"}
    assert [q.id for q in graph.after(1)] == ["B", "C"]
    assert graph.position_of("C") == 7
    assert graph.position_of("missing") is None


def test_dependents_index_lists_direct_dependents_by_position():
    graph = build_graph(
        form(
            question("Q1", 1),
            question("Q3", 3, rules=[rule("Q1", "is_not_empty")]),
            question("Q2", 2, rules=[rule("Q1", "equals", "Yes")]),
            question("Q4", 4, rules=[rule("Q2", "is_not_empty")]),
        )
    )
    assert [q.id for q in graph.dependents_of("Q1")] == ["Q2", "Q3"]
    assert [q.id for q in graph.dependents_of("Q2")] == ["Q4"]
    assert graph.dependents_of("Q4") == []


def test_duplicate_position_is_rejected():
    with pytest.raises(FormDefinitionError) as exc:
        DependencyGraph(form(question("A", 1), question("B", 1)))
    assert exc.value.code == "FORM_POSITION_DUPLICATE"


def test_duplicate_question_id_is_rejected():
    with pytest.raises(FormDefinitionError) as exc:
        DependencyGraph(form(question("A", 1), question("A", 2)))
    assert exc.value.code == "FORM_QUESTION_ID_DUPLICATE"


def test_rule_must_reference_an_earlier_question():
    with pytest.raises(FormDefinitionError) as exc:
        DependencyGraph(
            form(question("A", 1, rules=[rule("B", "equals", "x")]), question("B", 2))
        )
    assert exc.value.code == "FORM_RULE_SOURCE_NOT_BEFORE"


def test_self_reference_is_rejected():
    with pytest.raises(FormDefinitionError) as exc:
        DependencyGraph(form(question("A", 1, rules=[rule("A", "is_empty")])))
    assert exc.value.code == "FORM_RULE_SOURCE_NOT_BEFORE"


def test_rule_source_must_exist_in_form():
    with pytest.raises(FormDefinitionError) as exc:
        DependencyGraph(form(question("A", 1), question("B", 2, rules=[rule("Z", "is_empty")])))
    assert exc.value.code == "FORM_RULE_SOURCE_UNKNOWN"


def test_question_from_another_form_is_rejected():
    foreign = question("A", 1).model_copy(update={"form_id": "other"})
    with pytest.raises(FormDefinitionError) as exc:
        DependencyGraph(form(foreign))
    assert exc.value.code == "FORM_QUESTION_FOREIGN"


def test_unknown_question_lookup_raises_not_found():
    graph = DependencyGraph(form(question("A", 1)))
    with pytest.raises(QuestionNotFoundError):
        graph.question("nope")
    assert graph.has_question("A") is True
