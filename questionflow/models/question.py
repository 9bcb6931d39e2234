"""Question and form definitions."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from questionflow.models.rules import RuleSet


class Question(BaseModel):
    id: str = Field(min_length=1)
    form_id: Optional[str] = None
    position: int = Field(gt=0)
    question_type: str = "text_short"
    title: Optional[str] = None
    required: bool = False
    conditional_enabled: bool = False
    rules: RuleSet = Field(default_factory=RuleSet)
    options: Optional[List[str]] = None

    @property
    def has_conditional_logic(self) -> bool:
        return self.conditional_enabled and bool(self.rules.items)

    @property
    def source_question_ids(self) -> set[str]:
        return {rule.source_question_id for rule in self.rules.items}


class Form(BaseModel):
    id: str = Field(min_length=1)
    title: Optional[str] = None
    questions: List[Question] = Field(default_factory=list)


__all__ = ["Question", "Form"]
