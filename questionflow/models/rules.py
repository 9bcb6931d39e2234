"""Conditional rule types.

A rule is a tagged variant keyed on `operator`; each operator family carries
its own typed payload and is validated when the rule is constructed.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from questionflow.models.answer_canonical import canonicalize_answer_value, to_number

STRING_OPERATORS = ("equals", "not_equals", "contains", "not_contains", "starts_with", "ends_with")
NUMERIC_OPERATORS = ("greater_than", "less_than", "greater_than_or_equal", "less_than_or_equal")
LIST_OPERATORS = ("in_list", "not_in_list")
EMPTINESS_OPERATORS = ("is_empty", "is_not_empty")
PATTERN_OPERATORS = ("matches_pattern",)


class _RuleBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_question_id: str = Field(min_length=1)


class StringRule(_RuleBase):
    operator: Literal["equals", "not_equals", "contains", "not_contains", "starts_with", "ends_with"]
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def _canonical_text(cls, v: Any) -> str:
        if v is None:
            raise ValueError("string operators require a value")
        return canonicalize_answer_value(v) or ""


class NumericRule(_RuleBase):
    operator: Literal["greater_than", "less_than", "greater_than_or_equal", "less_than_or_equal"]
    value: float

    @field_validator("value", mode="before")
    @classmethod
    def _parse_number(cls, v: Any) -> float:
        num = to_number(v)
        if num is None:
            raise ValueError(f"numeric operators require a number, got {v!r}")
        return num


class ListRule(_RuleBase):
    operator: Literal["in_list", "not_in_list"]
    value: List[str]

    @field_validator("value", mode="before")
    @classmethod
    def _split_list(cls, v: Any) -> list[str]:
        if v is None:
            raise ValueError("list operators require a list of values")
        if isinstance(v, str):
            return [part.strip() for part in v.split(",")]
        if isinstance(v, (list, tuple, set)):
            return [canonicalize_answer_value(item) or "" for item in v]
        return [canonicalize_answer_value(v) or ""]


class EmptinessRule(_RuleBase):
    operator: Literal["is_empty", "is_not_empty"]
    value: Any = None


class PatternRule(_RuleBase):
    """Case-insensitive regular-expression search against the answer text."""

    operator: Literal["matches_pattern"]
    value: str

    @field_validator("value")
    @classmethod
    def _must_compile(cls, v: str) -> str:
        try:
            re.compile(v, re.IGNORECASE)
        except re.error as exc:
            raise ValueError(f"invalid pattern {v!r}: {exc}") from exc
        return v

    @property
    def pattern(self) -> re.Pattern:
        return re.compile(self.value, re.IGNORECASE)


Rule = Annotated[
    Union[StringRule, NumericRule, ListRule, EmptinessRule, PatternRule],
    Field(discriminator="operator"),
]


class RuleSet(BaseModel):
    combinator: Literal["AND", "OR"] = "AND"
    items: List[Rule] = Field(default_factory=list)

    @field_validator("combinator", mode="before")
    @classmethod
    def _upper(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


__all__ = [
    "Rule",
    "RuleSet",
    "StringRule",
    "NumericRule",
    "ListRule",
    "EmptinessRule",
    "PatternRule",
    "STRING_OPERATORS",
    "NUMERIC_OPERATORS",
    "LIST_OPERATORS",
    "EMPTINESS_OPERATORS",
    "PATTERN_OPERATORS",
]
