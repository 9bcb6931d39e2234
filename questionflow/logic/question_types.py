"""Question type handlers.

Each handler validates a raw submitted value (returning a list of messages,
empty when valid) and normalizes it for storage. Handlers are looked up by
question type; unknown types fall back to a pass-through handler.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Protocol, Type

from questionflow.models.answer_canonical import canonicalize_answer_value, is_blank, to_number
from questionflow.models.question import Question

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+?[0-9 ()\-.]{7,20}$")
_URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)

_YES_TOKENS = {"yes", "y", "true", "1", "si", "sí"}
_NO_TOKENS = {"no", "n", "false", "0"}


class QuestionTypeHandler(Protocol):
    def validate(self, value: Any) -> List[str]: ...

    def process(self, value: Any) -> Any: ...


class BaseHandler:
    """Required-ness check plus a type hook; values pass through unchanged."""

    def __init__(self, question: Question) -> None:
        self.question = question

    def validate(self, value: Any) -> List[str]:
        if is_blank(value):
            return ["This question is required"] if self.question.required else []
        return self.validate_value(value)

    def validate_value(self, value: Any) -> List[str]:
        return []

    def process(self, value: Any) -> Any:
        if is_blank(value):
            return None
        return self.process_value(value)

    def process_value(self, value: Any) -> Any:
        return value


class TextHandler(BaseHandler):
    max_length = 255

    def validate_value(self, value: Any) -> List[str]:
        if isinstance(value, (dict, list, tuple)):
            return ["Answer must be text"]
        if len(str(value)) > self.max_length:
            return [f"Answer must be at most {self.max_length} characters"]
        return []

    def process_value(self, value: Any) -> Any:
        return (canonicalize_answer_value(value) or "").strip()


class LongTextHandler(TextHandler):
    max_length = 10000


class EmailHandler(TextHandler):
    def validate_value(self, value: Any) -> List[str]:
        errors = super().validate_value(value)
        if not errors and not _EMAIL_RE.match(str(value).strip()):
            errors.append("Please enter a valid email address")
        return errors

    def process_value(self, value: Any) -> Any:
        return str(value).strip().lower()


class PhoneHandler(TextHandler):
    def validate_value(self, value: Any) -> List[str]:
        errors = super().validate_value(value)
        if not errors and not _PHONE_RE.match(str(value).strip()):
            errors.append("Please enter a valid phone number")
        return errors


class UrlHandler(TextHandler):
    max_length = 2048

    def validate_value(self, value: Any) -> List[str]:
        errors = super().validate_value(value)
        if not errors and not _URL_RE.match(str(value).strip()):
            errors.append("Please enter a valid URL")
        return errors


class NumberHandler(BaseHandler):
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def validate_value(self, value: Any) -> List[str]:
        num = to_number(value)
        if num is None:
            return ["Answer must be a number"]
        if self.minimum is not None and num < self.minimum:
            return [f"Answer must be at least {canonicalize_answer_value(self.minimum)}"]
        if self.maximum is not None and num > self.maximum:
            return [f"Answer must be at most {canonicalize_answer_value(self.maximum)}"]
        return []

    def process_value(self, value: Any) -> Any:
        num = to_number(value)
        if num is not None and float(int(num)) == num:
            return int(num)
        return num


class RatingHandler(NumberHandler):
    minimum = 1
    maximum = 5


class ScaleHandler(NumberHandler):
    minimum = 1
    maximum = 10


class NpsHandler(NumberHandler):
    minimum = 0
    maximum = 10


class YesNoHandler(BaseHandler):
    """Stores "Yes"/"No" labels."""

    def _token(self, value: Any) -> Optional[bool]:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _YES_TOKENS:
            return True
        if text in _NO_TOKENS:
            return False
        return None

    def validate_value(self, value: Any) -> List[str]:
        return [] if self._token(value) is not None else ["Answer must be yes or no"]

    def process_value(self, value: Any) -> Any:
        return "Yes" if self._token(value) else "No"


class BooleanHandler(YesNoHandler):
    """Stores native booleans."""

    def process_value(self, value: Any) -> Any:
        return bool(self._token(value))


class ChoiceHandler(BaseHandler):
    def validate_value(self, value: Any) -> List[str]:
        if isinstance(value, (dict, list, tuple)):
            return ["Select a single option"]
        options = self.question.options
        if options and str(value) not in options:
            return [f"'{value}' is not one of the available options"]
        return []

    def process_value(self, value: Any) -> Any:
        return str(value)


class CheckboxHandler(BaseHandler):
    def _as_list(self, value: Any) -> List[str]:
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return [str(value)]

    def validate_value(self, value: Any) -> List[str]:
        options = self.question.options
        if not options:
            return []
        unknown = [v for v in self._as_list(value) if v not in options]
        return [f"'{v}' is not one of the available options" for v in unknown]

    def process_value(self, value: Any) -> Any:
        selected = self._as_list(value)
        # Keep option order and drop duplicates
        if self.question.options:
            return [opt for opt in self.question.options if opt in selected]
        return list(dict.fromkeys(selected))


class DateHandler(BaseHandler):
    def validate_value(self, value: Any) -> List[str]:
        try:
            date.fromisoformat(str(value).strip())
        except ValueError:
            return ["Answer must be a date (YYYY-MM-DD)"]
        return []

    def process_value(self, value: Any) -> Any:
        return date.fromisoformat(str(value).strip()).isoformat()


HANDLER_REGISTRY: Dict[str, Type[BaseHandler]] = {
    "text_short": TextHandler,
    "text_long": LongTextHandler,
    "email": EmailHandler,
    "phone": PhoneHandler,
    "url": UrlHandler,
    "number": NumberHandler,
    "slider": NumberHandler,
    "rating": RatingHandler,
    "scale": ScaleHandler,
    "nps_score": NpsHandler,
    "yes_no": YesNoHandler,
    "boolean": BooleanHandler,
    "single_choice": ChoiceHandler,
    "multiple_choice": ChoiceHandler,
    "checkbox": CheckboxHandler,
    "date": DateHandler,
}

HandlerFactory = Callable[[Question], QuestionTypeHandler]


def handler_for(question: Question) -> QuestionTypeHandler:
    handler_cls = HANDLER_REGISTRY.get(question.question_type)
    if handler_cls is None:
        logger.info(
            "question_type_passthrough question_id=%s type=%s",
            question.id,
            question.question_type,
        )
        handler_cls = BaseHandler
    return handler_cls(question)


__all__ = [
    "QuestionTypeHandler",
    "BaseHandler",
    "HANDLER_REGISTRY",
    "HandlerFactory",
    "handler_for",
]
