"""Exception types raised by the questionnaire builder core."""

from __future__ import annotations

from typing import Any, Mapping, Optional


class QuestionnaireError(Exception):
    """Base class for every error raised by :mod:`qbuilder`."""


class ValidationError(QuestionnaireError):
    """Authoring input that the author can correct before saving."""

    kind = "validation"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingDependentQuestion(ValidationError):
    kind = "missing_dependent_question"


class SelfReference(ValidationError):
    kind = "self_reference"


class MissingAnswerValue(ValidationError):
    kind = "missing_answer_value"


class IneligibleDependentType(ValidationError):
    kind = "ineligible_dependent_type"


class EmptyQuestionText(ValidationError):
    kind = "empty_question_text"


class UnknownQuestionType(ValidationError):
    kind = "unknown_question_type"


class MissingAnswerOptions(ValidationError):
    kind = "missing_answer_options"


class EmptySectionTitle(ValidationError):
    kind = "empty_section_title"


class PersistenceError(QuestionnaireError):
    """A store round trip failed; nothing should be assumed committed."""


class NotFoundError(PersistenceError):
    """The requested record does not exist in the store."""


class ReorderError(PersistenceError):
    """An order index swap could not be committed as a whole."""


class MalformedRule(QuestionnaireError):
    """A stored rule row cannot be interpreted."""

    def __init__(self, message: str, row: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.row = dict(row) if row is not None else {}

    @property
    def rule_id(self) -> str:
        return str(self.row.get("id") or "")


__all__ = [
    "EmptyQuestionText",
    "EmptySectionTitle",
    "IneligibleDependentType",
    "MalformedRule",
    "MissingAnswerOptions",
    "MissingAnswerValue",
    "MissingDependentQuestion",
    "NotFoundError",
    "PersistenceError",
    "QuestionnaireError",
    "ReorderError",
    "SelfReference",
    "UnknownQuestionType",
    "ValidationError",
]
