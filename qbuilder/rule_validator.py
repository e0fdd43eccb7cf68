"""Validation of rule, question and section authoring input."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from qbuilder.errors import (
    EmptyQuestionText,
    EmptySectionTitle,
    IneligibleDependentType,
    MissingAnswerOptions,
    MissingAnswerValue,
    MissingDependentQuestion,
    SelfReference,
    UnknownQuestionType,
    ValidationError,
)
from qbuilder.models import (
    ELIGIBLE_DEPENDENT_TYPES,
    EXISTS_SENTINEL,
    OPTION_QUESTION_TYPES,
    QUESTION_TYPES,
    ConditionalLogic,
    OptionDraft,
    Question,
    QuestionTarget,
    Target,
)


@dataclass(frozen=True)
class RuleComparison:
    """What a new rule compares the dependent answer against."""

    answer_value: Optional[str] = None
    not_condition: bool = False
    check_answer_existence: bool = False

    @classmethod
    def is_(cls, value: str) -> "RuleComparison":
        return cls(answer_value=value)

    @classmethod
    def is_not(cls, value: str) -> "RuleComparison":
        return cls(answer_value=value, not_condition=True)

    @classmethod
    def answered(cls) -> "RuleComparison":
        return cls(check_answer_existence=True)

    @classmethod
    def not_answered(cls) -> "RuleComparison":
        return cls(not_condition=True, check_answer_existence=True)


@dataclass(frozen=True)
class RuleValidation:
    """Outcome of :func:`validate_rule`: either a rule or an error."""

    rule: Optional[ConditionalLogic] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.rule is not None


def eligible_dependent_questions(
    target: Target, questions: Iterable[Question]
) -> List[Question]:
    """Return the questions a rule on ``target`` may depend on."""

    excluded = target.id if isinstance(target, QuestionTarget) else None
    return [
        question
        for question in questions
        if question.type in ELIGIBLE_DEPENDENT_TYPES and question.id != excluded
    ]


def _check_rule(
    target: Target,
    dependent_question_id: Optional[str],
    comparison: RuleComparison,
    questions: Sequence[Question],
) -> None:
    dependent_id = (dependent_question_id or "").strip()
    if not dependent_id:
        raise MissingDependentQuestion("Select the question this rule depends on.")

    dependent = next((question for question in questions if question.id == dependent_id), None)
    if dependent is None:
        raise MissingDependentQuestion(f"Question '{dependent_id}' does not exist.")

    if isinstance(target, QuestionTarget) and dependent_id == target.id:
        raise SelfReference("A question cannot depend on its own answer.")

    if dependent.type not in ELIGIBLE_DEPENDENT_TYPES:
        raise IneligibleDependentType(
            f"Questions of type '{dependent.type}' cannot be used as a condition."
        )

    if not comparison.check_answer_existence and not (comparison.answer_value or ""):
        raise MissingAnswerValue("Select the answer value to compare against.")


def build_rule(
    target: Target,
    dependent_question_id: Optional[str],
    comparison: RuleComparison,
    questions: Sequence[Question],
    *,
    rule_id: Optional[str] = None,
) -> ConditionalLogic:
    """Validate the inputs and return a new, unsaved rule.

    Raises
    ------
    ValidationError
        One of the rule authoring error kinds.
    """

    _check_rule(target, dependent_question_id, comparison, questions)

    if comparison.check_answer_existence:
        answer_value = EXISTS_SENTINEL
    else:
        answer_value = comparison.answer_value

    return ConditionalLogic(
        id=rule_id or str(uuid.uuid4()),
        target=target,
        dependent_question_id=(dependent_question_id or "").strip(),
        dependent_answer_value=answer_value,
        not_condition=comparison.not_condition,
        check_answer_existence=comparison.check_answer_existence,
    )


def validate_rule(
    target: Target,
    dependent_question_id: Optional[str],
    comparison: RuleComparison,
    questions: Sequence[Question],
) -> RuleValidation:
    """Return a :class:`RuleValidation` instead of raising."""

    try:
        rule = build_rule(target, dependent_question_id, comparison, questions)
    except ValidationError as error:
        return RuleValidation(error=error)
    return RuleValidation(rule=rule)


def validate_question_fields(
    text: str, question_type: str, options: Sequence[OptionDraft] = ()
) -> None:
    """Raise a :class:`ValidationError` if a question cannot be saved."""

    if not (text or "").strip():
        raise EmptyQuestionText("Please enter the question text.")
    if question_type not in QUESTION_TYPES:
        raise UnknownQuestionType(f"Unsupported question type: {question_type}")
    if question_type in OPTION_QUESTION_TYPES and not [option for option in options if option.text]:
        raise MissingAnswerOptions("Please add at least one answer option.")


def validate_section_title(title: str) -> str:
    """Return the cleaned section title or raise :class:`EmptySectionTitle`."""

    cleaned = (title or "").strip()
    if not cleaned:
        raise EmptySectionTitle("Please enter a section title.")
    return cleaned


__all__ = [
    "RuleComparison",
    "RuleValidation",
    "build_rule",
    "eligible_dependent_questions",
    "validate_question_fields",
    "validate_rule",
    "validate_section_title",
]
