"""Records stored by the questionnaire builder and helpers for working with them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from qbuilder.errors import MalformedRule

ENTITY_QUESTION = "question"
ENTITY_SECTION = "section"

QUESTION_TYPES = ["text", "select", "multiple_choice", "boolean", "number"]
QUESTION_TYPE_LABELS = {
    "text": "Text",
    "select": "Dropdown select",
    "multiple_choice": "Multiple choice",
    "boolean": "Yes/No",
    "number": "Number",
}
OPTION_QUESTION_TYPES = frozenset({"select", "multiple_choice"})
# Text and number answers are unbounded, so they cannot drive equality rules.
ELIGIBLE_DEPENDENT_TYPES = frozenset({"select", "multiple_choice", "boolean"})

EXISTS_SENTINEL = "__EXISTS__"
LEGACY_BANNER_PLACEHOLDERS = frozenset({"dummy_value"})

_WHITESPACE_RE = re.compile(r"\s+")


def _clean_id(value: Any) -> Optional[str]:
    """Return ``value`` as a non-empty string identifier or ``None``."""

    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class Section:
    """A titled group of questions with a global ``order_index``."""

    id: str
    title: str
    order_index: int = 0
    banner_message: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Section":
        return cls(
            id=str(row["id"]),
            title=str(row.get("title") or ""),
            order_index=_as_int(row.get("order_index")),
            banner_message=_optional_text(row.get("banner_message")) or None,
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "order_index": self.order_index,
            "banner_message": self.banner_message,
        }


@dataclass
class Question:
    """A single question, optionally owned by a :class:`Section`."""

    id: str
    text: str
    type: str
    required: bool = False
    order_index: int = 0
    short_id: Optional[str] = None
    section_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Question":
        return cls(
            id=str(row["id"]),
            text=str(row.get("text") or ""),
            type=str(row.get("type") or "text"),
            required=bool(row.get("required")),
            order_index=_as_int(row.get("order_index")),
            short_id=_clean_id(row.get("short_id")),
            section_id=_clean_id(row.get("section_id")),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "type": self.type,
            "required": self.required,
            "order_index": self.order_index,
            "short_id": self.short_id,
            "section_id": self.section_id,
        }


@dataclass
class AnswerOption:
    """A selectable answer for ``select`` and ``multiple_choice`` questions."""

    id: str
    question_id: str
    text: str
    value: str
    order_index: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AnswerOption":
        return cls(
            id=str(row["id"]),
            question_id=str(row.get("question_id") or ""),
            text=str(row.get("text") or ""),
            value=str(row.get("value") or ""),
            order_index=_as_int(row.get("order_index")),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question_id": self.question_id,
            "text": self.text,
            "value": self.value,
            "order_index": self.order_index,
        }


@dataclass(frozen=True)
class QuestionTarget:
    """Rule target pointing at a question."""

    id: str

    @property
    def entity_type(self) -> str:
        return ENTITY_QUESTION


@dataclass(frozen=True)
class SectionTarget:
    """Rule target pointing at a section."""

    id: str

    @property
    def entity_type(self) -> str:
        return ENTITY_SECTION


Target = Union[QuestionTarget, SectionTarget]


def make_target(entity_type: str, entity_id: str) -> Target:
    """Return the target variant for ``entity_type``."""

    if entity_type == ENTITY_QUESTION:
        return QuestionTarget(entity_id)
    if entity_type == ENTITY_SECTION:
        return SectionTarget(entity_id)
    raise ValueError(f"Unknown entity type: {entity_type!r}")


@dataclass
class ConditionalLogic:
    """A visibility rule gating one question or section.

    ``check_answer_existence`` rules test whether the dependent question has
    been answered at all. Older rows encode the same thing by storing
    :data:`EXISTS_SENTINEL` as the answer value, so both forms are honoured.
    """

    id: str
    target: Target
    dependent_question_id: Optional[str]
    dependent_answer_value: Optional[str] = None
    not_condition: bool = False
    check_answer_existence: bool = False
    banner_message: Optional[str] = None

    @property
    def entity_type(self) -> str:
        return self.target.entity_type

    @property
    def question_id(self) -> Optional[str]:
        return self.target.id if isinstance(self.target, QuestionTarget) else None

    @property
    def section_id(self) -> Optional[str]:
        return self.target.id if isinstance(self.target, SectionTarget) else None

    @property
    def is_existence_check(self) -> bool:
        return self.check_answer_existence or self.dependent_answer_value == EXISTS_SENTINEL

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ConditionalLogic":
        """Build a rule from a storage row.

        Raises
        ------
        MalformedRule
            If the row names no target, both targets, or an ``entity_type``
            that contradicts the target it names.
        """

        question_id = _clean_id(row.get("question_id"))
        section_id = _clean_id(row.get("section_id"))
        entity_type = _clean_id(row.get("entity_type"))

        if question_id and section_id:
            raise MalformedRule("Rule targets both a question and a section.", row)
        if not question_id and not section_id:
            raise MalformedRule("Rule has neither question_id nor section_id.", row)

        target: Target
        if question_id:
            target = QuestionTarget(question_id)
        else:
            target = SectionTarget(section_id or "")
        if entity_type is not None and entity_type != target.entity_type:
            raise MalformedRule(
                f"Rule entity_type {entity_type!r} does not match its {target.entity_type} target.",
                row,
            )

        return cls(
            id=str(row.get("id") or ""),
            target=target,
            dependent_question_id=_clean_id(row.get("dependent_question_id")),
            dependent_answer_value=_optional_text(row.get("dependent_answer_value")),
            not_condition=bool(row.get("not_condition")),
            check_answer_existence=bool(
                row.get("check_answer_existence") or row.get("is_answered_condition")
            ),
            banner_message=_optional_text(row.get("banner_message")) or None,
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "question_id": self.question_id,
            "section_id": self.section_id,
            "dependent_question_id": self.dependent_question_id,
            "dependent_answer_value": self.dependent_answer_value,
            "not_condition": self.not_condition,
            "check_answer_existence": self.check_answer_existence,
            "banner_message": self.banner_message,
        }


@dataclass(frozen=True)
class Verdict:
    """Visibility of one entity plus the banner to show when it is hidden."""

    visible: bool
    banner_message: Optional[str] = None


@dataclass
class OptionDraft:
    """An answer option being authored, before it has an identifier."""

    text: str
    value: str = ""
    id: Optional[str] = None

    def __post_init__(self) -> None:
        self.text = self.text.strip()
        if not self.value:
            self.value = option_value_from_text(self.text)


def option_value_from_text(text: str) -> str:
    """Derive the canonical comparison token for an option label."""

    return _WHITESPACE_RE.sub("_", text.strip().lower())


def options_from_lines(text: str) -> List[OptionDraft]:
    """Turn bulk input (one option per line) into option drafts."""

    return [OptionDraft(text=line) for line in text.splitlines() if line.strip()]


def comparison_options(
    question: Optional[Question], stored_options: Sequence[AnswerOption] = ()
) -> List[AnswerOption]:
    """Return the answer values a rule on ``question`` may compare against.

    Boolean questions never store options; they always expose ``yes`` and
    ``no`` regardless of any rows that happen to exist.
    """

    if question is None:
        return []
    if question.type == "boolean":
        return [
            AnswerOption(id="yes", question_id=question.id, text="Yes", value="yes", order_index=0),
            AnswerOption(id="no", question_id=question.id, text="No", value="no", order_index=1),
        ]
    return sorted(
        (option for option in stored_options if option.question_id == question.id),
        key=lambda option: option.order_index,
    )


def question_label(question: Question) -> str:
    """Return the display label, prefixed with the short id when present."""

    if question.short_id:
        return f"[{question.short_id}] {question.text}"
    return question.text


def describe_rule(rule: ConditionalLogic, questions: Iterable[Question]) -> str:
    """Return a one-line human readable summary of ``rule``."""

    lookup = {question.id: question for question in questions}
    dependent = lookup.get(rule.dependent_question_id or "")
    subject = question_label(dependent) if dependent else "(missing question)"

    if rule.is_existence_check:
        condition = "has not been answered" if rule.not_condition else "has been answered"
        return f"Show when {subject} {condition}"

    operator = "is not" if rule.not_condition else "is"
    return f'Show when {subject} {operator} "{rule.dependent_answer_value or ""}"'


__all__ = [
    "AnswerOption",
    "ConditionalLogic",
    "ELIGIBLE_DEPENDENT_TYPES",
    "ENTITY_QUESTION",
    "ENTITY_SECTION",
    "EXISTS_SENTINEL",
    "LEGACY_BANNER_PLACEHOLDERS",
    "OPTION_QUESTION_TYPES",
    "OptionDraft",
    "QUESTION_TYPES",
    "QUESTION_TYPE_LABELS",
    "Question",
    "QuestionTarget",
    "Section",
    "SectionTarget",
    "Target",
    "Verdict",
    "comparison_options",
    "describe_rule",
    "make_target",
    "option_value_from_text",
    "options_from_lines",
    "question_label",
]
