"""The answers given so far in one questionnaire session."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from typing import Any, Dict, Iterator, List, Mapping, Optional


def _is_blank(value: Any) -> bool:
    """Return ``True`` when ``value`` does not count as an answer."""

    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def _token(value: Any) -> str:
    """Convert a single answer value into its comparison token."""

    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, str):
        return value
    return str(value)


class AnswerSnapshot(MappingABC):
    """Read-only view of answers keyed by question id.

    Blank values (``None``, ``""`` and empty selections) are treated as
    unanswered. Tokens are compared exactly as given, without trimming or
    case folding.
    """

    def __init__(self, answers: Optional[Mapping[str, Any]] = None) -> None:
        self._answers: Dict[str, Any] = dict(answers or {})

    @classmethod
    def coerce(cls, answers: Any) -> "AnswerSnapshot":
        if isinstance(answers, AnswerSnapshot):
            return answers
        return cls(answers if isinstance(answers, MappingABC) else None)

    def __getitem__(self, key: str) -> Any:
        return self._answers[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._answers)

    def __len__(self) -> int:
        return len(self._answers)

    def __repr__(self) -> str:
        return f"AnswerSnapshot({self._answers!r})"

    def answer_for(self, question_id: str) -> Any:
        """Return the raw answer or ``None`` when unanswered."""

        value = self._answers.get(question_id)
        return None if _is_blank(value) else value

    def is_answered(self, question_id: str) -> bool:
        return not _is_blank(self._answers.get(question_id))

    def values_for(self, question_id: str) -> List[str]:
        """Return the comparison tokens for ``question_id``'s answer."""

        value = self.answer_for(question_id)
        if value is None:
            return []
        if isinstance(value, (list, tuple, set, frozenset)):
            return [_token(item) for item in value if not _is_blank(item)]
        return [_token(value)]

    def matches(self, question_id: str, expected: str) -> bool:
        """Return ``True`` if any selected token equals ``expected``."""

        return expected in self.values_for(question_id)

    def with_answer(self, question_id: str, value: Any) -> "AnswerSnapshot":
        """Return a new snapshot with ``question_id`` set to ``value``."""

        updated = dict(self._answers)
        updated[question_id] = value
        return AnswerSnapshot(updated)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._answers)


__all__ = ["AnswerSnapshot"]
