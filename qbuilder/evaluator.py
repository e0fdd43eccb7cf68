"""
Visibility evaluation for questions and sections.

Responsibilities:
- Decide whether each question and section is visible for a set of answers
- Derive the banner shown when a section is hidden
- Order sections and questions for rendering

Design principles:
- Stateless: answers are passed in on every call
- Deterministic: same answers and rules always give the same verdicts
- Fail open: rules that point at missing questions never hide anything
- Never raises for stored data; malformed rules are logged and skipped
"""

from __future__ import annotations

import logging
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from qbuilder.answers import AnswerSnapshot
from qbuilder.errors import MalformedRule
from qbuilder.models import (
    ENTITY_QUESTION,
    ENTITY_SECTION,
    LEGACY_BANNER_PLACEHOLDERS,
    ConditionalLogic,
    Question,
    Section,
    Verdict,
)

logger = logging.getLogger(__name__)

RuleInput = Union[ConditionalLogic, Mapping[str, Any]]


def is_banner_only(rule: ConditionalLogic) -> bool:
    """Return ``True`` for rules that carry no usable comparison.

    Such rows exist only to hold a section banner. Several legacy encodings
    are in circulation, so any rule without a dependent question, or without
    a real answer value to compare against, is treated this way.
    """

    if not rule.dependent_question_id:
        return True
    if rule.is_existence_check:
        return False
    value = rule.dependent_answer_value
    return not value or value in LEGACY_BANNER_PLACEHOLDERS


@dataclass
class SectionLayout:
    """One rendering block: a section (or ``None`` for unsectioned questions)."""

    section: Optional[Section]
    verdict: Verdict
    questions: List[Question] = field(default_factory=list)


class VisibilityEvaluator:
    """
    Evaluate conditional visibility rules against an answer snapshot.

    Holds the questionnaire definition only; no answer state is kept between
    calls, so one instance can serve any number of readers.
    """

    def __init__(
        self,
        questions: Iterable[Question],
        rules: Iterable[RuleInput],
        sections: Iterable[Section] = (),
    ):
        self.questions: List[Question] = sorted(questions, key=lambda q: q.order_index)
        self.sections: List[Section] = sorted(sections, key=lambda s: s.order_index)
        self._questions_by_id: Dict[str, Question] = {q.id: q for q in self.questions}
        self._sections_by_id: Dict[str, Section] = {s.id: s for s in self.sections}
        self.diagnostics: List[MalformedRule] = []
        self._rules_by_target: Dict[tuple, List[ConditionalLogic]] = {}

        for item in rules:
            rule = self._coerce_rule(item)
            if rule is None:
                continue
            key = (rule.entity_type, rule.target.id)
            self._rules_by_target.setdefault(key, []).append(rule)

        if self.diagnostics:
            logger.warning(f"Skipped {len(self.diagnostics)} malformed rule(s)")

    def _coerce_rule(self, item: RuleInput) -> Optional[ConditionalLogic]:
        if isinstance(item, ConditionalLogic):
            return item
        if not isinstance(item, MappingABC):
            diagnostic = MalformedRule(f"Unsupported rule record: {type(item).__name__}")
            self.diagnostics.append(diagnostic)
            logger.warning(str(diagnostic))
            return None
        try:
            return ConditionalLogic.from_row(item)
        except MalformedRule as diagnostic:
            self.diagnostics.append(diagnostic)
            logger.warning(f"Malformed rule {diagnostic.rule_id or '<no id>'}: {diagnostic}")
            return None

    # =========================================================================
    # Public API
    # =========================================================================

    def rules_for(self, entity_id: str, entity_type: str) -> List[ConditionalLogic]:
        """Return every rule gating the entity, banner-only rows included."""

        return list(self._rules_by_target.get((entity_type, entity_id), []))

    def evaluate_rule(self, rule: ConditionalLogic, answers: Any) -> bool:
        """
        Return whether a single rule is satisfied.

        Unanswered dependents make ``is`` rules false and ``is not`` rules
        true. Rules pointing at questions that no longer exist are satisfied.
        """
        snapshot = AnswerSnapshot.coerce(answers)
        dependent_id = rule.dependent_question_id or ""

        if dependent_id not in self._questions_by_id:
            logger.debug(f"Rule {rule.id} depends on missing question {dependent_id!r}; ignoring")
            return True

        if rule.is_existence_check:
            satisfied = snapshot.is_answered(dependent_id)
        else:
            satisfied = snapshot.matches(dependent_id, rule.dependent_answer_value or "")

        return not satisfied if rule.not_condition else satisfied

    def evaluate_visibility(self, entity_id: str, entity_type: str, answers: Any) -> Verdict:
        """Return the :class:`Verdict` for one question or section."""

        snapshot = AnswerSnapshot.coerce(answers)
        rules = self.rules_for(entity_id, entity_type)
        enforced = [rule for rule in rules if not is_banner_only(rule)]

        visible = all(self.evaluate_rule(rule, snapshot) for rule in enforced)
        if visible or entity_type != ENTITY_SECTION:
            return Verdict(visible=visible)

        return Verdict(visible=False, banner_message=self._banner_for(entity_id, rules))

    def evaluate_all(self, answers: Any) -> Dict[str, Verdict]:
        """Return verdicts for every known question and section keyed by id."""

        snapshot = AnswerSnapshot.coerce(answers)
        verdicts: Dict[str, Verdict] = {}
        for section in self.sections:
            verdicts[section.id] = self.evaluate_visibility(section.id, ENTITY_SECTION, snapshot)
        for question in self.questions:
            verdicts[question.id] = self.evaluate_visibility(question.id, ENTITY_QUESTION, snapshot)
        return verdicts

    def layout(self, answers: Any) -> List[SectionLayout]:
        """
        Return rendering blocks in order with only visible questions.

        Unsectioned questions come first as a block whose section is None.
        Questions inside a hidden section are hidden with it.
        """
        snapshot = AnswerSnapshot.coerce(answers)
        blocks: List[SectionLayout] = []

        unsectioned = [
            q for q in self.questions
            if not q.section_id or q.section_id not in self._sections_by_id
        ]
        if unsectioned:
            blocks.append(
                SectionLayout(
                    section=None,
                    verdict=Verdict(visible=True),
                    questions=self._visible_questions(unsectioned, snapshot),
                )
            )

        for section in self.sections:
            verdict = self.evaluate_visibility(section.id, ENTITY_SECTION, snapshot)
            members = [q for q in self.questions if q.section_id == section.id]
            visible_members = self._visible_questions(members, snapshot) if verdict.visible else []
            blocks.append(SectionLayout(section=section, verdict=verdict, questions=visible_members))

        return blocks

    def visible_question_ids(self, answers: Any) -> List[str]:
        """Return ids of every question the author should currently see, in order."""

        return [
            question.id
            for block in self.layout(answers)
            for question in block.questions
        ]

    def missing_required(self, answers: Any) -> List[Question]:
        """Return required questions that are visible but unanswered."""

        snapshot = AnswerSnapshot.coerce(answers)
        visible = set(self.visible_question_ids(snapshot))
        return [
            question
            for question in self.questions
            if question.required and question.id in visible and not snapshot.is_answered(question.id)
        ]

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _visible_questions(
        self, questions: Sequence[Question], snapshot: AnswerSnapshot
    ) -> List[Question]:
        return [
            question
            for question in questions
            if self.evaluate_visibility(question.id, ENTITY_QUESTION, snapshot).visible
        ]

    def _banner_for(self, section_id: str, rules: Sequence[ConditionalLogic]) -> Optional[str]:
        section = self._sections_by_id.get(section_id)
        if section is not None and section.banner_message:
            return section.banner_message
        for rule in rules:
            if rule.banner_message:
                return rule.banner_message
        return None


def evaluate_visibility(
    entity_id: str,
    entity_type: str,
    answers: Any,
    questions: Iterable[Question],
    rules: Iterable[RuleInput],
    sections: Iterable[Section] = (),
) -> Verdict:
    """One-shot helper building a :class:`VisibilityEvaluator` for a single verdict."""

    evaluator = VisibilityEvaluator(questions, rules, sections)
    return evaluator.evaluate_visibility(entity_id, entity_type, answers)


__all__ = [
    "SectionLayout",
    "VisibilityEvaluator",
    "evaluate_visibility",
    "is_banner_only",
]
