"""Author actions on a questionnaire, reported through a notification sink."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from qbuilder.errors import PersistenceError, ValidationError
from qbuilder.evaluator import VisibilityEvaluator
from qbuilder.models import (
    AnswerOption,
    ConditionalLogic,
    OptionDraft,
    Question,
    Section,
    Target,
    comparison_options,
)
from qbuilder.notifications import LoggingNotifier, Notifier
from qbuilder.ordering import OrderingService, SiblingScope, generate_short_id
from qbuilder.rule_validator import (
    RuleComparison,
    eligible_dependent_questions,
    validate_question_fields,
    validate_rule,
    validate_section_title,
)
from qbuilder.store import QuestionnaireStore, RuleStore

logger = logging.getLogger(__name__)


class QuestionnaireService:
    """Entry point the editor uses for every change to the questionnaire.

    Validation problems are shown and block the action. Store failures are
    shown as well, and the service then reloads from the backend so the UI
    never keeps state that was not committed. Actions return a falsy value
    when they did not happen.
    """

    def __init__(self, store: QuestionnaireStore, notifier: Optional[Notifier] = None) -> None:
        self.store = store
        self.rules = RuleStore(store)
        self.ordering = OrderingService(store)
        self.notifier: Notifier = notifier or LoggingNotifier()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> bool:
        """Load the questionnaire and assign any missing short ids."""

        try:
            self.store.refresh()
        except PersistenceError as exc:
            self.notifier.error(f"Failed to load questions: {exc}")
            return False
        self.ordering.backfill_short_ids()
        return True

    def refresh(self) -> bool:
        try:
            self.store.refresh()
        except PersistenceError as exc:
            self.notifier.error(f"Failed to reload questions: {exc}")
            return False
        return True

    def evaluator(self) -> VisibilityEvaluator:
        return VisibilityEvaluator(
            self.store.questions(),
            self.store.rule_rows(),
            self.store.sections(),
        )

    # ------------------------------------------------------------------
    # Read helpers for the editor
    # ------------------------------------------------------------------

    def rules_for(self, entity_id: str, entity_type: Optional[str] = None) -> List[ConditionalLogic]:
        return self.rules.list_rules_for_entity(entity_id, entity_type)

    def eligible_dependents(self, target: Target) -> List[Question]:
        return eligible_dependent_questions(target, self.store.questions())

    def comparison_options_for(self, question_id: str) -> List[AnswerOption]:
        question = next((q for q in self.store.questions() if q.id == question_id), None)
        return comparison_options(question, self.store.answer_options(question_id))

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def create_section(self, title: str) -> Optional[Section]:
        try:
            cleaned = validate_section_title(title)
        except ValidationError as error:
            self.notifier.error(error.message)
            return None
        try:
            section = self.store.create_section(
                cleaned, order_index=self.ordering.next_order_index(SiblingScope.sections())
            )
        except PersistenceError as exc:
            self._failed("Failed to create section", exc)
            return None
        self.notifier.success("Section created successfully")
        return section

    def rename_section(self, section_id: str, title: str) -> Optional[Section]:
        try:
            cleaned = validate_section_title(title)
        except ValidationError as error:
            self.notifier.error(error.message)
            return None
        try:
            section = self.store.update_section(section_id, title=cleaned)
        except PersistenceError as exc:
            self._failed("Failed to update section", exc)
            return None
        self.notifier.success("Section updated successfully")
        return section

    def save_section_banner(self, section_id: str, text: Optional[str]) -> bool:
        """Store the banner shown while the section is hidden."""

        try:
            self.store.set_section_banner(section_id, (text or "").strip() or None)
        except PersistenceError as exc:
            self._failed("Failed to save banner message", exc)
            return False
        self.notifier.success("Banner message saved")
        return True

    def delete_section(self, section_id: str) -> bool:
        try:
            self.store.delete_section(section_id)
        except PersistenceError as exc:
            self._failed("Error deleting section", exc)
            return False
        self.notifier.success("Section deleted successfully")
        return True

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def create_question(
        self,
        text: str,
        question_type: str,
        *,
        required: bool = False,
        section_id: Optional[str] = None,
        options: Sequence[OptionDraft] = (),
    ) -> Optional[Question]:
        try:
            validate_question_fields(text, question_type, options)
        except ValidationError as error:
            self.notifier.error(error.message)
            return None
        try:
            question = self.store.create_question(
                text.strip(),
                question_type,
                order_index=self.ordering.next_order_index(SiblingScope.questions(section_id)),
                required=required,
                section_id=section_id,
                short_id=generate_short_id(),
                options=options,
            )
        except PersistenceError as exc:
            self._failed("Failed to create question", exc)
            return None
        self.notifier.success("Question created successfully")
        return question

    def update_question(
        self,
        question_id: str,
        *,
        text: str,
        question_type: str,
        required: bool,
        options: Sequence[OptionDraft] = (),
    ) -> Optional[Question]:
        try:
            validate_question_fields(text, question_type, options)
        except ValidationError as error:
            self.notifier.error(error.message)
            return None
        try:
            question = self.store.update_question(
                question_id,
                text=text.strip(),
                question_type=question_type,
                required=required,
                options=options,
            )
        except PersistenceError as exc:
            self._failed("Failed to update question", exc)
            return None
        self.notifier.success("Question updated successfully")
        return question

    def delete_question(self, question_id: str) -> bool:
        try:
            self.store.delete_question(question_id)
        except PersistenceError as exc:
            self._failed("Error deleting question", exc)
            return False
        self.notifier.success("Question deleted successfully")
        return True

    # ------------------------------------------------------------------
    # Conditional logic
    # ------------------------------------------------------------------

    def add_rule(
        self, target: Target, dependent_question_id: Optional[str], comparison: RuleComparison
    ) -> Optional[ConditionalLogic]:
        validation = validate_rule(target, dependent_question_id, comparison, self.store.questions())
        if not validation.ok or validation.rule is None:
            message = validation.error.message if validation.error else "Invalid condition"
            self.notifier.error(message)
            return None
        try:
            rule = self.rules.create(validation.rule)
        except PersistenceError as exc:
            self._failed("Failed to add conditional logic", exc)
            return None
        self.notifier.success("Conditional logic added successfully")
        return rule

    def remove_rule(self, rule_id: str) -> bool:
        try:
            self.rules.delete(rule_id)
        except PersistenceError as exc:
            self._failed("Failed to delete conditional logic", exc)
            return False
        self.notifier.success("Conditional logic removed")
        return True

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def move(self, scope: SiblingScope, item_id: str, direction: str) -> bool:
        """Move an item one place; returns ``True`` only if it moved."""

        label = "Sections" if scope == SiblingScope.sections() else "Questions"
        try:
            outcome = self.ordering.reorder(scope, item_id, direction)
        except PersistenceError as exc:
            self._failed(f"Error reordering {label.lower()}", exc)
            return False
        if not outcome.moved:
            logger.info(f"Move {direction} of {item_id} skipped: {outcome.reason}")
            return False
        self.notifier.success(f"{label} reordered successfully")
        return True

    def _failed(self, message: str, exc: Exception) -> None:
        logger.error(f"{message}: {exc}")
        self.notifier.error(message)
        try:
            self.store.refresh()
        except PersistenceError as reload_error:
            logger.error(f"Reload after failure also failed: {reload_error}")


__all__ = ["QuestionnaireService"]
