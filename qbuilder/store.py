"""Persistence of questionnaire definitions and their conditional logic rules.

The four record tables (sections, questions, answer options and conditional
logic) are kept together in one JSON document. Every mutation is applied to a
working copy and committed with a single document write, so multi-row changes
such as order swaps and cascading deletes either land together or not at all.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from contextlib import contextmanager
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

import requests

from qbuilder.errors import (
    MalformedRule,
    NotFoundError,
    PersistenceError,
    ReorderError,
    ValidationError,
)
from qbuilder.evaluator import is_banner_only
from qbuilder.models import (
    ENTITY_QUESTION,
    OPTION_QUESTION_TYPES,
    AnswerOption,
    ConditionalLogic,
    OptionDraft,
    Question,
    Section,
    _as_int,
)

logger = logging.getLogger(__name__)

SECTIONS = "sections"
QUESTIONS = "questions"
ANSWER_OPTIONS = "answer_options"
CONDITIONAL_LOGIC = "conditional_logic"
TABLES = (SECTIONS, QUESTIONS, ANSWER_OPTIONS, CONDITIONAL_LOGIC)
ORDERED_TABLES = (SECTIONS, QUESTIONS)

DEFAULT_DATA_PATH = Path("questionnaire_data") / "questionnaire.json"

# Failures a backend round trip can produce.
BACKEND_ERRORS = (OSError, ValueError, TypeError, requests.RequestException)

Tables = Dict[str, List[Dict[str, Any]]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _empty_tables() -> Tables:
    return {table: [] for table in TABLES}


def _normalise_document(payload: Any) -> Tables:
    """Return the four tables from ``payload``, dropping anything unusable."""

    tables = _empty_tables()
    if not isinstance(payload, Mapping):
        return tables
    for table in TABLES:
        rows = payload.get(table)
        if isinstance(rows, list):
            tables[table] = [dict(row) for row in rows if isinstance(row, Mapping) and row.get("id")]
    return tables


class LocalJsonBackend:
    """Store the questionnaire document as a JSON file on disk."""

    def __init__(self, path: Path | str = DEFAULT_DATA_PATH) -> None:
        self.path = Path(path)

    def read_json(self) -> Optional[Dict[str, Any]]:
        """Return the stored document or ``None`` if it does not exist yet."""

        if not self.path.exists():
            return None
        with self.path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def write_json(self, data: Dict[str, Any], message: str) -> Dict[str, Any]:
        """Atomically replace the document with ``data``."""

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Wrote {self.path}: {message}")
        return {"path": str(self.path), "message": message}


class QuestionnaireStore:
    """In-memory copy of the questionnaire tables backed by a document store.

    ``backend`` is any object exposing ``read_json()`` and
    ``write_json(data, message)``, such as :class:`LocalJsonBackend` or
    :class:`qbuilder.github_backend.GitHubBackend`.
    """

    def __init__(self, backend: Any) -> None:
        self.backend = backend
        self._tables: Tables = _empty_tables()
        self.loaded = False

    # ------------------------------------------------------------------
    # Loading and committing
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Reload every table from the backend."""

        try:
            payload = self.backend.read_json()
        except BACKEND_ERRORS as exc:
            logger.error(f"Failed to load questionnaire: {exc}")
            raise PersistenceError(f"Failed to load questionnaire: {exc}") from exc
        self._tables = _normalise_document(payload)
        self.loaded = True
        logger.info(
            f"Loaded questionnaire with {len(self._tables[SECTIONS])} section(s), "
            f"{len(self._tables[QUESTIONS])} question(s), "
            f"{len(self._tables[CONDITIONAL_LOGIC])} rule(s)"
        )

    def ensure_loaded(self) -> None:
        if not self.loaded:
            self.refresh()

    @contextmanager
    def transaction(self, message: str) -> Iterator[Tables]:
        """Yield a working copy of the tables and commit it on exit.

        If the body raises, nothing is written. If the write fails,
        :class:`PersistenceError` is raised and the in-memory tables keep their
        previous contents.
        """

        self.ensure_loaded()
        working = deepcopy(self._tables)
        yield working
        try:
            self.backend.write_json(working, message)
        except BACKEND_ERRORS as exc:
            logger.error(f"Commit failed ({message}): {exc}")
            raise PersistenceError(f"{message} failed: {exc}") from exc
        self._tables = working
        logger.info(f"Committed: {message}")

    # ------------------------------------------------------------------
    # Ordered fetches
    # ------------------------------------------------------------------

    def sections(self) -> List[Section]:
        self.ensure_loaded()
        rows = sorted(self._tables[SECTIONS], key=_order_key)
        return [Section.from_row(row) for row in rows]

    def questions(self) -> List[Question]:
        self.ensure_loaded()
        rows = sorted(self._tables[QUESTIONS], key=_order_key)
        return [Question.from_row(row) for row in rows]

    def sibling_questions(self, section_id: Optional[str]) -> List[Question]:
        """Return the questions sharing ``section_id`` (``None`` for unsectioned)."""

        return [question for question in self.questions() if question.section_id == (section_id or None)]

    def answer_options(self, question_id: str) -> List[AnswerOption]:
        return self.options_by_question().get(question_id, [])

    def options_by_question(self) -> Dict[str, List[AnswerOption]]:
        self.ensure_loaded()
        grouped: Dict[str, List[AnswerOption]] = {}
        rows = sorted(self._tables[ANSWER_OPTIONS], key=_order_key)
        for row in rows:
            option = AnswerOption.from_row(row)
            grouped.setdefault(option.question_id, []).append(option)
        return grouped

    def rule_rows(self) -> List[Dict[str, Any]]:
        """Return raw rule rows so callers can report malformed ones."""

        self.ensure_loaded()
        return deepcopy(self._tables[CONDITIONAL_LOGIC])

    def get_section(self, section_id: str) -> Section:
        self.ensure_loaded()
        return Section.from_row(_find_row(self._tables, SECTIONS, section_id))

    def get_question(self, question_id: str) -> Question:
        self.ensure_loaded()
        return Question.from_row(_find_row(self._tables, QUESTIONS, question_id))

    def has_question(self, question_id: Optional[str]) -> bool:
        self.ensure_loaded()
        return _has_row(self._tables, QUESTIONS, question_id)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def create_section(
        self, title: str, order_index: int, banner_message: Optional[str] = None
    ) -> Section:
        section = Section(
            id=str(uuid.uuid4()),
            title=title,
            order_index=order_index,
            banner_message=banner_message or None,
        )
        with self.transaction(f"Create section '{title}'") as tables:
            tables[SECTIONS].append(_stamp(section.to_row(), created=True))
        return section

    def update_section(self, section_id: str, *, title: str) -> Section:
        with self.transaction(f"Update section {section_id}") as tables:
            row = _find_row(tables, SECTIONS, section_id)
            row["title"] = title
            _stamp(row)
            updated = Section.from_row(row)
        return updated

    def set_section_banner(self, section_id: str, text: Optional[str]) -> Section:
        """Store the banner on the section and retire banner text kept on rules.

        Rules that only existed to carry a banner are removed and banner text
        on real rules is cleared, so the section attribute is the one source.
        """

        with self.transaction(f"Update banner message for section {section_id}") as tables:
            row = _find_row(tables, SECTIONS, section_id)
            row["banner_message"] = text or None
            _stamp(row)

            kept: List[Dict[str, Any]] = []
            for rule_row in tables[CONDITIONAL_LOGIC]:
                if rule_row.get("section_id") != section_id:
                    kept.append(rule_row)
                    continue
                try:
                    rule = ConditionalLogic.from_row(rule_row)
                except MalformedRule:
                    kept.append(rule_row)
                    continue
                if is_banner_only(rule):
                    continue
                if rule_row.get("banner_message"):
                    rule_row["banner_message"] = None
                    _stamp(rule_row)
                kept.append(rule_row)
            tables[CONDITIONAL_LOGIC] = kept
            updated = Section.from_row(row)
        return updated

    def delete_section(self, section_id: str) -> None:
        """Delete a section, its rules, and release its questions.

        Questions owned by the section become unsectioned and are appended
        after the existing unsectioned questions in their current order.
        """

        with self.transaction(f"Delete section {section_id}") as tables:
            _find_row(tables, SECTIONS, section_id)
            tables[SECTIONS] = [row for row in tables[SECTIONS] if row["id"] != section_id]
            tables[CONDITIONAL_LOGIC] = [
                row for row in tables[CONDITIONAL_LOGIC] if row.get("section_id") != section_id
            ]

            unsectioned = [row for row in tables[QUESTIONS] if not row.get("section_id")]
            next_index = max((_order_key(row) for row in unsectioned), default=-1) + 1
            released = sorted(
                (row for row in tables[QUESTIONS] if row.get("section_id") == section_id),
                key=_order_key,
            )
            for row in released:
                row["section_id"] = None
                row["order_index"] = next_index
                next_index += 1
                _stamp(row)

    # ------------------------------------------------------------------
    # Questions and answer options
    # ------------------------------------------------------------------

    def create_question(
        self,
        text: str,
        question_type: str,
        *,
        order_index: int,
        required: bool = False,
        section_id: Optional[str] = None,
        short_id: Optional[str] = None,
        options: Sequence[OptionDraft] = (),
    ) -> Question:
        question = Question(
            id=str(uuid.uuid4()),
            text=text,
            type=question_type,
            required=required,
            order_index=order_index,
            short_id=short_id,
            section_id=section_id or None,
        )
        with self.transaction(f"Create question '{text}'") as tables:
            if question.section_id and not _has_row(tables, SECTIONS, question.section_id):
                raise PersistenceError(f"Section '{question.section_id}' does not exist.")
            tables[QUESTIONS].append(_stamp(question.to_row(), created=True))
            if question_type in OPTION_QUESTION_TYPES:
                _write_options(tables, question.id, options)
        return question

    def update_question(
        self,
        question_id: str,
        *,
        text: Optional[str] = None,
        question_type: Optional[str] = None,
        required: Optional[bool] = None,
        options: Optional[Sequence[OptionDraft]] = None,
    ) -> Question:
        """Update question fields and, when given, replace its answer options."""

        with self.transaction(f"Update question {question_id}") as tables:
            row = _find_row(tables, QUESTIONS, question_id)
            if text is not None:
                row["text"] = text
            if question_type is not None:
                row["type"] = question_type
            if required is not None:
                row["required"] = required
            _stamp(row)

            if row.get("type") not in OPTION_QUESTION_TYPES:
                tables[ANSWER_OPTIONS] = [
                    option for option in tables[ANSWER_OPTIONS] if option.get("question_id") != question_id
                ]
            elif options is not None:
                _write_options(tables, question_id, options)
            updated = Question.from_row(row)
        return updated

    def delete_question(self, question_id: str) -> None:
        """Delete a question with its options and the rules targeting it.

        Rules that use the question as their dependent are kept; they now
        reference a missing question and evaluate as satisfied.
        """

        with self.transaction(f"Delete question {question_id}") as tables:
            _find_row(tables, QUESTIONS, question_id)
            tables[QUESTIONS] = [row for row in tables[QUESTIONS] if row["id"] != question_id]
            tables[ANSWER_OPTIONS] = [
                row for row in tables[ANSWER_OPTIONS] if row.get("question_id") != question_id
            ]
            tables[CONDITIONAL_LOGIC] = [
                row for row in tables[CONDITIONAL_LOGIC] if row.get("question_id") != question_id
            ]

    def set_short_ids(self, short_ids: Mapping[str, str]) -> None:
        """Assign short ids to several questions in one commit."""

        if not short_ids:
            return
        with self.transaction(f"Assign short ids to {len(short_ids)} question(s)") as tables:
            for question_id, short_id in short_ids.items():
                row = _find_row(tables, QUESTIONS, question_id)
                row["short_id"] = short_id

    def swap_order_index(
        self,
        table: str,
        first_id: str,
        second_id: str,
        sibling_ids: Optional[Sequence[str]] = None,
    ) -> None:
        """Exchange the ``order_index`` of two rows in one commit.

        When ``sibling_ids`` lists the whole scope in display order and its
        indices are not exactly ``0..n-1`` (duplicates or gaps), the scope is
        renumbered in the same commit before the swap.

        Raises
        ------
        ReorderError
            If the write fails; no row is changed in memory.
        """

        if table not in ORDERED_TABLES:
            raise ValueError(f"Table {table!r} has no order index.")
        try:
            with self.transaction(f"Reorder {table}") as tables:
                if sibling_ids:
                    _renumber(tables, table, sibling_ids)
                first = _find_row(tables, table, first_id)
                second = _find_row(tables, table, second_id)
                first["order_index"], second["order_index"] = (
                    _order_key(second),
                    _order_key(first),
                )
                _stamp(first)
                _stamp(second)
        except NotFoundError:
            raise
        except PersistenceError as exc:
            raise ReorderError(f"Error reordering {table}: {exc}") from exc


class RuleStore:
    """CRUD for conditional logic rules, grouped by the entity they gate."""

    def __init__(self, store: QuestionnaireStore) -> None:
        self.store = store

    def all_rules(self) -> List[ConditionalLogic]:
        """Return every interpretable rule; malformed rows are logged and skipped."""

        rules: List[ConditionalLogic] = []
        for row in self.store.rule_rows():
            try:
                rules.append(ConditionalLogic.from_row(row))
            except MalformedRule as diagnostic:
                logger.warning(f"Skipping malformed rule {diagnostic.rule_id or '<no id>'}: {diagnostic}")
        return rules

    def list_rules_for_entity(
        self, entity_id: str, entity_type: Optional[str] = None
    ) -> List[ConditionalLogic]:
        """Return the rules gating ``entity_id``, optionally of one ``entity_type`` only."""

        return [
            rule
            for rule in self.all_rules()
            if rule.target.id == entity_id and entity_type in (None, rule.entity_type)
        ]

    def get(self, rule_id: str) -> ConditionalLogic:
        for rule in self.all_rules():
            if rule.id == rule_id:
                return rule
        raise NotFoundError(f"Conditional logic '{rule_id}' does not exist.")

    def create(self, rule: ConditionalLogic) -> ConditionalLogic:
        """Persist ``rule`` after checking both of its foreign keys."""

        created = ConditionalLogic(
            id=rule.id or str(uuid.uuid4()),
            target=rule.target,
            dependent_question_id=rule.dependent_question_id,
            dependent_answer_value=rule.dependent_answer_value,
            not_condition=rule.not_condition,
            check_answer_existence=rule.check_answer_existence,
            banner_message=rule.banner_message,
        )
        with self.store.transaction(f"Add conditional logic to {rule.entity_type} {rule.target.id}") as tables:
            owner_table = QUESTIONS if rule.entity_type == ENTITY_QUESTION else SECTIONS
            if not _has_row(tables, owner_table, rule.target.id):
                raise PersistenceError(f"{rule.entity_type.title()} '{rule.target.id}' does not exist.")
            if created.dependent_question_id and not _has_row(
                tables, QUESTIONS, created.dependent_question_id
            ):
                raise PersistenceError(
                    f"Dependent question '{created.dependent_question_id}' does not exist."
                )
            if _has_row(tables, CONDITIONAL_LOGIC, created.id):
                raise PersistenceError(f"Conditional logic '{created.id}' already exists.")
            tables[CONDITIONAL_LOGIC].append(_stamp(created.to_row(), created=True))
        return created

    def delete(self, rule_id: str) -> None:
        """Delete one rule; an unknown id raises :class:`NotFoundError`."""

        with self.store.transaction(f"Delete conditional logic {rule_id}") as tables:
            _find_row(tables, CONDITIONAL_LOGIC, rule_id)
            tables[CONDITIONAL_LOGIC] = [
                row for row in tables[CONDITIONAL_LOGIC] if row["id"] != rule_id
            ]

    def update_banner_message(self, rule_id: str, text: Optional[str]) -> None:
        """Set the banner text carried by a section rule."""

        with self.store.transaction(f"Update banner message on {rule_id}") as tables:
            row = _find_row(tables, CONDITIONAL_LOGIC, rule_id)
            if not row.get("section_id"):
                raise ValidationError("Banner messages can only be set on section rules.")
            row["banner_message"] = text or None
            _stamp(row)

    def delete_rules_for_entity(self, entity_id: str, entity_type: Optional[str] = None) -> int:
        """Delete every rule targeting ``entity_id`` and return how many went."""

        if entity_type is None:
            columns = ("question_id", "section_id")
        else:
            columns = ("question_id",) if entity_type == ENTITY_QUESTION else ("section_id",)

        removed = 0
        with self.store.transaction(f"Delete conditional logic for {entity_id}") as tables:
            kept = []
            for row in tables[CONDITIONAL_LOGIC]:
                if any(row.get(column) == entity_id for column in columns):
                    removed += 1
                else:
                    kept.append(row)
            tables[CONDITIONAL_LOGIC] = kept
        return removed


def _order_key(row: Dict[str, Any]) -> int:
    return _as_int(row.get("order_index"))


def _renumber(tables: Tables, table: str, ordered_ids: Sequence[str]) -> int:
    """Set ``order_index`` to the position in ``ordered_ids``; return rows changed."""

    rows = [_find_row(tables, table, row_id) for row_id in ordered_ids]
    if [row.get("order_index") for row in rows] == list(range(len(rows))):
        return 0
    changed = 0
    for position, row in enumerate(rows):
        if row.get("order_index") != position:
            row["order_index"] = position
            _stamp(row)
            changed += 1
    logger.info(f"Renumbered {changed} row(s) in {table}")
    return changed


def _has_row(tables: Tables, table: str, row_id: Optional[str]) -> bool:
    if not row_id:
        return False
    return any(row.get("id") == row_id for row in tables[table])


def _find_row(tables: Tables, table: str, row_id: str) -> Dict[str, Any]:
    for row in tables[table]:
        if row.get("id") == row_id:
            return row
    label = table.rstrip("s").replace("_", " ")
    raise NotFoundError(f"No {label} with id '{row_id}'.")


def _stamp(row: Dict[str, Any], *, created: bool = False) -> Dict[str, Any]:
    timestamp = _now()
    if created:
        row["created_at"] = timestamp
    row["updated_at"] = timestamp
    return row


def _write_options(tables: Tables, question_id: str, options: Sequence[OptionDraft]) -> None:
    """Replace the options of ``question_id`` keeping ids of retained options."""

    kept_ids = {option.id for option in options if option.id}
    existing = {
        row["id"]: row
        for row in tables[ANSWER_OPTIONS]
        if row.get("question_id") == question_id and row["id"] in kept_ids
    }
    others = [row for row in tables[ANSWER_OPTIONS] if row.get("question_id") != question_id]

    rows: List[Dict[str, Any]] = []
    for index, draft in enumerate(option for option in options if option.text):
        row = existing.get(draft.id or "")
        if row is None:
            row = _stamp(
                {"id": str(uuid.uuid4()), "question_id": question_id},
                created=True,
            )
        row.update({"text": draft.text, "value": draft.value, "order_index": index})
        rows.append(_stamp(row))
    tables[ANSWER_OPTIONS] = others + rows


__all__ = [
    "ANSWER_OPTIONS",
    "CONDITIONAL_LOGIC",
    "DEFAULT_DATA_PATH",
    "LocalJsonBackend",
    "QUESTIONS",
    "QuestionnaireStore",
    "RuleStore",
    "SECTIONS",
    "TABLES",
]
