"""Ordering of sibling sections and questions, plus short id assignment."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from qbuilder.errors import NotFoundError, PersistenceError
from qbuilder.store import QUESTIONS, SECTIONS, QuestionnaireStore

logger = logging.getLogger(__name__)

UP = "up"
DOWN = "down"
DIRECTIONS = (UP, DOWN)
SHORT_ID_LENGTH = 5


@dataclass(frozen=True)
class SiblingScope:
    """The set of rows an item is ordered against.

    Sections share one global order. Questions are ordered within their
    section, and unsectioned questions (``section_id=None``) form their own
    scope.
    """

    table: str
    section_id: Optional[str] = None

    @classmethod
    def sections(cls) -> "SiblingScope":
        return cls(table=SECTIONS)

    @classmethod
    def questions(cls, section_id: Optional[str] = None) -> "SiblingScope":
        return cls(table=QUESTIONS, section_id=section_id or None)


@dataclass(frozen=True)
class MoveOutcome:
    """Result of a move request; ``moved`` is ``False`` for boundary no-ops."""

    moved: bool
    reason: str = ""


def generate_short_id() -> str:
    """Return a short uppercase alphanumeric tag for a question."""

    return uuid.uuid4().hex[:SHORT_ID_LENGTH].upper()


class OrderingService:
    """Keep sibling ``order_index`` values dense and unique by swapping neighbours."""

    def __init__(self, store: QuestionnaireStore) -> None:
        self.store = store

    def siblings(self, scope: SiblingScope) -> List[str]:
        """Return the ids in ``scope`` ordered by ``order_index``."""

        if scope.table == SECTIONS:
            return [section.id for section in self.store.sections()]
        return [question.id for question in self.store.sibling_questions(scope.section_id)]

    def next_order_index(self, scope: SiblingScope) -> int:
        if scope.table == SECTIONS:
            indices = [section.order_index for section in self.store.sections()]
        else:
            indices = [question.order_index for question in self.store.sibling_questions(scope.section_id)]
        return max(indices, default=-1) + 1

    def reorder(self, scope: SiblingScope, item_id: str, direction: str) -> MoveOutcome:
        """Swap ``item_id`` with its neighbour in ``direction``.

        A scope with duplicate or gapped indices is renumbered to its display
        order in the same commit, so the move always changes the order.

        Raises
        ------
        NotFoundError
            If ``item_id`` is not part of ``scope``.
        ReorderError
            If the two-row swap could not be committed.
        """

        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown direction: {direction!r}")

        ids = self.siblings(scope)
        if item_id not in ids:
            raise NotFoundError(f"'{item_id}' is not in this list.")

        current = ids.index(item_id)
        neighbour = current - 1 if direction == UP else current + 1
        if not 0 <= neighbour < len(ids):
            edge = "first" if direction == UP else "last"
            return MoveOutcome(moved=False, reason=f"Already {edge} in its list.")

        self.store.swap_order_index(scope.table, item_id, ids[neighbour], sibling_ids=ids)
        return MoveOutcome(moved=True)

    def move_up(self, scope: SiblingScope, item_id: str) -> MoveOutcome:
        return self.reorder(scope, item_id, UP)

    def move_down(self, scope: SiblingScope, item_id: str) -> MoveOutcome:
        return self.reorder(scope, item_id, DOWN)

    def backfill_short_ids(self) -> List[str]:
        """Give every question without a short id a new one.

        Only questions missing a short id are touched. A failed commit is
        logged and leaves the questions without short ids until the next load.
        """

        missing = [question.id for question in self.store.questions() if not question.short_id]
        if not missing:
            return []
        assignments = {question_id: generate_short_id() for question_id in missing}
        try:
            self.store.set_short_ids(assignments)
        except PersistenceError as exc:
            logger.error(f"Error assigning short ids: {exc}")
            return []
        logger.info(f"Assigned short ids to {len(assignments)} question(s)")
        return missing


__all__ = [
    "DIRECTIONS",
    "DOWN",
    "MoveOutcome",
    "OrderingService",
    "SiblingScope",
    "UP",
    "generate_short_id",
]
