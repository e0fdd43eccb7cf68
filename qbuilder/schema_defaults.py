"""Default texts shared between the questionnaire runner and the editor."""

from __future__ import annotations

from typing import List

DEFAULT_PAGE_TITLE = "Questionnaire"
DEFAULT_INTRO_HEADING = "👋 Welcome!"
DEFAULT_INTRO_PARAGRAPHS: tuple[str, ...] = (
    "Please answer the questions below.",
    "Questions and sections may appear or disappear depending on your answers.",
)
DEFAULT_SUBMIT_LABEL = "Submit questionnaire"
DEFAULT_SUBMIT_SUCCESS_MESSAGE = "Thank you, your answers have been recorded."
DEFAULT_DEBUG_LABEL = "Debug: current answers"
DEFAULT_HIDDEN_SECTION_MESSAGE = "This section does not apply based on your answers."
UNSELECTED_LABEL = "— Select an option —"
EMPTY_RULES_MESSAGE = (
    "No conditions set yet. Add a condition to determine when this item should be visible."
)


def intro_paragraphs_list() -> List[str]:
    """Return a mutable list of the default introduction paragraphs."""

    return list(DEFAULT_INTRO_PARAGRAPHS)
