"""Streamlit home screen summarising the questionnaire structure."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import pandas as pd
import streamlit as st

from qbuilder.evaluator import VisibilityEvaluator
from qbuilder.models import QUESTION_TYPE_LABELS, Question, Section
from qbuilder.session import get_service, show_notifications
from qbuilder.ui_theme import apply_app_theme, page_header

UNSECTIONED_LABEL = "(No section)"
TABLE_COLUMNS = ("Order", "Short ID", "Question", "Type", "Required", "Section", "Conditions")

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")


def question_rows(
    questions: Sequence[Question],
    sections: Sequence[Section],
    evaluator: VisibilityEvaluator,
) -> List[Dict[str, Any]]:
    """Return one table row per question, grouped in questionnaire order."""

    section_titles = {section.id: section.title for section in sections}
    section_rank = {section.id: rank for rank, section in enumerate(sections)}

    def sort_key(question: Question) -> tuple:
        rank = section_rank.get(question.section_id or "", -1)
        return (rank, question.order_index)

    rows: List[Dict[str, Any]] = []
    for question in sorted(questions, key=sort_key):
        rows.append(
            {
                "Order": question.order_index,
                "Short ID": question.short_id or "",
                "Question": question.text,
                "Type": QUESTION_TYPE_LABELS.get(question.type, question.type),
                "Required": "Yes" if question.required else "No",
                "Section": section_titles.get(question.section_id or "", UNSECTIONED_LABEL),
                "Conditions": len(evaluator.rules_for(question.id, "question")),
            }
        )
    return rows


def main() -> None:
    """Render the home screen."""

    apply_app_theme(page_title="Questionnaire builder", page_icon="🏠")
    page_header(
        "Questionnaire builder",
        "Sections, questions and the conditions that decide when they are shown.",
        icon="🏠",
    )

    service = get_service()
    show_notifications(service)
    if st.button("Reload from storage"):
        service.load()
        st.rerun()

    sections = service.store.sections()
    questions = service.store.questions()
    evaluator = service.evaluator()

    metric_col1, metric_col2, metric_col3 = st.columns(3)
    metric_col1.metric("Sections", len(sections) or "0")
    metric_col2.metric("Questions", len(questions) or "0")
    metric_col3.metric("Conditions", len(service.store.rule_rows()) or "0")

    if evaluator.diagnostics:
        st.warning(
            f"{len(evaluator.diagnostics)} stored condition(s) could not be read and are ignored."
        )

    if not questions:
        st.info("No questions yet. Open the editor to create sections and questions.")
        st.page_link("pages/02_Editor.py", label="Open editor", icon="🛠️")
        return

    table_df = pd.DataFrame(question_rows(questions, sections, evaluator), columns=list(TABLE_COLUMNS))
    st.dataframe(table_df, hide_index=True, use_container_width=True)

    st.page_link("pages/01_Questionnaire.py", label="Answer the questionnaire", icon="🗒️")
    st.page_link("pages/02_Editor.py", label="Edit the questionnaire", icon="🛠️")


if __name__ == "__main__":
    main()
