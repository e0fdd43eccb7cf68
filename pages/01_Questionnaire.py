"""Questionnaire runner that shows and hides items as answers change."""

from __future__ import annotations

from html import escape as html_escape
from typing import Any, Dict, List, Sequence

import streamlit as st

from qbuilder.answers import AnswerSnapshot
from qbuilder.models import AnswerOption, Question, question_label
from qbuilder.schema_defaults import (
    DEFAULT_DEBUG_LABEL,
    DEFAULT_HIDDEN_SECTION_MESSAGE,
    DEFAULT_INTRO_HEADING,
    DEFAULT_PAGE_TITLE,
    DEFAULT_SUBMIT_LABEL,
    DEFAULT_SUBMIT_SUCCESS_MESSAGE,
    UNSELECTED_LABEL,
    intro_paragraphs_list,
)
from qbuilder.session import get_service, show_notifications
from qbuilder.ui_theme import apply_app_theme, hidden_section_banner, page_header, section_title

ANSWERS_STATE_KEY = "questionnaire_answers"
BOOLEAN_CHOICES = {"yes": "Yes", "no": "No"}


def _widget_key(question_id: str) -> str:
    return f"runner_question_{question_id}"


def _forget_answer(question_id: str, answers: Dict[str, Any]) -> None:
    answers.pop(question_id, None)
    st.session_state.pop(_widget_key(question_id), None)


def render_question(
    question: Question,
    options: Sequence[AnswerOption],
    answers: Dict[str, Any],
) -> None:
    """Render an individual question widget and record its answer."""

    widget_key = _widget_key(question.id)
    label = question_label(question) + (" *" if question.required else "")
    current = answers.get(question.id)

    if question.type in {"select", "multiple_choice"} and not options:
        st.warning(f"Question '{question.text}' has no options configured.")
        return

    if question.type == "select":
        values = [option.value for option in options]
        labels = {option.value: option.text for option in options}
        choices = [UNSELECTED_LABEL, *values]
        if widget_key in st.session_state and st.session_state[widget_key] not in choices:
            st.session_state.pop(widget_key)
        index = choices.index(current) if current in values else 0
        selection = st.selectbox(
            label,
            choices,
            index=index,
            key=widget_key,
            format_func=lambda value: labels.get(value, value),
        )
        if selection == UNSELECTED_LABEL:
            answers.pop(question.id, None)
        else:
            answers[question.id] = selection
    elif question.type == "multiple_choice":
        values = [option.value for option in options]
        labels = {option.value: option.text for option in options}
        default = [value for value in current if value in values] if isinstance(current, list) else []
        selections = st.multiselect(
            label,
            options=values,
            default=default,
            key=widget_key,
            format_func=lambda value: labels.get(value, value),
        )
        answers[question.id] = list(selections)
    elif question.type == "boolean":
        choices = [UNSELECTED_LABEL, *BOOLEAN_CHOICES]
        index = choices.index(current) if current in BOOLEAN_CHOICES else 0
        selection = st.radio(
            label,
            choices,
            index=index,
            key=widget_key,
            horizontal=True,
            format_func=lambda value: BOOLEAN_CHOICES.get(value, value),
        )
        if selection == UNSELECTED_LABEL:
            answers.pop(question.id, None)
        else:
            answers[question.id] = selection
    elif question.type == "number":
        value = st.number_input(
            label,
            value=current if isinstance(current, (int, float)) else None,
            key=widget_key,
        )
        if value is None:
            answers.pop(question.id, None)
        else:
            answers[question.id] = value
    elif question.type == "text":
        text_value = st.text_input(label, value=str(current or ""), key=widget_key)
        answers[question.id] = text_value
    else:
        st.warning(f"Unsupported question type: {question.type}")


def prune_hidden_answers(answers: Dict[str, Any], visible_ids: Sequence[str]) -> List[str]:
    """Drop answers to questions that are no longer shown; return the dropped ids."""

    visible = set(visible_ids)
    dropped = [question_id for question_id in list(answers) if question_id not in visible]
    for question_id in dropped:
        _forget_answer(question_id, answers)
    return dropped


def main() -> None:
    """Render the questionnaire page."""

    apply_app_theme(page_title=DEFAULT_PAGE_TITLE, page_icon="🗒️")
    page_header(DEFAULT_PAGE_TITLE, icon="🗒️")

    service = get_service()
    show_notifications(service)
    evaluator = service.evaluator()
    options_by_question = service.store.options_by_question()

    st.subheader(DEFAULT_INTRO_HEADING)
    st.markdown(
        "\n".join(f"<p>{html_escape(paragraph)}</p>" for paragraph in intro_paragraphs_list()),
        unsafe_allow_html=True,
    )

    if not evaluator.questions:
        st.info("No questions defined yet.")
        return

    answers: Dict[str, Any] = st.session_state.setdefault(ANSWERS_STATE_KEY, {})

    rendered_ids: List[str] = []
    for block in evaluator.layout(answers):
        if block.section is not None:
            section_title(block.section.title)
            if not block.verdict.visible:
                hidden_section_banner(block.verdict.banner_message or DEFAULT_HIDDEN_SECTION_MESSAGE)
                continue
        for question in block.questions:
            render_question(question, options_by_question.get(question.id, []), answers)
            rendered_ids.append(question.id)

    visible_ids = evaluator.visible_question_ids(answers)
    prune_hidden_answers(answers, visible_ids)
    st.session_state[ANSWERS_STATE_KEY] = answers
    # Answers given on this run can change what is visible.
    if visible_ids != rendered_ids:
        st.rerun()

    with st.expander(DEFAULT_DEBUG_LABEL, expanded=False):
        st.json(AnswerSnapshot.coerce(answers).to_dict())

    if st.button(DEFAULT_SUBMIT_LABEL, key="submit_questionnaire"):
        missing = evaluator.missing_required(answers)
        if missing:
            st.error("Please answer all required questions before submitting.")
            st.markdown("\n".join(f"- {question_label(question)}" for question in missing))
            return
        st.success(DEFAULT_SUBMIT_SUCCESS_MESSAGE)
        st.json(answers)


if __name__ == "__main__":
    main()
