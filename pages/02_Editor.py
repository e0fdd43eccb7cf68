"""Password protected editor for sections, questions and conditional logic."""

from __future__ import annotations

import hashlib
import hmac
from typing import Dict, List, Optional, Sequence

import streamlit as st

from qbuilder.authoring import QuestionnaireService
from qbuilder.evaluator import is_banner_only
from qbuilder.models import (
    OPTION_QUESTION_TYPES,
    QUESTION_TYPE_LABELS,
    QUESTION_TYPES,
    AnswerOption,
    OptionDraft,
    Question,
    QuestionTarget,
    Section,
    SectionTarget,
    Target,
    describe_rule,
    options_from_lines,
    question_label,
)
from qbuilder.ordering import DOWN, UP, SiblingScope
from qbuilder.rule_validator import RuleComparison
from qbuilder.schema_defaults import EMPTY_RULES_MESSAGE, UNSELECTED_LABEL
from qbuilder.session import get_service, show_notifications
from qbuilder.ui_theme import apply_app_theme, page_header

CONDITION_IS = "is"
CONDITION_IS_NOT = "is_not"
CONDITION_ANSWERED = "answered"
CONDITION_NOT_ANSWERED = "not_answered"
CONDITION_LABELS: Dict[str, str] = {
    CONDITION_IS: "is",
    CONDITION_IS_NOT: "is not",
    CONDITION_ANSWERED: "has been answered",
    CONDITION_NOT_ANSWERED: "has not been answered",
}
VALUE_CONDITIONS = {CONDITION_IS, CONDITION_IS_NOT}
NO_SECTION = ""


def verify_password(password: str) -> bool:
    """Validate a plaintext password against the configured hash."""

    stored_hash = st.secrets.get("editor_password_hash", "")
    if not stored_hash:
        return False

    digest = hashlib.sha256(password.encode("utf-8")).hexdigest()
    return hmac.compare_digest(digest, stored_hash)


def require_authentication() -> None:
    """Enforce a minimal password gate for the editor."""

    if st.session_state.get("auth"):
        return

    stored_hash = st.secrets.get("editor_password_hash", "")
    if not stored_hash:
        st.error("Editor password is not configured.")
        st.stop()

    password = st.text_input("Password", type="password")
    if not password:
        st.stop()

    if verify_password(password):
        st.session_state.auth = True
        return

    st.error("Incorrect password.")
    st.stop()


def comparison_for(condition: str, value: Optional[str]) -> RuleComparison:
    """Translate the condition picker into a :class:`RuleComparison`."""

    if condition == CONDITION_ANSWERED:
        return RuleComparison.answered()
    if condition == CONDITION_NOT_ANSWERED:
        return RuleComparison.not_answered()
    if condition == CONDITION_IS_NOT:
        return RuleComparison.is_not(value or "")
    return RuleComparison.is_(value or "")


def render_options_editor(
    base_key: str, question_type: str, existing_options: Sequence[AnswerOption]
) -> List[OptionDraft]:
    """Render the answer option table plus a bulk entry box."""

    if question_type not in OPTION_QUESTION_TYPES:
        st.caption("Options are not used for this question type.")
        return []

    st.caption("Edit the answer choices below. Use the ⊕ button to add rows.")
    option_rows = [{"Option": option.text, "id": option.id} for option in existing_options] or [
        {"Option": "", "id": None}
    ]
    edited_rows = st.data_editor(
        option_rows,
        num_rows="dynamic",
        hide_index=True,
        use_container_width=True,
        column_order=["Option"],
        key=f"{base_key}_options_editor",
    )

    if hasattr(edited_rows, "to_dict"):
        rows_iterable = edited_rows.to_dict(orient="records")  # type: ignore[call-arg]
    elif isinstance(edited_rows, list):
        rows_iterable = edited_rows
    else:
        rows_iterable = []

    drafts: List[OptionDraft] = []
    for row in rows_iterable:
        text = row.get("Option") if isinstance(row, dict) else None
        if not isinstance(text, str) or not text.strip():
            continue
        option_id = row.get("id")
        drafts.append(OptionDraft(text=text, id=option_id if isinstance(option_id, str) else None))

    bulk_text = st.text_area(
        "Add several options (one per line)",
        key=f"{base_key}_options_bulk",
        height=100,
    )
    drafts.extend(options_from_lines(bulk_text))

    if not drafts:
        st.info("Provide at least one option to offer selectable answers.")
    return drafts


def render_rule_manager(
    service: QuestionnaireService, target: Target, questions: Sequence[Question]
) -> None:
    """List the rules gating ``target`` and offer a form to add one."""

    base_key = f"rules_{target.entity_type}_{target.id}"
    st.markdown("**Conditional logic**")

    rules = service.rules_for(target.id, target.entity_type)
    if not rules:
        st.caption(EMPTY_RULES_MESSAGE)
    for rule in rules:
        col_text, col_delete = st.columns([6, 1])
        summary = describe_rule(rule, questions)
        if is_banner_only(rule):
            summary = f"{summary} (banner only)"
        col_text.write(summary)
        if rule.banner_message:
            col_text.caption(f"Banner: {rule.banner_message}")
        if col_delete.button("Remove", key=f"{base_key}_delete_{rule.id}"):
            service.remove_rule(rule.id)
            st.rerun()

    candidates = service.eligible_dependents(target)
    if not candidates:
        st.caption("Add a select, multiple choice or yes/no question to build conditions.")
        return

    lookup = {question.id: question for question in candidates}
    col_question, col_condition, col_value = st.columns(3)
    dependent_id = col_question.selectbox(
        "When question",
        options=[UNSELECTED_LABEL, *lookup],
        key=f"{base_key}_dependent",
        format_func=lambda key: question_label(lookup[key]) if key in lookup else key,
    )
    condition = col_condition.selectbox(
        "Condition",
        options=list(CONDITION_LABELS),
        key=f"{base_key}_condition",
        format_func=lambda key: CONDITION_LABELS[key],
    )

    value: Optional[str] = None
    if condition in VALUE_CONDITIONS and dependent_id in lookup:
        options = service.comparison_options_for(dependent_id)
        labels = {option.value: option.text for option in options}
        value = col_value.selectbox(
            "Answer",
            options=[UNSELECTED_LABEL, *labels],
            key=f"{base_key}_value_{dependent_id}",
            format_func=lambda key: labels.get(key, key),
        )
        if value == UNSELECTED_LABEL:
            value = None

    if st.button("Add condition", key=f"{base_key}_add"):
        chosen = dependent_id if dependent_id in lookup else None
        service.add_rule(target, chosen, comparison_for(condition, value))
        st.rerun()


def render_move_buttons(
    service: QuestionnaireService, scope: SiblingScope, item_id: str, index: int, total: int
) -> None:
    col_up, col_down, _ = st.columns([1, 1, 6])
    if col_up.button("⬆", key=f"move_up_{item_id}", disabled=index == 0):
        service.move(scope, item_id, UP)
        st.rerun()
    if col_down.button("⬇", key=f"move_down_{item_id}", disabled=index >= total - 1):
        service.move(scope, item_id, DOWN)
        st.rerun()


def render_question_editor(
    service: QuestionnaireService,
    question: Question,
    *,
    index: int,
    total: int,
    questions: Sequence[Question],
) -> None:
    """Render the editing controls for a single question."""

    base_key = f"question_{question.id}"
    with st.expander(question_label(question), expanded=False):
        render_move_buttons(service, SiblingScope.questions(question.section_id), question.id, index, total)

        text = st.text_input("Question text", value=question.text, key=f"{base_key}_text")
        question_type = st.selectbox(
            "Type",
            options=QUESTION_TYPES,
            index=QUESTION_TYPES.index(question.type) if question.type in QUESTION_TYPES else 0,
            key=f"{base_key}_type",
            format_func=lambda key: QUESTION_TYPE_LABELS.get(key, key),
        )
        required = st.checkbox("Required", value=question.required, key=f"{base_key}_required")
        options = render_options_editor(base_key, question_type, service.store.answer_options(question.id))

        col_save, col_delete = st.columns(2)
        if col_save.button("Save question", key=f"{base_key}_save", type="primary"):
            if service.update_question(
                question.id, text=text, question_type=question_type, required=required, options=options
            ):
                st.session_state.pop(f"{base_key}_options_bulk", None)
            st.rerun()
        if col_delete.button("Delete question", key=f"{base_key}_delete"):
            service.delete_question(question.id)
            st.rerun()

        st.divider()
        render_rule_manager(service, QuestionTarget(question.id), questions)


def render_section_editor(
    service: QuestionnaireService,
    section: Section,
    *,
    index: int,
    total: int,
    questions: Sequence[Question],
) -> None:
    """Render a section with its settings, rules and questions."""

    base_key = f"section_{section.id}"
    with st.container(border=True):
        st.subheader(section.title)
        render_move_buttons(service, SiblingScope.sections(), section.id, index, total)

        col_title, col_rename = st.columns([4, 1])
        title = col_title.text_input("Section title", value=section.title, key=f"{base_key}_title")
        if col_rename.button("Rename", key=f"{base_key}_rename"):
            service.rename_section(section.id, title)
            st.rerun()

        banner = st.text_area(
            "Message shown while this section is hidden",
            value=section.banner_message or "",
            key=f"{base_key}_banner",
            height=80,
        )
        col_banner, col_delete = st.columns(2)
        if col_banner.button("Save banner message", key=f"{base_key}_banner_save"):
            service.save_section_banner(section.id, banner)
            st.rerun()
        if col_delete.button(
            "Delete section",
            key=f"{base_key}_delete",
            help="Questions in this section are kept and moved to the unsectioned list.",
        ):
            service.delete_section(section.id)
            st.rerun()

        render_rule_manager(service, SectionTarget(section.id), questions)

        members = [question for question in questions if question.section_id == section.id]
        if not members:
            st.caption("No questions in this section yet.")
        for position, question in enumerate(members):
            render_question_editor(
                service, question, index=position, total=len(members), questions=questions
            )


def render_add_section(service: QuestionnaireService) -> None:
    with st.form("add_section_form", clear_on_submit=True):
        title = st.text_input("New section title")
        if st.form_submit_button("Add section"):
            service.create_section(title)
            st.rerun()


def render_add_question(service: QuestionnaireService, sections: Sequence[Section]) -> None:
    """Render the form used to create a question."""

    st.subheader("Add a question")
    section_titles = {section.id: section.title for section in sections}
    text = st.text_input("Question text", key="new_question_text")
    col_type, col_section = st.columns(2)
    question_type = col_type.selectbox(
        "Type",
        options=QUESTION_TYPES,
        key="new_question_type",
        format_func=lambda key: QUESTION_TYPE_LABELS.get(key, key),
    )
    section_id = col_section.selectbox(
        "Section",
        options=[NO_SECTION, *section_titles],
        key="new_question_section",
        format_func=lambda key: section_titles.get(key, "(No section)"),
    )
    required = st.checkbox("Required", key="new_question_required")
    options = render_options_editor("new_question", question_type, [])

    if st.button("Add question", type="primary", key="new_question_submit"):
        created = service.create_question(
            text,
            question_type,
            required=required,
            section_id=section_id or None,
            options=options,
        )
        if created:
            for key in ("new_question_text", "new_question_options_bulk", "new_question_options_editor"):
                st.session_state.pop(key, None)
        st.rerun()


def main() -> None:
    """Render the questionnaire editor page."""

    apply_app_theme(page_title="Questionnaire editor", page_icon="🛠️")
    require_authentication()

    page_header(
        "Questionnaire editor",
        "Sections, questions, answer options and the conditions that show or hide them.",
        icon="🛠️",
    )

    service = get_service()
    show_notifications(service)
    if st.button("Reload from storage"):
        service.refresh()
        st.rerun()

    sections = service.store.sections()
    questions = service.store.questions()

    st.header("Sections")
    if not sections:
        st.info("No sections yet. Add one below.")
    for index, section in enumerate(sections):
        render_section_editor(service, section, index=index, total=len(sections), questions=questions)
    render_add_section(service)
    st.divider()

    st.header("Questions without a section")
    unsectioned = [question for question in questions if not question.section_id]
    if not unsectioned:
        st.caption("Every question belongs to a section.")
    for index, question in enumerate(unsectioned):
        render_question_editor(
            service, question, index=index, total=len(unsectioned), questions=questions
        )
    st.divider()

    render_add_question(service, sections)


if __name__ == "__main__":
    main()
