"""Tests for the helper functions of the Streamlit pages."""

from __future__ import annotations

import hashlib
import importlib.util
from pathlib import Path

import streamlit as st

from qbuilder.evaluator import VisibilityEvaluator
from qbuilder.models import ConditionalLogic, Question, QuestionTarget, Section
from qbuilder.rule_validator import RuleComparison

REPO_ROOT = Path(__file__).resolve().parents[1]


def _load_page(name: str, relative_path: str):
    spec = importlib.util.spec_from_file_location(name, REPO_ROOT / relative_path)
    if spec is None or spec.loader is None:  # pragma: no cover - defensive
        raise RuntimeError(f"Could not load {relative_path} for testing.")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


HOME = _load_page("home_page", "Home.py")
RUNNER = _load_page("runner_page", "pages/01_Questionnaire.py")
EDITOR = _load_page("editor_page", "pages/02_Editor.py")


def _clear_session_state() -> None:
    """Remove all keys from Streamlit's session state."""

    for key in list(st.session_state.keys()):
        del st.session_state[key]


def test_editor_conditions_map_to_comparisons():
    assert EDITOR.comparison_for("is", "yes") == RuleComparison.is_("yes")
    assert EDITOR.comparison_for("is_not", "yes") == RuleComparison.is_not("yes")
    assert EDITOR.comparison_for("answered", "ignored") == RuleComparison.answered()
    assert EDITOR.comparison_for("not_answered", None) == RuleComparison.not_answered()
    assert EDITOR.comparison_for("is", None) == RuleComparison.is_("")


def test_editor_password_check(monkeypatch):
    digest = hashlib.sha256(b"open sesame").hexdigest()
    monkeypatch.setattr(EDITOR.st, "secrets", {"editor_password_hash": digest})

    assert EDITOR.verify_password("open sesame") is True
    assert EDITOR.verify_password("wrong") is False

    monkeypatch.setattr(EDITOR.st, "secrets", {})
    assert EDITOR.verify_password("open sesame") is False


def test_home_rows_follow_questionnaire_order():
    sections = [Section(id="s1", title="Driving", order_index=0)]
    questions = [
        Question(id="q2", text="Brand", type="select", order_index=0, section_id="s1", short_id="BRAND"),
        Question(id="q1", text="Drive?", type="boolean", order_index=0, required=True),
    ]
    rules = [
        ConditionalLogic(id="r1", target=QuestionTarget("q2"), dependent_question_id="q1",
                         dependent_answer_value="yes"),
    ]

    rows = HOME.question_rows(questions, sections, VisibilityEvaluator(questions, rules, sections))

    assert [row["Question"] for row in rows] == ["Drive?", "Brand"]
    assert rows[0]["Section"] == HOME.UNSECTIONED_LABEL
    assert rows[0]["Required"] == "Yes"
    assert rows[1]["Type"] == "Dropdown select"
    assert rows[1]["Conditions"] == 1
    assert list(rows[0]) == list(HOME.TABLE_COLUMNS)


def test_runner_prunes_answers_to_hidden_questions():
    _clear_session_state()
    st.session_state["runner_question_hidden"] = "stale"
    answers = {"shown": "a", "hidden": "b"}

    dropped = RUNNER.prune_hidden_answers(answers, ["shown"])

    assert dropped == ["hidden"]
    assert answers == {"shown": "a"}
    assert "runner_question_hidden" not in st.session_state
    _clear_session_state()
