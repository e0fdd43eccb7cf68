"""Tests for the answer snapshot."""

from __future__ import annotations

from qbuilder.answers import AnswerSnapshot


def test_blank_values_are_unanswered():
    snapshot = AnswerSnapshot({"empty": "", "none": None, "no_choice": [], "zero": 0, "false": False})

    assert not snapshot.is_answered("empty")
    assert not snapshot.is_answered("none")
    assert not snapshot.is_answered("no_choice")
    assert not snapshot.is_answered("missing")
    assert snapshot.is_answered("zero")
    assert snapshot.is_answered("false")
    assert snapshot.answer_for("empty") is None


def test_values_for_returns_comparison_tokens():
    snapshot = AnswerSnapshot({"multi": ["a", "", "b"], "flag": True, "number": 3, "text": " Mixed "})

    assert snapshot.values_for("multi") == ["a", "b"]
    assert snapshot.values_for("flag") == ["yes"]
    assert snapshot.values_for("number") == ["3"]
    assert snapshot.values_for("text") == [" Mixed "]
    assert snapshot.values_for("missing") == []


def test_matches_is_exact():
    snapshot = AnswerSnapshot({"q1": "Yes"})

    assert snapshot.matches("q1", "Yes")
    assert not snapshot.matches("q1", "yes")


def test_with_answer_leaves_the_original_untouched():
    original = AnswerSnapshot({"q1": "a"})
    updated = original.with_answer("q2", "b")

    assert dict(original) == {"q1": "a"}
    assert updated.to_dict() == {"q1": "a", "q2": "b"}


def test_coerce_accepts_snapshots_mappings_and_junk():
    snapshot = AnswerSnapshot({"q1": "a"})

    assert AnswerSnapshot.coerce(snapshot) is snapshot
    assert AnswerSnapshot.coerce({"q1": "a"}).to_dict() == {"q1": "a"}
    assert len(AnswerSnapshot.coerce(None)) == 0
    assert len(AnswerSnapshot.coerce(["not", "a", "mapping"])) == 0
