"""Tests for visibility evaluation of questions and sections."""

from __future__ import annotations

import itertools
import logging

from qbuilder.evaluator import VisibilityEvaluator, evaluate_visibility, is_banner_only
from qbuilder.models import (
    ConditionalLogic,
    Question,
    QuestionTarget,
    Section,
    SectionTarget,
    Verdict,
)


def _questions():
    return [
        Question(id="q1", text="Do you drive?", type="boolean", order_index=0),
        Question(id="q2", text="Car brand", type="select", order_index=1),
        Question(id="q3", text="Extras", type="multiple_choice", order_index=2),
        Question(id="q4", text="Comments", type="text", order_index=3),
    ]


def _rule(rule_id, target, dependent, value=None, *, not_condition=False, exists=False, banner=None):
    return ConditionalLogic(
        id=rule_id,
        target=target,
        dependent_question_id=dependent,
        dependent_answer_value=value,
        not_condition=not_condition,
        check_answer_existence=exists,
        banner_message=banner,
    )


def test_entity_without_rules_is_always_visible():
    evaluator = VisibilityEvaluator(_questions(), [])

    for answers in ({}, {"q1": "yes"}, {"q1": "no", "q2": "audi"}):
        assert evaluator.evaluate_visibility("q4", "question", answers) == Verdict(visible=True)
        assert evaluator.evaluate_visibility("s1", "section", answers).visible is True


def test_visibility_is_and_of_rules():
    target = QuestionTarget("q4")
    rules = [
        _rule("r1", target, "q1", "yes"),
        _rule("r2", target, "q2", "audi"),
    ]
    evaluator = VisibilityEvaluator(_questions(), rules)

    for q1, q2 in itertools.product(["yes", "no", None], ["audi", "bmw", None]):
        answers = {"q1": q1, "q2": q2}
        expected = q1 == "yes" and q2 == "audi"
        assert evaluator.evaluate_visibility("q4", "question", answers).visible is expected


def test_existence_check_ignores_the_value():
    rules = [_rule("r1", QuestionTarget("q4"), "q2", exists=True)]
    evaluator = VisibilityEvaluator(_questions(), rules)

    assert evaluator.evaluate_visibility("q4", "question", {}).visible is False
    assert evaluator.evaluate_visibility("q4", "question", {"q2": ""}).visible is False
    assert evaluator.evaluate_visibility("q4", "question", {"q2": "audi"}).visible is True
    assert evaluator.evaluate_visibility("q4", "question", {"q2": "anything"}).visible is True


def test_legacy_exists_sentinel_is_an_existence_check():
    rules = [{"id": "r1", "question_id": "q4", "dependent_question_id": "q2", "dependent_answer_value": "__EXISTS__"}]
    evaluator = VisibilityEvaluator(_questions(), rules)

    assert evaluator.evaluate_visibility("q4", "question", {}).visible is False
    assert evaluator.evaluate_visibility("q4", "question", {"q2": "bmw"}).visible is True


def test_unanswered_dependent_fails_is_and_passes_is_not():
    is_rule = VisibilityEvaluator(_questions(), [_rule("r1", QuestionTarget("q4"), "q2", "audi")])
    is_not_rule = VisibilityEvaluator(
        _questions(), [_rule("r1", QuestionTarget("q4"), "q2", "audi", not_condition=True)]
    )

    assert is_rule.evaluate_visibility("q4", "question", {}).visible is False
    assert is_not_rule.evaluate_visibility("q4", "question", {}).visible is True
    assert is_not_rule.evaluate_visibility("q4", "question", {"q2": "audi"}).visible is False
    assert is_not_rule.evaluate_visibility("q4", "question", {"q2": "bmw"}).visible is True


def test_dangling_dependent_never_hides():
    rules = [
        _rule("r1", QuestionTarget("q4"), "deleted", "yes"),
        _rule("r2", SectionTarget("s1"), "deleted", "yes", not_condition=True),
    ]
    evaluator = VisibilityEvaluator(_questions(), rules, [Section(id="s1", title="Driving")])

    assert evaluator.evaluate_visibility("q4", "question", {}).visible is True
    assert evaluator.evaluate_visibility("s1", "section", {"deleted": "yes"}).visible is True


def test_banner_only_rule_is_ignored_but_its_banner_is_used():
    section = Section(id="s1", title="Driving")
    rules = [
        _rule("banner", SectionTarget("s1"), None, None, not_condition=True, banner="Only for drivers"),
        _rule("r1", SectionTarget("s1"), "q1", "yes"),
    ]
    evaluator = VisibilityEvaluator(_questions(), rules, [section])

    assert evaluator.evaluate_visibility("s1", "section", {"q1": "yes"}) == Verdict(visible=True)
    assert evaluator.evaluate_visibility("s1", "section", {"q1": "no"}) == Verdict(
        visible=False, banner_message="Only for drivers"
    )


def test_banner_only_rule_alone_never_hides_its_section():
    rules = [
        _rule("banner", SectionTarget("s1"), "q1", "dummy_value", not_condition=True, banner="Hidden"),
    ]
    evaluator = VisibilityEvaluator(_questions(), rules, [Section(id="s1", title="Driving")])

    assert evaluator.evaluate_visibility("s1", "section", {}).visible is True
    assert evaluator.evaluate_visibility("s1", "section", {"q1": "dummy_value"}).visible is True


def test_is_banner_only_recognises_legacy_shapes():
    target = SectionTarget("s1")

    assert is_banner_only(_rule("a", target, None, "yes"))
    assert is_banner_only(_rule("b", target, "q1", None, not_condition=True))
    assert is_banner_only(_rule("c", target, "q1", "", not_condition=True))
    assert is_banner_only(_rule("d", target, "q1", "dummy_value", not_condition=True))
    assert not is_banner_only(_rule("e", target, "q1", "yes", not_condition=True))
    assert not is_banner_only(_rule("f", target, "q1", None, exists=True))


def test_section_attribute_banner_wins_over_rule_banner():
    section = Section(id="s1", title="Driving", banner_message="From the section")
    rules = [_rule("r1", SectionTarget("s1"), "q1", "yes", banner="From the rule")]
    evaluator = VisibilityEvaluator(_questions(), rules, [section])

    verdict = evaluator.evaluate_visibility("s1", "section", {"q1": "no"})
    assert verdict == Verdict(visible=False, banner_message="From the section")


def test_hidden_question_never_carries_a_banner():
    rules = [_rule("r1", QuestionTarget("q4"), "q1", "yes", banner="ignored")]
    evaluator = VisibilityEvaluator(_questions(), rules)

    assert evaluator.evaluate_visibility("q4", "question", {"q1": "no"}) == Verdict(visible=False)


def test_section_banner_scenario():
    rules = [_rule("r1", SectionTarget("S"), "Q1", "yes", banner="Hidden because Q1≠yes")]
    questions = [Question(id="Q1", text="Q1", type="boolean")]
    sections = [Section(id="S", title="S")]

    assert evaluate_visibility("S", "section", {"Q1": "no"}, questions, rules, sections) == Verdict(
        visible=False, banner_message="Hidden because Q1≠yes"
    )
    assert evaluate_visibility("S", "section", {"Q1": "yes"}, questions, rules, sections) == Verdict(
        visible=True, banner_message=None
    )
    assert evaluate_visibility("S", "section", {}, questions, rules, sections) == Verdict(
        visible=False, banner_message="Hidden because Q1≠yes"
    )


def test_not_answered_scenario():
    questions = [
        Question(id="Q1", text="Q1", type="select"),
        Question(id="Q2", text="Q2", type="text"),
    ]
    rules = [_rule("r1", QuestionTarget("Q2"), "Q1", exists=True, not_condition=True)]

    assert evaluate_visibility("Q2", "question", {}, questions, rules).visible is True
    assert evaluate_visibility("Q2", "question", {"Q1": "anything"}, questions, rules).visible is False


def test_comparison_is_exact_and_matches_any_selected_value():
    rules = [_rule("r1", QuestionTarget("q4"), "q3", "heated_seats")]
    evaluator = VisibilityEvaluator(_questions(), rules)

    assert evaluator.evaluate_visibility("q4", "question", {"q3": ["sunroof", "heated_seats"]}).visible
    assert not evaluator.evaluate_visibility("q4", "question", {"q3": ["Heated_Seats"]}).visible
    assert not evaluator.evaluate_visibility("q4", "question", {"q3": [" heated_seats"]}).visible
    assert not evaluator.evaluate_visibility("q4", "question", {"q3": []}).visible


def test_boolean_answers_compare_as_yes_and_no():
    rules = [_rule("r1", QuestionTarget("q4"), "q1", "yes")]
    evaluator = VisibilityEvaluator(_questions(), rules)

    assert evaluator.evaluate_visibility("q4", "question", {"q1": True}).visible is True
    assert evaluator.evaluate_visibility("q4", "question", {"q1": False}).visible is False


def test_malformed_rows_are_reported_and_skipped(caplog):
    rows = [
        {"id": "both", "question_id": "q4", "section_id": "s1", "dependent_question_id": "q1",
         "dependent_answer_value": "yes"},
        {"id": "neither", "dependent_question_id": "q1", "dependent_answer_value": "yes"},
        {"id": "mismatch", "entity_type": "section", "question_id": "q4",
         "dependent_question_id": "q1", "dependent_answer_value": "yes"},
        {"id": "good", "question_id": "q4", "dependent_question_id": "q1", "dependent_answer_value": "yes"},
    ]

    with caplog.at_level(logging.WARNING, logger="qbuilder.evaluator"):
        evaluator = VisibilityEvaluator(_questions(), rows)

    assert sorted(diagnostic.rule_id for diagnostic in evaluator.diagnostics) == ["both", "mismatch", "neither"]
    assert [rule.id for rule in evaluator.rules_for("q4", "question")] == ["good"]
    assert evaluator.evaluate_visibility("q4", "question", {"q1": "no"}).visible is False
    assert "Malformed rule" in caplog.text


def test_layout_orders_blocks_and_hides_section_members():
    questions = [
        Question(id="gate", text="Gate", type="boolean", order_index=0),
        Question(id="inside", text="Inside", type="text", order_index=0, section_id="s2"),
        Question(id="first", text="First", type="text", order_index=0, section_id="s1"),
        Question(id="second", text="Second", type="text", order_index=1, section_id="s1"),
    ]
    sections = [Section(id="s2", title="Later", order_index=1), Section(id="s1", title="Early", order_index=0)]
    rules = [
        _rule("r1", SectionTarget("s2"), "gate", "yes", banner="Answer yes to see this"),
        _rule("r2", QuestionTarget("second"), "gate", "no"),
    ]
    evaluator = VisibilityEvaluator(questions, rules, sections)

    blocks = evaluator.layout({"gate": "no"})

    assert [block.section.id if block.section else None for block in blocks] == [None, "s1", "s2"]
    assert [q.id for q in blocks[0].questions] == ["gate"]
    assert [q.id for q in blocks[1].questions] == ["first", "second"]
    assert blocks[2].verdict == Verdict(visible=False, banner_message="Answer yes to see this")
    assert blocks[2].questions == []
    assert evaluator.visible_question_ids({"gate": "yes"}) == ["gate", "first", "inside"]


def test_missing_required_only_counts_visible_questions():
    questions = [
        Question(id="gate", text="Gate", type="boolean", required=True, order_index=0),
        Question(id="detail", text="Detail", type="text", required=True, order_index=1),
        Question(id="optional", text="Optional", type="text", order_index=2),
    ]
    rules = [_rule("r1", QuestionTarget("detail"), "gate", "yes")]
    evaluator = VisibilityEvaluator(questions, rules)

    assert [q.id for q in evaluator.missing_required({})] == ["gate"]
    assert [q.id for q in evaluator.missing_required({"gate": "yes"})] == ["detail"]
    assert evaluator.missing_required({"gate": "no"}) == []


def test_evaluate_all_covers_every_entity():
    sections = [Section(id="s1", title="Driving")]
    rules = [_rule("r1", SectionTarget("s1"), "q1", "yes")]
    verdicts = VisibilityEvaluator(_questions(), rules, sections).evaluate_all({"q1": "no"})

    assert set(verdicts) == {"s1", "q1", "q2", "q3", "q4"}
    assert verdicts["s1"].visible is False
    assert verdicts["q1"].visible is True
