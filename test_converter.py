"""Tests for Multiple Choice to True/False conversion."""

import random

from quizgen.converter import (
    HeuristicRewriter,
    StatementRewriter,
    backfill_true_false,
    boolean_polarity,
    convert_mc_to_tf,
    retype_surplus_mc,
)


def _mc(question, options, correct, **extra):
    record = {
        "id": "q_mc",
        "uniqueId": "u-mc",
        "discipline": "Rendering",
        "type": "Multiple Choice",
        "difficulty": "Easy",
        "question": question,
        "options": options,
        "correct": correct,
        "status": "pending",
    }
    record.update(extra)
    return record


class _FixedRng:
    def __init__(self, value, pick=0):
        self.value = value
        self.pick = pick

    def random(self):
        return self.value

    def choice(self, seq):
        return seq[self.pick]


def test_yes_answer_keeps_polarity_and_drops_leading_is():
    q = _mc("Is Nanite a rendering system?", {"A": "Yes", "B": "No"}, "A")
    tf = convert_mc_to_tf(q, rng=random.Random(1))
    assert not tf["question"].startswith("Is")
    assert tf["question"] == "Nanite is a rendering system."
    assert tf["correct"] == "A"
    assert tf["options"] == {"A": "TRUE", "B": "FALSE"}
    assert tf["originalMC"] == "Is Nanite a rendering system?"


def test_no_answer_maps_to_false():
    q = _mc("Is Lumen a physics solver?", {"A": "Yes", "B": "No."}, "B")
    tf = convert_mc_to_tf(q)
    assert tf["correct"] == "B"
    assert tf["question"] == "Lumen is a physics solver."


def test_boolean_polarity():
    assert boolean_polarity(" TRUE. ") is True
    assert boolean_polarity("no") is False
    assert boolean_polarity("Nanite") is None


def test_true_branch_uses_correct_option():
    q = _mc(
        "What is the virtualized geometry system?",
        {"A": "Nanite", "B": "Lumen", "C": "Chaos", "D": "Niagara"},
        "A",
    )
    tf = convert_mc_to_tf(q, rng=_FixedRng(0.1))
    assert tf["correct"] == "A"
    assert tf["question"] == "The virtualized geometry system is Nanite."


def test_false_branch_uses_a_wrong_option():
    q = _mc(
        "Which system handles geometry virtualization?",
        {"A": "Nanite", "B": "Lumen", "C": "Chaos", "D": "Niagara"},
        "A",
    )
    tf = convert_mc_to_tf(q, rng=_FixedRng(0.9, pick=1))
    assert tf["correct"] == "B"
    assert tf["question"] == "System handles geometry virtualization is Chaos."


def test_can_you_rule():
    q = _mc("Can you paint foliage on landscapes with", {"A": "the Foliage tool", "B": "x"}, "A")
    tf = convert_mc_to_tf(q, rng=_FixedRng(0.0))
    assert tf["question"] == "You can paint foliage on landscapes with the Foliage tool."


def test_wh_rule_strips_question_word_and_auxiliary():
    q = _mc("What is the default renderer?", {"A": "Deferred", "B": "Forward"}, "A")
    assert convert_mc_to_tf(q, rng=_FixedRng(0.0))["question"] == "The default renderer is Deferred."


def test_wh_rule_strips_bare_question_word():
    q = _mc("Which system handles geometry virtualization?", {"A": "Nanite", "B": "Lumen"}, "A")
    tf = convert_mc_to_tf(q, rng=_FixedRng(0.0))
    assert tf["question"] == "System handles geometry virtualization is Nanite."
    assert tf["originalMC"] == "Which system handles geometry virtualization?"


def test_fallback_rule_appends_answer():
    q = _mc("The default renderer", {"A": "Deferred", "B": "Forward"}, "A")
    tf = convert_mc_to_tf(q, rng=_FixedRng(0.0))
    assert tf["question"] == "The default renderer is Deferred."


def test_difficulty_override_and_fields_carried():
    q = _mc("Is Chaos a physics engine?", {"A": "Yes", "B": "No"}, "A", sourceUrl="u", sourceExcerpt="e")
    tf = convert_mc_to_tf(q, difficulty="Hard")
    assert tf["difficulty"] == "Hard"
    assert tf["type"] == "True/False"
    assert tf["sourceUrl"] == "u"
    assert tf["uniqueId"] == "u-mc"


def test_custom_rewriter_is_used():
    class Upper(StatementRewriter):
        def to_statement(self, stem, answer):
            return f"{stem} -> {answer}".upper()

        def to_assertion(self, stem):
            return stem.upper()

    q = _mc("Pick the renderer", {"A": "Deferred", "B": "Forward"}, "A")
    tf = convert_mc_to_tf(q, rng=_FixedRng(0.0), rewriter=Upper())
    assert tf["question"] == "PICK THE RENDERER -> DEFERRED."


def test_heuristic_assertion_without_predicate_starter():
    assert HeuristicRewriter().to_assertion("Does Nanite support skeletal meshes") == "Nanite does support skeletal meshes"


def test_backfill_creates_new_records():
    items = [
        _mc("Which system handles geometry virtualization?", {"A": "Nanite", "B": "Lumen"}, "A", id="a"),
        _mc("Which system handles global illumination?", {"A": "Lumen", "B": "Nanite"}, "A", id="b", status="rejected"),
        _mc("Which system simulates particles?", {"A": "Niagara", "B": "Chaos"}, "A", id="c"),
        {"id": "d", "type": "True/False", "question": "x", "options": {}, "correct": "A"},
    ]
    converted = backfill_true_false(items, 5, rng=random.Random(7))
    assert len(converted) == 2
    for tf in converted:
        assert tf["type"] == "True/False"
        assert tf["id"] not in {"a", "c"}
        assert tf["uniqueId"] != "u-mc"
        assert tf["status"] == "pending"
    assert items[0]["type"] == "Multiple Choice"


def test_backfill_nothing_needed():
    assert backfill_true_false([_mc("Q?", {"A": "x", "B": "y"}, "A")], 0) == []


def test_retype_surplus_takes_the_last_live_mc_records():
    items = [
        _mc("Which system handles geometry virtualization?", {"A": "Nanite", "B": "Lumen"}, "A", id="a", uniqueId="u-a"),
        _mc("Which system simulates particles?", {"A": "Niagara", "B": "Chaos"}, "A", id="b", uniqueId="u-b"),
        _mc("Which system handles global illumination?", {"A": "Lumen", "B": "Nanite"}, "A", id="c", status="rejected"),
    ]
    remaining, converted = retype_surplus_mc(items, 1, rng=random.Random(2))
    assert [q["id"] for q in remaining] == ["a", "c"]
    assert len(converted) == 1
    assert converted[0]["id"] == "b"
    assert converted[0]["uniqueId"] == "u-b"
    assert converted[0]["type"] == "True/False"
    assert items[1]["type"] == "Multiple Choice"


def test_retype_surplus_nothing_requested():
    items = [_mc("Q?", {"A": "x", "B": "y"}, "A")]
    assert retype_surplus_mc(items, 0) == (items, [])
