"""Tests for turning raw model output into question records."""

import json

import pytest

from quizgen.errors import NothingParsedError, PipelineError
from quizgen.parser import (
    TABLE_HEADER,
    TABLE_SEPARATOR,
    parse_questions,
    parse_questions_strict,
    question_to_table_row,
    questions_to_table,
)

URL = "https://dev.epicgames.com/documentation/en-us/unreal-engine/nanite-virtualized-geometry-in-unreal-engine"
EXCERPT = "Nanite is Unreal Engine's virtualized geometry system enabling massive detail."

MC_ROW = (
    f"| 1 | Rendering | Multiple Choice | Easy | Which system handles geometry virtualization? | Nanite "
    f"| Nanite | Lumen | Chaos | Niagara | A | {URL} | {EXCERPT} | 90 |"
)
TF_ROW = (
    "| 2 | Rendering | True/False | Medium | <b>Lumen</b> supports hardware ray tracing. | TRUE "
    "| TRUE | FALSE | | | A | | Lumen can use hardware ray tracing on supported GPUs. | 80 |"
)


def test_table_row_maps_columns_by_position():
    parsed = parse_questions("\n".join([TABLE_HEADER, TABLE_SEPARATOR, MC_ROW]))
    assert len(parsed) == 1
    q = parsed[0]
    assert q["options"] == {"A": "Nanite", "B": "Lumen", "C": "Chaos", "D": "Niagara"}
    assert q["correct"] == "A"
    assert q["discipline"] == "Rendering"
    assert q["type"] == "Multiple Choice"
    assert q["difficulty"] == "Easy"
    assert q["sourceUrl"] == URL
    assert q["sourceExcerpt"] == EXCERPT
    assert q["qualityScore"] == 90
    assert q["status"] == "pending"
    assert q["critique"] is None and q["critiqueScore"] is None
    assert q["id"].startswith("q_")
    assert q["uniqueId"]


def test_header_and_separator_rows_produce_nothing():
    text = "\n".join([TABLE_HEADER, TABLE_SEPARATOR, "|:---|:---:|---|---|---|"])
    assert parse_questions(text) == []


def test_true_false_row_gets_fixed_options():
    parsed = parse_questions("\n".join([TABLE_HEADER, TABLE_SEPARATOR, TF_ROW]))
    assert len(parsed) == 1
    assert parsed[0]["type"] == "True/False"
    assert parsed[0]["options"] == {"A": "TRUE", "B": "FALSE"}


def test_dash_placeholder_cells_do_not_make_a_separator():
    row = TF_ROW.replace("| TRUE | FALSE | | |", "| TRUE | FALSE | --- | --- |")
    parsed = parse_questions("\n".join([TABLE_HEADER, TABLE_SEPARATOR, row]))
    assert len(parsed) == 1
    assert parsed[0]["type"] == "True/False"
    assert parsed[0]["question"] == "<b>Lumen</b> supports hardware ray tracing."


def test_row_with_dash_id_is_still_data():
    row = MC_ROW.replace("| 1 |", "| - |", 1)
    parsed = parse_questions("\n".join([TABLE_HEADER, TABLE_SEPARATOR, row]))
    assert len(parsed) == 1
    assert parsed[0]["options"]["D"] == "Niagara"


def test_rows_with_letter_options_are_skipped():
    bad = "| 1 | Rendering | Multiple Choice | Easy | Pick one of these options please | A | A | B | C | D | A | | excerpt text here | 50 |"
    parsed = parse_questions("\n".join([bad, MC_ROW]))
    assert len(parsed) == 1
    assert parsed[0]["options"]["A"] == "Nanite"


def test_rows_missing_question_or_answer_are_skipped():
    no_question = "| 1 | Rendering | Multiple Choice | Easy | | Nanite | Nanite | Lumen | Chaos | Niagara | A | | x | 1 |"
    no_letter = "| 1 | Rendering | Multiple Choice | Easy | Which one? | Nanite | Nanite | Lumen | Chaos | Niagara | | | x | 1 |"
    assert parse_questions("\n".join([no_question, no_letter])) == []


def test_full_width_pipes_are_accepted():
    parsed = parse_questions(MC_ROW.replace("|", "｜"))
    assert len(parsed) == 1
    assert parsed[0]["options"]["B"] == "Lumen"


def test_url_with_spaces_is_blanked():
    row = MC_ROW.replace(URL, "see the nanite docs")
    assert parse_questions(row)[0]["sourceUrl"] == ""


def test_missing_quality_score_is_none():
    row = MC_ROW.replace("| 90 |", "| |")
    assert parse_questions(row)[0]["qualityScore"] is None


def test_json_array_with_code_fence():
    payload = [
        {
            "Discipline": "Rendering",
            "Type": "Multiple Choice",
            "Difficulty": "Easy",
            "Question": "Which system handles geometry virtualization?",
            "OptionA": "Nanite",
            "OptionB": "Lumen",
            "OptionC": "Chaos",
            "OptionD": "Niagara",
            "CorrectLetter": "A",
            "SourceURL": URL,
            "SourceExcerpt": EXCERPT,
            "QualityScore": 90,
        },
        {
            "Discipline": "Rendering",
            "Type": "True/False",
            "Difficulty": "Hard",
            "Question": "Lumen supports hardware ray tracing.",
            "CorrectLetter": "A",
            "QualityScore": "85/100",
        },
    ]
    text = "```json\n" + json.dumps(payload) + "\n```"
    parsed = parse_questions(text)
    assert len(parsed) == 2
    assert parsed[0]["options"]["D"] == "Niagara"
    assert parsed[0]["qualityScore"] == 90
    assert parsed[1]["options"] == {"A": "TRUE", "B": "FALSE"}
    assert parsed[1]["qualityScore"] == 85


def test_single_json_object():
    text = json.dumps({"Question": "Which system renders hair?", "CorrectLetter": "B", "OptionA": "Groom", "OptionB": "Hair"})
    parsed = parse_questions(text)
    assert len(parsed) == 1
    assert parsed[0]["correct"] == "B"
    assert parsed[0]["discipline"] == "General"


def test_broken_json_falls_back_to_table():
    text = "[{\"Question\": \"unterminated\"\n" + MC_ROW
    parsed = parse_questions(text)
    assert len(parsed) == 1
    assert parsed[0]["options"]["A"] == "Nanite"


def test_duplicate_rows_are_collapsed():
    parsed = parse_questions("\n".join([MC_ROW, MC_ROW.replace("| 1 |", "| 2 |", 1)]))
    assert len(parsed) == 1


def test_empty_input():
    assert parse_questions("") == []
    assert parse_questions(None) == []


def test_strict_parse_raises_with_sample():
    text = "I'm sorry, I cannot produce questions. " * 20
    with pytest.raises(NothingParsedError) as info:
        parse_questions_strict(text)
    assert isinstance(info.value, PipelineError)
    assert info.value.sample == text[:300]


def test_table_round_trip_keeps_options_and_letter():
    original = parse_questions(MC_ROW)[0]
    again = parse_questions(questions_to_table([original]))[0]
    assert again["options"] == original["options"]
    assert again["correct"] == original["correct"]
    assert again["sourceUrl"] == original["sourceUrl"]


def test_table_row_escapes_pipes():
    row = question_to_table_row({"question": "A | B?", "options": {"A": "x"}, "correct": "A"})
    assert row.count("|") == 15
