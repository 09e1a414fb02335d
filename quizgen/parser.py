import json
import re
import uuid
from typing import Any, Dict, List, Optional

from .constants import DEBUG_LOGS, MULTIPLE_CHOICE, TRUE_FALSE, TRUE_FALSE_OPTIONS
from .dedup import remove_duplicate_questions
from .errors import NothingParsedError

TABLE_COLUMNS = [
    "ID",
    "Discipline",
    "Type",
    "Difficulty",
    "Question",
    "Answer",
    "OptionA",
    "OptionB",
    "OptionC",
    "OptionD",
    "CorrectLetter",
    "SourceURL",
    "SourceExcerpt",
    "QualityScore",
]
TABLE_HEADER = "| " + " | ".join(TABLE_COLUMNS) + " |"
TABLE_SEPARATOR = "|" + "---|" * len(TABLE_COLUMNS)

SAMPLE_CHARS = 300

_FENCE_RE = re.compile(r"```[a-z]*\n?", flags=re.IGNORECASE)
_SEPARATOR_CELL_RE = re.compile(r"^:?-+:?$")
_HEADER_RE = re.compile(r"\|\s*ID\s*\|", flags=re.IGNORECASE)
_SINGLE_LETTER_RE = re.compile(r"^[A-D]$", flags=re.IGNORECASE)


def new_question_id() -> str:
    return f"q_{uuid.uuid4().hex[:12]}"


def new_unique_id() -> str:
    return str(uuid.uuid4())


def _clean_text(text: str) -> str:
    return _FENCE_RE.sub("", text).replace("```", "").strip()


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_score(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    match = re.search(r"\d+", str(value))
    return int(match.group(0)) if match else None


def _question_type(raw_type: Any) -> str:
    return TRUE_FALSE if "true" in _to_str(raw_type).lower() else MULTIPLE_CHOICE


def _make_record(
    discipline: str,
    qtype: str,
    difficulty: str,
    question: str,
    options: Dict[str, str],
    correct: str,
    source_url: str,
    source_excerpt: str,
    quality_score: Optional[int],
) -> Dict[str, Any]:
    return {
        "id": new_question_id(),
        "uniqueId": new_unique_id(),
        "discipline": discipline or "General",
        "type": qtype,
        "difficulty": difficulty or "Easy",
        "question": question,
        "options": options,
        "correct": correct,
        "sourceUrl": source_url,
        "sourceExcerpt": source_excerpt,
        "qualityScore": quality_score,
        "status": "pending",
        "critique": None,
        "critiqueScore": None,
    }


def _parse_json_items(data: Any) -> List[Dict[str, Any]]:
    items = data if isinstance(data, list) else [data]
    parsed: List[Dict[str, Any]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        qtype = _question_type(item.get("Type"))
        if qtype == TRUE_FALSE:
            options = dict(TRUE_FALSE_OPTIONS)
        else:
            options = {letter: _to_str(item.get(f"Option{letter}")) for letter in "ABCD"}
        parsed.append(
            _make_record(
                discipline=_to_str(item.get("Discipline")),
                qtype=qtype,
                difficulty=_to_str(item.get("Difficulty")),
                question=_to_str(item.get("Question")),
                options=options,
                correct=_to_str(item.get("CorrectLetter")),
                source_url=_to_str(item.get("SourceURL")),
                source_excerpt=_to_str(item.get("SourceExcerpt")),
                quality_score=_parse_score(item.get("QualityScore")),
            )
        )
    return parsed


def _is_separator_line(line: str) -> bool:
    cells = [c.strip() for c in line.split("|") if c.strip()]
    return bool(cells) and all(_SEPARATOR_CELL_RE.match(c) for c in cells)


def _is_data_line(line: str) -> bool:
    trimmed = line.strip()
    if not trimmed:
        return False
    if trimmed.count("|") < 4:
        return False
    if _is_separator_line(trimmed):
        return False
    if _HEADER_RE.search(trimmed):
        return False
    return True


def _split_row(line: str) -> List[str]:
    cols = [c.strip() for c in line.split("|")]
    if cols and cols[0] == "":
        cols.pop(0)
    if cols and cols[-1] == "":
        cols.pop()
    return cols


def _parse_table_row(cols: List[str]) -> Optional[Dict[str, Any]]:
    def col(index: int) -> str:
        return cols[index] if index < len(cols) else ""

    question = col(4)
    correct = col(10)
    if not question or not correct or "---" in question:
        return None

    qtype = _question_type(col(2))
    if qtype == TRUE_FALSE:
        options = dict(TRUE_FALSE_OPTIONS)
    else:
        options = {"A": col(6), "B": col(7), "C": col(8), "D": col(9)}
        if any(opt and _SINGLE_LETTER_RE.match(opt.strip()) for opt in options.values()):
            if DEBUG_LOGS:
                print(f"[DEBUG][parser] rejected_single_letter_option q_preview={question[:50]}")
            return None

    source_url = col(11)
    if " " in source_url:
        source_url = ""

    return _make_record(
        discipline=col(1),
        qtype=qtype,
        difficulty=col(3),
        question=question,
        options=options,
        correct=correct,
        source_url=source_url,
        source_excerpt=col(12),
        quality_score=_parse_score(col(13)) if col(13) else None,
    )


def _parse_table(text: str) -> List[Dict[str, Any]]:
    parsed: List[Dict[str, Any]] = []
    for line in text.replace("｜", "|").split("\n"):
        if not _is_data_line(line):
            continue
        record = _parse_table_row(_split_row(line))
        if record is not None:
            parsed.append(record)
    return parsed


def parse_questions(text: Optional[str]) -> List[Dict[str, Any]]:
    """Turn raw model output into question records.

    JSON (object or array) is tried first when the fence-stripped text looks like JSON;
    anything else, including JSON that fails to decode, goes through the 14-column
    Markdown table reader. Both paths end with intra-batch deduplication.
    """
    if not text:
        return []

    cleaned = _clean_text(text)

    if cleaned.startswith("[") or cleaned.startswith("{"):
        try:
            parsed = _parse_json_items(json.loads(cleaned))
            if parsed:
                return remove_duplicate_questions(parsed)
        except ValueError as exc:
            if DEBUG_LOGS:
                print(f"[DEBUG][parser] json_parse_failed err={exc} falling_back=table")

    return remove_duplicate_questions(_parse_table(cleaned))


def parse_questions_strict(text: Optional[str]) -> List[Dict[str, Any]]:
    parsed = parse_questions(text)
    if not parsed:
        raise NothingParsedError((text or "")[:SAMPLE_CHARS])
    return parsed


def _cell(value: Any) -> str:
    return _to_str(value).replace("|", "/").replace("\n", " ")


def question_to_table_row(question: Dict[str, Any], row_id: int = 1) -> str:
    options = question.get("options") or {}
    letter = _to_str(question.get("correct")).upper()
    score = question.get("qualityScore")
    cells = [
        str(row_id),
        question.get("discipline"),
        question.get("type"),
        question.get("difficulty"),
        question.get("question"),
        options.get(letter, ""),
        options.get("A", ""),
        options.get("B", ""),
        options.get("C", ""),
        options.get("D", ""),
        question.get("correct"),
        question.get("sourceUrl"),
        question.get("sourceExcerpt"),
        "" if score is None else score,
    ]
    return "| " + " | ".join(_cell(c) for c in cells) + " |"


def questions_to_table(questions: List[Dict[str, Any]]) -> str:
    rows = [question_to_table_row(q, i + 1) for i, q in enumerate(questions)]
    return "\n".join([TABLE_HEADER, TABLE_SEPARATOR] + rows)
