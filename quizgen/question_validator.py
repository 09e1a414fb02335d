import re
from typing import Any, Dict, List, Tuple

from .answer_validator import validate_answer
from .constants import DEBUG_LOGS, MIN_EXCERPT_CHARS, MISSING_URL_CONFIDENCE_CAP
from .url_validator import is_missing_url, validate_url


def validate_question(question: Dict[str, Any]) -> Dict[str, Any]:
    """Run URL, excerpt and answer checks and combine them into one decision.

    Missing or fabricated evidence (malformed URL, absent/short/numeric excerpt) is a
    critical failure. An empty URL and a weak answer/excerpt match only add warnings and
    lower the confidence.
    """
    warnings: List[str] = []
    critical = False
    confidence = 100

    url_result = validate_url(question.get("sourceUrl"))
    if not url_result["isValid"]:
        if is_missing_url(url_result):
            warnings.append(f"Warning: {url_result['warning']}")
            confidence = min(confidence, MISSING_URL_CONFIDENCE_CAP)
        else:
            critical = True
            warnings.append(f"Critical: {url_result['warning']}")
    elif url_result["warning"]:
        warnings.append(url_result["warning"])
        confidence = min(confidence, url_result["confidence"])

    excerpt = question.get("sourceExcerpt")
    if not excerpt or not isinstance(excerpt, str):
        critical = True
        warnings.append("Critical: Missing source excerpt")
    elif len(excerpt) < MIN_EXCERPT_CHARS:
        critical = True
        warnings.append(f'Critical: Source excerpt too short ("{excerpt}")')
    elif re.fullmatch(r"\d+", excerpt.strip()):
        critical = True
        warnings.append(f'Critical: Invalid source excerpt ("{excerpt}")')

    answer_result: Dict[str, Any] = {"isValid": True, "confidence": 100, "warning": None}
    if not critical:
        answer_result = validate_answer(question)
        if answer_result["warning"]:
            warnings.append(answer_result["warning"])
            confidence = min(confidence, answer_result["confidence"])
        elif not answer_result["isValid"]:
            confidence = min(confidence, answer_result["confidence"])

    return {
        "isValid": not critical,
        "isCriticalFailure": critical,
        "confidence": confidence,
        "warnings": warnings,
        "details": {"url": url_result, "answer": answer_result},
    }


def validate_questions_batch(questions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{**q, "_validation": validate_question(q)} for q in questions]


def split_by_validation(
    questions: List[Dict[str, Any]],
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]], int]:
    """Validate a batch and separate critical failures from the records worth keeping.

    Returns (kept, dropped, flagged_count) where flagged_count counts kept records that
    still carry warnings for a reviewer.
    """
    validated = validate_questions_batch(questions)
    kept = [q for q in validated if not q["_validation"]["isCriticalFailure"]]
    dropped = [q for q in validated if q["_validation"]["isCriticalFailure"]]
    flagged = sum(1 for q in kept if q["_validation"]["warnings"])

    if DEBUG_LOGS:
        print(f"[DEBUG][validator] checked={len(validated)} kept={len(kept)} dropped={len(dropped)} flagged={flagged}")
        for q in dropped:
            preview = (q.get("question") or "")[:60]
            reasons = "; ".join(q["_validation"]["warnings"])
            print(f"[DEBUG][validator] critical q_preview={preview} reasons={reasons}")

    return kept, dropped, flagged
