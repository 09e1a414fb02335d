import re
from typing import Any, Dict, List, Optional

from .constants import ANSWER_CONFIDENT_FROM, ANSWER_NOT_FOUND_BELOW, ANSWER_VALID_FROM

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare",
        "to", "of", "in", "for", "on", "with", "at", "by", "from", "as",
        "into", "through", "during", "before", "after", "above", "below",
        "between", "under", "again", "further", "then", "once", "here",
        "there", "when", "where", "why", "how", "all", "each", "few", "more",
        "most", "other", "some", "such", "no", "not", "only", "own", "same",
        "so", "than", "too", "very", "just", "and", "but", "or", "because",
        "until", "while", "although", "this", "that", "these", "those",
        "used", "use", "using", "uses", "which", "what", "it", "its",
    }
)


def extract_key_terms(text: Optional[str]) -> List[str]:
    if not text:
        return []

    lowered = re.sub(r"<[^>]+>", "", str(text).lower())
    lowered = re.sub(r"[^a-z0-9\s]", " ", lowered)

    terms: List[str] = []
    for word in lowered.split():
        if len(word) > 2 and word not in STOP_WORDS and word not in terms:
            terms.append(word)
    return terms


def correct_answer_text(question: Dict[str, Any]) -> str:
    options = question.get("options") or {}
    letter = str(question.get("correct") or "").strip().upper()
    return str(options.get(letter) or "")


def validate_answer(question: Dict[str, Any]) -> Dict[str, Any]:
    """Score how well the correct option is supported by the source excerpt.

    Confidence is the percentage of the answer's key terms found inside the excerpt.
    Below ANSWER_NOT_FOUND_BELOW the answer is reported as not found, below
    ANSWER_VALID_FROM it is invalid with low confidence, below ANSWER_CONFIDENT_FROM it is
    valid but flagged for verification.
    """
    letter = str(question.get("correct") or "").strip()
    excerpt = question.get("sourceExcerpt") or ""

    if not letter or not excerpt:
        return {
            "isValid": False,
            "confidence": 0,
            "warning": "Missing correct letter or source excerpt",
            "details": {"correctLetter": letter, "hasExcerpt": bool(excerpt)},
        }

    answer = correct_answer_text(question)
    if not answer:
        return {
            "isValid": False,
            "confidence": 0,
            "warning": f"No option found for letter {letter}",
            "details": {"correctLetter": letter, "options": question.get("options") or {}},
        }

    answer_terms = extract_key_terms(answer)
    excerpt_text = str(excerpt).lower()
    matched = [term for term in answer_terms if term in excerpt_text]

    ratio = len(matched) / len(answer_terms) if answer_terms else 0.0
    confidence = int(round(ratio * 100))

    is_valid = confidence >= ANSWER_VALID_FROM
    warning = None
    if confidence < ANSWER_NOT_FOUND_BELOW:
        warning = f'Answer "{answer}" not found in source excerpt'
        is_valid = False
    elif confidence < ANSWER_VALID_FROM:
        warning = f"Low confidence: only {len(matched)}/{len(answer_terms)} key terms matched"
    elif confidence < ANSWER_CONFIDENT_FROM:
        warning = "Moderate confidence: verify answer matches source"

    return {
        "isValid": is_valid,
        "confidence": confidence,
        "warning": warning,
        "details": {
            "correctAnswer": answer,
            "correctLetter": letter,
            "answerTerms": answer_terms,
            "matchedTerms": matched,
            "totalTerms": len(answer_terms),
        },
    }
