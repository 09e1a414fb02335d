import random
import re
from typing import Any, Dict, List, Optional, Tuple

from .constants import DEBUG_LOGS, MULTIPLE_CHOICE, TRUE_FALSE, TRUE_FALSE_OPTIONS
from .parser import new_question_id, new_unique_id

BOOLEAN_TRUE = {"true", "yes"}
BOOLEAN_FALSE = {"false", "no"}

_WH_RE = re.compile(r"^(What|Which|How|Where|When|Why)\s+", flags=re.IGNORECASE)
_WH_AUX_RE = re.compile(
    r"^(What|Which|How|Where|When|Why)\s+(is|are|does|do|can|should|would)\s+",
    flags=re.IGNORECASE,
)
_YES_NO_RE = re.compile(r"^(is|are|can|does|do|will|should|was|were|has|have)\s+(.+)$", flags=re.IGNORECASE)

# Words that usually start the predicate after the subject of a yes/no question.
_PREDICATE_STARTERS = {
    "a", "an", "the", "able", "used", "required", "responsible", "enabled",
    "supported", "only", "always", "never", "not", "possible", "necessary",
}


class StatementRewriter:
    """Turns question stems into declarative statements.

    Callers depend only on this interface so the heuristic rules can be swapped for a
    proper sentence-transformation model.
    """

    def to_statement(self, stem: str, answer: str) -> str:
        raise NotImplementedError

    def to_assertion(self, stem: str) -> str:
        raise NotImplementedError


class HeuristicRewriter(StatementRewriter):
    def to_statement(self, stem: str, answer: str) -> str:
        if re.match(r"^Can you\s+", stem, flags=re.IGNORECASE):
            rest = re.sub(r"^Can you\s+", "", stem, flags=re.IGNORECASE)
            return f"You can {rest} {answer}"

        if re.match(r"^Is\s+", stem, flags=re.IGNORECASE):
            rest = re.sub(r"^Is\s+", "", stem, flags=re.IGNORECASE)
            return f"{rest} is {answer}"

        if _WH_RE.match(stem):
            rest = _WH_AUX_RE.sub("", stem)
            rest = _WH_RE.sub("", rest).strip()
            return f"{rest} is {answer}"

        return f"{stem} is {answer}"

    def to_assertion(self, stem: str) -> str:
        """Invert a yes/no question into the statement it asks about, without negating it."""
        if re.match(r"^Can you\s+", stem, flags=re.IGNORECASE):
            return "You can " + re.sub(r"^Can you\s+", "", stem, flags=re.IGNORECASE)

        match = _YES_NO_RE.match(stem)
        if not match:
            return stem

        aux = match.group(1).lower()
        words = match.group(2).split()
        split_at = 1
        for index in range(1, len(words)):
            if words[index].lower() in _PREDICATE_STARTERS:
                split_at = index
                break

        subject = " ".join(words[:split_at])
        predicate = " ".join(words[split_at:])
        return f"{subject} {aux} {predicate}".strip()


DEFAULT_REWRITER = HeuristicRewriter()


def _finish_sentence(text: str) -> str:
    text = re.sub(r"\s+", " ", text).strip()
    if not text:
        return text
    text = text[0].upper() + text[1:]
    if not text.endswith("."):
        text += "."
    return text


def boolean_polarity(answer: str) -> Optional[bool]:
    token = re.sub(r"[.,!]$", "", (answer or "").strip().lower())
    if token in BOOLEAN_TRUE:
        return True
    if token in BOOLEAN_FALSE:
        return False
    return None


def convert_mc_to_tf(
    mc_question: Dict[str, Any],
    difficulty: Optional[str] = None,
    rng: Optional[random.Random] = None,
    rewriter: Optional[StatementRewriter] = None,
) -> Dict[str, Any]:
    """Rewrite a Multiple Choice record as a single True/False assertion.

    Boolean-like correct answers (true/false/yes/no) keep their polarity and the stem is
    only turned into its declarative form. Otherwise a coin flip decides whether the
    statement asserts the correct option (TRUE) or a random wrong one (FALSE).
    """
    rng = rng or random.Random()
    rewriter = rewriter or DEFAULT_REWRITER

    options = mc_question.get("options") or {}
    correct_letter = str(mc_question.get("correct") or "").strip().upper()
    correct_text = str(options.get(correct_letter) or "")
    wrong_answers = [
        str(text) for letter, text in options.items() if letter != correct_letter and text and str(text).strip()
    ]

    stem = re.sub(r"\?$", "", str(mc_question.get("question") or "").strip())
    polarity = boolean_polarity(correct_text)

    if polarity is not None:
        make_true = polarity
        statement = rewriter.to_assertion(stem)
    else:
        make_true = rng.random() < 0.5
        if make_true:
            target = correct_text
        else:
            target = rng.choice(wrong_answers) if wrong_answers else "incorrect"
        statement = rewriter.to_statement(stem, target)

    return {
        **mc_question,
        "type": TRUE_FALSE,
        "difficulty": difficulty or mc_question.get("difficulty"),
        "question": _finish_sentence(statement),
        "options": dict(TRUE_FALSE_OPTIONS),
        "correct": "A" if make_true else "B",
        "originalMC": mc_question.get("question"),
    }


def backfill_true_false(
    questions: List[Dict[str, Any]],
    needed: int,
    rng: Optional[random.Random] = None,
    rewriter: Optional[StatementRewriter] = None,
) -> List[Dict[str, Any]]:
    """Convert up to `needed` live MC records into new True/False records.

    Each converted record is a new question, so it gets its own id and uniqueId.
    """
    if needed <= 0:
        return []

    rng = rng or random.Random()
    converted: List[Dict[str, Any]] = []
    for q in questions:
        if len(converted) >= needed:
            break
        if q.get("type") != MULTIPLE_CHOICE or q.get("status") == "rejected":
            continue
        tf = convert_mc_to_tf(q, q.get("difficulty"), rng=rng, rewriter=rewriter)
        tf["id"] = new_question_id()
        tf["uniqueId"] = new_unique_id()
        tf["status"] = "pending"
        converted.append(tf)

    if DEBUG_LOGS:
        print(f"[DEBUG][converter] backfill_requested={needed} converted={len(converted)}")

    return converted


def retype_surplus_mc(
    questions: List[Dict[str, Any]],
    count: int,
    rng: Optional[random.Random] = None,
    rewriter: Optional[StatementRewriter] = None,
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Take the last `count` live MC records out of a batch and rewrite them as True/False.

    Returns (remaining, converted). The MC version is never stored, so a converted record
    keeps its source's id and uniqueId.
    """
    if count <= 0:
        return list(questions), []

    rng = rng or random.Random()
    picked = set()
    for index in range(len(questions) - 1, -1, -1):
        if len(picked) >= count:
            break
        q = questions[index]
        if q.get("type") == MULTIPLE_CHOICE and q.get("status") != "rejected":
            picked.add(index)

    remaining = [q for i, q in enumerate(questions) if i not in picked]
    converted = [
        convert_mc_to_tf(questions[i], questions[i].get("difficulty"), rng=rng, rewriter=rewriter)
        for i in sorted(picked)
    ]

    if DEBUG_LOGS:
        print(f"[DEBUG][converter] retype_requested={count} converted={len(converted)}")

    return remaining, converted
