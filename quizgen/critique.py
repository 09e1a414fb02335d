import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .constants import DEBUG_LOGS, MAX_CRITIQUE_ATTEMPTS, PASSING_SCORE

_SCORE_RE = re.compile(r"SCORE:\s*(\d+)", flags=re.IGNORECASE)
_FENCE_RE = re.compile(r"```[a-z]*\n?", flags=re.IGNORECASE)


def _clamp_score(value: Any) -> Optional[int]:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return None
    return max(0, min(100, score))


def parse_critique_response(raw: Optional[str]) -> Dict[str, Any]:
    """Read a critic reply into {score, critique, rewrite, changes}.

    JSON replies are preferred; free text falls back to a ``SCORE: n`` line with the
    whole reply kept as the critique.
    """
    text = _FENCE_RE.sub("", raw or "").replace("```", "").strip()
    if not text:
        return {"score": None, "critique": "", "rewrite": None, "changes": None}

    match = re.search(r"\{.*\}", text, flags=re.DOTALL)
    if match:
        try:
            data = json.loads(match.group(0))
        except ValueError:
            data = None
        if isinstance(data, dict):
            rewrite = data.get("rewrite")
            return {
                "score": _clamp_score(data.get("score")),
                "critique": str(data.get("critique") or ""),
                "rewrite": rewrite if isinstance(rewrite, dict) else None,
                "changes": data.get("changes"),
            }

    score_match = _SCORE_RE.search(text)
    return {
        "score": _clamp_score(score_match.group(1)) if score_match else None,
        "critique": text,
        "rewrite": None,
        "changes": None,
    }


def attempts_remaining(question: Dict[str, Any], max_attempts: int = MAX_CRITIQUE_ATTEMPTS) -> int:
    return max(0, max_attempts - int(question.get("critiqueAttempts") or 0))


def apply_critique(
    question: Dict[str, Any],
    result: Dict[str, Any],
    max_attempts: int = MAX_CRITIQUE_ATTEMPTS,
    passing_score: int = PASSING_SCORE,
) -> Dict[str, Any]:
    """Store a critique on a copy of the record, auto-rejecting after too many low scores."""
    attempts = int(question.get("critiqueAttempts") or 0) + 1
    updated = {
        **question,
        "critique": result.get("critique"),
        "critiqueScore": result.get("score"),
        "suggestedRewrite": result.get("rewrite"),
        "rewriteChanges": result.get("changes"),
        "critiqueAttempts": attempts,
    }

    score = result.get("score")
    if score is not None and score < passing_score and attempts >= max_attempts:
        updated["status"] = "rejected"
        updated["rejectionReason"] = "low_score_after_retries"
        updated["rejectedAt"] = datetime.now(timezone.utc).isoformat()
        if DEBUG_LOGS:
            print(
                f"[DEBUG][critique] auto_rejected id={question.get('id')} "
                f"score={score} attempts={attempts}/{max_attempts}"
            )

    return updated
