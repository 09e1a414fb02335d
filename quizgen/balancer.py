import math
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from .constants import (
    BALANCED,
    DEBUG_LOGS,
    DEFAULT_BATCH_SIZE,
    DIFFICULTIES,
    IMBALANCE_THRESHOLD,
    MULTIPLE_CHOICE,
    QUESTION_TYPES,
    TARGET_PER_CATEGORY,
    TARGET_TOTAL,
    TRUE_FALSE,
)

TYPE_ALIASES = {
    "mc": MULTIPLE_CHOICE,
    "multiple choice": MULTIPLE_CHOICE,
    "multiplechoice": MULTIPLE_CHOICE,
    "t/f": TRUE_FALSE,
    "tf": TRUE_FALSE,
    "true/false": TRUE_FALSE,
    "true false": TRUE_FALSE,
    "balanced": BALANCED,
    "all": BALANCED,
    "": BALANCED,
}


def normalize_type(value: Optional[str]) -> str:
    key = (value or "").strip().lower()
    if key in TYPE_ALIASES:
        return TYPE_ALIASES[key]
    return TRUE_FALSE if "true" in key else MULTIPLE_CHOICE


def normalize_difficulty(value: Optional[str]) -> str:
    key = (value or "").strip().capitalize()
    if key in DIFFICULTIES or key == BALANCED:
        return key
    return BALANCED if not key else "Easy"


def split_selector(selector: str) -> Tuple[str, str]:
    """Split a combined selector such as "Easy MC" or "Balanced All"."""
    parts = (selector or "").strip().split(" ", 1)
    difficulty = normalize_difficulty(parts[0] if parts else "")
    qtype = normalize_type(parts[1] if len(parts) > 1 else "")
    return difficulty, qtype


def _round_up(value: int, multiple: int) -> int:
    return int(math.ceil(value / multiple)) * multiple


def _even_split(total: int, buckets: int) -> List[int]:
    base = total // buckets
    counts = [base] * buckets
    counts[-1] += total - base * buckets
    return counts


def compute_quotas(batch_size: Any, difficulty: str, qtype: str) -> Dict[str, Any]:
    """Exact per-difficulty and per-type targets for one generation batch.

    A balanced difficulty rounds the batch up to a multiple of 6 (3 difficulties x 2
    types) whatever the type selector; a balanced type on a fixed difficulty rounds up to
    a multiple of 2. Remainders go to Hard and to True/False. The result depends only on
    the three inputs.
    """
    try:
        total = int(batch_size)
    except (TypeError, ValueError):
        total = DEFAULT_BATCH_SIZE
    total = max(1, total)

    difficulty = normalize_difficulty(difficulty)
    qtype = normalize_type(qtype)

    if difficulty == BALANCED:
        total = _round_up(total, 6)
        per_difficulty = dict(zip(DIFFICULTIES, _even_split(total, len(DIFFICULTIES))))
    else:
        if qtype == BALANCED:
            total = _round_up(total, 2)
        per_difficulty = {d: (total if d == difficulty else 0) for d in DIFFICULTIES}

    cells: Dict[Tuple[str, str], int] = {}
    for diff, count in per_difficulty.items():
        if qtype == BALANCED:
            mc, tf = _even_split(count, 2)
        elif qtype == TRUE_FALSE:
            mc, tf = 0, count
        else:
            mc, tf = count, 0
        cells[(diff, MULTIPLE_CHOICE)] = mc
        cells[(diff, TRUE_FALSE)] = tf

    mc_total = sum(n for (_, t), n in cells.items() if t == MULTIPLE_CHOICE)
    tf_total = sum(n for (_, t), n in cells.items() if t == TRUE_FALSE)

    return {
        "total": total,
        "difficulty": difficulty,
        "type": qtype,
        "easy": per_difficulty["Easy"],
        "medium": per_difficulty["Medium"],
        "hard": per_difficulty["Hard"],
        "mc": mc_total,
        "tf": tf_total,
        "cells": cells,
    }


def _is_live(q: Dict[str, Any]) -> bool:
    return q.get("status") != "rejected"


def _type_of(q: Dict[str, Any]) -> str:
    return normalize_type(q.get("type"))


def count_by_category(questions: List[Dict[str, Any]]) -> Dict[Tuple[str, str, str], int]:
    counts: Dict[Tuple[str, str, str], int] = defaultdict(int)
    for q in questions or []:
        if not _is_live(q):
            continue
        key = (q.get("discipline") or "Unknown", q.get("difficulty") or "Unknown", _type_of(q))
        counts[key] += 1
    return dict(counts)


def get_quota_status(questions: List[Dict[str, Any]], discipline: str) -> Dict[str, Any]:
    counts = count_by_category(questions)
    status: Dict[str, Any] = {}
    for diff in DIFFICULTIES:
        for qtype in QUESTION_TYPES:
            current = counts.get((discipline, diff, qtype), 0)
            status[f"{diff} {qtype}"] = {
                "current": current,
                "target": TARGET_PER_CATEGORY,
                "remaining": max(0, TARGET_PER_CATEGORY - current),
                "isFull": current >= TARGET_PER_CATEGORY,
                "percentage": round(current / TARGET_PER_CATEGORY * 100),
            }

    total_current = sum(1 for q in questions or [] if _is_live(q))
    status["TOTAL"] = {
        "current": total_current,
        "target": TARGET_TOTAL,
        "remaining": max(0, TARGET_TOTAL - total_current),
        "isFull": total_current >= TARGET_TOTAL,
        "percentage": round(total_current / TARGET_TOTAL * 100),
    }
    return status


def validate_generation(
    discipline: str,
    difficulty: str,
    qtype: str,
    batch_size: int,
    questions: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """Decide whether a batch may be generated given what is already stored."""
    live = [q for q in questions or [] if _is_live(q)]
    if len(live) >= TARGET_TOTAL:
        return {
            "allowed": False,
            "reason": f"Total quota reached ({TARGET_TOTAL} questions). No more generation allowed.",
            "maxAllowed": 0,
        }

    difficulty = normalize_difficulty(difficulty)
    qtype = normalize_type(qtype)
    counts = count_by_category(live)
    difficulties = DIFFICULTIES if difficulty == BALANCED else [difficulty]
    types = QUESTION_TYPES if qtype == BALANCED else [qtype]

    remaining = sum(
        max(0, TARGET_PER_CATEGORY - counts.get((discipline, d, t), 0)) for d in difficulties for t in types
    )
    if remaining == 0:
        label = f"{difficulty} {qtype}"
        return {
            "allowed": False,
            "reason": f'Category "{label}" is full ({TARGET_PER_CATEGORY}/{TARGET_PER_CATEGORY}). Select a different difficulty.',
            "maxAllowed": 0,
        }

    if difficulty != BALANCED:
        mc_count = counts.get((discipline, difficulty, MULTIPLE_CHOICE), 0)
        tf_count = counts.get((discipline, difficulty, TRUE_FALSE), 0)
        if abs(mc_count - tf_count) > IMBALANCE_THRESHOLD:
            needs_more = MULTIPLE_CHOICE if mc_count < tf_count else TRUE_FALSE
            has_more = TRUE_FALSE if needs_more == MULTIPLE_CHOICE else MULTIPLE_CHOICE
            if qtype == has_more:
                return {
                    "allowed": False,
                    "reason": (
                        f"Type imbalance detected at {difficulty}: {mc_count} MC vs {tf_count} T/F. "
                        f"Generate {needs_more} questions first to restore balance."
                    ),
                    "maxAllowed": 0,
                    "forceType": needs_more,
                }
            return {
                "allowed": True,
                "reason": f"Imbalance detected ({mc_count} MC, {tf_count} T/F). Prioritizing {needs_more}.",
                "maxAllowed": batch_size,
                "forceType": needs_more,
                "warning": True,
            }

    if batch_size > remaining:
        return {
            "allowed": True,
            "reason": f'Only {remaining} questions remaining for "{difficulty} {qtype}". Batch size reduced.',
            "maxAllowed": remaining,
            "warning": True,
        }

    return {"allowed": True, "reason": "Generation allowed", "maxAllowed": batch_size}


def enforce_quota(
    new_items: List[Dict[str, Any]],
    history: Optional[List[Dict[str, Any]]] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """Reject new records that would push their category past TARGET_PER_CATEGORY.

    Returns new record dicts (inputs untouched) and the number that were rejected.
    """
    counts = count_by_category(history or [])
    result: List[Dict[str, Any]] = []
    rejected = 0
    for item in new_items:
        if not _is_live(item):
            result.append(item)
            continue
        key = (item.get("discipline") or "Unknown", item.get("difficulty") or "Unknown", _type_of(item))
        if counts.get(key, 0) >= TARGET_PER_CATEGORY:
            result.append({**item, "status": "rejected", "rejectionReason": "quota_exceeded"})
            rejected += 1
            continue
        counts[key] = counts.get(key, 0) + 1
        result.append(item)

    if rejected and DEBUG_LOGS:
        print(f"[DEBUG][quota] rejected_over_quota={rejected} target_per_category={TARGET_PER_CATEGORY}")

    return result, rejected
