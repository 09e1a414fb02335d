from typing import Any, Dict, Iterable, List, Optional

from .constants import DEBUG_LOGS, DEDUP_THRESHOLD
from .similarity import text_similarity


def _preview(q: Dict[str, Any]) -> str:
    return (q.get("question") or "")[:50] + "..."


def _is_similar(q: Dict[str, Any], pool: Iterable[Dict[str, Any]], threshold: float) -> bool:
    return any(text_similarity(existing.get("question"), q.get("question")) >= threshold for existing in pool)


def remove_duplicate_questions(
    questions: Optional[List[Dict[str, Any]]],
    threshold: float = DEDUP_THRESHOLD,
) -> List[Dict[str, Any]]:
    """Drop near-duplicates within one batch; the first occurrence wins."""
    if not questions:
        return []

    unique: List[Dict[str, Any]] = []
    removed: List[str] = []
    for q in questions:
        if _is_similar(q, unique, threshold):
            removed.append(_preview(q))
        else:
            unique.append(q)

    if removed and DEBUG_LOGS:
        print(f"[DEBUG][dedup] removed_intra_batch={len(removed)} items={removed}")

    return unique


def filter_duplicate_questions(
    new_items: Optional[List[Dict[str, Any]]],
    *existing_lists: Optional[List[Dict[str, Any]]],
    threshold: float = DEDUP_THRESHOLD,
) -> List[Dict[str, Any]]:
    """Drop new items that repeat an existing id or text from prior collections.

    Items are also compared with the new items already kept, so a batch that was not
    deduplicated upstream still comes out unique.
    """
    if not new_items:
        return []

    existing: List[Dict[str, Any]] = [q for lst in existing_lists for q in (lst or [])]
    existing_ids = {q.get("id") for q in existing if q.get("id") is not None}

    kept: List[Dict[str, Any]] = []
    removed: List[str] = []
    for item in new_items:
        if item.get("id") is not None and item.get("id") in existing_ids:
            removed.append(f"id={item.get('id')}")
            continue
        if _is_similar(item, existing, threshold) or _is_similar(item, kept, threshold):
            removed.append(_preview(item))
            continue
        kept.append(item)

    if removed and DEBUG_LOGS:
        print(f"[DEBUG][dedup] removed_existing={len(removed)} items={removed}")

    return kept
