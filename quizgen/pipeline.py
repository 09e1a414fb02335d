import os
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from . import llm
from .balancer import compute_quotas, enforce_quota, normalize_type, validate_generation
from .constants import BALANCED, DEBUG_LOGS, DEFAULT_BATCH_SIZE, MULTIPLE_CHOICE, TRUE_FALSE
from .converter import backfill_true_false, retype_surplus_mc
from .critique import apply_critique
from .dedup import filter_duplicate_questions
from .errors import NothingParsedError, PipelineError
from .parser import SAMPLE_CHARS, new_question_id, parse_questions, parse_questions_strict
from .prompt_builder import build_system_prompt, build_user_prompt, resolve_selection, select_rejected_examples
from .question_validator import split_by_validation
from .storage import create_run_dir, save_json
from .taxonomy import compute_coverage_gaps, get_merged_tags

__all__ = [
    "NothingParsedError",
    "PipelineError",
    "apply_translation",
    "critique_question",
    "process_generated_text",
    "run_generation",
    "translate_question",
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _stamp(questions: List[Dict[str, Any]], config: Dict[str, Any]) -> List[Dict[str, Any]]:
    language = config.get("language") or "English"
    added = _now_iso()
    stamped = []
    for q in questions:
        record = {**q, "language": language, "dateAdded": added}
        if config.get("tags") and not q.get("tags"):
            record["tags"] = list(config["tags"])
        stamped.append(record)
    return stamped


def _tf_plan(items: List[Dict[str, Any]], config: Dict[str, Any]) -> Tuple[int, int]:
    """How many live MC records to retype in place and how many T/F copies to append.

    MC records beyond the batch's MC quota are retyped first. Copies are appended only
    while the batch is still short of its total, so neither type quota is exceeded.
    """
    selection = resolve_selection(config)
    if selection["type"] != BALANCED:
        return 0, 0
    quotas = compute_quotas(config.get("batchSize") or DEFAULT_BATCH_SIZE, selection["difficulty"], selection["type"])
    live = [q for q in items if q.get("status") != "rejected"]
    tf_count = sum(1 for q in live if normalize_type(q.get("type")) == TRUE_FALSE)
    mc_count = sum(1 for q in live if normalize_type(q.get("type")) == MULTIPLE_CHOICE)

    tf_needed = max(0, quotas["tf"] - tf_count)
    in_place = min(tf_needed, max(0, mc_count - quotas["mc"]))
    room = max(0, quotas["total"] - len(live))
    appended = min(tf_needed - in_place, room, mc_count - in_place)
    return in_place, appended


def process_generated_text(
    raw_text: Optional[str],
    config: Dict[str, Any],
    history: Optional[List[Dict[str, Any]]] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """Turn one raw LLM reply into stored-ready records.

    Steps: strict parse, language stamping, deduplication against history, evidence
    validation (critical failures dropped), per-category quota enforcement, then an
    optional True/False backfill when a balanced batch came back short on T/F.
    """
    history = history or []

    parsed = parse_questions_strict(raw_text)
    stamped = _stamp(parsed, config)

    unique = filter_duplicate_questions(stamped, history)
    duplicates_removed = len(stamped) - len(unique)

    kept, dropped, flagged_count = split_by_validation(unique)

    items, quota_rejected = enforce_quota(kept, history)

    converted: List[Dict[str, Any]] = []
    if config.get("convertToTrueFalse", True):
        in_place, appended = _tf_plan(items, config)
        candidates: List[Dict[str, Any]] = []
        if in_place:
            items, candidates = retype_surplus_mc(items, in_place, rng=rng)
        if appended:
            candidates += backfill_true_false(items, appended, rng=rng)
        if candidates:
            candidates = filter_duplicate_questions(candidates, history, items)
            converted, rejected_extra = enforce_quota(candidates, history + items)
            quota_rejected += rejected_extra
            items = items + converted

    if DEBUG_LOGS:
        print(
            f"[DEBUG][pipeline] parsed={len(parsed)} duplicates_removed={duplicates_removed} "
            f"critical_dropped={len(dropped)} flagged={flagged_count} quota_rejected={quota_rejected} "
            f"converted={len(converted)} final={len(items)}"
        )

    return {
        "questions": items,
        "dropped": dropped,
        "parsed_count": len(parsed),
        "duplicates_removed": duplicates_removed,
        "critical_dropped": len(dropped),
        "flagged_count": flagged_count,
        "quota_rejected": quota_rejected,
        "converted_count": len(converted),
    }


def run_generation(
    config: Dict[str, Any],
    history: Optional[List[Dict[str, Any]]] = None,
    file_context: str = "",
    run_id: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    history = history or []
    config = dict(config)
    discipline = config.get("discipline") or "General"
    selection = resolve_selection(config)
    batch_size = int(config.get("batchSize") or DEFAULT_BATCH_SIZE)

    gate = validate_generation(discipline, selection["difficulty"], selection["type"], batch_size, history)
    if not gate["allowed"]:
        raise PipelineError(gate["reason"])
    if gate.get("forceType"):
        config["type"] = gate["forceType"]
        config["difficulty"] = selection["difficulty"]
    if gate["maxAllowed"] < batch_size:
        config["batchSize"] = gate["maxAllowed"]

    tags = config.get("tags") or get_merged_tags(discipline, config.get("customTags"))
    coverage_gaps = compute_coverage_gaps(history, discipline, tags)
    rejected = select_rejected_examples(history, discipline)

    system_prompt = build_system_prompt(config, file_context, rejected, coverage_gaps)
    user_prompt = build_user_prompt(config)

    if DEBUG_LOGS:
        print(
            f"[DEBUG][pipeline] generating discipline={discipline} batch_size={config.get('batchSize')} "
            f"rejected_examples={len(rejected)} coverage_gaps={len(coverage_gaps)} gate={gate['reason']!r}"
        )

    raw_text, grounding_sources = llm.generate_questions(
        system_prompt,
        user_prompt,
        temperature=config.get("temperature"),
        model=config.get("model"),
    )

    summary = process_generated_text(raw_text, config, history, rng=rng)

    if run_id:
        run_dir = create_run_dir(run_id)
        save_json(os.path.join(run_dir, "questions.json"), summary["questions"])
        save_json(
            os.path.join(run_dir, "summary.json"),
            {k: v for k, v in summary.items() if k not in {"questions", "dropped"}},
        )
        summary["run_id"] = run_id
        summary["run_dir"] = run_dir

    summary["grounding_sources"] = grounding_sources
    summary["gate"] = gate
    return summary


def apply_translation(
    original: Dict[str, Any],
    translated: Dict[str, Any],
    target_language: str,
) -> Dict[str, Any]:
    """Link a translated record to its original through the shared uniqueId."""
    return {
        **translated,
        "id": new_question_id(),
        "uniqueId": original.get("uniqueId"),
        "discipline": original.get("discipline"),
        "type": original.get("type"),
        "difficulty": original.get("difficulty"),
        "correct": original.get("correct"),
        "sourceUrl": original.get("sourceUrl"),
        "language": target_language,
        "status": "accepted",
        "translatedFrom": original.get("id"),
    }


def translate_question(question: Dict[str, Any], target_language: str) -> Dict[str, Any]:
    """Translate one accepted record; the copy shares its uniqueId and is accepted too."""
    if question.get("status") != "accepted":
        raise PipelineError(f"Only accepted questions can be translated (status={question.get('status')!r}).")
    if (question.get("_validation") or {}).get("isCriticalFailure"):
        raise PipelineError("Question has a critical validation failure and cannot be translated.")
    raw_text = llm.translate_row(question, target_language)
    parsed = parse_questions(raw_text)
    if not parsed:
        raise NothingParsedError((raw_text or "")[:SAMPLE_CHARS])
    return apply_translation(question, parsed[0], target_language)


def critique_question(question: Dict[str, Any], mode_label: Optional[str] = None) -> Dict[str, Any]:
    result = llm.generate_critique(question, mode_label)
    if result["score"] is None:
        raise PipelineError("Critique reply did not contain a score.")
    return apply_critique(question, result)
