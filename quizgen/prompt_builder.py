import json
from typing import Any, Dict, List, Optional

from .balancer import compute_quotas, normalize_difficulty, normalize_type, split_selector
from .constants import BALANCED, DEFAULT_BATCH_SIZE, MAX_REJECTED_EXAMPLES, MULTIPLE_CHOICE, TRUE_FALSE
from .parser import TABLE_HEADER, TABLE_SEPARATOR, question_to_table_row

REJECTION_REASONS: Dict[str, str] = {
    "too_easy": "Too Easy",
    "too_hard": "Too Difficult",
    "incorrect": "Incorrect Answer",
    "unclear": "Unclear Question",
    "duplicate": "Duplicate",
    "poor_quality": "Poor Quality",
    "bad_source": "Bad/Missing Source",
    "hallucination": "Hallucinated Feature or Fact",
    "low_score_after_retries": "Low Critique Score After Retries",
    "quota_exceeded": "Category Quota Exceeded",
    "other": "Other",
}

STYLE_EXAMPLES = [
    {
        "verdict": "GOOD",
        "question": "A level uses <b>World Partition</b>. Which feature loads grid cells around the player at runtime?",
        "why": "Short scenario, one clear task, plausible distractors.",
    },
    {
        "verdict": "GOOD",
        "question": "<b>Nanite</b> meshes do not need manually authored LODs.",
        "why": "True/False with exactly one assertion.",
    },
    {
        "verdict": "BAD",
        "question": "What is Nanite?",
        "why": "Trivial definition question with no scenario.",
    },
    {
        "verdict": "BAD",
        "question": "Lumen supports hardware ray tracing and Nanite requires DirectX 12.",
        "why": "True/False that joins two assertions.",
    },
    {
        "verdict": "BAD",
        "question": "Which option is correct? A) A B) B C) C D) D",
        "why": "Options repeat the option letters instead of real answers.",
    },
]


def reason_label(reason: Optional[str]) -> str:
    if not reason:
        return "Rejected"
    return REJECTION_REASONS.get(reason, reason.replace("_", " "))


def resolve_selection(config: Dict[str, Any]) -> Dict[str, Any]:
    """Read difficulty and type from config, accepting the combined "Easy MC" form."""
    difficulty = str(config.get("difficulty") or BALANCED)
    qtype = config.get("type")
    if qtype is None and " " in difficulty.strip():
        difficulty, qtype = split_selector(difficulty)
    return {"difficulty": normalize_difficulty(difficulty), "type": normalize_type(qtype)}


def select_rejected_examples(
    history: Optional[List[Dict[str, Any]]],
    discipline: str,
    limit: int = MAX_REJECTED_EXAMPLES,
) -> List[Dict[str, Any]]:
    rejected = [
        q for q in history or [] if q.get("status") == "rejected" and q.get("discipline") == discipline
    ]
    rejected.sort(key=lambda q: str(q.get("rejectedAt") or q.get("dateAdded") or ""), reverse=True)
    return rejected[:limit]


def _type_label(qtype: str) -> str:
    if qtype == MULTIPLE_CHOICE:
        return "Multiple Choice ONLY"
    if qtype == TRUE_FALSE:
        return "True/False ONLY"
    return "Multiple Choice and True/False"


def _quota_section(quotas: Dict[str, Any]) -> List[str]:
    lines = ["## Batch Targets"]
    if quotas["difficulty"] == BALANCED:
        lines.append(
            f"Generate exactly {quotas['total']} questions: {quotas['easy']} Easy, "
            f"{quotas['medium']} Medium and {quotas['hard']} Hard."
        )
    else:
        lines.append(f"Generate exactly {quotas['total']} questions of difficulty: {quotas['difficulty']}.")
    lines.append(f"Type split: {quotas['mc']} Multiple Choice and {quotas['tf']} True/False.")
    for (difficulty, qtype), count in quotas["cells"].items():
        if count:
            lines.append(f"- {difficulty} / {qtype}: {count}")
    lines += [
        "",
        "## Verification Checklist (check every item before answering)",
        f"- [ ] The table has exactly {quotas['total']} data rows.",
        f"- [ ] Easy={quotas['easy']}, Medium={quotas['medium']}, Hard={quotas['hard']}.",
        f"- [ ] Multiple Choice={quotas['mc']}, True/False={quotas['tf']}.",
        "- [ ] Every True/False row uses OptionA=TRUE, OptionB=FALSE and states a single assertion.",
        "- [ ] No option text is just a letter (A, B, C or D).",
        "- [ ] CorrectLetter names an option that exists.",
        "- [ ] SourceExcerpt is a verbatim sentence that supports the correct answer.",
    ]
    return lines


def _rejected_section(examples: List[Dict[str, Any]]) -> List[str]:
    lines = ["## Rejected Examples (do NOT repeat these mistakes)"]
    for q in examples:
        lines.append(f'- "{q.get("question", "")}" -> Reason: {reason_label(q.get("rejectionReason"))}')
        if q.get("critique"):
            lines.append(f"  Reviewer note: {str(q['critique'])[:200]}")
    return lines


def build_system_prompt(
    config: Dict[str, Any],
    file_context: str = "",
    rejected_examples: Optional[List[Dict[str, Any]]] = None,
    coverage_gaps: Optional[List[str]] = None,
) -> str:
    discipline = config.get("discipline") or "General"
    language = config.get("language") or "English"
    selection = resolve_selection(config)
    quotas = compute_quotas(config.get("batchSize") or DEFAULT_BATCH_SIZE, selection["difficulty"], selection["type"])

    lines = [
        "## Universal UE5 Scenario-Based Question Generator",
        "Role: You are a senior Unreal Engine 5 technical writer. Create short, clear, scenario-driven "
        "questions in Simplified Technical English (STE).",
        "**FORMATTING INSTRUCTION:** Enclose key technical concepts in HTML bold tags (e.g. <b>Nanite</b>) "
        "in the Question and Answer columns.",
        f"Discipline: {discipline}",
        f"Target Language: {language}",
        f"Question Type: {_type_label(selection['type'])}",
        f"**LANGUAGE STRICTNESS:** Output ONLY in {language}. Do NOT provide bilingual text.",
        "",
        "## Output Format",
        "Return a single Markdown table with this exact header and one row per question:",
        TABLE_HEADER,
        "- ID starts at 1.",
        "- Difficulty levels: Easy / Medium / Hard.",
        "- For True/False questions: OptionA=TRUE, OptionB=FALSE, OptionC and OptionD empty. CorrectLetter=A/B.",
        "- QualityScore is your own 0-100 estimate of the question's quality.",
        "- **TYPE RULE:** If Question Type is 'Multiple Choice ONLY', do NOT generate True/False questions. "
        "If Question Type is 'True/False ONLY', do NOT generate Multiple Choice questions.",
        "",
    ]
    lines += _quota_section(quotas)

    tags = config.get("tags") or []
    if tags:
        lines += ["", "## Topic Tags", "Spread questions across these tags: " + ", ".join(tags)]
    if coverage_gaps:
        lines += [
            "",
            "## Coverage Gaps",
            "These topics have the fewest questions so far. Prioritize them: " + ", ".join(coverage_gaps),
        ]

    if rejected_examples:
        lines += [""] + _rejected_section(rejected_examples[:MAX_REJECTED_EXAMPLES])

    lines += ["", "## Style Examples"]
    for example in STYLE_EXAMPLES:
        lines.append(f'- {example["verdict"]}: "{example["question"]}" ({example["why"]})')

    lines += [
        "",
        "## Sourcing",
        "1. Official Epic Games Documentation (dev.epicgames.com/documentation)",
        "2. Attached Local Files",
        "**FORBIDDEN SOURCES:** Do NOT use forums, Reddit, community wikis, or video platforms like YouTube.",
        "- SourceURL must be a real documentation page. If you are not sure of the exact page, leave SourceURL "
        "EMPTY. Never invent a URL.",
        "- SourceExcerpt must quote the documentation sentence that proves the correct answer.",
    ]

    custom_rules = (config.get("customRules") or "").strip()
    if custom_rules:
        lines += ["", "## Custom Rules", custom_rules]

    if file_context:
        lines += ["", "## Reference Files", file_context]

    return "\n".join(lines) + "\n"


def build_user_prompt(config: Dict[str, Any]) -> str:
    selection = resolve_selection(config)
    quotas = compute_quotas(config.get("batchSize") or DEFAULT_BATCH_SIZE, selection["difficulty"], selection["type"])
    return (
        f"Generate {quotas['total']} scenario-based questions for {config.get('discipline') or 'General'} "
        f"in {config.get('language') or 'English'}. Focus: {selection['difficulty']} {selection['type']}. "
        "Ensure links work for the latest engine documentation."
    )


def build_critique_prompt(question: Dict[str, Any], mode_label: Optional[str] = None) -> Dict[str, str]:
    strictness = ""
    if mode_label == "Strict":
        strictness = (
            "CONTEXT: The user requested a STRICT, FOUNDATIONAL question. Deduct 20 points if it is obscure "
            "or niche, 30 points if it is ambiguous without context."
        )
    elif mode_label == "Wild":
        strictness = (
            "CONTEXT: The user requested a WILD, EDGE-CASE question. Deduct 20 points if it is basic or obvious."
        )

    system = "UE5 Expert Critic. Output valid JSON only. Be harsh and critical."
    user = "\n".join(
        [
            "Critique this UE5 question as a pedantic Senior Technical Editor.",
            strictness,
            "Return ONLY a JSON object:",
            '{"score": 0-100, "critique": "...", "rewrite": {"question": "...", "options": {"A": "...", '
            '"B": "...", "C": "...", "D": "..."}, "correct": "A"}, "changes": "..."}',
            "Start at 75 and deduct points for trivial topics, wordiness, hints in the stem, weak distractors, "
            "ambiguity, missing sources and grammar issues.",
            "If the original is True/False, the rewrite MUST remain a single True/False assertion.",
            f"Question: {question.get('question', '')}",
            f"Options: {json.dumps(question.get('options') or {}, ensure_ascii=False)}",
            f"Correct: {question.get('correct', '')}",
        ]
    )
    return {"system": system, "user": user}


def build_translation_prompt(question: Dict[str, Any], target_language: str) -> Dict[str, str]:
    source_language = question.get("language") or "English"
    system = (
        f"You are a professional technical translator for Unreal Engine 5 documentation. Translate the provided "
        f"Markdown table from {source_language} to {target_language}. Preserve the exact table structure. "
        "Translate ONLY Question, Answer, OptionA-D and SourceExcerpt. Do NOT translate ID, Discipline, Type, "
        "Difficulty, CorrectLetter, SourceURL or QualityScore."
    )
    user = "\n".join(
        [
            f"Translate this single row from {source_language} to {target_language}. Keep format EXACT.",
            TABLE_HEADER,
            TABLE_SEPARATOR,
            question_to_table_row(question),
        ]
    )
    return {"system": system, "user": user}
