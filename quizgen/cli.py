import argparse
import json
import sys
from typing import Optional

from .balancer import get_quota_status
from .errors import PipelineError
from .parser import parse_questions_strict
from .prompt_builder import build_system_prompt, build_user_prompt, select_rejected_examples
from .question_validator import split_by_validation
from .storage import load_questions_file
from .taxonomy import compute_coverage_gaps


def _read_text(path: Optional[str]) -> str:
    if not path or path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _print_validation(path: str) -> None:
    questions = load_questions_file(path)
    kept, dropped, flagged = split_by_validation(questions)

    print(f"Validated {len(questions)} questions.")
    print(f"- kept: {len(kept)} (flagged for review: {flagged})")
    print(f"- critical failures: {len(dropped)}")
    for q in dropped:
        print(f"  x {(q.get('question') or '')[:70]}")
        for warning in q["_validation"]["warnings"]:
            print(f"      {warning}")
    for q in kept:
        if q["_validation"]["warnings"]:
            print(f"  ! {(q.get('question') or '')[:70]} (confidence={q['_validation']['confidence']})")


def main() -> None:
    parser = argparse.ArgumentParser(description="Quiz question pipeline CLI")
    subparsers = parser.add_subparsers(dest="command")

    parse_parser = subparsers.add_parser("parse", help="Parse raw model output into question records")
    parse_parser.add_argument("--input", help="File with model output (JSON or Markdown table). Reads stdin when omitted.")
    parse_parser.add_argument("--output", help="Write parsed records to this JSON file instead of stdout.")

    validate_parser = subparsers.add_parser("validate", help="Check source evidence for stored questions")
    validate_parser.add_argument("--input", required=True, help="JSON file with question records")

    prompt_parser = subparsers.add_parser("prompt", help="Print the generation prompts for a config")
    prompt_parser.add_argument("--discipline", default="General")
    prompt_parser.add_argument("--difficulty", default="Balanced", help="Easy, Medium, Hard, Balanced or e.g. 'Easy MC'")
    prompt_parser.add_argument("--type", dest="qtype", default=None, help="Multiple Choice, True/False or Balanced")
    prompt_parser.add_argument("--batch-size", type=int, default=6)
    prompt_parser.add_argument("--language", default="English")
    prompt_parser.add_argument("--tags", nargs="*", default=[])
    prompt_parser.add_argument("--custom-rules", default="")
    prompt_parser.add_argument("--history", help="Optional JSON file with stored questions")
    prompt_parser.add_argument("--file-context", help="Optional text file appended as reference material")

    quotas_parser = subparsers.add_parser("quotas", help="Show per-category quota status for a discipline")
    quotas_parser.add_argument("--input", required=True, help="JSON file with question records")
    quotas_parser.add_argument("--discipline", required=True)

    args = parser.parse_args()

    if args.command == "parse":
        try:
            questions = parse_questions_strict(_read_text(args.input))
        except PipelineError as exc:
            raise SystemExit(str(exc))
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                json.dump(questions, f, indent=2, ensure_ascii=False)
            print(f"Parsed {len(questions)} questions -> {args.output}")
        else:
            print(json.dumps(questions, indent=2, ensure_ascii=False))
        return

    if args.command == "validate":
        _print_validation(args.input)
        return

    if args.command == "prompt":
        config = {
            "discipline": args.discipline,
            "difficulty": args.difficulty,
            "type": args.qtype,
            "batchSize": args.batch_size,
            "language": args.language,
            "tags": args.tags,
            "customRules": args.custom_rules,
        }
        history = load_questions_file(args.history) if args.history else []
        file_context = _read_text(args.file_context) if args.file_context else ""
        rejected = select_rejected_examples(history, args.discipline)
        gaps = compute_coverage_gaps(history, args.discipline, args.tags or None)
        print(build_system_prompt(config, file_context, rejected, gaps))
        print("---")
        print(build_user_prompt(config))
        return

    if args.command == "quotas":
        status = get_quota_status(load_questions_file(args.input), args.discipline)
        for label, entry in status.items():
            print(f"{label:<28} {entry['current']:>4}/{entry['target']:<4} remaining={entry['remaining']}")
        return

    parser.print_help()


if __name__ == "__main__":
    main()
