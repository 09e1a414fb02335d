import os
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from google import genai
from google.genai import types

from .constants import DEBUG_LOGS, _env_float
from .critique import parse_critique_response
from .prompt_builder import build_critique_prompt, build_translation_prompt

load_dotenv()

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")

DEFAULT_MODEL = os.getenv("QUIZGEN_MODEL", "gemini-2.0-flash")
DEFAULT_TEMPERATURE = _env_float("QUIZGEN_TEMPERATURE", 0.2)
CRITIQUE_TEMPERATURE = 0.2
TRANSLATION_TEMPERATURE = 0.1
DEBUG_VERBOSE = os.getenv("QUIZGEN_DEBUG_VERBOSE", "0").lower() in {"1", "true", "yes"}

FORBIDDEN_SOURCE_DOMAINS = ["youtube.com", "youtu.be", "vimeo.com", "twitter.com", "x.com", "reddit.com", "forums."]
DOCUMENTATION_MARKER = "dev.epicgames.com/documentation"

client = genai.Client(api_key=GEMINI_API_KEY) if GEMINI_API_KEY else None


def _extract_text_from_response(resp: Any) -> str:
    if resp is None:
        return ""

    if hasattr(resp, "text") and getattr(resp, "text"):
        return str(getattr(resp, "text"))

    if isinstance(resp, dict):
        for key in ("text", "output", "result"):
            if key in resp and resp[key]:
                return str(resp[key])

        candidates = resp.get("candidates") or []
        if candidates:
            first = candidates[0]
            if isinstance(first, dict):
                content = first.get("content")
                if isinstance(content, str):
                    return content
                if isinstance(content, dict):
                    parts = content.get("parts") or []
                    texts = [p.get("text") for p in parts if isinstance(p, dict) and p.get("text")]
                    if texts:
                        return "\n".join(str(x) for x in texts)
        return ""

    candidates = getattr(resp, "candidates", None)
    if candidates:
        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) if content is not None else None
        if parts:
            texts = [str(part.text) for part in parts if getattr(part, "text", None)]
            if texts:
                return "\n".join(texts)

    return ""


def filter_grounding_sources(chunks: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Keep documentation pages from search grounding chunks, dropping video and forum hits."""
    sources: List[Dict[str, str]] = []
    for chunk in chunks or []:
        web = chunk.get("web") or {}
        uri = web.get("uri")
        title = web.get("title")
        if not uri or not title:
            continue
        lowered = uri.lower()
        if any(domain in lowered for domain in FORBIDDEN_SOURCE_DOMAINS):
            if DEBUG_LOGS:
                print(f"[DEBUG][llm] filtered_grounding_source url={uri}")
            continue
        if DOCUMENTATION_MARKER in lowered:
            sources.append({"url": uri, "title": title})
    return sources


def _grounding_chunks(resp: Any) -> List[Dict[str, Any]]:
    candidates = getattr(resp, "candidates", None)
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) if metadata is not None else None
    result: List[Dict[str, Any]] = []
    for chunk in chunks or []:
        web = getattr(chunk, "web", None)
        if web is None:
            continue
        result.append({"web": {"uri": getattr(web, "uri", None), "title": getattr(web, "title", None)}})
    return result


def _invoke_model(
    system_prompt: str,
    user_prompt: str,
    temperature: Optional[float] = None,
    model: Optional[str] = None,
    use_search: bool = False,
) -> Tuple[str, List[Dict[str, str]]]:
    """Call Gemini once and return the reply text plus filtered documentation sources."""
    if client is None:
        raise RuntimeError("GEMINI_API_KEY is not configured.")

    model = model or DEFAULT_MODEL
    temperature = DEFAULT_TEMPERATURE if temperature is None else temperature

    if DEBUG_LOGS:
        print(
            f"[DEBUG][llm] invoking Gemini model={model} temperature={temperature} "
            f"system_len={len(system_prompt)} user_len={len(user_prompt)} search={use_search}"
        )
        if DEBUG_VERBOSE:
            print(f"[DEBUG][llm] prompt_preview={user_prompt[:700]!r}")

    config = types.GenerateContentConfig(
        system_instruction=system_prompt,
        temperature=temperature,
        max_output_tokens=8192,
        tools=[types.Tool(google_search=types.GoogleSearch())] if use_search else None,
    )
    response = client.models.generate_content(model=model, contents=user_prompt, config=config)

    text = _extract_text_from_response(response)
    sources = filter_grounding_sources(_grounding_chunks(response)) if use_search else []

    if DEBUG_LOGS:
        print(f"[DEBUG][llm] response_len={len(text)} grounding_sources={len(sources)}")
        if DEBUG_VERBOSE:
            print(f"[DEBUG][llm] response_preview={text[:700]!r}")
    if not text:
        raise RuntimeError("Gemini returned an empty response.")
    return text, sources


def generate_questions(
    system_prompt: str,
    user_prompt: str,
    temperature: Optional[float] = None,
    model: Optional[str] = None,
) -> Tuple[str, List[Dict[str, str]]]:
    return _invoke_model(system_prompt, user_prompt, temperature=temperature, model=model, use_search=True)


def generate_critique(question: Dict[str, Any], mode_label: Optional[str] = None) -> Dict[str, Any]:
    prompts = build_critique_prompt(question, mode_label)
    raw_text, _ = _invoke_model(prompts["system"], prompts["user"], temperature=CRITIQUE_TEMPERATURE)
    result = parse_critique_response(raw_text)
    if result["score"] is None and DEBUG_LOGS:
        print(f"[DEBUG][llm] generate_critique no_score raw_output={raw_text[:300]!r}")
    return result


def translate_row(question: Dict[str, Any], target_language: str) -> str:
    prompts = build_translation_prompt(question, target_language)
    raw_text, _ = _invoke_model(prompts["system"], prompts["user"], temperature=TRANSLATION_TEMPERATURE)
    return raw_text
