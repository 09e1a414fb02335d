import os
import re
from typing import Any, Dict, FrozenSet, List, Optional

from .constants import DOC_BASE_URL

MISSING_URL_WARNING = "Missing documentation URL"
SUFFIX = "-in-unreal-engine"

INVALID_PATTERNS = [
    re.compile(r"^unreal-engine-\d+$"),
    re.compile(r"^unreal-engine$"),
    re.compile(r"^ue\d+$"),
    re.compile(r"^overview$"),
    re.compile(r"^introduction$"),
    re.compile(r"\s"),
    re.compile(r"[A-Z]"),
    re.compile(r"^[a-z]+$"),
]

REQUIRES_SUFFIX_TERMS = [
    "nanite", "lumen", "niagara", "chaos", "blueprint", "landscape",
    "material", "animation", "skeletal", "world-partition", "virtual-shadow",
    "sequencer", "umg", "gameplay",
]

_SLUGS_PATH = os.path.join(os.path.dirname(__file__), "data", "known_doc_slugs.txt")


def _load_known_slugs(path: str = _SLUGS_PATH) -> FrozenSet[str]:
    if not os.path.isfile(path):
        return frozenset()
    with open(path, "r", encoding="utf-8") as f:
        return frozenset(line.strip() for line in f if line.strip() and not line.startswith("#"))


KNOWN_VALID_SLUGS = _load_known_slugs()


def extract_slug(url: str, base_url: str = DOC_BASE_URL) -> str:
    return url[len(base_url):].split("#")[0].split("?")[0]


def validate_url(url: Optional[str]) -> Dict[str, Any]:
    if not url or not str(url).strip():
        return {"isValid": False, "confidence": 0, "warning": MISSING_URL_WARNING}

    url = str(url)
    if not url.startswith(DOC_BASE_URL):
        return {"isValid": False, "confidence": 0, "warning": "Not an official documentation URL"}

    slug = extract_slug(url)
    if not slug.strip():
        return {"isValid": False, "confidence": 10, "warning": "URL has no specific page path"}

    for pattern in INVALID_PATTERNS:
        if pattern.search(slug):
            return {"isValid": False, "confidence": 20, "warning": f'Invalid URL pattern: "{slug}"'}

    if slug in KNOWN_VALID_SLUGS:
        return {"isValid": True, "confidence": 100, "warning": None}

    for term in REQUIRES_SUFFIX_TERMS:
        if term in slug and not slug.endswith(SUFFIX):
            return {
                "isValid": True,
                "confidence": 60,
                "warning": f'URL may be missing "{SUFFIX}" suffix',
            }

    if len(slug) < 10:
        return {"isValid": True, "confidence": 40, "warning": "URL slug seems too short"}

    if "--" in slug:
        return {"isValid": False, "confidence": 30, "warning": "URL has double hyphens"}

    return {"isValid": True, "confidence": 70, "warning": None}


def is_missing_url(result: Dict[str, Any]) -> bool:
    return result.get("warning") == MISSING_URL_WARNING


def validate_urls_batch(questions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{**q, "urlValidation": validate_url(q.get("sourceUrl"))} for q in questions]
