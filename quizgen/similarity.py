import re
from typing import Optional

from .constants import LEVENSHTEIN_MAX_CHARS

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, drop HTML tags and collapse whitespace."""
    if not text:
        return ""
    cleaned = _TAG_RE.sub("", str(text).lower())
    return _WS_RE.sub(" ", cleaned).strip()


def _levenshtein(a: str, b: str) -> int:
    rows = len(b) + 1
    cols = len(a) + 1
    matrix = [[0] * cols for _ in range(rows)]
    for i in range(cols):
        matrix[0][i] = i
    for j in range(rows):
        matrix[j][0] = j

    for j in range(1, rows):
        for i in range(1, cols):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            matrix[j][i] = min(
                matrix[j][i - 1] + 1,
                matrix[j - 1][i] + 1,
                matrix[j - 1][i - 1] + cost,
            )
    return matrix[rows - 1][cols - 1]


def _jaccard(a: str, b: str) -> float:
    words_a = set(a.split(" "))
    words_b = set(b.split(" "))
    union = len(words_a | words_b)
    if not union:
        return 0.0
    return len(words_a & words_b) / union


def text_similarity(str1: Optional[str], str2: Optional[str]) -> float:
    """Similarity in [0, 1] between two question texts.

    Short texts are compared with Levenshtein edit distance; once either side is longer
    than LEVENSHTEIN_MAX_CHARS the comparison falls back to Jaccard overlap of word sets.
    """
    if not str1 or not str2:
        return 0.0

    a = normalize_text(str1)
    b = normalize_text(str2)

    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    if len(a) > LEVENSHTEIN_MAX_CHARS or len(b) > LEVENSHTEIN_MAX_CHARS:
        return _jaccard(a, b)

    max_len = max(len(a), len(b))
    return 1.0 - (_levenshtein(a, b) / max_len)
