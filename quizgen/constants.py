import os


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


DEBUG_LOGS = os.getenv("QUIZGEN_DEBUG", "1").lower() not in {"0", "false", "no"}

MULTIPLE_CHOICE = "Multiple Choice"
TRUE_FALSE = "True/False"
BALANCED = "Balanced"
DIFFICULTIES = ["Easy", "Medium", "Hard"]
QUESTION_TYPES = [MULTIPLE_CHOICE, TRUE_FALSE]
TRUE_FALSE_OPTIONS = {"A": "TRUE", "B": "FALSE"}

# Similarity / dedup
DEDUP_THRESHOLD = min(1.0, max(0.0, _env_float("QUIZGEN_DEDUP_THRESHOLD", 0.85)))
LEVENSHTEIN_MAX_CHARS = max(1, _env_int("QUIZGEN_LEVENSHTEIN_MAX_CHARS", 500))

# Evidence validation
DOC_BASE_URL = os.getenv(
    "QUIZGEN_DOC_BASE_URL",
    "https://dev.epicgames.com/documentation/en-us/unreal-engine/",
)
ANSWER_NOT_FOUND_BELOW = _env_int("QUIZGEN_ANSWER_NOT_FOUND_BELOW", 30)
ANSWER_VALID_FROM = _env_int("QUIZGEN_ANSWER_VALID_FROM", 50)
ANSWER_CONFIDENT_FROM = _env_int("QUIZGEN_ANSWER_CONFIDENT_FROM", 70)
MISSING_URL_CONFIDENCE_CAP = _env_int("QUIZGEN_MISSING_URL_CONFIDENCE_CAP", 50)
MIN_EXCERPT_CHARS = _env_int("QUIZGEN_MIN_EXCERPT_CHARS", 20)

# Critique policy
MAX_CRITIQUE_ATTEMPTS = max(1, _env_int("QUIZGEN_MAX_CRITIQUE_ATTEMPTS", 3))
PASSING_SCORE = _env_int("QUIZGEN_PASSING_SCORE", 70)

# Quotas
TARGET_PER_CATEGORY = max(1, _env_int("QUIZGEN_TARGET_PER_CATEGORY", 33))
TARGET_TOTAL = max(1, _env_int("QUIZGEN_TARGET_TOTAL", 200))
IMBALANCE_THRESHOLD = max(0, _env_int("QUIZGEN_IMBALANCE_THRESHOLD", 3))

# Prompting
DEFAULT_BATCH_SIZE = max(1, _env_int("QUIZGEN_DEFAULT_BATCH_SIZE", 6))
MAX_REJECTED_EXAMPLES = max(0, _env_int("QUIZGEN_MAX_REJECTED_EXAMPLES", 5))
MAX_COVERAGE_GAPS = max(0, _env_int("QUIZGEN_MAX_COVERAGE_GAPS", 5))
