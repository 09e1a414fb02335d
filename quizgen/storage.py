import json
import os
import uuid
from datetime import datetime, timezone
from typing import Any


def _workspace_root() -> str:
    return os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def data_dir() -> str:
    return os.getenv("QUIZGEN_DATA_DIR") or os.path.join(_workspace_root(), "data")


def runs_dir() -> str:
    return os.path.join(data_dir(), "runs")


def ensure_dirs() -> None:
    os.makedirs(data_dir(), exist_ok=True)
    os.makedirs(runs_dir(), exist_ok=True)


def new_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"run_{ts}_{uuid.uuid4().hex[:8]}"


def run_path(run_id: str) -> str:
    return os.path.join(runs_dir(), run_id)


def create_run_dir(run_id: str) -> str:
    ensure_dirs()
    path = run_path(run_id)
    os.makedirs(path, exist_ok=True)
    return path


def save_json(path: str, data: object) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_questions_file(path: str) -> list:
    """Read stored records from a JSON array or an object with a "questions" array."""
    data = load_json(path)
    if isinstance(data, dict) and "questions" in data:
        data = data["questions"]
    if not isinstance(data, list):
        raise ValueError("Questions file must hold a JSON array or an object with a 'questions' array.")
    return data
