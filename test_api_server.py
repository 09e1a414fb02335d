"""Integration tests for the FastAPI server (Gemini mocked)."""

import json
from unittest import mock

from fastapi.testclient import TestClient

from quizgen import main

client = TestClient(main.app)

DOCS = "https://dev.epicgames.com/documentation/en-us/unreal-engine/"
ROW = (
    "| 1 | Rendering | Multiple Choice | Easy | Which system handles geometry virtualization? | Nanite "
    f"| Nanite | Lumen | Chaos | Niagara | A | {DOCS}nanite-virtualized-geometry-in-unreal-engine "
    "| Nanite is Unreal Engine's virtualized geometry system enabling massive detail. | 90 |"
)


def _record(**overrides):
    q = {
        "id": "q1",
        "discipline": "Rendering",
        "type": "Multiple Choice",
        "difficulty": "Easy",
        "question": "Which system handles geometry virtualization?",
        "options": {"A": "Nanite", "B": "Lumen", "C": "Chaos", "D": "Niagara"},
        "correct": "A",
        "sourceUrl": DOCS + "nanite-virtualized-geometry-in-unreal-engine",
        "sourceExcerpt": "Nanite is Unreal Engine's virtualized geometry system enabling massive detail.",
        "status": "pending",
    }
    q.update(overrides)
    return q


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_parse_table():
    response = client.post("/parse", json={"text": ROW})
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["questions"][0]["options"]["C"] == "Chaos"


def test_parse_nothing_is_400():
    response = client.post("/parse", json={"text": "no questions"})
    assert response.status_code == 400
    assert "No questions" in response.json()["detail"]


def test_validate():
    response = client.post("/validate", json={"questions": [_record(), _record(id="q2", sourceExcerpt="42")]})
    assert response.status_code == 200
    body = response.json()
    assert body["critical"] == 1
    assert body["questions"][0]["_validation"]["isValid"] is True


def test_quotas_and_quota_check():
    history = [_record(id=f"h{i}", status="accepted") for i in range(3)]
    status = client.post("/quotas", json={"discipline": "Rendering", "questions": history}).json()
    assert status["Easy Multiple Choice"]["current"] == 3

    check = client.post(
        "/quota-check",
        json={"discipline": "Rendering", "difficulty": "Easy", "type": "Multiple Choice", "batchSize": 6, "questions": history},
    ).json()
    assert check["allowed"] is True


def test_prompt():
    response = client.post(
        "/prompt",
        json={"config": {"discipline": "Networking", "batchSize": 7, "tags": ["#RPCs"]}, "file_context": "ctx"},
    )
    assert response.status_code == 200
    body = response.json()
    assert "Generate exactly 12 questions" in body["system"]
    assert "#RPCs" in body["system"]
    assert "Networking" in body["user"]


def test_convert_is_seeded():
    payload = {"question": _record(), "seed": 11}
    first = client.post("/convert", json=payload).json()
    second = client.post("/convert", json=payload).json()
    assert first == second
    assert first["type"] == "True/False"
    assert first["options"] == {"A": "TRUE", "B": "FALSE"}


def test_generate_with_mocked_llm(tmp_path, monkeypatch):
    monkeypatch.setenv("QUIZGEN_DATA_DIR", str(tmp_path))
    with mock.patch("quizgen.llm._invoke_model", return_value=(ROW, [])):
        response = client.post(
            "/generate",
            json={"config": {"discipline": "Rendering", "difficulty": "Easy", "type": "Multiple Choice", "batchSize": 1}},
        )
    assert response.status_code == 200
    body = response.json()
    assert body["parsed_count"] == 1
    assert body["questions"][0]["status"] == "pending"
    assert body["run_id"].startswith("run_")


def test_generate_unparseable_is_400(tmp_path, monkeypatch):
    monkeypatch.setenv("QUIZGEN_DATA_DIR", str(tmp_path))
    with mock.patch("quizgen.llm._invoke_model", return_value=("I cannot do that.", [])):
        response = client.post("/generate", json={"config": {"discipline": "Rendering"}})
    assert response.status_code == 400


def test_generate_llm_failure_is_500(tmp_path, monkeypatch):
    monkeypatch.setenv("QUIZGEN_DATA_DIR", str(tmp_path))
    with mock.patch("quizgen.llm._invoke_model", side_effect=RuntimeError("GEMINI_API_KEY is not configured.")):
        response = client.post("/generate", json={"config": {"discipline": "Rendering"}})
    assert response.status_code == 500
    assert "GEMINI_API_KEY" in response.json()["detail"]


def test_critique():
    reply = json.dumps({"score": 81, "critique": "Clear and well sourced."})
    with mock.patch("quizgen.llm._invoke_model", return_value=(reply, [])):
        response = client.post("/critique", json={"question": _record(), "mode_label": "Wild"})
    assert response.status_code == 200
    body = response.json()
    assert body["critiqueScore"] == 81
    assert body["critiqueAttempts"] == 1


def test_critique_rejects_unknown_mode():
    response = client.post("/critique", json={"question": _record(), "mode_label": "Chaotic"})
    assert response.status_code == 422


def test_translate():
    with mock.patch("quizgen.llm._invoke_model", return_value=(ROW, [])):
        response = client.post("/translate", json={"question": _record(uniqueId="u-1", status="accepted"), "target_language": "French"})
    assert response.status_code == 200
    assert response.json()["uniqueId"] == "u-1"
    assert response.json()["language"] == "French"


def test_translate_rejected_question_is_bad_request():
    with mock.patch("quizgen.llm._invoke_model", return_value=(ROW, [])):
        response = client.post("/translate", json={"question": _record(status="rejected"), "target_language": "French"})
    assert response.status_code == 400
