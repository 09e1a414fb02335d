import os
import random
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .balancer import get_quota_status, validate_generation
from .converter import convert_mc_to_tf
from .pipeline import PipelineError, critique_question, run_generation, translate_question
from .parser import parse_questions_strict
from .prompt_builder import build_system_prompt, build_user_prompt, select_rejected_examples
from .question_validator import validate_questions_batch
from .storage import new_run_id
from .taxonomy import compute_coverage_gaps

app = FastAPI(title="Quiz Question Gen API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class GenerationConfig(BaseModel):
    discipline: str = "General"
    difficulty: str = "Balanced"
    type: Optional[str] = None
    batchSize: int = Field(default=6, ge=1, le=60)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    model: Optional[str] = None
    language: str = "English"
    tags: List[str] = Field(default_factory=list)
    customRules: str = ""
    convertToTrueFalse: bool = True


class ParseRequest(BaseModel):
    text: str = Field(..., description="Raw model output: JSON or a Markdown table")


class QuestionsRequest(BaseModel):
    questions: List[Dict[str, Any]] = Field(default_factory=list)


class QuotaStatusRequest(BaseModel):
    discipline: str
    questions: List[Dict[str, Any]] = Field(default_factory=list)


class QuotaCheckRequest(BaseModel):
    discipline: str
    difficulty: str = "Balanced"
    type: str = "Balanced"
    batchSize: int = Field(default=6, ge=1)
    questions: List[Dict[str, Any]] = Field(default_factory=list)


class PromptRequest(BaseModel):
    config: GenerationConfig
    history: List[Dict[str, Any]] = Field(default_factory=list)
    file_context: str = ""


class ConvertRequest(BaseModel):
    question: Dict[str, Any]
    difficulty: Optional[str] = None
    seed: Optional[int] = None


class GenerateRequest(BaseModel):
    config: GenerationConfig
    history: List[Dict[str, Any]] = Field(default_factory=list)
    file_context: str = ""


class CritiqueRequest(BaseModel):
    question: Dict[str, Any]
    mode_label: Optional[str] = Field(default=None, pattern="^(Strict|Wild)$")


class TranslateRequest(BaseModel):
    question: Dict[str, Any]
    target_language: str


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/parse")
def parse(request: ParseRequest) -> JSONResponse:
    try:
        questions = parse_questions_strict(request.text)
        return JSONResponse(content={"count": len(questions), "questions": questions})
    except PipelineError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Parse failed: {exc}")


@app.post("/validate")
def validate(request: QuestionsRequest) -> JSONResponse:
    validated = validate_questions_batch(request.questions)
    return JSONResponse(
        content={
            "questions": validated,
            "critical": sum(1 for q in validated if q["_validation"]["isCriticalFailure"]),
            "flagged": sum(1 for q in validated if q["_validation"]["warnings"]),
        }
    )


@app.post("/quotas")
def quotas(request: QuotaStatusRequest) -> JSONResponse:
    return JSONResponse(content=get_quota_status(request.questions, request.discipline))


@app.post("/quota-check")
def quota_check(request: QuotaCheckRequest) -> JSONResponse:
    result = validate_generation(
        request.discipline,
        request.difficulty,
        request.type,
        request.batchSize,
        request.questions,
    )
    return JSONResponse(content=result)


@app.post("/prompt")
def prompt(request: PromptRequest) -> JSONResponse:
    config = request.config.model_dump()
    rejected = select_rejected_examples(request.history, config["discipline"])
    gaps = compute_coverage_gaps(request.history, config["discipline"], config["tags"] or None)
    return JSONResponse(
        content={
            "system": build_system_prompt(config, request.file_context, rejected, gaps),
            "user": build_user_prompt(config),
        }
    )


@app.post("/convert")
def convert(request: ConvertRequest) -> JSONResponse:
    rng = random.Random(request.seed) if request.seed is not None else None
    return JSONResponse(content=convert_mc_to_tf(request.question, request.difficulty, rng=rng))


@app.post("/generate")
def generate(request: GenerateRequest) -> JSONResponse:
    run_id = new_run_id()
    try:
        summary = run_generation(
            config=request.config.model_dump(),
            history=request.history,
            file_context=request.file_context,
            run_id=run_id,
        )
        return JSONResponse(content=summary)
    except PipelineError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Question generation failed: {exc}")


@app.post("/critique")
def critique(request: CritiqueRequest) -> JSONResponse:
    try:
        return JSONResponse(content=critique_question(request.question, request.mode_label))
    except PipelineError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Critique failed: {exc}")


@app.post("/translate")
def translate(request: TranslateRequest) -> JSONResponse:
    try:
        return JSONResponse(content=translate_question(request.question, request.target_language))
    except PipelineError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Translation failed: {exc}")


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("quizgen.main:app", host="0.0.0.0", port=port)
