"""
FastAPI Backend for adaptive exam practice.

Endpoints:
    GET    /                          - Health and bank stats
    GET    /categories                - Category taxonomy
    POST   /sessions                  - Configure and start a session
    GET    /sessions/{id}             - Current snapshot
    POST   /sessions/{id}/answer      - Answer the pending item
    POST   /sessions/{id}/flag        - Toggle the flag on the viewed item
    POST   /sessions/{id}/pause       - Pause (freezes the timer)
    POST   /sessions/{id}/resume      - Resume
    POST   /sessions/{id}/navigate    - Move the view to a presented item
    POST   /sessions/{id}/finish      - Finish now and get the result
    GET    /sessions/{id}/result      - Result of a completed session
    DELETE /sessions/{id}             - Drop a session
"""

import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from adaptive_exam import (
    AdaptiveExamEngine,
    AdaptiveExamError,
    BankUnavailableError,
    InvalidAnswerError,
    InvalidConfigurationError,
    InvalidNavigationError,
    InvalidStateError,
    ItemBank,
    SessionNotFoundError,
    Settings,
    TestConfiguration,
)

settings = Settings.from_env()

logging.basicConfig(level=settings.log_level, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

# ==================== Initialize ====================

app = FastAPI(
    title="Adaptive Exam API",
    description="Computerized adaptive testing for exam practice",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Shared, read-only item bank; sessions live inside the engine's store
bank = ItemBank(settings.item_bank_dir)
engine = AdaptiveExamEngine(bank, settings=settings)


# ==================== Request/Response Models ====================

class StartSessionRequest(BaseModel):
    categories: List[str] = ["all"]
    item_count: int = 75
    mode: str = "tutorial"
    time_limit_seconds: Optional[int] = None


class AnswerRequest(BaseModel):
    option_index: int


class NavigateRequest(BaseModel):
    index: int


class AbilityModel(BaseModel):
    theta: float
    standard_error: float


class BreakdownRow(BaseModel):
    correct: int
    total: int
    percentage: int


class ResultResponse(BaseModel):
    score: int
    total_answered: int
    item_count: int
    final_ability: AbilityModel
    confidence_interval: List[float]
    passing_probability: float
    passed: bool
    category_breakdown: Dict[str, BreakdownRow]
    subcategory_breakdown: Dict[str, BreakdownRow]
    difficulty_breakdown: Dict[str, BreakdownRow]
    strengths: List[str]
    weaknesses: List[str]
    flagged_item_ids: List[str]
    time_spent_seconds: int
    stop_reason: str


class AnswerResponse(BaseModel):
    accepted: bool
    completed: bool
    is_correct: Optional[bool] = None
    next_item: Optional[dict] = None
    stop_reason: Optional[str] = None


class StartSessionResponse(BaseModel):
    session_id: str
    snapshot: dict


# ==================== Error Handling ====================

def status_code_for(error: AdaptiveExamError) -> int:
    """Map engine errors onto HTTP status codes."""
    if isinstance(error, SessionNotFoundError):
        return 404
    if isinstance(error, (InvalidConfigurationError, InvalidAnswerError, InvalidNavigationError)):
        return 422
    if isinstance(error, InvalidStateError):
        return 409
    if isinstance(error, BankUnavailableError):
        return 503
    return 500


@app.exception_handler(AdaptiveExamError)
async def engine_exception_handler(request: Request, exc: AdaptiveExamError):
    status_code = status_code_for(exc)
    detail = "Item bank unavailable, please retry" if status_code == 503 else str(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": detail})


# ==================== Core Endpoints ====================

@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "Adaptive Exam API is running",
        "version": "1.0.0",
        "item_bank": bank.get_stats(),
        "active_sessions": len(engine.handles()),
    }


@app.get("/categories")
def get_categories():
    return {
        "categories": [
            {"name": c, "subcategories": bank.get_subcategories(c)}
            for c in bank.get_categories()
        ]
    }


@app.post("/sessions", response_model=StartSessionResponse, status_code=201)
def start_session(request: StartSessionRequest):
    config = TestConfiguration(
        categories=frozenset(request.categories),
        item_count=request.item_count,
        mode=request.mode,
        time_limit_seconds=request.time_limit_seconds,
    )
    session_id = engine.start(config)
    return StartSessionResponse(session_id=session_id, snapshot=engine.get_snapshot(session_id))


@app.get("/sessions/{session_id}")
def get_session_state(session_id: str):
    return engine.get_snapshot(session_id)


@app.post("/sessions/{session_id}/answer", response_model=AnswerResponse)
def submit_answer(session_id: str, request: AnswerRequest):
    return engine.submit_answer(session_id, request.option_index).to_dict()


@app.post("/sessions/{session_id}/flag")
def toggle_flag(session_id: str):
    return {"session_id": session_id, "flagged": engine.toggle_flag(session_id)}


@app.post("/sessions/{session_id}/pause")
def pause_session(session_id: str):
    engine.pause(session_id)
    return engine.get_snapshot(session_id)


@app.post("/sessions/{session_id}/resume")
def resume_session(session_id: str):
    engine.resume(session_id)
    return engine.get_snapshot(session_id)


@app.post("/sessions/{session_id}/navigate")
def navigate(session_id: str, request: NavigateRequest):
    engine.navigate(session_id, request.index)
    return engine.get_snapshot(session_id)


@app.post("/sessions/{session_id}/finish", response_model=ResultResponse)
def finish_session(session_id: str):
    return engine.finish(session_id).to_dict()


@app.get("/sessions/{session_id}/result", response_model=ResultResponse)
def get_result(session_id: str):
    return engine.get_result(session_id).to_dict()


@app.delete("/sessions/{session_id}")
def delete_session(session_id: str):
    engine.discard(session_id)
    return {"status": "deleted", "session_id": session_id}


# ==================== Run Server ====================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)
