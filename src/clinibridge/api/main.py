"""FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import Literal

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinibridge import __version__
from clinibridge.config import get_settings
from clinibridge.constants import RATE_LIMIT_MESSAGE
from clinibridge.db.session import get_db, get_session_factory, init_db
from clinibridge.models.model_chat import ChatMessage
from clinibridge.models.model_clinical_trials import (
    FeaturedTrial,
    PatientProfile,
    TrialSummary,
)
from clinibridge.models.model_eligibility import EligibilityBreakdown
from clinibridge.services.chat import chat as run_chat
from clinibridge.services.eligibility import EligibilityExplainer
from clinibridge.services.eligibility_cache import (
    MemoryEligibilityCache,
    SqlEligibilityCache,
)
from clinibridge.services.featured_trials import FeaturedCategory, get_featured_trials
from clinibridge.services.scoring import score_trials
from clinibridge.services.search_log import get_search, save_search
from clinibridge.services.trial_search import search_trials
from clinibridge.utils.rate_limit import (
    FixedWindowRateLimiter,
    RateLimitResult,
    get_client_ip,
)

logger = logging.getLogger(__name__)


class SearchRequest(BaseModel):
    """Form-mode search input."""

    condition: str
    age: float
    location: str = ""
    medications: str | None = None  # comma-separated
    additional_info: str | None = None
    synonyms: list[str] = []


class SearchResponse(BaseModel):
    trials: list[TrialSummary] = []
    count: int = 0
    error: str | None = None
    search_id: int | None = None


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)


class ChatResponse(SearchResponse):
    reply: str = ""


class SearchRecordResponse(BaseModel):
    """A logged search, as stored."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    mode: Literal["form", "chat"]
    condition: str
    age: float
    location: str
    medications: list[str] | None = None
    additional_info: str | None = None
    results: list[dict]


class EligibilityRequest(BaseModel):
    nct_id: str
    patient_profile: PatientProfile


def split_medications(medications: str | None) -> list[str]:
    if not medications:
        return []
    return [m.strip() for m in medications.split(",") if m.strip()]


@lru_cache
def get_rate_limiter() -> FixedWindowRateLimiter:
    settings = get_settings()
    return FixedWindowRateLimiter(
        settings.search_rate_limit, settings.search_rate_window_seconds
    )


@lru_cache
def get_explainer() -> EligibilityExplainer:
    if get_settings().persist_searches:
        return EligibilityExplainer(cache=SqlEligibilityCache(get_session_factory()))
    return EligibilityExplainer(cache=MemoryEligibilityCache())


def rate_limited_response(rate: RateLimitResult) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"trials": [], "error": RATE_LIMIT_MESSAGE},
        headers={
            "Retry-After": str(rate.retry_after_seconds),
            "X-RateLimit-Limit": str(rate.limit),
            "X-RateLimit-Remaining": str(rate.remaining),
            "X-RateLimit-Reset": str(int(rate.reset_at * 1000)),
        },
    )


def log_search(
    db: Session,
    profile: PatientProfile,
    trials: list[TrialSummary],
    mode: Literal["form", "chat"],
) -> int | None:
    """Persist the search when enabled. A database failure is logged, not raised."""
    if not get_settings().persist_searches:
        return None
    try:
        return save_search(db, profile, trials, mode=mode)
    except SQLAlchemyError as e:
        logger.error("Could not save search: %s", e)
        db.rollback()
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    if get_settings().persist_searches:
        init_db()
    yield


app = FastAPI(
    title="CliniBridge API",
    description="Find recruiting clinical trials and explain their eligibility criteria",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.post("/api/search", response_model=SearchResponse)
async def search(
    body: SearchRequest,
    request: Request,
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    db: Session = Depends(get_db),
):
    """Search, score, and log one form-mode trial search."""
    rate = limiter.check(f"search:{get_client_ip(request.headers)}")
    if not rate.ok:
        return rate_limited_response(rate)

    result = await search_trials(body.condition, body.synonyms, body.location)
    if result.error is not None:
        return SearchResponse(error=result.error)

    profile = PatientProfile(
        condition=body.condition,
        age=body.age,
        location=body.location,
        medications=split_medications(body.medications),
        additional_info=body.additional_info or "",
    )
    scored = await score_trials(result.trials, profile)
    search_id = log_search(db, profile, scored, mode="form")
    return SearchResponse(trials=scored, count=len(scored), search_id=search_id)


@app.post("/api/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    request: Request,
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    db: Session = Depends(get_db),
):
    """One assistant turn; searches and logs once the assistant has a profile."""
    rate = limiter.check(f"chat:{get_client_ip(request.headers)}")
    if not rate.ok:
        return rate_limited_response(rate)

    result = await run_chat(body.messages)

    search_id = None
    if result.profile is not None and result.error is None:
        search_id = log_search(db, result.profile, result.trials, mode="chat")
    return ChatResponse(
        reply=result.reply,
        trials=result.trials,
        count=len(result.trials),
        error=result.error,
        search_id=search_id,
    )


@app.get("/api/searches/{search_id}", response_model=SearchRecordResponse)
async def read_search(search_id: int, db: Session = Depends(get_db)):
    """A previously logged search with its result snapshot."""
    record = get_search(db, search_id) if get_settings().persist_searches else None
    if record is None:
        raise HTTPException(status_code=404, detail="Search not found")
    return SearchRecordResponse.model_validate(record)


@app.get("/api/featured", response_model=list[FeaturedTrial])
async def featured(category: FeaturedCategory = "all") -> list[FeaturedTrial]:
    """Three featured recruiting trials for the landing page."""
    return await get_featured_trials(category)


@app.post("/api/eligibility", response_model=EligibilityBreakdown)
async def eligibility(
    body: EligibilityRequest,
    explainer: EligibilityExplainer = Depends(get_explainer),
) -> EligibilityBreakdown:
    """Plain-English eligibility breakdown for one trial and patient."""
    return await explainer.get_breakdown(body.nct_id, body.patient_profile)
