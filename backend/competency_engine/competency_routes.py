"""REST endpoints for adaptive practice and competency levels."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from .competency import CompetencyDefinition, CompetencyStats, QuestionWithLevel
from .config import get_settings
from .dynamic_questions import DynamicQuestionService, get_dynamic_question_service
from .errors import StoreUnavailable

router = APIRouter(prefix="/api/competencies", tags=["competencies"])
logger = logging.getLogger(__name__)

_RETRY_DETAIL = "Competency data is temporarily unavailable. Try again shortly."


class AnswerSubmission(BaseModel):
    competency_id: str = Field(..., min_length=1)
    is_correct: bool
    question_id: Optional[str] = Field(default=None, max_length=64)


class AnswerOutcome(BaseModel):
    competency_id: str
    previous_level: int
    new_level: int


class DynamicQuestionsResponse(BaseModel):
    profile_id: str
    requested: int
    questions: List[QuestionWithLevel]


def _store_unavailable(profile_id: str, exc: StoreUnavailable) -> HTTPException:
    logger.warning("Competency store unavailable for %s: %s", profile_id, exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=_RETRY_DETAIL,
        headers={"Retry-After": "5"},
    )


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/{profile_id}/questions", response_model=DynamicQuestionsResponse)
def get_dynamic_questions(
    profile_id: str,
    max_questions: Optional[int] = Query(default=None, ge=0),
    service: DynamicQuestionService = Depends(get_dynamic_question_service),
) -> DynamicQuestionsResponse:
    limit = get_settings().max_questions_limit
    requested = service.default_max_questions if max_questions is None else min(max_questions, limit)
    started = perf_counter()
    try:
        questions = service.get_dynamic_questions(profile_id, requested)
    except StoreUnavailable as exc:
        raise _store_unavailable(profile_id, exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    logger.info(
        "Served %d dynamic questions to %s in %.1fms",
        len(questions),
        profile_id,
        (perf_counter() - started) * 1000,
    )
    return DynamicQuestionsResponse(profile_id=profile_id.strip(), requested=requested, questions=questions)


@router.post("/{profile_id}/answers", response_model=AnswerOutcome)
def submit_answer(
    profile_id: str,
    payload: AnswerSubmission,
    service: DynamicQuestionService = Depends(get_dynamic_question_service),
) -> AnswerOutcome:
    try:
        change = service.submit_answer(
            profile_id,
            payload.competency_id,
            payload.is_correct,
            question_id=payload.question_id,
        )
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise _store_unavailable(profile_id, exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return AnswerOutcome(
        competency_id=change.competency_id,
        previous_level=change.previous_level,
        new_level=change.new_level,
    )


@router.get("/{profile_id}/levels", response_model=Dict[str, int])
def get_effective_levels(
    profile_id: str,
    service: DynamicQuestionService = Depends(get_dynamic_question_service),
) -> Dict[str, int]:
    try:
        return service.get_effective_levels(profile_id)
    except StoreUnavailable as exc:
        raise _store_unavailable(profile_id, exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc


@router.get("/{profile_id}/stats", response_model=CompetencyStats)
def get_competency_stats(
    profile_id: str,
    service: DynamicQuestionService = Depends(get_dynamic_question_service),
) -> CompetencyStats:
    try:
        return service.get_competency_stats(profile_id)
    except StoreUnavailable as exc:
        raise _store_unavailable(profile_id, exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc


@router.get("/{profile_id}/recommended", response_model=List[CompetencyDefinition])
def get_recommended_competencies(
    profile_id: str,
    limit: int = Query(default=5, ge=1, le=50),
    service: DynamicQuestionService = Depends(get_dynamic_question_service),
) -> List[CompetencyDefinition]:
    try:
        return service.get_recommended_competencies(profile_id, limit)
    except StoreUnavailable as exc:
        raise _store_unavailable(profile_id, exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
