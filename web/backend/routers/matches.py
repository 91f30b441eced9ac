#!/usr/bin/env python3
"""
Match endpoints - view and act on a user's job matches.
"""

import uuid
import logging

from fastapi import APIRouter, Depends, Query

from core.app_context import AppContext
from core.matcher.actions import MatchView
from ..dependencies import get_app_context, get_current_user_id
from ..models.requests import SkipMatchRequest, AppliedRequest, QARequest
from ..models.responses import (
    MatchesResponse,
    MatchSummary,
    MatchCountResponse,
    JobSummary,
    ActionResponse,
    QAThreadResponse,
    ResetResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/matches", tags=["matches"])


def _summary(view: MatchView) -> MatchSummary:
    job = view.job
    return MatchSummary(
        match_id=str(view.id),
        job_id=str(view.job_id),
        score=view.score,
        verdict=view.verdict,
        reasoning=view.reasoning,
        freshness=view.freshness,
        clicked=view.clicked,
        skipped=view.skipped,
        applied=view.applied,
        created_at=view.created_at,
        job=JobSummary(
            id=str(job['id']),
            title=job['title'],
            company=job['company'],
            location=job.get('location'),
            url=job.get('url'),
            source=job.get('source'),
            tags=job.get('tags') or [],
            posted_date=job.get('posted_date'),
        ),
        skip_reason=view.skip_reason,
        not_applied_reason=view.not_applied_reason,
        qa_thread=view.qa_thread,
    )


@router.get("", response_model=MatchesResponse)
def get_matches(
    min_score: int = Query(default=0, ge=0, le=100, description="Minimum match score"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    """
    Matches sorted by score (highest first), skipped ones included.
    """
    matches = [_summary(view) for view in ctx.actions.list_matches(user_id, min_score)]
    return MatchesResponse(count=len(matches), matches=matches)


@router.get("/count", response_model=MatchCountResponse)
def count_matches(
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    return MatchCountResponse(count=ctx.actions.count_matches(user_id))


@router.delete("", response_model=ResetResponse)
def reset_matches(
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    return ResetResponse(deleted=ctx.actions.reset_matches(user_id))


@router.post("/jobs/{job_id}/skip", response_model=ActionResponse)
def skip_job(
    job_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    """Never match this listing for the user again."""
    ctx.actions.skip_job(user_id, job_id)
    return ActionResponse(message="Job added to skip list")


@router.get("/{match_id}", response_model=MatchSummary)
def get_match(
    match_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    return _summary(ctx.actions.get_match(user_id, match_id))


@router.post("/{match_id}/click", response_model=ActionResponse)
def mark_clicked(
    match_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    ctx.actions.mark_clicked(user_id, match_id)
    return ActionResponse(message="Match marked as clicked")


@router.post("/{match_id}/skip", response_model=ActionResponse)
def skip_match(
    match_id: uuid.UUID,
    request: SkipMatchRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    ctx.actions.skip_match(user_id, match_id, request.reason)
    return ActionResponse(message="Match skipped")


@router.post("/{match_id}/applied", response_model=ActionResponse)
def mark_applied(
    match_id: uuid.UUID,
    request: AppliedRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    ctx.actions.mark_applied(user_id, match_id, request.applied, request.reason)
    return ActionResponse(message="Application status recorded")


@router.post("/{match_id}/qa", response_model=QAThreadResponse)
def append_qa(
    match_id: uuid.UUID,
    request: QARequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    thread = ctx.actions.append_qa(user_id, match_id, request.question, request.answer)
    return QAThreadResponse(qa_thread=thread)
