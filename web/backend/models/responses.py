#!/usr/bin/env python3
"""
Response models for API endpoints.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


class BalanceResponse(BaseModel):
    success: bool = True
    balance_cents: int
    balance: float


class TransactionSummary(BaseModel):
    """Transaction as shown to its owner. Signature and metadata stay server-side."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    amount_cents: int
    description: str
    status: str
    gateway_order_id: Optional[str] = None
    created_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class TransactionsResponse(BaseModel):
    success: bool = True
    transactions: List[TransactionSummary]
    pagination: Pagination


class TopUpOrderResponse(BaseModel):
    success: bool = True
    order_id: str
    amount: int
    currency: str


class ReconcileResponse(BaseModel):
    """Outcome of a confirmation or sync. `pending` means still processing."""
    success: bool = True
    status: str
    credited: bool = False
    balance_cents: Optional[int] = None
    gateway_status: Optional[str] = None


class ActionResponse(BaseModel):
    success: bool = True
    message: str


class JobSummary(BaseModel):
    id: str
    title: str
    company: str
    location: Optional[str] = None
    url: Optional[str] = None
    source: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    posted_date: Optional[datetime] = None


class MatchSummary(BaseModel):
    """Summary of a job match."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "match_id": "550e8400-e29b-41d4-a716-446655440000",
                "job_id": "6ba7b810-9dad-11d1-80b4-00c04fd430c8",
                "score": 82,
                "verdict": "Strong match",
                "reasoning": "You have five years of Python experience...",
                "freshness": "recent",
                "clicked": False,
                "skipped": False,
                "applied": None,
                "created_at": "2026-02-01T12:00:00Z"
            }
        }
    )

    match_id: str
    job_id: str
    score: int = Field(ge=0, le=100)
    verdict: str
    reasoning: str
    freshness: str
    clicked: bool
    skipped: bool
    applied: Optional[bool] = None
    created_at: datetime
    job: JobSummary
    skip_reason: Optional[Dict[str, Any]] = None
    not_applied_reason: Optional[Dict[str, Any]] = None
    qa_thread: List[Dict[str, Any]] = Field(default_factory=list)


class MatchesResponse(BaseModel):
    success: bool = True
    count: int
    matches: List[MatchSummary]


class MatchCountResponse(BaseModel):
    success: bool = True
    count: int


class QAThreadResponse(BaseModel):
    success: bool = True
    qa_thread: List[Dict[str, Any]]


class ResetResponse(BaseModel):
    success: bool = True
    deleted: int
