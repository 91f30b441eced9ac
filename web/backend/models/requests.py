#!/usr/bin/env python3
"""
Request models for API endpoints.
"""

from pydantic import BaseModel, Field
from typing import Optional, Union

from core.feedback.models import RejectionReason


class TopUpRequest(BaseModel):
    """Request to create a wallet top-up order."""
    amount: Union[int, float] = Field(..., description="Whole currency units, 5-500")


class PaymentConfirmation(BaseModel):
    """Checkout result posted by the client."""
    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = None


class PaymentFailureRequest(BaseModel):
    error_code: Optional[str] = None
    error_description: Optional[str] = None
    error_reason: Optional[str] = None


class SkipMatchRequest(BaseModel):
    reason: Optional[RejectionReason] = None


class AppliedRequest(BaseModel):
    applied: bool
    reason: Optional[RejectionReason] = None


class QARequest(BaseModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
