#!/usr/bin/env python3
"""
Wallet endpoints - balance, top-ups and payment gateway callbacks.
"""

import uuid
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.concurrency import run_in_threadpool

from core.app_context import AppContext
from core.payments.reconciler import ReconcileOutcome
from ..dependencies import get_app_context, get_current_user_id
from ..models.requests import (
    TopUpRequest,
    PaymentConfirmation,
    CancelOrderRequest,
    PaymentFailureRequest,
)
from ..models.responses import (
    BalanceResponse,
    TransactionsResponse,
    TransactionSummary,
    Pagination,
    TopUpOrderResponse,
    ReconcileResponse,
    ActionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/wallet", tags=["wallet"])


def _reconcile_response(outcome: ReconcileOutcome) -> ReconcileResponse:
    return ReconcileResponse(
        status=outcome.status,
        credited=outcome.credited,
        balance_cents=outcome.balance_cents,
        gateway_status=outcome.gateway_status,
    )


@router.get("/balance", response_model=BalanceResponse)
def get_balance(
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    balance_cents = ctx.wallet.get_balance(user_id)
    return BalanceResponse(balance_cents=balance_cents, balance=balance_cents / 100)


@router.get("/transactions", response_model=TransactionsResponse)
def list_transactions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    """Newest first."""
    result = ctx.wallet.list_transactions(user_id, page=page, limit=limit)
    return TransactionsResponse(
        transactions=[
            TransactionSummary(
                id=str(txn.id),
                type=txn.type,
                amount_cents=txn.amount_cents,
                description=txn.description,
                status=txn.status,
                gateway_order_id=txn.gateway_order_id,
                created_at=txn.created_at,
            )
            for txn in result.transactions
        ],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
        ),
    )


@router.post("/orders", response_model=TopUpOrderResponse)
def create_order(
    request: TopUpRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    order = ctx.wallet.create_top_up_order(user_id, request.amount)
    return TopUpOrderResponse(order_id=order.order_id, amount=order.amount, currency=order.currency)


@router.post("/verify", response_model=ReconcileResponse)
def verify_payment(
    request: PaymentConfirmation,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    """
    Client confirmation. An invalid signature answers 400 and leaves the
    credit pending for the webhook or sweep to resolve.
    """
    outcome = ctx.wallet.confirm_payment(user_id, request.order_id, request.payment_id, request.signature)
    return _reconcile_response(outcome)


@router.post("/orders/{order_id}/cancel", response_model=ActionResponse)
def cancel_order(
    order_id: str,
    request: CancelOrderRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    cancelled = ctx.wallet.cancel_order(user_id, order_id, request.reason)
    message = "Payment cancelled" if cancelled else "Transaction not found or already processed"
    return ActionResponse(message=message)


@router.post("/orders/{order_id}/failure", response_model=ActionResponse)
def record_payment_failure(
    order_id: str,
    request: PaymentFailureRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    recorded = ctx.wallet.record_client_failure(
        user_id,
        order_id,
        error_code=request.error_code,
        error_description=request.error_description,
        error_reason=request.error_reason,
    )
    message = "Payment failure recorded" if recorded else "Transaction not found or already processed"
    return ActionResponse(message=message)


@router.post("/orders/{order_id}/sync", response_model=ReconcileResponse)
def sync_order(
    order_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ctx: AppContext = Depends(get_app_context)
):
    outcome = ctx.wallet.sync_order(user_id, order_id)
    return _reconcile_response(outcome)


@router.post("/webhook")
async def gateway_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(default=None),
    ctx: AppContext = Depends(get_app_context)
):
    """
    Gateway webhook. Signature is checked over the raw body; once verified,
    the delivery is always acknowledged.
    """
    raw_body = await request.body()
    return await run_in_threadpool(ctx.wallet.handle_webhook, raw_body, x_razorpay_signature)
