"""
Gateway Reconciler - resolves pending wallet credits.

Four independent entry points race to finish the same credit: client
confirmation, gateway webhook, manual sync, and the stale sweep. All of them
funnel into `_complete_credit`, which applies the wallet credit only if its
conditional UPDATE is the one that sets the `credit_applied_at` marker. Every
other caller just merges metadata.
"""
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from core.config_loader import GatewayConfig
from core.exceptions import (
    GatewaySignatureInvalid,
    GatewayUnreachable,
    StaleTransactionUnresolved,
    TransactionNotFound,
)
from core.payments.gateway import PaymentGateway
from database.models import (
    Transaction, TransactionStatus, CREDIT_APPLIED_KEY, utcnow
)
from database.uow import UnitOfWork

logger = logging.getLogger(__name__)

WEBHOOK_COMPLETION_EVENTS = ('payment.captured', 'order.paid')
WEBHOOK_FAILURE_EVENT = 'payment.failed'
PROCESSING_ERROR_ACK = {"received": True, "error": "Processing error logged"}


class CompletionSource:
    CLIENT = 'client'
    WEBHOOK = 'webhook'
    SYNC = 'sync'
    SWEEP = 'sweep'


@dataclass
class ReconcileOutcome:
    transaction_id: Any
    status: str
    credited: bool = False
    balance_cents: Optional[int] = None
    gateway_status: Optional[str] = None


@dataclass
class SweepResult:
    checked: int = 0
    recovered: int = 0
    expired: int = 0
    unresolved: int = 0
    errors: List[str] = field(default_factory=list)


def _merge(meta: Optional[Dict[str, Any]], **updates) -> Dict[str, Any]:
    merged = dict(meta or {})
    merged.update({k: v for k, v in updates.items() if v is not None})
    return merged


class GatewayReconciler:
    def __init__(self, session_factory: sessionmaker, gateway: PaymentGateway, config: GatewayConfig):
        self.session_factory = session_factory
        self.gateway = gateway
        self.stale_after = timedelta(minutes=config.stale_after_minutes)

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def _complete_credit(
        self,
        txn_id: Any,
        source: str,
        payment_id: Optional[str] = None,
        signature: Optional[str] = None,
        **details
    ) -> ReconcileOutcome:
        now_iso = utcnow().isoformat()

        with UnitOfWork(self.session_factory) as uow:
            txn = uow.transactions.get_by_id(txn_id)
            if txn is None:
                raise TransactionNotFound(f"Transaction {txn_id} not found")

            if txn.status == TransactionStatus.FAILED:
                logger.error(
                    f"Gateway reports payment for failed transaction {txn.id} "
                    f"(order {txn.gateway_order_id}, via {source}); needs manual follow-up"
                )
                return ReconcileOutcome(txn.id, txn.status)

            meta = _merge(txn.meta, **details)

            if not (txn.meta or {}).get(CREDIT_APPLIED_KEY):
                claimed_meta = _merge(meta, **{CREDIT_APPLIED_KEY: now_iso, 'credited_via': source})
                if uow.transactions.claim_credit(txn.id, claimed_meta, payment_id, signature):
                    balance = uow.users.apply_balance_delta(txn.user_id, txn.amount_cents)
                    logger.info(
                        f"Credited {txn.amount_cents} to user {txn.user_id} via {source} "
                        f"(order {txn.gateway_order_id}); balance now {balance}"
                    )
                    return ReconcileOutcome(txn.id, TransactionStatus.COMPLETED, True, balance)

                # Another path won between our read and the update
                txn = uow.transactions.get_by_id(txn_id)
                if txn.status == TransactionStatus.FAILED:
                    return ReconcileOutcome(txn.id, txn.status)
                meta = _merge(txn.meta, **details)

            # Marker already set: normalization only, never a second credit
            uow.transactions.annotate(txn.id, meta, status=TransactionStatus.COMPLETED)
            logger.info(f"Transaction {txn.id} already credited; {source} recorded without balance change")
            return ReconcileOutcome(
                txn.id, TransactionStatus.COMPLETED, False, uow.users.get_balance(txn.user_id)
            )

    def fail_credit(self, txn_id: Any, reason: str, cancelled_by: str, **details) -> ReconcileOutcome:
        with UnitOfWork(self.session_factory) as uow:
            txn = uow.transactions.get_by_id(txn_id)
            if txn is None:
                raise TransactionNotFound(f"Transaction {txn_id} not found")

            meta = _merge(
                txn.meta,
                failed_at=utcnow().isoformat(),
                failure_reason=reason,
                cancelled_by=cancelled_by,
                **details
            )
            if uow.transactions.fail_if_pending(txn.id, meta):
                logger.info(f"Transaction {txn.id} marked failed by {cancelled_by}: {reason}")
                return ReconcileOutcome(txn.id, TransactionStatus.FAILED)

            logger.info(f"Transaction {txn.id} already {txn.status}; ignoring failure from {cancelled_by}")
            return ReconcileOutcome(txn.id, txn.status)

    def _find_order(self, order_id: str, user_id: Any = None) -> Optional[Transaction]:
        with UnitOfWork(self.session_factory) as uow:
            txn = uow.transactions.find_credit_by_order(order_id, user_id)
            if txn is not None:
                uow.session.expunge(txn)
            return txn

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def confirm_payment(self, user_id: Any, order_id: str, payment_id: str, signature: str) -> ReconcileOutcome:
        """
        Client confirmation after checkout.

        Raises:
            GatewaySignatureInvalid: signature mismatch; the credit stays pending
            TransactionNotFound: no credit for this order and user
        """
        txn = self._find_order(order_id, user_id)
        if txn is None:
            raise TransactionNotFound(f"No credit transaction for order {order_id}")

        if not self.gateway.verify(order_id, payment_id, signature):
            logger.warning(f"Invalid payment signature for order {order_id} (user {user_id})")
            raise GatewaySignatureInvalid(f"Invalid payment signature for order {order_id}")

        return self._complete_credit(
            txn.id,
            CompletionSource.CLIENT,
            payment_id=payment_id,
            signature=signature,
            payment_id_confirmed=payment_id,
            verified_at=utcnow().isoformat(),
        )

    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Process one gateway delivery.

        Unauthenticated deliveries raise GatewaySignatureInvalid and touch
        nothing. Authenticated ones are always acknowledged; processing
        errors are logged for manual follow-up.
        """
        if not signature or not self.gateway.verify_webhook(raw_body, signature):
            logger.error("Webhook received with missing or invalid signature")
            raise GatewaySignatureInvalid("Invalid webhook signature")

        try:
            event = json.loads(raw_body)
            self._dispatch_webhook_event(event)
        except Exception:
            logger.exception("Error processing webhook")
            return dict(PROCESSING_ERROR_ACK)

        return {"received": True}

    def _dispatch_webhook_event(self, event: Dict[str, Any]) -> None:
        event_type = event.get('event')
        payload = event.get('payload') or {}
        payment = (payload.get('payment') or {}).get('entity') or {}
        order = (payload.get('order') or {}).get('entity') or {}

        logger.info(f"Gateway webhook received: {event_type}")

        if event_type in WEBHOOK_COMPLETION_EVENTS:
            order_id = payment.get('order_id') or order.get('id')
            if not order_id:
                logger.error(f"Webhook {event_type} missing order id")
                return
            txn = self._find_order(order_id)
            if txn is None:
                logger.error(f"Transaction not found for order {order_id}")
                return
            self._complete_credit(
                txn.id,
                CompletionSource.WEBHOOK,
                payment_id=payment.get('id'),
                webhook_event=event_type,
                webhook_confirmed_at=utcnow().isoformat(),
            )

        elif event_type == WEBHOOK_FAILURE_EVENT:
            order_id = payment.get('order_id')
            if not order_id:
                logger.error("Webhook payment.failed missing order id")
                return
            txn = self._find_order(order_id)
            if txn is None:
                logger.error(f"Transaction not found for order {order_id}")
                return
            self.fail_credit(
                txn.id,
                payment.get('error_description') or "Payment failed",
                cancelled_by='gateway_webhook',
                error_code=payment.get('error_code'),
                error_reason=payment.get('error_reason'),
                webhook_event=event_type,
            )

        else:
            logger.info(f"Unhandled webhook event: {event_type}")

    def sync_transaction(self, user_id: Any, order_id: str) -> ReconcileOutcome:
        """
        Poll the gateway for one order and settle the credit if it is paid.

        Raises:
            TransactionNotFound: no credit for this order and user
            GatewayUnreachable: gateway lookup failed; the credit stays pending
        """
        txn = self._find_order(order_id, user_id)
        if txn is None:
            raise TransactionNotFound(f"No credit transaction for order {order_id}")

        if txn.status != TransactionStatus.PENDING:
            return ReconcileOutcome(txn.id, txn.status)

        order = self.gateway.fetch_order(order_id)
        if order is None:
            raise GatewayUnreachable(f"Gateway returned no order for {order_id}")

        if order.is_paid:
            outcome = self._complete_credit(
                txn.id,
                CompletionSource.SYNC,
                synced_at=utcnow().isoformat(),
                gateway_status=order.status,
            )
            outcome.gateway_status = order.status
            return outcome

        return ReconcileOutcome(txn.id, TransactionStatus.PENDING, gateway_status=order.status)

    def _resolve_stale(self, txn: Transaction) -> ReconcileOutcome:
        order = self.gateway.fetch_order(txn.gateway_order_id) if txn.gateway_order_id else None
        if order is not None and order.is_paid:
            return self._complete_credit(
                txn.id,
                CompletionSource.SWEEP,
                recovered_at=utcnow().isoformat(),
                gateway_status=order.status,
                recovery_note="Recovered during stale transaction cleanup",
            )
        raise StaleTransactionUnresolved(
            f"Transaction {txn.id} unpaid after {self.stale_after} "
            f"(gateway status: {order.status if order else 'unknown'})"
        )

    def sweep_stale(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Finalize pending credits older than the staleness window.

        Paid orders are recovered; unpaid or unknown ones fail. An unreachable
        gateway leaves the credit pending for the next sweep.
        """
        threshold = (now or utcnow()) - self.stale_after
        start = time.time()
        result = SweepResult()

        with UnitOfWork(self.session_factory) as uow:
            stale = uow.transactions.get_stale_pending_credits(threshold)
            for txn in stale:
                uow.session.expunge(txn)

        logger.info(f"Found {len(stale)} stale pending transactions to check")

        for txn in stale:
            result.checked += 1
            try:
                outcome = self._resolve_stale(txn)
                if outcome.status == TransactionStatus.COMPLETED:
                    result.recovered += 1
            except GatewayUnreachable as e:
                result.unresolved += 1
                logger.warning(f"Gateway unreachable for stale transaction {txn.id}, leaving pending: {e}")
            except StaleTransactionUnresolved as e:
                logger.info(str(e))
                outcome = self.fail_credit(
                    txn.id,
                    "Transaction expired (no payment received)",
                    cancelled_by='system_cleanup',
                )
                if outcome.status == TransactionStatus.FAILED:
                    result.expired += 1
            except Exception as e:
                result.errors.append(f"{txn.id}: {e}")
                logger.error(f"Error processing stale transaction {txn.id}: {e}", exc_info=True)

        logger.info(
            f"Stale sweep finished in {time.time() - start:.1f}s: {result.recovered} recovered, "
            f"{result.expired} expired, {result.unresolved} unresolved, {len(result.errors)} errors"
        )
        return result
