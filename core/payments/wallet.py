"""
Wallet Service - balance reads, top-up orders and client-side order outcomes.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from core.config_loader import GatewayConfig
from core.exceptions import InvalidTopUpAmount, UserNotFound
from core.payments.gateway import PaymentGateway, MAX_RECEIPT_LENGTH
from core.payments.reconciler import GatewayReconciler, ReconcileOutcome
from database.models import Transaction, TransactionType, TransactionStatus
from database.uow import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass
class TopUpOrder:
    order_id: str
    amount: int
    currency: str
    transaction_id: Any


@dataclass
class TransactionPage:
    transactions: List[Transaction]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def build_receipt(user_id: Any, now_ms: Optional[int] = None) -> str:
    """`wlt_<last 12 of user id>_<last 8 of epoch ms>`, at most 40 characters."""
    short_user = str(user_id).replace('-', '')[-12:]
    stamp = str(now_ms if now_ms is not None else int(time.time() * 1000))[-8:]
    return f"wlt_{short_user}_{stamp}"[:MAX_RECEIPT_LENGTH]


class WalletService:
    def __init__(
        self,
        session_factory: sessionmaker,
        gateway: PaymentGateway,
        reconciler: GatewayReconciler,
        config: GatewayConfig
    ):
        self.session_factory = session_factory
        self.gateway = gateway
        self.reconciler = reconciler
        self.config = config

    def get_balance(self, user_id: Any) -> int:
        with UnitOfWork(self.session_factory) as uow:
            balance = uow.users.get_balance(user_id)
        if balance is None:
            raise UserNotFound(f"User {user_id} not found")
        return balance

    def list_transactions(self, user_id: Any, page: int = 1, limit: int = 20) -> TransactionPage:
        page = max(page, 1)
        limit = max(min(limit, 100), 1)
        with UnitOfWork(self.session_factory) as uow:
            rows = uow.transactions.list_for_user(user_id, offset=(page - 1) * limit, limit=limit)
            total = uow.transactions.count_for_user(user_id)
            for row in rows:
                uow.session.expunge(row)
        return TransactionPage(transactions=rows, page=page, limit=limit, total=total)

    def validate_top_up(self, amount: Any) -> int:
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise InvalidTopUpAmount("Amount must be a number")
        if amount < self.config.min_top_up or amount > self.config.max_top_up:
            raise InvalidTopUpAmount(
                f"Amount must be between {self.config.min_top_up} and {self.config.max_top_up}"
            )
        if amount % 1 != 0:
            raise InvalidTopUpAmount("Amount must be a whole number (no decimals)")
        return int(amount)

    def create_top_up_order(self, user_id: Any, amount: Any) -> TopUpOrder:
        """
        Issue a gateway order and record the matching pending credit.

        Raises:
            InvalidTopUpAmount: amount out of bounds or fractional
            GatewayUnreachable: order creation failed; nothing is recorded
        """
        whole_amount = self.validate_top_up(amount)
        self.get_balance(user_id)

        receipt = build_receipt(user_id)
        order = self.gateway.create_order(whole_amount * 100, receipt)

        with UnitOfWork(self.session_factory) as uow:
            txn = uow.transactions.add(
                user_id=user_id,
                type=TransactionType.CREDIT,
                amount_cents=whole_amount * 100,
                description=f"Wallet top-up - {whole_amount} {order.currency}",
                status=TransactionStatus.PENDING,
                gateway_order_id=order.order_id,
                meta={'receipt': receipt, 'order_details': order.raw},
            )
            txn_id = txn.id

        logger.info(f"Top-up order {order.order_id} created for user {user_id}: {whole_amount} {order.currency}")
        return TopUpOrder(
            order_id=order.order_id,
            amount=order.amount_minor // 100,
            currency=order.currency,
            transaction_id=txn_id,
        )

    def _pending_for_order(self, user_id: Any, order_id: str) -> Optional[Any]:
        with UnitOfWork(self.session_factory) as uow:
            txn = uow.transactions.find_credit_by_order(order_id, user_id)
            if txn is None or txn.status != TransactionStatus.PENDING:
                return None
            return txn.id

    def cancel_order(self, user_id: Any, order_id: str, reason: Optional[str] = None) -> bool:
        """Client closed checkout. Returns False when there was nothing pending to cancel."""
        txn_id = self._pending_for_order(user_id, order_id)
        if txn_id is None:
            logger.info(f"Cancel for order {order_id}: not found or already processed")
            return False
        outcome = self.reconciler.fail_credit(
            txn_id, reason or "User cancelled payment", cancelled_by='client'
        )
        return outcome.status == TransactionStatus.FAILED

    def record_client_failure(
        self,
        user_id: Any,
        order_id: str,
        error_code: Optional[str] = None,
        error_description: Optional[str] = None,
        error_reason: Optional[str] = None
    ) -> bool:
        """Checkout reported a payment failure to the client."""
        txn_id = self._pending_for_order(user_id, order_id)
        if txn_id is None:
            logger.info(f"Payment failure for order {order_id}: not found or already processed")
            return False
        outcome = self.reconciler.fail_credit(
            txn_id,
            error_description or "Payment failed",
            cancelled_by='gateway_client',
            error_code=error_code,
            error_reason=error_reason,
        )
        return outcome.status == TransactionStatus.FAILED

    def confirm_payment(self, user_id: Any, order_id: str, payment_id: str, signature: str) -> ReconcileOutcome:
        return self.reconciler.confirm_payment(user_id, order_id, payment_id, signature)

    def sync_order(self, user_id: Any, order_id: str) -> ReconcileOutcome:
        return self.reconciler.sync_transaction(user_id, order_id)

    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        return self.reconciler.handle_webhook(raw_body, signature)
