import logging
from datetime import datetime
from typing import List, Optional, Any, Dict, Tuple

from sqlalchemy import select, update, func

from database.models import (
    Transaction, TransactionType, TransactionStatus, CREDIT_APPLIED_KEY
)
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class TransactionRepository(BaseRepository):
    def add(
        self,
        user_id: Any,
        type: str,
        amount_cents: int,
        description: str,
        status: str,
        gateway_order_id: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None
    ) -> Transaction:
        txn = Transaction(
            user_id=user_id,
            type=type,
            amount_cents=amount_cents,
            description=description,
            status=status,
            gateway_order_id=gateway_order_id,
            meta=meta or {},
        )
        if created_at is not None:
            txn.created_at = created_at
        self.db.add(txn)
        self.db.flush()
        return txn

    def get_by_id(self, txn_id: Any) -> Optional[Transaction]:
        return self.db.get(Transaction, txn_id)

    def find_credit_by_order(self, order_id: str, user_id: Any = None) -> Optional[Transaction]:
        stmt = select(Transaction).where(
            Transaction.gateway_order_id == order_id,
            Transaction.type == TransactionType.CREDIT
        )
        if user_id is not None:
            stmt = stmt.where(Transaction.user_id == user_id)
        return self.db.execute(stmt.order_by(Transaction.created_at)).scalars().first()

    def find_completed_debit(
        self,
        user_id: Any,
        amount_cents: int,
        window_start: datetime,
        window_end: datetime
    ) -> Optional[Transaction]:
        """Completed debit of exactly `amount_cents` in [window_start, window_end)."""
        stmt = select(Transaction).where(
            Transaction.user_id == user_id,
            Transaction.type == TransactionType.DEBIT,
            Transaction.status == TransactionStatus.COMPLETED,
            Transaction.amount_cents == amount_cents,
            Transaction.created_at >= window_start,
            Transaction.created_at < window_end,
        )
        return self.db.execute(stmt.limit(1)).scalars().first()

    def list_for_user(self, user_id: Any, offset: int = 0, limit: int = 20) -> List[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id)
            .offset(offset)
            .limit(limit)
        )
        return self.db.execute(stmt).scalars().all()

    def count_for_user(self, user_id: Any) -> int:
        stmt = select(func.count(Transaction.id)).where(Transaction.user_id == user_id)
        return self.db.execute(stmt).scalar_one()

    def get_stale_pending_credits(self, older_than: datetime) -> List[Transaction]:
        stmt = select(Transaction).where(
            Transaction.status == TransactionStatus.PENDING,
            Transaction.type == TransactionType.CREDIT,
            Transaction.created_at < older_than,
        ).order_by(Transaction.created_at)
        return self.db.execute(stmt).scalars().all()

    def claim_credit(
        self,
        txn_id: Any,
        meta: Dict[str, Any],
        payment_id: Optional[str] = None,
        signature: Optional[str] = None
    ) -> bool:
        """
        Atomically mark a credit completed and set its idempotency marker.

        `meta` must already carry CREDIT_APPLIED_KEY. Only succeeds while the
        stored row has no marker and is not failed, so exactly one caller per
        transaction gets True.
        """
        values = {'status': TransactionStatus.COMPLETED, 'meta': meta}
        if payment_id:
            values['gateway_payment_id'] = payment_id
        if signature:
            values['gateway_signature'] = signature

        stmt = (
            update(Transaction)
            .where(
                Transaction.id == txn_id,
                Transaction.type == TransactionType.CREDIT,
                Transaction.status != TransactionStatus.FAILED,
                Transaction.meta[CREDIT_APPLIED_KEY].as_string().is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.expire_all()
        return result.rowcount == 1

    def fail_if_pending(self, txn_id: Any, meta: Dict[str, Any]) -> bool:
        stmt = (
            update(Transaction)
            .where(
                Transaction.id == txn_id,
                Transaction.status == TransactionStatus.PENDING
            )
            .values(status=TransactionStatus.FAILED, meta=meta)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.expire_all()
        return result.rowcount == 1

    def annotate(self, txn_id: Any, meta: Dict[str, Any], status: Optional[str] = None) -> None:
        """Metadata (and status normalization) without touching any balance."""
        values: Dict[str, Any] = {'meta': meta}
        if status is not None:
            values['status'] = status
        stmt = (
            update(Transaction)
            .where(Transaction.id == txn_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.expire_all()

    def completed_totals(self, user_id: Any) -> Tuple[int, int]:
        """(sum of completed credits, sum of completed debits) for a user."""
        stmt = (
            select(Transaction.type, func.coalesce(func.sum(Transaction.amount_cents), 0))
            .where(
                Transaction.user_id == user_id,
                Transaction.status == TransactionStatus.COMPLETED
            )
            .group_by(Transaction.type)
        )
        totals = {row[0]: int(row[1]) for row in self.db.execute(stmt).all()}
        return totals.get(TransactionType.CREDIT, 0), totals.get(TransactionType.DEBIT, 0)
