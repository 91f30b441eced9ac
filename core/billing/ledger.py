"""
Billing Ledger - at most one matching fee per user per processing day.

The processing day is a calendar day in one fixed timezone
(`billing.timezone`). The "charged today" fence is derived from the
transaction log on every call; nothing else is stored.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, date, time, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import sessionmaker

from core.config_loader import BillingConfig
from core.exceptions import UserNotFound
from database.models import TransactionType, TransactionStatus, utcnow
from database.uow import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessingDay:
    day: date
    start: datetime  # inclusive, UTC
    end: datetime  # exclusive, UTC


class BillingLedger:
    def __init__(self, session_factory: sessionmaker, config: BillingConfig):
        self.session_factory = session_factory
        self.fee_cents = config.fee_cents
        self.tz = ZoneInfo(config.timezone)

    def processing_day(self, now: Optional[datetime] = None) -> ProcessingDay:
        local_now = (now or utcnow()).astimezone(self.tz)
        day = local_now.date()
        start = datetime.combine(day, time.min, tzinfo=self.tz)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=self.tz)
        return ProcessingDay(
            day=day,
            start=start.astimezone(timezone.utc),
            end=end.astimezone(timezone.utc),
        )

    def already_charged(self, user_id: Any, now: Optional[datetime] = None) -> bool:
        window = self.processing_day(now)
        with UnitOfWork(self.session_factory) as uow:
            existing = uow.transactions.find_completed_debit(
                user_id, self.fee_cents, window.start, window.end
            )
            return existing is not None

    def charge_daily_fee(self, user_id: Any, matches_found: int, now: Optional[datetime] = None) -> int:
        """
        Debit the fee unless a completed fee debit already exists today.

        The debit row and the balance update commit together. Returns the
        amount charged in cents (0 when today's fee was already taken).
        """
        now = now or utcnow()
        window = self.processing_day(now)

        with UnitOfWork(self.session_factory) as uow:
            existing = uow.transactions.find_completed_debit(
                user_id, self.fee_cents, window.start, window.end
            )
            if existing is not None:
                logger.info(f"User {user_id} already charged for {window.day}, skipping debit")
                return 0

            balance = uow.users.get_balance(user_id)
            if balance is None:
                raise UserNotFound(f"User {user_id} not found")

            clamped = balance < self.fee_cents
            uow.transactions.add(
                user_id=user_id,
                type=TransactionType.DEBIT,
                amount_cents=self.fee_cents,
                description=f"Job matching fee - {window.day.isoformat()}",
                status=TransactionStatus.COMPLETED,
                meta={
                    'matches_found': matches_found,
                    'processing_day': window.day.isoformat(),
                    'balance_before_cents': balance,
                    'clamped': clamped,
                },
                created_at=now,
            )
            new_balance = uow.users.apply_balance_delta(user_id, -self.fee_cents, floor_at_zero=True)

        if clamped:
            logger.warning(
                f"Balance for user {user_id} was {balance} (< fee {self.fee_cents}); clamped to 0"
            )
        logger.info(f"Charged {self.fee_cents} to user {user_id} for {window.day}; balance now {new_balance}")
        return self.fee_cents

    def rebuild_balance(self, user_id: Any) -> int:
        """Recompute the cached balance from the transaction log."""
        with UnitOfWork(self.session_factory) as uow:
            user = uow.users.get_by_id(user_id)
            if user is None:
                raise UserNotFound(f"User {user_id} not found")
            credits, debits = uow.transactions.completed_totals(user_id)
            expected = max(0, user.opening_balance_cents + credits - debits)
            if expected != user.wallet_balance_cents:
                logger.warning(
                    f"Balance drift for user {user_id}: cached {user.wallet_balance_cents}, "
                    f"ledger {expected}. Repairing."
                )
                uow.users.set_balance(user_id, expected)
            return expected
