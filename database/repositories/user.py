import logging
from datetime import datetime
from typing import List, Optional, Any

from sqlalchemy import select, update, case

from database.models import User, utcnow
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository):
    def get_by_id(self, user_id: Any) -> Optional[User]:
        return self.db.get(User, user_id)

    def create_user(self, email: str, **fields) -> User:
        user = User(email=email, **fields)
        if 'opening_balance_cents' not in fields:
            user.opening_balance_cents = fields.get('wallet_balance_cents', 0)
        self.db.add(user)
        self.db.flush()
        return user

    def get_eligible_users(self, fee_cents: int) -> List[User]:
        stmt = select(User).where(
            User.is_verified.is_(True),
            User.matching_enabled.is_(True),
            User.wallet_balance_cents >= fee_cents,
        ).order_by(User.created_at, User.id)
        return self.db.execute(stmt).scalars().all()

    def get_balance(self, user_id: Any) -> Optional[int]:
        stmt = select(User.wallet_balance_cents).where(User.id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def apply_balance_delta(self, user_id: Any, delta_cents: int, floor_at_zero: bool = False) -> Optional[int]:
        """Shift the cached balance in one UPDATE and return the new value."""
        new_balance = User.wallet_balance_cents + delta_cents
        if floor_at_zero:
            new_balance = case((new_balance < 0, 0), else_=new_balance)

        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(wallet_balance_cents=new_balance)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.expire_all()
        if result.rowcount != 1:
            logger.error(f"Balance update matched {result.rowcount} rows for user {user_id}")
            return None
        return self.get_balance(user_id)

    def set_balance(self, user_id: Any, balance_cents: int) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(wallet_balance_cents=balance_cents)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.expire_all()

    def replace_skip_list(self, user_id: Any, expected_version: int, job_ids: List[str]) -> bool:
        """Write the skip-list only if no other writer bumped its version since it was read."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.skip_list_version == expected_version)
            .values(skipped_job_ids=job_ids, skip_list_version=User.skip_list_version + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.expire_all()
        return result.rowcount == 1

    def record_learned_insights(self, user_id: Any, insights: str, updated_at: Optional[datetime] = None) -> Optional[int]:
        """Store a new summary and bump the feedback counter in one UPDATE."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                learned_insights=insights,
                feedback_count=User.feedback_count + 1,
                insights_updated_at=updated_at or utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.expire_all()
        if result.rowcount != 1:
            return None
        stmt = select(User.feedback_count).where(User.id == user_id)
        return self.db.execute(stmt).scalar_one()
