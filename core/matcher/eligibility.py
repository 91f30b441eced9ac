"""
Eligibility Selector - users and listings for one matching run.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Any

from sqlalchemy.orm import sessionmaker

from core.config_loader import MatchingConfig
from core.exceptions import InsufficientBalance, UserNotFound
from core.matcher.models import UserContext, JobContext
from database.uow import UnitOfWork

logger = logging.getLogger(__name__)


class EligibilitySelector:
    def __init__(self, session_factory: sessionmaker, config: MatchingConfig, fee_cents: int):
        self.session_factory = session_factory
        self.config = config
        self.fee_cents = fee_cents

    def select_users(self) -> List[UserContext]:
        """Verified, matching-enabled users whose balance covers the fee."""
        with UnitOfWork(self.session_factory) as uow:
            users = uow.users.get_eligible_users(self.fee_cents)
            return [UserContext.from_user(user) for user in users]

    def select_user(self, user_id: Any) -> Optional[UserContext]:
        """
        Single-user override. Same rules as the batch query.

        Returns None when the user is unverified or has matching disabled.

        Raises:
            UserNotFound: unknown id
            InsufficientBalance: balance below the fee
        """
        with UnitOfWork(self.session_factory) as uow:
            user = uow.users.get_by_id(user_id)
            if user is None:
                raise UserNotFound(f"User {user_id} not found")
            if not user.is_verified or not user.matching_enabled:
                logger.info(
                    f"User {user.email} not eligible "
                    f"(verified={user.is_verified}, matching_enabled={user.matching_enabled})"
                )
                return None
            if user.wallet_balance_cents < self.fee_cents:
                raise InsufficientBalance(user.id, user.wallet_balance_cents, self.fee_cents)
            return UserContext.from_user(user)

    def candidate_jobs(self, now: datetime) -> List[JobContext]:
        since = now - timedelta(days=self.config.candidate_window_days)
        with UnitOfWork(self.session_factory) as uow:
            listings = uow.jobs.get_recent_listings(since)
            jobs = [JobContext.from_listing(job) for job in listings]
        logger.info(f"Found {len(jobs)} candidate listings since {since.date()}")
        return jobs


class MatchDeduplicator:
    """Drops skip-listed and already-matched listings for one user."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def eligible_jobs(self, user: UserContext, candidates: List[JobContext]) -> List[JobContext]:
        # Storage errors propagate: they abort this user's run only
        with UnitOfWork(self.session_factory) as uow:
            matched = uow.matches.get_matched_job_ids(user.user_id)

        excluded = matched | set(user.skipped_job_ids)
        return [job for job in candidates if str(job.job_id) not in excluded]
