"""Daily matching-and-billing batch.

Users are processed one after another; within a user the listings are
scored in parallel on a user-scoped pool. Used by main.py and tests.
"""

import time
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.app_context import AppContext
from core.exceptions import InsufficientBalance, UserNotFound
from core.matcher.classifier import classify
from core.matcher.models import UserContext, JobContext
from database.models import utcnow

logger = logging.getLogger(__name__)


@dataclass
class UserRunResult:
    user_id: Any
    eligible_jobs: int = 0
    scored: int = 0
    kept: int = 0
    skipped: int = 0
    fee_charged_cents: int = 0
    notified: bool = False
    error: Optional[str] = None


@dataclass
class MatchingBatchResult:
    """Result of one matching batch."""
    success: bool
    users_processed: int = 0
    users_failed: int = 0
    matches_saved: int = 0
    users_charged: int = 0
    notified_count: int = 0
    user_results: List[UserRunResult] = field(default_factory=list)
    error: Optional[str] = None
    execution_time: float = 0.0


def _notify(ctx: AppContext, user: UserContext, kept, fee_charged_cents: int) -> bool:
    if ctx.notifier is None:
        return False
    try:
        return bool(ctx.notifier.send_match_summary(user, kept, fee_charged_cents))
    except Exception as e:
        logger.error(f"Match summary notification failed for user {user.user_id}: {e}", exc_info=True)
        return False


def run_for_user(
    ctx: AppContext,
    user: UserContext,
    candidates: List[JobContext],
    now: Optional[datetime] = None
) -> UserRunResult:
    """Score, classify, persist, bill and notify for a single user.

    Storage errors propagate so the caller can abort just this user.
    """
    now = now or utcnow()
    result = UserRunResult(user_id=user.user_id)

    eligible = ctx.deduplicator.eligible_jobs(user, candidates)
    result.eligible_jobs = len(eligible)
    if not eligible:
        logger.info(f"No new listings for user {user.email}; nothing to do")
        return result

    scored = ctx.scorer.score_all(user, eligible, now=now)
    result.scored = len(scored)

    kept, skipped = classify(scored, user.min_score)
    stored = ctx.persister.persist(user.user_id, kept + skipped)
    kept_stored = [m for m in stored if not m.skipped]
    result.kept = len(kept_stored)
    result.skipped = len(stored) - len(kept_stored)

    logger.info(
        f"User {user.email}: {result.kept} kept, {result.skipped} below threshold "
        f"(min score {user.min_score})"
    )

    if not kept_stored:
        return result

    result.fee_charged_cents = ctx.ledger.charge_daily_fee(user.user_id, len(kept_stored), now=now)
    result.notified = _notify(ctx, user, kept_stored, result.fee_charged_cents)
    return result


def run_matching_batch(
    ctx: AppContext,
    user_id: Optional[Any] = None,
    stop_event: Optional[threading.Event] = None,
    now: Optional[datetime] = None
) -> MatchingBatchResult:
    """Run the matching batch for every eligible user, or just `user_id`.

    A failure for one user is logged and recorded; the batch moves on.
    """
    if stop_event is None:
        stop_event = threading.Event()

    batch_start = time.time()
    now = now or utcnow()

    logger.info("=" * 60)
    logger.info(f"STARTING MATCHING BATCH{f' (user {user_id})' if user_id else ''}")
    logger.info("=" * 60)

    if not ctx.config.matching.enabled:
        logger.info("=== MATCHING BATCH: Skipped (disabled in config) ===")
        return MatchingBatchResult(success=True, error="Matching disabled in config")

    try:
        if user_id is not None:
            user = ctx.selector.select_user(user_id)
            users = [user] if user else []
        else:
            users = ctx.selector.select_users()
        candidates = ctx.selector.candidate_jobs(now)
    except InsufficientBalance as e:
        logger.info(f"Skipping run: {e}")
        return MatchingBatchResult(success=True, execution_time=time.time() - batch_start)
    except UserNotFound as e:
        logger.error(str(e))
        return MatchingBatchResult(success=False, error=str(e), execution_time=time.time() - batch_start)
    except SQLAlchemyError as e:
        logger.error(f"Could not load users or listings: {e}", exc_info=True)
        return MatchingBatchResult(success=False, error=str(e), execution_time=time.time() - batch_start)

    logger.info(f"Eligible users: {len(users)}, candidate listings: {len(candidates)}")
    batch = MatchingBatchResult(success=True)

    for user in users:
        if stop_event.is_set():
            logger.info("Stop requested; ending batch early")
            break

        step_start = time.time()
        try:
            user_result = run_for_user(ctx, user, candidates, now=now)
        except SQLAlchemyError as e:
            logger.error(f"Storage failure for user {user.user_id}; aborting this user's run: {e}", exc_info=True)
            user_result = UserRunResult(user_id=user.user_id, error=str(e))
        except Exception as e:
            logger.error(f"Matching run failed for user {user.user_id}: {e}", exc_info=True)
            user_result = UserRunResult(user_id=user.user_id, error=str(e))

        batch.user_results.append(user_result)
        if user_result.error:
            batch.users_failed += 1
        else:
            batch.users_processed += 1
        batch.matches_saved += user_result.kept + user_result.skipped
        if user_result.fee_charged_cents:
            batch.users_charged += 1
        if user_result.notified:
            batch.notified_count += 1

        logger.info(f"User {user.email} done in {time.time() - step_start:.1f}s")

    batch.execution_time = time.time() - batch_start
    logger.info("=" * 60)
    logger.info(
        f"MATCHING BATCH COMPLETE: {batch.users_processed} users ok, {batch.users_failed} failed, "
        f"{batch.matches_saved} matches saved, {batch.users_charged} charged "
        f"in {batch.execution_time:.1f}s"
    )
    logger.info("=" * 60)
    return batch
