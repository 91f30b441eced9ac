"""
Tests for the daily matching-and-billing batch, end to end on SQLite with
fake oracle, gateway and notifier.
"""
import threading
import unittest
import uuid
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from core.config_loader import MatchingConfig
from database.models import MatchRecord, Transaction, TransactionType, SKIPPED_VERDICT
from database.uow import UnitOfWork
from pipeline.runner import run_matching_batch
from tests import make_session_factory, make_config, build_context, create_user, create_job
from tests.mocks.fakes import FakeScoringOracle, FakeNotifier


@pytest.mark.db
class TestMatchingBatch(unittest.TestCase):

    def setUp(self):
        self.session_factory = make_session_factory()
        self.oracle = FakeScoringOracle()
        self.notifier = FakeNotifier()
        self.ctx = build_context(self.session_factory, oracle=self.oracle, notifier=self.notifier)

    def tearDown(self):
        self.ctx.close()

    def _matches(self, user_id):
        with UnitOfWork(self.session_factory) as uow:
            rows = uow.session.query(MatchRecord).filter(MatchRecord.user_id == user_id).all()
            return {row.job.title: (row.score, row.skipped, row.verdict) for row in rows}

    def _debits(self, user_id):
        with UnitOfWork(self.session_factory) as uow:
            return uow.session.query(Transaction).filter(
                Transaction.user_id == user_id,
                Transaction.type == TransactionType.DEBIT,
            ).count()

    def _balance(self, user_id):
        with UnitOfWork(self.session_factory) as uow:
            return uow.users.get_balance(user_id)

    def test_first_run_keeps_skips_and_charges(self):
        """Scores 80 and 20 against minScore 30: one kept, one skipped, one debit."""
        user_id = create_user(self.session_factory, wallet_balance_cents=100, min_score=30)
        create_job(self.session_factory, title="Good fit")
        create_job(self.session_factory, title="Poor fit")
        self.oracle.scores = {"Good fit": 80, "Poor fit": 20}

        result = run_matching_batch(self.ctx)

        self.assertTrue(result.success)
        self.assertEqual(result.users_processed, 1)
        self.assertEqual(result.users_charged, 1)
        matches = self._matches(user_id)
        self.assertEqual(matches["Good fit"][:2], (80, False))
        self.assertEqual(matches["Poor fit"], (20, True, SKIPPED_VERDICT))
        self.assertEqual(self._debits(user_id), 1)
        self.assertEqual(self._balance(user_id), 70)
        self.assertEqual(self.notifier.sent, [{'user_id': user_id, 'scores': [80], 'fee_charged_cents': 30}])

    def test_second_run_same_day_does_not_charge(self):
        """A new listing later the same day is matched without a second debit."""
        user_id = create_user(self.session_factory, wallet_balance_cents=100)
        create_job(self.session_factory, title="Good fit")
        create_job(self.session_factory, title="Poor fit")
        self.oracle.scores = {"Good fit": 80, "Poor fit": 20, "New fit": 90}
        run_matching_batch(self.ctx)

        create_job(self.session_factory, title="New fit")
        self.oracle.calls.clear()
        result = run_matching_batch(self.ctx)

        self.assertEqual(self.oracle.calls, ["New fit"])
        self.assertEqual(self._matches(user_id)["New fit"][:2], (90, False))
        self.assertEqual(self._debits(user_id), 1)
        self.assertEqual(self._balance(user_id), 70)
        self.assertEqual(result.users_charged, 0)
        self.assertEqual(self.notifier.sent[-1]['fee_charged_cents'], 0)

    def test_nothing_new_means_no_calls_or_charge(self):
        user_id = create_user(self.session_factory, wallet_balance_cents=100)
        create_job(self.session_factory, title="Only job")
        run_matching_batch(self.ctx)
        self.oracle.calls.clear()

        run_matching_batch(self.ctx)

        self.assertEqual(self.oracle.calls, [])
        self.assertEqual(len(self._matches(user_id)), 1)
        self.assertEqual(self._debits(user_id), 1)
        self.assertEqual(len(self.notifier.sent), 1)

    def test_all_below_threshold_is_free(self):
        user_id = create_user(self.session_factory, wallet_balance_cents=100, min_score=60)
        create_job(self.session_factory, title="Meh")
        self.oracle.scores = {"Meh": 59}

        run_matching_batch(self.ctx)

        self.assertEqual(self._matches(user_id)["Meh"][1], True)
        self.assertEqual(self._debits(user_id), 0)
        self.assertEqual(self._balance(user_id), 100)
        self.assertEqual(self.notifier.sent, [])

    def test_oracle_failures_are_retried_next_run(self):
        user_id = create_user(self.session_factory, wallet_balance_cents=100)
        create_job(self.session_factory, title="Flaky")
        create_job(self.session_factory, title="Stable")
        self.oracle.failures = {"Flaky"}

        run_matching_batch(self.ctx)
        self.assertEqual(set(self._matches(user_id)), {"Stable"})

        self.oracle.failures = set()
        run_matching_batch(self.ctx)
        self.assertEqual(set(self._matches(user_id)), {"Stable", "Flaky"})
        self.assertEqual(self._debits(user_id), 1)

    def test_notification_failure_keeps_debit(self):
        self.ctx.notifier = FakeNotifier(fail=True)
        user_id = create_user(self.session_factory, wallet_balance_cents=100)
        create_job(self.session_factory)

        result = run_matching_batch(self.ctx)

        self.assertTrue(result.success)
        self.assertEqual(result.notified_count, 0)
        self.assertEqual(self._debits(user_id), 1)
        self.assertEqual(len(self._matches(user_id)), 1)

    def test_ineligible_users_are_not_run(self):
        poor = create_user(self.session_factory, wallet_balance_cents=29)
        unverified = create_user(self.session_factory, is_verified=False)
        create_job(self.session_factory)

        result = run_matching_batch(self.ctx)

        self.assertEqual(result.users_processed, 0)
        self.assertEqual(self._matches(poor), {})
        self.assertEqual(self._matches(unverified), {})
        self.assertEqual(self.oracle.calls, [])

    def test_storage_failure_aborts_only_that_user(self):
        broken = create_user(self.session_factory, email="broken@example.com")
        healthy = create_user(self.session_factory, email="healthy@example.com")
        create_job(self.session_factory)
        original = self.ctx.deduplicator.eligible_jobs

        def flaky_dedup(user, candidates):
            if user.user_id == broken:
                raise OperationalError("SELECT", {}, Exception("connection reset"))
            return original(user, candidates)

        with patch.object(self.ctx.deduplicator, 'eligible_jobs', side_effect=flaky_dedup):
            result = run_matching_batch(self.ctx)

        self.assertEqual(result.users_failed, 1)
        self.assertEqual(result.users_processed, 1)
        self.assertEqual(self._matches(broken), {})
        self.assertEqual(len(self._matches(healthy)), 1)
        self.assertEqual(self._debits(broken), 0)
        self.assertEqual(self._debits(healthy), 1)

    def test_single_user_override(self):
        target = create_user(self.session_factory)
        other = create_user(self.session_factory)
        create_job(self.session_factory)

        result = run_matching_batch(self.ctx, user_id=target)

        self.assertEqual(result.users_processed, 1)
        self.assertEqual(len(self._matches(target)), 1)
        self.assertEqual(self._matches(other), {})

    def test_override_with_insufficient_balance_does_nothing(self):
        user_id = create_user(self.session_factory, wallet_balance_cents=5)
        create_job(self.session_factory)

        result = run_matching_batch(self.ctx, user_id=user_id)

        self.assertTrue(result.success)
        self.assertEqual(result.users_processed, 0)
        self.assertEqual(self.oracle.calls, [])

    def test_override_with_unknown_user(self):
        result = run_matching_batch(self.ctx, user_id=uuid.uuid4())
        self.assertFalse(result.success)

    def test_stop_event_ends_batch(self):
        create_user(self.session_factory)
        create_job(self.session_factory)
        stop = threading.Event()
        stop.set()

        result = run_matching_batch(self.ctx, stop_event=stop)

        self.assertEqual(result.users_processed, 0)
        self.assertEqual(self.oracle.calls, [])

    def test_disabled_matching(self):
        ctx = build_context(self.session_factory, config=make_config(matching=MatchingConfig(enabled=False)))
        create_user(self.session_factory)
        create_job(self.session_factory)

        result = run_matching_batch(ctx)
        ctx.close()

        self.assertTrue(result.success)
        self.assertEqual(result.users_processed, 0)

if __name__ == '__main__':
    unittest.main()
