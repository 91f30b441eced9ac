"""
Tests for the rejection feedback loop.
"""
import unittest
import uuid

import pytest

from core.exceptions import MatchNotFound
from core.feedback.models import RejectionReason
from core.feedback.service import PreferenceFeedbackService, NO_INSIGHTS_YET, NO_DETAILS
from database.models import Freshness
from database.uow import UnitOfWork
from tests import make_session_factory, create_user, create_job
from tests.mocks.fakes import FakeSynthesizer


@pytest.mark.db
class TestPreferenceFeedbackService(unittest.TestCase):

    def setUp(self):
        self.session_factory = make_session_factory()
        self.user_id = create_user(self.session_factory, profile={'resume': {'skills': ['go', 'k8s']}})
        job_id = create_job(self.session_factory, title="Platform Engineer", description="x" * 5000)
        with UnitOfWork(self.session_factory) as uow:
            self.match_id = uow.matches.insert_match(
                self.user_id, job_id, 82, "Strong match", "Kubernetes experience", Freshness.RECENT
            ).id

    def _user(self):
        with UnitOfWork(self.session_factory) as uow:
            user = uow.users.get_by_id(self.user_id)
            return user.learned_insights, user.feedback_count, user.insights_updated_at

    def test_learn_stores_summary_and_counts(self):
        synthesizer = FakeSynthesizer()
        service = PreferenceFeedbackService(self.session_factory, synthesizer)

        count = service.learn(self.user_id, self.match_id, RejectionReason(category="salary"))
        service.shutdown()

        insights, feedback_count, updated_at = self._user()
        self.assertEqual(count, 1)
        self.assertEqual(feedback_count, 1)
        self.assertEqual(insights, "Avoids roles like Platform Engineer (salary)")
        self.assertIsNotNone(updated_at)

    def test_synthesizer_context(self):
        synthesizer = FakeSynthesizer()
        service = PreferenceFeedbackService(self.session_factory, synthesizer)

        service.learn(self.user_id, self.match_id, RejectionReason(category="skills_gap"))
        service.shutdown()

        call = synthesizer.calls[0]
        self.assertEqual(call['user']['existingLearnedPreferences'], NO_INSIGHTS_YET)
        self.assertEqual(call['user']['resume']['skills'], ['go', 'k8s'])
        self.assertEqual(len(call['job']['description']), 1000)
        self.assertEqual(call['match']['matchScore'], 82)
        self.assertEqual(call['reason'], {'category': 'skills_gap', 'details': NO_DETAILS})

    def test_second_rejection_sees_previous_summary(self):
        synthesizer = FakeSynthesizer()
        service = PreferenceFeedbackService(self.session_factory, synthesizer)

        service.learn(self.user_id, self.match_id, RejectionReason(category="salary"))
        count = service.learn(self.user_id, self.match_id, RejectionReason(category="location"))
        service.shutdown()

        self.assertEqual(count, 2)
        self.assertEqual(
            synthesizer.calls[1]['user']['existingLearnedPreferences'],
            "Avoids roles like Platform Engineer (salary)"
        )

    def test_submit_skips_job_inactive(self):
        synthesizer = FakeSynthesizer()
        service = PreferenceFeedbackService(self.session_factory, synthesizer)

        future = service.submit(self.user_id, self.match_id, RejectionReason(category="job_inactive"))
        service.shutdown()

        self.assertIsNone(future)
        self.assertEqual(synthesizer.calls, [])
        self.assertEqual(self._user()[1], 0)

    def test_submit_runs_in_background(self):
        service = PreferenceFeedbackService(self.session_factory, FakeSynthesizer())

        future = service.submit(self.user_id, self.match_id, RejectionReason(category="other", details="Too far"))

        self.assertEqual(future.result(timeout=10), 1)
        service.shutdown()

    def test_synthesis_failure_is_dropped(self):
        service = PreferenceFeedbackService(self.session_factory, FakeSynthesizer(fail=True))

        future = service.submit(self.user_id, self.match_id, RejectionReason(category="salary"))

        self.assertIsNone(future.result(timeout=10))
        service.shutdown()
        insights, feedback_count, _ = self._user()
        self.assertIsNone(insights)
        self.assertEqual(feedback_count, 0)

    def test_learn_unknown_match(self):
        service = PreferenceFeedbackService(self.session_factory, FakeSynthesizer())
        with self.assertRaises(MatchNotFound):
            service.learn(self.user_id, uuid.uuid4(), RejectionReason(category="salary"))
        service.shutdown()


class TestRejectionReason(unittest.TestCase):

    def test_informative_categories(self):
        self.assertTrue(RejectionReason(category="salary").is_informative)
        self.assertFalse(RejectionReason(category="job_inactive").is_informative)

    def test_unknown_category_rejected(self):
        with self.assertRaises(ValueError):
            RejectionReason(category="bored")

if __name__ == '__main__':
    unittest.main()
