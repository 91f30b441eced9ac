"""
Tests for the scheduler helpers in main.py.
"""
import os
import tempfile
import unittest
from datetime import date, datetime, timezone
from unittest.mock import Mock, patch

from core.config_loader import BillingConfig, ScheduleConfig
from main import matching_due, run_batch_once
from pipeline.control import PipelineController
from tests import make_config


class TestMatchingDue(unittest.TestCase):

    def setUp(self):
        self.config = make_config(schedule=ScheduleConfig(matching_hour=3))

    def test_before_hour(self):
        now = datetime(2026, 3, 15, 2, 59, tzinfo=timezone.utc)
        self.assertFalse(matching_due(self.config, now, None))

    def test_after_hour_once_per_day(self):
        now = datetime(2026, 3, 15, 3, 0, tzinfo=timezone.utc)
        self.assertTrue(matching_due(self.config, now, None))
        self.assertTrue(matching_due(self.config, now, date(2026, 3, 14)))
        self.assertFalse(matching_due(self.config, now, date(2026, 3, 15)))

    def test_hour_in_billing_timezone(self):
        config = make_config(
            schedule=ScheduleConfig(matching_hour=3),
            billing=BillingConfig(timezone="Asia/Kolkata"),
        )
        # 22:00 UTC is 03:30 the next day in Kolkata
        now = datetime(2026, 3, 15, 22, 0, tzinfo=timezone.utc)
        self.assertTrue(matching_due(config, now, date(2026, 3, 15)))
        self.assertFalse(matching_due(config, now, date(2026, 3, 16)))


class TestRunBatchOnce(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.lock_file = os.path.join(self.tmpdir.name, "matching.lock")

    def tearDown(self):
        self.tmpdir.cleanup()

    @patch('main.run_matching_batch')
    def test_runs_under_lock(self, mock_run):
        mock_run.return_value = Mock(success=True)
        ctx = Mock()

        result = run_batch_once(ctx, PipelineController(self.lock_file), source='manual')

        self.assertTrue(result.success)
        mock_run.assert_called_once_with(ctx, user_id=None)
        # Lock released afterwards
        self.assertIsNone(PipelineController(self.lock_file).get_lock_info())

    @patch('main.run_matching_batch')
    def test_refuses_overlapping_batch(self, mock_run):
        holder = PipelineController(self.lock_file)
        holder.acquire_lock('scheduler')
        try:
            result = run_batch_once(Mock(), PipelineController(self.lock_file), source='manual')
        finally:
            holder.release_lock()

        self.assertIsNone(result)
        mock_run.assert_not_called()

if __name__ == '__main__':
    unittest.main()
