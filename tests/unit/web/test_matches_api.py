#!/usr/bin/env python3
"""
API tests for the match endpoints.
"""

import unittest
import uuid

import pytest
from fastapi.testclient import TestClient

from web.backend.app import app
from web.backend.dependencies import get_app_context
from database.models import Freshness
from database.uow import UnitOfWork
from tests import make_session_factory, build_context, create_user, create_job
from tests.mocks.fakes import FakeSynthesizer


@pytest.mark.db
class TestMatchesApi(unittest.TestCase):

    def setUp(self):
        self.session_factory = make_session_factory()
        self.synthesizer = FakeSynthesizer()
        self.ctx = build_context(self.session_factory, synthesizer=self.synthesizer)
        app.dependency_overrides[get_app_context] = lambda: self.ctx
        self.client = TestClient(app)

        self.user_id = create_user(self.session_factory)
        self.headers = {"X-User-Id": str(self.user_id)}
        self.job_id = create_job(self.session_factory, title="Backend Engineer", tags=["python"])
        other_job = create_job(self.session_factory, title="Sales Lead")
        with UnitOfWork(self.session_factory) as uow:
            self.match_id = uow.matches.insert_match(
                self.user_id, self.job_id, 82, "Strong match", "Python depth", Freshness.RECENT
            ).id
            uow.matches.insert_match(
                self.user_id, other_job, 12,
                "skipped", "Different field", Freshness.AGING, skipped=True
            )

    def tearDown(self):
        app.dependency_overrides.clear()
        self.ctx.close()

    def test_list_matches(self):
        response = self.client.get("/api/matches", headers=self.headers)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["count"], 2)
        self.assertEqual([m["score"] for m in body["matches"]], [82, 12])
        self.assertEqual(body["matches"][0]["job"]["title"], "Backend Engineer")
        self.assertEqual(body["matches"][0]["job"]["tags"], ["python"])

    def test_list_min_score_filter(self):
        body = self.client.get("/api/matches?min_score=50", headers=self.headers).json()
        self.assertEqual([m["match_id"] for m in body["matches"]], [str(self.match_id)])

    def test_count(self):
        self.assertEqual(self.client.get("/api/matches/count", headers=self.headers).json()["count"], 1)

    def test_get_match_of_other_user(self):
        other = create_user(self.session_factory)
        response = self.client.get(f"/api/matches/{self.match_id}", headers={"X-User-Id": str(other)})
        self.assertEqual(response.status_code, 404)

    def test_click_then_skip_with_reason(self):
        response = self.client.post(f"/api/matches/{self.match_id}/click", headers=self.headers)
        self.assertEqual(response.status_code, 200)

        response = self.client.post(
            f"/api/matches/{self.match_id}/skip",
            json={"reason": {"category": "salary", "details": "Too low"}},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.ctx.feedback.shutdown(wait=True)

        match = self.client.get(f"/api/matches/{self.match_id}", headers=self.headers).json()
        self.assertTrue(match["clicked"])
        self.assertTrue(match["skipped"])
        self.assertEqual(match["skip_reason"], {"category": "salary", "details": "Too low"})
        self.assertEqual(len(self.synthesizer.calls), 1)

    def test_skip_with_unknown_category(self):
        response = self.client.post(
            f"/api/matches/{self.match_id}/skip",
            json={"reason": {"category": "bored"}},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)

    def test_applied(self):
        response = self.client.post(
            f"/api/matches/{self.match_id}/applied", json={"applied": True}, headers=self.headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(self.client.get(f"/api/matches/{self.match_id}", headers=self.headers).json()["applied"])

    def test_qa_thread(self):
        response = self.client.post(
            f"/api/matches/{self.match_id}/qa",
            json={"question": "Remote?", "answer": "Fully remote"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["qa_thread"][0]["answer"], "Fully remote")

    def test_skip_job(self):
        job_id = create_job(self.session_factory)

        response = self.client.post(f"/api/matches/jobs/{job_id}/skip", headers=self.headers)

        self.assertEqual(response.status_code, 200)
        with UnitOfWork(self.session_factory) as uow:
            self.assertIn(str(job_id), uow.users.get_by_id(self.user_id).skipped_job_ids)

    def test_reset(self):
        response = self.client.delete("/api/matches", headers=self.headers)

        self.assertEqual(response.json()["deleted"], 2)
        self.assertEqual(self.client.get("/api/matches", headers=self.headers).json()["count"], 0)

    def test_unknown_match(self):
        response = self.client.post(f"/api/matches/{uuid.uuid4()}/click", headers=self.headers)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["type"], "MatchNotFound")

if __name__ == '__main__':
    unittest.main()
