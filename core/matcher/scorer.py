"""
Bounded Scorer - fans one user's listings out to the scoring oracle.

Each user gets a fresh pool that is drained before the call returns, so a
slow or failing user never holds workers another user needs.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import List, Optional

from core.exceptions import OracleFailure
from core.llm.interfaces import ScoringOracle
from core.matcher.models import UserContext, JobContext, PairResult, compute_freshness
from database.models import utcnow

logger = logging.getLogger(__name__)


class BoundedScorer:
    def __init__(self, oracle: ScoringOracle, pool_width: int = 10):
        if pool_width < 1:
            raise ValueError("pool_width must be at least 1")
        self.oracle = oracle
        self.pool_width = pool_width

    def _score_one(self, user_prompt: dict, job: JobContext, now: datetime) -> PairResult:
        verdict = self.oracle.score(user_prompt, job.to_prompt())
        return PairResult(
            job=job,
            score=verdict.score,
            verdict=verdict.verdict,
            reasoning=verdict.reasoning,
            freshness=compute_freshness(job.scraped_date, now),
        )

    def score_all(
        self,
        user: UserContext,
        jobs: List[JobContext],
        now: Optional[datetime] = None
    ) -> List[PairResult]:
        """
        Score every listing for one user; failed pairs are logged and left out.

        Returns only after every submitted call has finished.
        """
        if not jobs:
            return []

        now = now or utcnow()
        user_prompt = user.to_prompt()
        results: List[PairResult] = []
        failures = 0
        start = time.time()

        with ThreadPoolExecutor(max_workers=min(self.pool_width, len(jobs))) as executor:
            futures = {
                executor.submit(self._score_one, user_prompt, job, now): job
                for job in jobs
            }
            for future in as_completed(futures):
                job = futures[future]
                try:
                    results.append(future.result())
                except OracleFailure as e:
                    failures += 1
                    logger.error(f"Scoring failed for user {user.email}, job {job.job_id}: {e}")
                except Exception as e:
                    failures += 1
                    logger.error(
                        f"Unexpected scoring error for user {user.email}, job {job.job_id}: {e}",
                        exc_info=True
                    )

        logger.info(
            f"Scored {len(results)}/{len(jobs)} listings for {user.email} "
            f"({failures} failed) in {time.time() - start:.1f}s"
        )
        return results
