"""
Rejection Feedback Loop - folds explicit rejections into a user's learned
preference summary.

Runs on a small background pool. The triggering user action never waits on
it, and synthesis failures are logged and dropped.
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional

from sqlalchemy.orm import sessionmaker

from core.exceptions import MatchNotFound, UserNotFound
from core.feedback.models import RejectionReason
from core.llm.interfaces import InsightSynthesizer
from database.uow import UnitOfWork

logger = logging.getLogger(__name__)

NO_INSIGHTS_YET = "None yet."
NO_DETAILS = "No additional details provided"
DESCRIPTION_LIMIT = 1000


class PreferenceFeedbackService:
    def __init__(
        self,
        session_factory: sessionmaker,
        synthesizer: InsightSynthesizer,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        self.session_factory = session_factory
        self.synthesizer = synthesizer
        self.executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="feedback")

    def submit(self, user_id: Any, match_id: Any, reason: RejectionReason) -> Optional[Future]:
        """Queue learning for one rejection; None when the category is not informative."""
        if not reason.is_informative:
            logger.info(f"Skipping preference learning for category: {reason.category}")
            return None
        return self.executor.submit(self._learn_safely, user_id, match_id, reason)

    def _learn_safely(self, user_id: Any, match_id: Any, reason: RejectionReason) -> Optional[int]:
        try:
            return self.learn(user_id, match_id, reason)
        except Exception as e:
            logger.error(f"Preference learning failed for user {user_id}, match {match_id}: {e}", exc_info=True)
            return None

    def _build_contexts(self, user_id: Any, match_id: Any) -> Dict[str, Dict[str, Any]]:
        with UnitOfWork(self.session_factory) as uow:
            user = uow.users.get_by_id(user_id)
            if user is None:
                raise UserNotFound(f"User {user_id} not found")
            match = uow.matches.get_for_user(match_id, user_id)
            if match is None:
                raise MatchNotFound(f"Match {match_id} not found")

            profile = user.profile or {}
            resume = profile.get('resume') or {}
            job = match.job
            return {
                'user': {
                    'name': user.name,
                    'resume': {
                        'skills': resume.get('skills', []),
                        'experience': resume.get('experience', []),
                        'summary': resume.get('summary', ""),
                    },
                    'preferences': profile.get('preferences'),
                    'existingLearnedPreferences': user.learned_insights or NO_INSIGHTS_YET,
                    'feedbackCount': user.feedback_count or 0,
                },
                'job': {
                    'title': job.title,
                    'company': job.company,
                    'location': job.location,
                    'salary': {
                        'min': job.salary_min,
                        'max': job.salary_max,
                        'currency': job.salary_currency,
                    },
                    'tags': job.tags or [],
                    'description': (job.description or "")[:DESCRIPTION_LIMIT],
                },
                'match': {
                    'matchScore': match.score,
                    'verdict': match.verdict,
                    'reasoning': match.reasoning,
                },
            }

    def learn(self, user_id: Any, match_id: Any, reason: RejectionReason) -> Optional[int]:
        """
        Synthesize and store the updated summary. Returns the new feedback count.
        """
        contexts = self._build_contexts(user_id, match_id)
        rejection = {
            'category': reason.category,
            'details': reason.details or NO_DETAILS,
        }

        insights = self.synthesizer.synthesize(
            contexts['user'], contexts['job'], contexts['match'], rejection
        )

        with UnitOfWork(self.session_factory) as uow:
            feedback_count = uow.users.record_learned_insights(user_id, insights)

        logger.info(f"Updated learned preferences for user {user_id}. Feedback count: {feedback_count}")
        return feedback_count

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
