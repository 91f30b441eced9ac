"""
LLM collaborator interfaces.

The matching batch and the feedback loop depend on these abstractions only,
so tests can substitute fakes for the OpenAI-backed implementations.
"""
from abc import ABC, abstractmethod
from typing import Dict, Any

from pydantic import BaseModel, Field


class OracleVerdict(BaseModel):
    """Validated scoring oracle output."""
    score: int = Field(ge=0, le=100)
    verdict: str = ""
    reasoning: str = ""


class ScoringOracle(ABC):
    """
    Scores one (user, job) pair.
    """

    @abstractmethod
    def score(self, user_context: Dict[str, Any], job_context: Dict[str, Any]) -> OracleVerdict:
        """
        Evaluate how well a job fits a user.

        Raises:
            OracleFailure: on API error, timeout or malformed output
        """
        pass


class InsightSynthesizer(ABC):
    """
    Folds one rejection into a user's learned preference summary.
    """

    @abstractmethod
    def synthesize(
        self,
        user_context: Dict[str, Any],
        job_context: Dict[str, Any],
        match_context: Dict[str, Any],
        rejection_reason: Dict[str, Any]
    ) -> str:
        """
        Return the updated preference summary.

        Raises:
            OracleFailure: on API error or malformed output
        """
        pass
