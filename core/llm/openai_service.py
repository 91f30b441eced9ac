"""
OpenAI Service - scoring oracle and insight synthesizer on chat completions.

Model output is never trusted as JSON: the first {...} block is extracted and
validated with pydantic before anything downstream sees it.
"""
from typing import Dict, Any, Optional
import json
import logging
import re

import openai
from openai import OpenAI
from pydantic import BaseModel, ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    RetryCallState,
)

from core.exceptions import OracleFailure
from core.llm.interfaces import ScoringOracle, InsightSynthesizer, OracleVerdict
from core.llm.system_prompts import JOB_MATCHER_SYSTEM_PROMPT, PREFERENCE_LEARNING_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

_TRANSIENT_ERRORS = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "Transient API error (attempt %s). Waiting %.1fs before retry. Details: %s",
        retry_state.attempt_number, wait, exc,
    )


def _llm_retry(**kwargs):
    """Return a tenacity @retry decorator for LLM API calls."""
    return retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        stop=stop_after_attempt(4),
        before_sleep=_log_retry,
        reraise=True,
        **kwargs,
    )


def extract_json_object(output: Optional[str]) -> Dict[str, Any]:
    """Pull the outermost JSON object out of free-form model output."""
    if not output:
        raise OracleFailure("Empty response from model")

    match = _JSON_BLOCK.search(output)
    if not match:
        raise OracleFailure("No JSON found in model output")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise OracleFailure(f"Malformed JSON in model output: {e}") from e

    if not isinstance(data, dict):
        raise OracleFailure("Model output is not a JSON object")
    return data


def parse_oracle_verdict(output: Optional[str]) -> OracleVerdict:
    data = extract_json_object(output)
    try:
        return OracleVerdict(
            score=data.get('matchScore'),
            verdict=data.get('verdict') or "",
            reasoning=data.get('reasoning') or "",
        )
    except ValidationError as e:
        raise OracleFailure(f"Invalid scoring output: {e.errors()[0]['msg']}") from e


class _InsightOutput(BaseModel):
    updatedInsights: str


def parse_insights(output: Optional[str]) -> str:
    data = extract_json_object(output)
    try:
        return _InsightOutput(**data).updatedInsights
    except ValidationError as e:
        raise OracleFailure(f"Invalid insight output: {e.errors()[0]['msg']}") from e


class OpenAIService(ScoringOracle, InsightSynthesizer):
    """
    OpenAI-backed scoring oracle and insight synthesizer.

    Scoring calls are single-shot: a failed pair is retried on the next
    scheduled run, never inline. Synthesis runs off the request path and
    retries transient API errors.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        request_timeout_seconds: float = 60.0
    ):
        client_kwargs: Dict[str, Any] = {'timeout': request_timeout_seconds, 'max_retries': 0}
        if api_key:
            client_kwargs['api_key'] = api_key
        if base_url:
            client_kwargs['base_url'] = base_url

        self.client = OpenAI(**client_kwargs)
        self.model = model
        self.temperature = temperature

    def _complete(self, system_prompt: str, user_message: str) -> Optional[str]:
        response = self.client.chat.completions.create(
            model=self.model,
            temperature=self.temperature,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
        )
        if not response.choices:
            return None
        return response.choices[0].message.content

    def score(self, user_context: Dict[str, Any], job_context: Dict[str, Any]) -> OracleVerdict:
        user_message = (
            f"User:\n{json.dumps(user_context, indent=2, default=str)}\n\n"
            f"Job:\n{json.dumps(job_context, indent=2, default=str)}\n\n"
            "Evaluate this match."
        )
        try:
            output = self._complete(JOB_MATCHER_SYSTEM_PROMPT, user_message)
        except openai.OpenAIError as e:
            raise OracleFailure(f"Scoring call failed: {e}") from e

        return parse_oracle_verdict(output)

    @_llm_retry()
    def _synthesis_completion(self, user_message: str) -> Optional[str]:
        return self._complete(PREFERENCE_LEARNING_SYSTEM_PROMPT, user_message)

    def synthesize(
        self,
        user_context: Dict[str, Any],
        job_context: Dict[str, Any],
        match_context: Dict[str, Any],
        rejection_reason: Dict[str, Any]
    ) -> str:
        user_message = (
            f"User Profile:\n{json.dumps(user_context, indent=2, default=str)}\n\n"
            f"Job That Was Rejected:\n{json.dumps(job_context, indent=2, default=str)}\n\n"
            f"Original Match Assessment:\n{json.dumps(match_context, indent=2, default=str)}\n\n"
            f"User's Reason for Not Applying:\n{json.dumps(rejection_reason, indent=2, default=str)}\n\n"
            "Analyze this rejection and provide updated preference insights."
        )
        try:
            output = self._synthesis_completion(user_message)
        except openai.OpenAIError as e:
            raise OracleFailure(f"Insight synthesis failed: {e}") from e

        return parse_insights(output)
