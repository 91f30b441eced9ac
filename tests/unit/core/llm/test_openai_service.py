"""
Unit tests for OpenAI service output handling.

Tests verify:
- JSON is extracted from free-form model output
- Scoring output is validated (score range, required fields)
- API errors surface as OracleFailure
- Insight synthesis reads the updatedInsights key
"""
import pytest
from unittest.mock import MagicMock
import json

import openai

from core.exceptions import OracleFailure
from core.llm.openai_service import (
    OpenAIService, extract_json_object, parse_oracle_verdict, parse_insights
)


def _completion(content):
    mock_message = MagicMock()
    mock_message.content = content
    mock_choice = MagicMock()
    mock_choice.message = mock_message
    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    return mock_response


class TestExtractJsonObject:

    def test_plain_json(self):
        assert extract_json_object('{"matchScore": 80}') == {"matchScore": 80}

    def test_json_wrapped_in_prose_and_fences(self):
        output = 'Here you go:\n```json\n{"matchScore": 72, "verdict": "Good match"}\n```\nThanks!'
        assert extract_json_object(output) == {"matchScore": 72, "verdict": "Good match"}

    def test_empty_output_raises(self):
        with pytest.raises(OracleFailure):
            extract_json_object("")

    def test_no_json_raises(self):
        with pytest.raises(OracleFailure, match="No JSON"):
            extract_json_object("I cannot evaluate this job.")

    def test_malformed_json_raises(self):
        with pytest.raises(OracleFailure, match="Malformed"):
            extract_json_object('{"matchScore": 80,, }')


class TestParseOracleVerdict:

    def test_valid_verdict(self):
        verdict = parse_oracle_verdict(json.dumps({
            "matchScore": 85,
            "verdict": "Strong match",
            "reasoning": "You have 5 years of Python.",
        }))
        assert verdict.score == 85
        assert verdict.verdict == "Strong match"
        assert verdict.reasoning == "You have 5 years of Python."

    def test_missing_score_raises(self):
        with pytest.raises(OracleFailure):
            parse_oracle_verdict('{"verdict": "Strong match"}')

    @pytest.mark.parametrize("score", [-1, 101])
    def test_out_of_range_score_raises(self, score):
        with pytest.raises(OracleFailure):
            parse_oracle_verdict(json.dumps({"matchScore": score}))

    def test_missing_text_fields_default_to_empty(self):
        verdict = parse_oracle_verdict('{"matchScore": 40}')
        assert verdict.verdict == ""
        assert verdict.reasoning == ""


class TestParseInsights:

    def test_reads_updated_insights(self):
        assert parse_insights('{"updatedInsights": "Prefers remote roles"}') == "Prefers remote roles"

    def test_missing_key_raises(self):
        with pytest.raises(OracleFailure):
            parse_insights('{"insights": "Prefers remote roles"}')


class TestOpenAIService:

    @pytest.fixture
    def service(self):
        """Create service with mocked client."""
        svc = OpenAIService(api_key="test")
        svc.client = MagicMock()
        return svc

    def test_score_sends_user_and_job_context(self, service):
        service.client.chat.completions.create.return_value = _completion(
            json.dumps({"matchScore": 77, "verdict": "Good match", "reasoning": "Solid overlap"})
        )

        verdict = service.score({"name": "Ada"}, {"title": "Backend Engineer"})

        assert verdict.score == 77
        call_kwargs = service.client.chat.completions.create.call_args[1]
        assert call_kwargs["model"] == "gpt-4o-mini"
        messages = call_kwargs["messages"]
        assert messages[0]["role"] == "system"
        assert "Backend Engineer" in messages[1]["content"]
        assert "Ada" in messages[1]["content"]

    def test_score_api_error_becomes_oracle_failure(self, service):
        service.client.chat.completions.create.side_effect = openai.OpenAIError("boom")

        with pytest.raises(OracleFailure):
            service.score({}, {"title": "x"})
        # Scoring is single-shot
        assert service.client.chat.completions.create.call_count == 1

    def test_score_empty_choices(self, service):
        response = MagicMock()
        response.choices = []
        service.client.chat.completions.create.return_value = response

        with pytest.raises(OracleFailure):
            service.score({}, {"title": "x"})

    def test_synthesize_returns_summary(self, service):
        service.client.chat.completions.create.return_value = _completion(
            '{"updatedInsights": "Avoids early-stage startups"}'
        )

        result = service.synthesize(
            {"existingLearnedPreferences": "None yet."},
            {"title": "Founding Engineer"},
            {"matchScore": 70},
            {"category": "company_type", "details": "Too small"},
        )

        assert result == "Avoids early-stage startups"
        content = service.client.chat.completions.create.call_args[1]["messages"][1]["content"]
        assert "Founding Engineer" in content
        assert "company_type" in content
