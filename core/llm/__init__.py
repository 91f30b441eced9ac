"""LLM Module - scoring oracle and insight synthesizer."""
from core.llm.interfaces import ScoringOracle, InsightSynthesizer, OracleVerdict
from core.llm.openai_service import OpenAIService

__all__ = ['ScoringOracle', 'InsightSynthesizer', 'OracleVerdict', 'OpenAIService']
