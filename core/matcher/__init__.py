"""Matcher Module - eligibility, bounded scoring, classification and match actions."""
from core.matcher.models import (
    UserContext, JobContext, PairResult, ClassifiedMatch, compute_freshness
)
from core.matcher.eligibility import EligibilitySelector, MatchDeduplicator
from core.matcher.scorer import BoundedScorer
from core.matcher.classifier import classify, MatchPersister

__all__ = [
    'UserContext', 'JobContext', 'PairResult', 'ClassifiedMatch', 'compute_freshness',
    'EligibilitySelector', 'MatchDeduplicator', 'BoundedScorer',
    'classify', 'MatchPersister',
]
