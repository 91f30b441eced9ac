"""Pipeline execution modules."""

from .runner import run_matching_batch, run_for_user, MatchingBatchResult, UserRunResult

__all__ = ['run_matching_batch', 'run_for_user', 'MatchingBatchResult', 'UserRunResult']
