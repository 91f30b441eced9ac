from core.feedback.models import RejectionReason, RejectionCategory, NON_LEARNING_CATEGORIES
from core.feedback.service import PreferenceFeedbackService

__all__ = [
    'RejectionReason',
    'RejectionCategory',
    'NON_LEARNING_CATEGORIES',
    'PreferenceFeedbackService',
]
