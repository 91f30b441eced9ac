from notification.channels import NotificationChannel, EmailChannel
from notification.message_builder import NotificationMessageBuilder, MatchSummaryItem, MatchSummaryMessage
from notification.service import Notifier, NotificationService

__all__ = [
    'NotificationChannel',
    'EmailChannel',
    'NotificationMessageBuilder',
    'MatchSummaryItem',
    'MatchSummaryMessage',
    'Notifier',
    'NotificationService',
]
