#!/usr/bin/env python3
"""
Notification Service - match summary delivery after a matching run.

Best-effort: callers treat a False return or an exception as a logged miss,
never as a reason to roll anything back.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from core.matcher.models import ClassifiedMatch, UserContext
from notification.channels import NotificationChannel, EmailChannel, _mask_email
from notification.message_builder import NotificationMessageBuilder, MatchSummaryItem

logger = logging.getLogger(__name__)


class Notifier(ABC):
    @abstractmethod
    def send_match_summary(self, user: UserContext, matches: List[ClassifiedMatch], fee_charged_cents: int) -> bool:
        pass


class NotificationService(Notifier):
    def __init__(
        self,
        channel: Optional[NotificationChannel] = None,
        base_url: str = "http://localhost:8080",
        top_matches: int = 5
    ):
        self.channel = channel or EmailChannel()
        self.builder = NotificationMessageBuilder(base_url=base_url, top_matches=top_matches)

    def send_match_summary(self, user: UserContext, matches: List[ClassifiedMatch], fee_charged_cents: int) -> bool:
        if not user.email:
            logger.error(f"Cannot send match summary: user {user.user_id} has no email")
            return False
        if not matches:
            logger.info(f"No matches to send for {_mask_email(user.email)}")
            return False

        items = [
            MatchSummaryItem(
                title=m.job.title,
                company=m.job.company,
                score=m.score,
                freshness=m.freshness,
                url=m.job.url,
            )
            for m in matches
        ]
        message = self.builder.build_match_summary(items, fee_charged_cents)

        sent = self.channel.send(
            user.email,
            message.subject,
            message.text,
            {'html': message.html, 'user_id': str(user.user_id)},
        )
        if sent:
            logger.info(f"Sent match summary ({len(matches)} matches) to {_mask_email(user.email)}")
        return sent
