#!/usr/bin/env python3
"""
Notification Channels

Usage:
    from notification.channels import EmailChannel

    channel = EmailChannel()
    channel.send(recipient, subject, body, metadata)
"""

from abc import ABC, abstractmethod
from typing import Dict, Any
import logging
import os

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

logger = logging.getLogger(__name__)


def _is_dry_run_mode() -> bool:
    """Check if notification channels should run in dry-run (log-only) mode."""
    return os.environ.get('NOTIFICATION_DRY_RUN', '').lower() in ('true', '1', 'yes')


def _mask_email(email: str) -> str:
    """
    Mask email address for safe logging (PII protection).

    Shows only domain, e.g., "***@example.com"
    """
    if '@' not in email:
        return "***"
    local, domain = email.rsplit('@', 1)
    return f"***@{domain}"


class NotificationChannel(ABC):
    """
    Abstract base class for all notification channels.
    """

    @property
    @abstractmethod
    def channel_type(self) -> str:
        pass

    @abstractmethod
    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        """
        Send a notification through this channel.

        Args:
            recipient: Target recipient (format depends on channel)
            subject: Notification subject/title
            body: Plain-text body
            metadata: Channel-specific extras ('html' for email)

        Returns:
            True if sent successfully, False otherwise
        """
        pass

    def validate_config(self) -> bool:
        return True


class EmailChannel(NotificationChannel):
    """Email notification channel via SMTP."""

    @property
    def channel_type(self) -> str:
        return 'email'

    def validate_config(self) -> bool:
        required_vars = ['SMTP_SERVER', 'SMTP_PORT', 'SMTP_USERNAME', 'SMTP_PASSWORD']
        return all(os.environ.get(var) for var in required_vars)

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        if _is_dry_run_mode():
            logger.info(f"[DRY RUN] Email to {_mask_email(recipient)}: {subject}")
            logger.debug(body)
            return True

        if not self.validate_config():
            logger.error("Email not configured - SMTP environment variables not set")
            return False

        try:
            smtp_server = os.environ.get('SMTP_SERVER', 'smtp.gmail.com')
            smtp_port = int(os.environ.get('SMTP_PORT', '587'))
            username = os.environ.get('SMTP_USERNAME', '')
            password = os.environ.get('SMTP_PASSWORD', '')
            from_email = os.environ.get('FROM_EMAIL', 'noreply@jobmeter.app')

            msg = MIMEMultipart('alternative')
            msg['From'] = from_email
            msg['To'] = recipient
            msg['Subject'] = subject
            msg.attach(MIMEText(body, 'plain', 'utf-8'))
            if metadata.get('html'):
                msg.attach(MIMEText(metadata['html'], 'html', 'utf-8'))

            with smtplib.SMTP(smtp_server, smtp_port) as server:
                server.starttls()
                server.login(username, password)
                server.send_message(msg)

            logger.info(f"Email sent to {_mask_email(recipient)}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {_mask_email(recipient)}: {e}")
            return False
