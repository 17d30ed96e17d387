"""Notifications and their delivery.

A ``Notification`` is plain data. ``NotificationDispatcher`` renders it for
each of its channels and hands it to the matching transport. Delivery runs
as a FastAPI background task when the dispatcher was created for a request,
so mail failures never affect the response.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from fastapi import BackgroundTasks

from repairdesk.core.config import settings
from repairdesk.core.email import EmailService, get_email_service

logger = logging.getLogger(__name__)

MAIL = "mail"
LOG = "log"
CHANNELS = (MAIL, LOG)


@dataclass
class Notification:
    """A message addressed to one recipient."""

    kind: str
    to: str
    subject: str
    greeting: str = ""
    lines: List[str] = field(default_factory=list)
    action: Optional[Tuple[str, str]] = None  # (label, url)
    outro: List[str] = field(default_factory=list)
    channels: Sequence[str] = (MAIL,)

    def render_text(self) -> str:
        parts = []
        if self.greeting:
            parts.append(self.greeting)
        parts.extend(self.lines)
        if self.action:
            label, url = self.action
            parts.append(f"{label}: {url}")
        parts.extend(self.outro)
        parts.append(f"Regards,\n{settings.app_name}")
        return "\n\n".join(parts)


class NotificationDispatcher:
    """Delivers notifications over their channels."""

    def __init__(
        self,
        email_service: Optional[EmailService] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ):
        self.email_service = email_service or get_email_service()
        self.background_tasks = background_tasks

    def dispatch(self, notification: Notification) -> None:
        """Send now, or after the response when bound to a request."""
        if self.background_tasks is not None:
            self.background_tasks.add_task(self.send, notification)
        else:
            self.send(notification)

    def send(self, notification: Notification) -> None:
        for channel in notification.channels:
            try:
                if channel == MAIL:
                    self.email_service.send(
                        to=notification.to,
                        subject=notification.subject,
                        body=notification.render_text(),
                    )
                elif channel == LOG:
                    logger.info(f"Notification {notification.kind} for {notification.to}: {notification.subject}")
                else:
                    logger.warning(f"Unknown notification channel {channel!r}")
            except Exception as e:
                logger.error(f"Failed to deliver {notification.kind} via {channel} to {notification.to}: {e}")


def get_dispatcher(background_tasks: BackgroundTasks) -> NotificationDispatcher:
    """FastAPI dependency: dispatcher whose deliveries run after the response."""
    return NotificationDispatcher(background_tasks=background_tasks)


# ============== Notification builders ==============

def reset_password_notification(user, url: str) -> Notification:
    return Notification(
        kind="reset_password",
        to=user.email,
        subject="Reset Password Notification",
        greeting=f"Hello, {user.name or 'User'}!",
        lines=[
            "You are receiving this email because we received a password reset request for your account.",
        ],
        action=("Reset Password", url),
        outro=[
            f"This password reset link will expire in {settings.password_reset_expire_minutes} minutes.",
            "If you did not request a password reset, no further action is required.",
        ],
    )


def password_reset_success_notification(user) -> Notification:
    return Notification(
        kind="password_reset_success",
        to=user.email,
        subject="Password Reset Successful",
        greeting=f"Hello, {user.name}!",
        lines=[
            "Your password has been reset.",
            "Use a strong, unique password.",
            "Keep your login credentials secure.",
        ],
        channels=(MAIL, LOG),
    )


def new_support_request_notification(admin, support_request, author) -> Notification:
    return Notification(
        kind="new_support_request",
        to=admin.email,
        subject="New Support Request Created",
        greeting="Hello Administrator!",
        lines=[
            "A new support request has been created.",
            f"User: {author.name} ({author.email})",
            f"Date: {support_request.date.strftime('%d/%m/%Y %H:%M')}",
            f"Location: {support_request.location}",
            f"Details: {support_request.detail}",
        ],
        outro=["Please review and handle this request as soon as possible."],
    )
