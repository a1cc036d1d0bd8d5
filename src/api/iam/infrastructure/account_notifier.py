"""Account notifier that writes e-mails to the log.

Used until a mail provider is configured; every message becomes a
structured log line instead of an outgoing e-mail.
"""

from __future__ import annotations

import structlog


class LoggingAccountNotifier:
    """IAccountNotifier implementation backed by structlog."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None):
        self._logger = logger or structlog.get_logger().bind(
            component="account_notifier"
        )

    async def send_verification_email(self, user_id: str, email: str) -> None:
        self._logger.info("verification_email_sent", user_id=user_id, email=email)

    async def send_password_changed_notice(self, user_id: str) -> None:
        self._logger.info("password_changed_notice_sent", user_id=user_id)
