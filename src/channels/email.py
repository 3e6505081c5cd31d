"""SMTP email channel.

Sends plain-text mail from the configured address to itself.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.text import MIMEText
from email.utils import formatdate

from daylog.config import SmtpSectionConfig
from daylog.errors import NotificationError

logger = logging.getLogger(__name__)

CHANNEL_NAME = "email"


class EmailChannel:
    """Delivers messages over SMTP (implicit TLS or STARTTLS)."""

    name = CHANNEL_NAME

    def __init__(self, config: SmtpSectionConfig | None = None) -> None:
        self._config = config or SmtpSectionConfig()

    def send(self, address: str, credential: str, subject: str, body: str) -> None:
        """Send ``body`` to ``address`` using ``address``/``credential`` to log in.

        Raises:
            NotificationError: If the connection, login, or send fails.
        """
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = address
        msg["To"] = address
        msg["Date"] = formatdate(localtime=True)

        logger.info("Connecting to %s:%s", self._config.host, self._config.port)

        try:
            if self._config.starttls:
                with smtplib.SMTP(
                    self._config.host, self._config.port, timeout=self._config.timeout
                ) as server:
                    server.starttls()
                    server.login(address, credential)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(
                    self._config.host, self._config.port, timeout=self._config.timeout
                ) as server:
                    server.login(address, credential)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(CHANNEL_NAME, f"error in sending mail: {exc}") from exc

        logger.info("Email sent (subject=%s)", subject)
