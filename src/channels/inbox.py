"""Screenpipe inbox channel."""

from __future__ import annotations

import json
import logging
import urllib.request
from urllib.error import URLError

from daylog.config import ScreenpipeSectionConfig
from daylog.errors import NotificationError

logger = logging.getLogger(__name__)

CHANNEL_NAME = "inbox"


class InboxChannel:
    """POSTs ``{title, body}`` messages to the Screenpipe inbox."""

    name = CHANNEL_NAME

    def __init__(self, config: ScreenpipeSectionConfig | None = None) -> None:
        self._config = config or ScreenpipeSectionConfig()

    def send(self, message: dict[str, str]) -> None:
        """Deliver ``message`` to the inbox.

        Raises:
            NotificationError: On connection errors or a non-2xx response.
        """
        payload = json.dumps(
            {"title": message.get("title", ""), "body": message.get("body", "")}
        ).encode("utf-8")
        req = urllib.request.Request(
            self._config.inbox_url,
            data=payload,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self._config.timeout) as resp:
                if not 200 <= resp.status < 300:
                    raise NotificationError(
                        CHANNEL_NAME, f"inbox returned status {resp.status}"
                    )
        except (URLError, OSError) as exc:
            raise NotificationError(
                CHANNEL_NAME, f"error in sending inbox notification: {exc}"
            ) from exc

        logger.info("Inbox notification sent (title=%s)", message.get("title", ""))
