"""Notification channels for generated questions."""

from typing import Protocol

from daylog.channels.email import EmailChannel
from daylog.channels.inbox import InboxChannel


class MailSender(Protocol):
    def send(self, address: str, credential: str, subject: str, body: str) -> None: ...


class InboxSender(Protocol):
    def send(self, message: dict[str, str]) -> None: ...


__all__ = ["EmailChannel", "InboxChannel", "InboxSender", "MailSender"]
