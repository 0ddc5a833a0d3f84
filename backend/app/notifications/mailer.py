"""Outbound mail seam.

Transport and template rendering are outside this service; a ``Mailer``
only has to accept a fully-built plain-text message.
"""
import logging
from dataclasses import dataclass
from typing import Protocol

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    body: str
    from_address: str = settings.MAIL_FROM_ADDRESS
    from_name: str = settings.MAIL_FROM_NAME


class Mailer(Protocol):
    def send(self, message: MailMessage) -> None: ...


class LoggingMailer:
    """Default mailer: records the message in the application log."""

    def send(self, message: MailMessage) -> None:
        logger.info("Mail to %s: %s", message.to, message.subject)
        logger.debug("Mail body:\n%s", message.body)


class MemoryMailer:
    """Keeps sent messages in memory."""

    def __init__(self):
        self.outbox: list[MailMessage] = []

    def send(self, message: MailMessage) -> None:
        self.outbox.append(message)

    def sent_to(self, address: str) -> list[MailMessage]:
        return [m for m in self.outbox if m.to == address]
