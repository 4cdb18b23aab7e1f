"""Notifier collaborator contract and the Django mail adapter."""

import logging
from abc import ABC, abstractmethod

from django.core.mail import send_mail

from registration.domain import NotificationMessage

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Interface the NotificationScheduler emits messages through."""

    @abstractmethod
    def send(self, message: NotificationMessage) -> None:
        """Deliver one message. Raises on delivery failure."""
        ...


class DjangoMailNotifier(Notifier):
    """Sends through whatever EMAIL_BACKEND the project configures."""

    def __init__(self, from_email: str) -> None:
        self._from_email = from_email

    def send(self, message: NotificationMessage) -> None:
        send_mail(
            subject=message.subject,
            message=message.body,
            from_email=self._from_email,
            recipient_list=[message.to],
            fail_silently=False,
        )
        logger.info(
            "notification_sent",
            extra={"purchase_id": message.purchase_id, "tag": message.tag},
        )
