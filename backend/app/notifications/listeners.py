"""Email notifications for travel request status changes and registration."""
import logging
from typing import Any, Optional

from app.events.dispatcher import EventDispatcher
from app.events.types import (
    RequestApproved,
    RequestCancelled,
    RequestCreated,
    TravelRequestEvent,
    UserRegistered,
)
from app.notifications.mailer import LoggingMailer, MailMessage, Mailer

logger = logging.getLogger(__name__)


def _owner(snapshot: dict[str, Any]) -> Optional[dict[str, Any]]:
    owner = snapshot.get("user")
    if not owner or not owner.get("email"):
        logger.warning("Travel request %s has no owner email; skipping notification", snapshot.get("id"))
        return None
    return owner


def _trip_lines(snapshot: dict[str, Any]) -> list[str]:
    return [
        f"Destination: {snapshot['destination']}",
        f"Departure: {snapshot['start_date']}",
        f"Return: {snapshot['end_date']}",
    ]


def created_message(snapshot: dict[str, Any]) -> Optional[MailMessage]:
    owner = _owner(snapshot)
    if owner is None:
        return None
    body = "\n".join([
        f"Hello {owner['name']},",
        "",
        "Your travel request was received and is awaiting approval.",
        *_trip_lines(snapshot),
    ])
    return MailMessage(
        to=owner["email"],
        subject=f"Travel Request Created - {snapshot['destination']}",
        body=body,
    )


def approved_message(snapshot: dict[str, Any]) -> Optional[MailMessage]:
    owner = _owner(snapshot)
    if owner is None:
        return None
    approver = snapshot.get("approver") or {}
    lines = [
        f"Hello {owner['name']},",
        "",
        "Your travel request has been approved.",
        *_trip_lines(snapshot),
    ]
    if approver.get("name"):
        lines.append(f"Approved by: {approver['name']}")
    return MailMessage(
        to=owner["email"],
        subject=f"Travel Request Approved - {snapshot['destination']}",
        body="\n".join(lines),
    )


def cancelled_message(snapshot: dict[str, Any]) -> Optional[MailMessage]:
    owner = _owner(snapshot)
    if owner is None:
        return None
    lines = [
        f"Hello {owner['name']},",
        "",
        "Your travel request has been cancelled.",
        *_trip_lines(snapshot),
    ]
    if snapshot.get("cancelled_reason"):
        lines.append(f"Reason: {snapshot['cancelled_reason']}")
    return MailMessage(
        to=owner["email"],
        subject=f"Travel Request Cancelled - {snapshot['destination']}",
        body="\n".join(lines),
    )


def welcome_message(user: dict[str, Any]) -> MailMessage:
    return MailMessage(
        to=user["email"],
        subject="Welcome to Travel Requests",
        body=f"Hello {user['name']},\n\nYour account is ready. You can now submit travel requests.",
    )


class NotificationListeners:
    """Bridges domain events to the mailer."""

    _BUILDERS = {
        RequestCreated: created_message,
        RequestApproved: approved_message,
        RequestCancelled: cancelled_message,
    }

    def __init__(self, mailer: Optional[Mailer] = None):
        self.mailer = mailer or LoggingMailer()

    def on_travel_request_event(self, event: TravelRequestEvent) -> None:
        builder = self._BUILDERS.get(type(event))
        if builder is None:
            return
        message = builder(event.travel_request)
        if message is not None:
            self.mailer.send(message)
            logger.info("Sent %s notification for travel request %s", event.name, event.request_id)

    def on_user_registered(self, event: UserRegistered) -> None:
        self.mailer.send(welcome_message(event.user))
        logger.info("Sent welcome email to user %s", event.user.get("id"))

    def register(self, dispatcher: EventDispatcher) -> None:
        for event_type in self._BUILDERS:
            dispatcher.subscribe(event_type, self.on_travel_request_event)
        dispatcher.subscribe(UserRegistered, self.on_user_registered)

    def unregister(self, dispatcher: EventDispatcher) -> None:
        for event_type in self._BUILDERS:
            dispatcher.unsubscribe(event_type, self.on_travel_request_event)
        dispatcher.unsubscribe(UserRegistered, self.on_user_registered)
