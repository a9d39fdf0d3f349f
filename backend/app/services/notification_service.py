"""Outbound check-in messages: new assignments, follow-up reminders, confirmations.

The dispatcher and the committer only see ``ReminderSender.send_reminder``.
Delivery never raises into callers: failures are logged, counted and
reported as ``False``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from app.config import settings
from app.core.metrics import deliveries_total
from app.services import email_service

logger = logging.getLogger(__name__)

KIND_ASSIGNMENT = "assignment"
KIND_REMINDER = "reminder"
KIND_CONFIRMATION = "confirmation"


@dataclass(frozen=True)
class Recipient:
    name: str
    phone: str | None = None
    email: str | None = None


def render_message(template_vars: dict[str, Any]) -> str:
    """Plain-text body for a message; ``kind`` selects the wording."""
    kind = template_vars.get("kind", KIND_ASSIGNMENT)
    name = template_vars.get("caregiver_name") or "there"

    if kind == KIND_CONFIRMATION:
        return (
            f"Thank you {name}! Your weekly check-in has been received. "
            "We appreciate your dedication to quality care."
        )

    patient = template_vars.get("patient_name")
    url = template_vars.get("survey_url", "")
    if patient:
        body = f"Hello {name}, it's time for your weekly check-in for {patient}."
    else:
        title = template_vars.get("survey_title") or "check-in"
        body = f'Hello {name}, it\'s time for your "{title}" check-in.'
    body += f" Please complete your survey: {url}"
    if kind == KIND_REMINDER:
        body = f"Reminder: {body}"
    return body


def _subject(template_vars: dict[str, Any]) -> str:
    kind = template_vars.get("kind", KIND_ASSIGNMENT)
    if kind == KIND_CONFIRMATION:
        return "[CareCheck] Check-in received"
    if kind == KIND_REMINDER:
        return "[CareCheck] Reminder: your check-in is waiting"
    return "[CareCheck] Your check-in is due"


class ReminderSender(ABC):
    """Delivery channel. Returns True only if the message was handed off."""

    channel = "none"

    @abstractmethod
    async def send_reminder(
        self, recipient: Recipient, template_vars: dict[str, Any]
    ) -> bool: ...

    async def close(self) -> None:
        return None


class SmsReminderSender(ReminderSender):
    """Twilio Messages API over httpx."""

    channel = "sms"

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        api_base: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = account_sid if account_sid is not None else settings.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token if auth_token is not None else settings.TWILIO_AUTH_TOKEN
        self.from_number = from_number if from_number is not None else settings.TWILIO_FROM_NUMBER
        self.api_base = (api_base or settings.TWILIO_API_BASE).rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_base,
                auth=httpx.BasicAuth(self.account_sid, self.auth_token),
                headers={"Accept": "application/json"},
                timeout=15.0,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def send_reminder(self, recipient: Recipient, template_vars: dict[str, Any]) -> bool:
        body = render_message(template_vars)
        if not self.configured or not recipient.phone:
            logger.info("SMS not sent to %s (not configured or no phone): %s", recipient.name, body)
            deliveries_total.labels(channel=self.channel, outcome="skipped").inc()
            return False

        try:
            client = await self._get_client()
            resp = await client.post(
                f"/2010-04-01/Accounts/{self.account_sid}/Messages.json",
                data={"To": recipient.phone, "From": self.from_number, "Body": body},
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("SMS to %s failed: %s", recipient.phone, exc)
            deliveries_total.labels(channel=self.channel, outcome="failed").inc()
            return False

        logger.info("SMS sent to %s (HTTP %s)", recipient.phone, resp.status_code)
        deliveries_total.labels(channel=self.channel, outcome="sent").inc()
        return True


class EmailReminderSender(ReminderSender):
    channel = "email"

    async def send_reminder(self, recipient: Recipient, template_vars: dict[str, Any]) -> bool:
        if not recipient.email or not email_service.is_configured():
            deliveries_total.labels(channel=self.channel, outcome="skipped").inc()
            return False
        html, text = email_service.render_check_in_email(
            template_vars.get("survey_title") or "Weekly check-in",
            render_message(template_vars),
            template_vars.get("survey_url"),
        )
        sent = await email_service.send_email(recipient.email, _subject(template_vars), html, text)
        deliveries_total.labels(channel=self.channel, outcome="sent" if sent else "failed").inc()
        return sent


class CompositeReminderSender(ReminderSender):
    """Tries every channel; succeeds if any of them delivered."""

    channel = "composite"

    def __init__(self, senders: list[ReminderSender]):
        self.senders = senders

    async def send_reminder(self, recipient: Recipient, template_vars: dict[str, Any]) -> bool:
        delivered = False
        for sender in self.senders:
            if await sender.send_reminder(recipient, template_vars):
                delivered = True
        return delivered

    async def close(self) -> None:
        for sender in self.senders:
            await sender.close()


def build_default_sender() -> ReminderSender:
    return CompositeReminderSender([SmsReminderSender(), EmailReminderSender()])


def recipient_for(caregiver) -> Recipient:
    return Recipient(name=caregiver.name, phone=caregiver.phone, email=caregiver.email)


def survey_link(assignment_id, base_url: str | None = None) -> str:
    return f"{(base_url or settings.SURVEY_BASE_URL).rstrip('/')}/check-in/{assignment_id}"


def check_in_vars(
    kind: str,
    assignment,
    survey=None,
    caregiver=None,
    patient=None,
    base_url: str | None = None,
) -> dict[str, Any]:
    """Template variables describing one assignment."""
    return {
        "kind": kind,
        "caregiver_name": caregiver.name if caregiver is not None else None,
        "patient_name": patient.name if patient is not None else None,
        "survey_title": survey.title if survey is not None else None,
        "survey_url": survey_link(assignment.id, base_url),
        "due_at": assignment.due_at.isoformat() if assignment.due_at else None,
    }
