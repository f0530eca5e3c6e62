"""Outbound SMS notifications via the Twilio Messages API.

Senders are called by check-processing code, never by the request
handlers. `BackgroundNotifier` schedules sends without making the caller
wait and logs failures.
"""
from __future__ import annotations

import asyncio
from typing import Optional, Protocol

import httpx

from ..config import TwilioSettings
from ..logging_conf import get_logger

__all__ = [
    "MAX_MESSAGE_LENGTH",
    "NotificationError",
    "SmsSender",
    "TwilioSmsSender",
    "BackgroundNotifier",
]

logger = get_logger("service.notify")

MAX_MESSAGE_LENGTH = 50


class NotificationError(RuntimeError):
    """Raised when a message is rejected locally or by the provider."""


class SmsSender(Protocol):
    async def send(self, phone: str, message: str) -> None: ...


class TwilioSmsSender:
    def __init__(self, settings: TwilioSettings, *, client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 10.0) -> None:
        self.settings = settings
        self._client = client
        self._timeout = timeout

    async def send(self, phone: str, message: str) -> None:
        phone = phone.strip() if isinstance(phone, str) else ""
        message = message.strip() if isinstance(message, str) else ""
        if len(phone) != 10 or not (phone.isascii() and phone.isdigit()):
            raise NotificationError("phone must be exactly 10 digits")
        if not message or len(message) > MAX_MESSAGE_LENGTH:
            raise NotificationError(f"message must be 1..{MAX_MESSAGE_LENGTH} characters")

        s = self.settings
        form = {
            "From": s.from_phone,
            "To": f"{s.country_code}{phone}",
            "Body": message,
        }
        path = f"/2010-04-01/Accounts/{s.account_sid}/Messages.json"
        auth = (s.account_sid, s.auth_token)

        if self._client is not None:
            r = await self._client.post(path, data=form, auth=auth)
        else:
            async with httpx.AsyncClient(base_url=s.base_url, timeout=self._timeout) as client:
                r = await client.post(path, data=form, auth=auth)

        if r.status_code not in (200, 201):
            raise NotificationError(f"Status code returned was {r.status_code}")
        logger.info("sms.sent", extra={"event": "sms_sent", "to": phone})


class BackgroundNotifier:
    """Schedules sends on the running loop without making the caller wait.

    The notifier holds a reference to every send in flight until it finishes;
    failures are logged and counted, never raised. `drain` waits for whatever
    is still pending.
    """

    def __init__(self, sender: SmsSender) -> None:
        self.sender = sender
        self.failures = 0
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def notify(self, phone: str, message: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.sender.send(phone, message))
        self._pending.add(task)
        task.add_done_callback(lambda t: self._finished(t, phone))
        return task

    def _finished(self, task: asyncio.Task, phone: str) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            logger.warning("sms.failed", extra={"event": "sms_failed", "to": phone, "error": str(exc)})

    async def drain(self) -> int:
        """Wait for every scheduled send; returns the failure count so far."""
        while self._pending:
            await asyncio.wait(set(self._pending))
        return self.failures
