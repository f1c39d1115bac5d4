"""Outbound notifications: completion codes for owners, selection notices for workers.

Delivery is fire-and-forget. The workflow commits its state change first and
then hands the message to a background asyncio task; a failed delivery is
logged and never rolls anything back, since the worker can simply request
completion again to get a fresh code sent.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Protocol

import httpx

from peerassist.config import settings

logger = logging.getLogger("peerassist.notifications")


class Notifier(Protocol):
    async def send_code(self, address: str, code: str, task_title: str) -> None: ...

    async def send_selected(self, address: str, task_title: str) -> None: ...


class LogNotifier:
    """Development backend: writes messages to the log instead of mailing them."""

    async def send_code(self, address: str, code: str, task_title: str) -> None:
        logger.info("Completion code for '%s' to %s: %s", task_title, address, code)

    async def send_selected(self, address: str, task_title: str) -> None:
        logger.info("Selection notice for '%s' to %s", task_title, address)


class HttpRelayNotifier:
    """Posts messages to an HTTP mail relay."""

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.token = token
        self.timeout = timeout
        self.transport = transport

    async def _post(self, address: str, subject: str, text: str) -> None:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        payload = {"to": address, "subject": subject, "text": text}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.post(self.url, json=payload, headers=headers)
            resp.raise_for_status()

    async def send_code(self, address: str, code: str, task_title: str) -> None:
        await self._post(
            address,
            f"Confirm completion of '{task_title}'",
            f"A worker marked '{task_title}' as done. "
            f"Your verification code is {code}. "
            f"It is valid for {settings.otp_ttl_minutes} minutes.",
        )

    async def send_selected(self, address: str, task_title: str) -> None:
        await self._post(
            address,
            f"You have been selected for '{task_title}'",
            f"The owner of '{task_title}' accepted your application. "
            "When the work is done, mark the task as completed.",
        )


def _build_notifier() -> Notifier:
    if settings.notification_backend == "http":
        if not settings.notification_relay_url:
            raise RuntimeError("PEERASSIST_NOTIFICATION_RELAY_URL is required for the http backend")
        return HttpRelayNotifier(
            settings.notification_relay_url,
            token=settings.notification_relay_token,
            timeout=settings.notification_timeout_seconds,
        )
    return LogNotifier()


_notifier: Notifier | None = None
_pending: set[asyncio.Task] = set()


def get_notifier() -> Notifier:
    """Active backend, built from settings on first use (at app startup)."""
    global _notifier
    if _notifier is None:
        _notifier = _build_notifier()
    return _notifier


def set_notifier(notifier: Notifier | None) -> None:
    """Swap the active backend (None resets to the configured one)."""
    global _notifier
    _notifier = notifier


async def _deliver(
    what: str, address: str, send: Callable[[Notifier], Awaitable[None]]
) -> None:
    try:
        await send(get_notifier())
    except Exception:
        logger.exception("Failed to send %s to %s", what, address)
    else:
        logger.info("%s sent to %s", what.capitalize(), address)


def _schedule(coro: Coroutine[None, None, None]) -> None:
    task = asyncio.create_task(coro)
    _pending.add(task)
    task.add_done_callback(_pending.discard)


def dispatch_code(address: str, code: str, task_title: str) -> None:
    """Schedule delivery of a completion code and return immediately."""
    _schedule(
        _deliver("completion code", address, lambda n: n.send_code(address, code, task_title))
    )


def dispatch_selection(address: str, task_title: str) -> None:
    """Schedule a 'you have been selected' notice and return immediately."""
    _schedule(
        _deliver("selection notice", address, lambda n: n.send_selected(address, task_title))
    )


async def drain() -> None:
    """Wait for in-flight deliveries (shutdown and tests)."""
    if _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
