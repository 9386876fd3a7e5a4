# payout_engine/services/notifications.py
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..config import settings

log = logging.getLogger("payout_engine.notifications")


class Notifier:
    """
    Post-commit hooks. Implementations may raise; callers go through fire(),
    which logs and swallows so a failed notification never undoes a committed
    transition.
    """

    def notify_distribution_pending_approval(self, *, distribution_id: int, property_id: int) -> None:
        pass

    def notify_distribution_declared(
        self,
        *,
        distribution_id: int,
        property_id: int,
        user_ids: list[int],
        total_distributed: float,
    ) -> None:
        pass

    def notify_payout_paid(self, *, payout_id: int, user_id: Optional[int], amount: float) -> None:
        pass


class LoggingNotifier(Notifier):
    def notify_distribution_pending_approval(self, *, distribution_id: int, property_id: int) -> None:
        log.info("distribution_pending_approval", extra={"distribution_id": distribution_id, "property_id": property_id})

    def notify_distribution_declared(
        self,
        *,
        distribution_id: int,
        property_id: int,
        user_ids: list[int],
        total_distributed: float,
    ) -> None:
        log.info(
            "distribution_declared recipients=%d total=%.2f",
            len(user_ids),
            total_distributed,
            extra={"distribution_id": distribution_id, "property_id": property_id},
        )

    def notify_payout_paid(self, *, payout_id: int, user_id: Optional[int], amount: float) -> None:
        log.info("payout_paid amount=%.2f", amount, extra={"payout_id": payout_id})


class WebhookNotifier(Notifier):
    """POSTs one JSON event per hook to notification_webhook_url."""

    def __init__(self, url: str, *, timeout: Optional[float] = None) -> None:
        self.url = url
        self.timeout = float(timeout if timeout is not None else settings.notification_timeout_seconds)

    def _post(self, event: str, payload: dict[str, Any]) -> None:
        with httpx.Client(timeout=self.timeout) as client:
            r = client.post(self.url, json={"event": event, **payload})
            r.raise_for_status()

    def notify_distribution_pending_approval(self, *, distribution_id: int, property_id: int) -> None:
        self._post("distribution.pending_approval", {"distribution_id": distribution_id, "property_id": property_id})

    def notify_distribution_declared(
        self,
        *,
        distribution_id: int,
        property_id: int,
        user_ids: list[int],
        total_distributed: float,
    ) -> None:
        self._post(
            "distribution.declared",
            {
                "distribution_id": distribution_id,
                "property_id": property_id,
                "user_ids": user_ids,
                "total_distributed": total_distributed,
            },
        )

    def notify_payout_paid(self, *, payout_id: int, user_id: Optional[int], amount: float) -> None:
        self._post("payout.paid", {"payout_id": payout_id, "user_id": user_id, "amount": amount})


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        url = settings.notification_webhook_url
        _notifier = WebhookNotifier(url) if url else LoggingNotifier()
    return _notifier


def set_notifier(notifier: Optional[Notifier]) -> None:
    """Swap the process-wide notifier (tests, app startup). None resets to default."""
    global _notifier
    _notifier = notifier


def fire(hook: str, **payload: Any) -> bool:
    """Invoke a notifier hook; True if it completed."""
    fn = getattr(get_notifier(), hook)
    try:
        fn(**payload)
        return True
    except Exception:
        log.exception("notification_failed hook=%s", hook)
        return False
