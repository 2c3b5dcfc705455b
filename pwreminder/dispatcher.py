"""Route expiry notices to users, the skipped list or the console."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from .config import Settings
from .mailer import HIGH_PRIORITY, DeliveryError, Mailer, OutboundMessage
from .models import Account, ExpiryDecision, RunResult, Urgency
from .modes import DemoMode, RunMode, override_recipient
from .rendering import NoticeRenderer

logger = logging.getLogger("pwreminder.dispatcher")

NO_ADDRESS = "no address on file"


class Outcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"
    LISTED = "listed"


def classify(days_remaining: int) -> Urgency:
    """critical up to 2 days (overdue included), warning up to 7, notice beyond."""

    return Urgency.for_days(days_remaining)


def resolve_recipient(account: Account, override: str | None = None) -> Optional[str]:
    if override and override.strip():
        return override.strip()
    email = (account.email or "").strip()
    return email or None


class NoticeDispatcher:
    """Turn included decisions into exactly one outcome each."""

    def __init__(
        self,
        *,
        settings: Settings,
        mailer: Mailer,
        renderer: NoticeRenderer,
        mode: RunMode,
        console: Callable[[str], None] = print,
    ) -> None:
        self.settings = settings
        self.mailer = mailer
        self.renderer = renderer
        self.mode = mode
        self.console = console
        self._override = override_recipient(mode)

    @property
    def demo(self) -> bool:
        return isinstance(self.mode, DemoMode)

    def print_header(self) -> None:
        self.console(f"{'Account':<20}  {'Name':<28}  {'Email':<32}  {'Days':>5}  {'Urgency':<8}  Expires")
        self.console("-" * 110)

    def dispatch(self, decision: ExpiryDecision, result: RunResult) -> Outcome:
        account = decision.account
        recipient = resolve_recipient(account, self._override)

        if self.demo:
            self._print_candidate(decision)
            if recipient is None:
                result.record_skipped(decision)
                return Outcome.SKIPPED
            result.record_listed()
            return Outcome.LISTED

        if recipient is None:
            logger.info("No email address for %s (%s); adding to skipped list", account.name, account.identifier)
            result.record_skipped(decision)
            return Outcome.SKIPPED

        redirected_from = None
        if self._override is not None:
            redirected_from = (account.email or "").strip() or NO_ADDRESS

        subject, body = self.renderer.render_notice(decision, redirected_from=redirected_from)
        message = OutboundMessage(
            to=recipient,
            sender=self.settings.sender,
            subject=subject,
            body=body,
            priority=HIGH_PRIORITY,
            content_type="html",
        )

        try:
            self.mailer.send(message)
        except DeliveryError as exc:
            logger.error("Notice for %s (%s) was not delivered: %s", account.name, account.identifier, exc)
            result.record_failed(decision, recipient, str(exc))
            return Outcome.FAILED

        result.record_delivered()
        logger.info(
            "Notice sent to %s for %s: %d day(s) left (%s)",
            recipient,
            account.identifier,
            decision.days_remaining,
            decision.urgency.value,
        )
        return Outcome.SENT

    def _print_candidate(self, decision: ExpiryDecision) -> None:
        account = decision.account
        email = account.email or "<no email>"
        expires = decision.expires_at.strftime("%Y-%m-%d") if decision.expires_at else "-"
        self.console(
            f"{account.identifier:<20}  {account.name:<28}  {email:<32}  "
            f"{decision.days_remaining:>5}  {decision.urgency.value:<8}  {expires}"
        )


__all__ = ["NO_ADDRESS", "NoticeDispatcher", "Outcome", "classify", "resolve_recipient"]
