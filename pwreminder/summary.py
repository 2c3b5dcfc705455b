"""Audit entries and the administrator summary for a run."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from .audit import ERROR, INFORMATION, RUN_ABORTED, RUN_COMPLETED, RUN_STARTED, AuditSink
from .config import Settings
from .mailer import NORMAL_PRIORITY, Mailer, OutboundMessage
from .models import RunResult
from .modes import RunMode, describe, sends_summary
from .rendering import NoticeRenderer, format_elapsed

logger = logging.getLogger("pwreminder.summary")


class RunSummary:
    """Bracket a run with audit events and mail the outcome to the administrator."""

    def __init__(
        self,
        *,
        settings: Settings,
        audit: AuditSink,
        mailer: Mailer,
        renderer: NoticeRenderer,
        mode: RunMode,
    ) -> None:
        self.settings = settings
        self.audit = audit
        self.mailer = mailer
        self.renderer = renderer
        self.mode = mode

    def started(self) -> None:
        self.audit.record(
            f"Password expiry reminder started ({describe(self.mode)}); "
            f"warning window {self.settings.warning_days} days",
            INFORMATION,
            RUN_STARTED,
        )

    def aborted(self, error: BaseException, elapsed: timedelta) -> None:
        self.audit.record(
            f"Password expiry reminder aborted after {format_elapsed(elapsed)}: {error}",
            ERROR,
            RUN_ABORTED,
        )

    def completed(self, result: RunResult, *, started_at: datetime) -> None:
        self.audit.record(
            f"Password expiry reminder completed: {result.processed} processed "
            f"({result.delivered} sent, {len(result.skipped)} skipped, {len(result.failed)} failed) "
            f"in {format_elapsed(result.elapsed)}",
            INFORMATION,
            RUN_COMPLETED,
        )
        if sends_summary(self.mode):
            self.send(result, started_at=started_at)

    def send(self, result: RunResult, *, started_at: datetime) -> None:
        if not self.settings.admin_address:
            logger.warning("ADMIN_EMAIL is not set; run summary not sent")
            return

        subject, body = self.renderer.render_summary(result, mode=describe(self.mode), started_at=started_at)
        self.mailer.send(
            OutboundMessage(
                to=self.settings.admin_address,
                sender=self.settings.sender,
                subject=subject,
                body=body,
                priority=NORMAL_PRIORITY,
                content_type="html",
            )
        )
        logger.info("Run summary sent to %s", self.settings.admin_address)


__all__ = ["RunSummary"]
