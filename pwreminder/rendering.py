"""HTML rendering of user notices and run summaries."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from jinja2 import Environment, PackageLoader, select_autoescape

from .config import Settings
from .models import ExpiryDecision, RunResult


def expiry_phrase(days: int) -> str:
    """Describe ``days`` until expiry the way the notice subject reads."""

    if days > 1:
        return f"expires in {days} days"
    if days == 1:
        return "expires in 1 day"
    if days == 0:
        return "expires today"
    if days == -1:
        return "expired 1 day ago"
    return f"expired {-days} days ago"


def format_elapsed(elapsed: timedelta) -> str:
    total = int(elapsed.total_seconds())
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:d}:{minutes:02d}:{seconds:02d}"


def _date_filter(value: Optional[datetime], format_string: str = "%A, %d %B %Y") -> str:
    if value is None:
        return ""
    return value.strftime(format_string)


class NoticeRenderer:
    """Render emails from the templates bundled with the package."""

    def __init__(self, settings: Settings, environment: Environment | None = None) -> None:
        self.settings = settings
        self.env = environment or Environment(
            loader=PackageLoader("pwreminder", "templates"),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["date"] = _date_filter

    def _base_context(self) -> Dict[str, Any]:
        return {
            "organization_name": self.settings.organization_name,
            "support_contact": self.settings.support_contact,
            "change_password_url": self.settings.change_password_url,
            "colors": self.settings.colors.as_dict(),
        }

    def notice_subject(self, decision: ExpiryDecision, *, redirected_from: str | None = None) -> str:
        subject = f"Your password {expiry_phrase(decision.days_remaining)}"
        if redirected_from is not None:
            subject = f"[TEST for {redirected_from}] {subject}"
        return subject

    def render_notice(
        self,
        decision: ExpiryDecision,
        *,
        redirected_from: str | None = None,
    ) -> Tuple[str, str]:
        """Return ``(subject, html_body)`` for one account.

        ``redirected_from`` names the address the notice would normally go to
        and is shown in both the subject and the body.
        """

        urgency = decision.urgency
        context = self._base_context()
        context.update(
            {
                "account": decision.account,
                "greeting_name": decision.account.greeting_name,
                "days_remaining": decision.days_remaining,
                "phrase": expiry_phrase(decision.days_remaining),
                "expires_at": decision.expires_at,
                "urgency": urgency.value,
                "accent": self.settings.colors.for_urgency(urgency),
                "redirected_from": redirected_from,
            }
        )
        body = self.env.get_template("notice.html").render(**context)
        return self.notice_subject(decision, redirected_from=redirected_from), body

    def render_summary(self, result: RunResult, *, mode: str, started_at: datetime) -> Tuple[str, str]:
        context = self._base_context()
        context.update(
            {
                "result": result,
                "mode": mode,
                "started_at": started_at,
                "elapsed": format_elapsed(result.elapsed),
            }
        )
        subject = (
            f"Password expiry reminders: {result.processed} processed, "
            f"{len(result.skipped)} skipped, {len(result.failed)} failed"
        )
        body = self.env.get_template("summary.html").render(**context)
        return subject, body


__all__ = ["NoticeRenderer", "expiry_phrase", "format_elapsed"]
