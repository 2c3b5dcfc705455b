"""Single pass over the directory: resolve, filter, dispatch, summarise."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from .audit import AuditSink
from .config import Settings
from .directory import AccountDirectory, AccountNotFoundError
from .dispatcher import NoticeDispatcher, Outcome
from .eligibility import is_candidate
from .mailer import Mailer
from .models import Account, PasswordPolicy, RunResult
from .modes import DemoMode, PreviewMode, RunMode, TestMode
from .policy import resolve
from .rendering import NoticeRenderer
from .summary import RunSummary

logger = logging.getLogger("pwreminder.runner")


def default_policy(settings: Settings, directory: AccountDirectory) -> Optional[PasswordPolicy]:
    """Domain-wide maximum age, pinned by configuration or read from the directory."""

    if settings.password_expiry_days is not None:
        return PasswordPolicy(max_age=timedelta(days=settings.password_expiry_days), source="configured")
    return directory.domain_policy()


def fetch_accounts(settings: Settings, mode: RunMode, directory: AccountDirectory) -> List[Account]:
    if isinstance(mode, PreviewMode):
        account = directory.lookup(mode.account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {mode.account_id!r} was not found")
        return [account]
    if isinstance(mode, TestMode):
        return directory.search(mode.search_base)
    settings.require("search_base")
    return directory.search(str(settings.search_base))


def process_account(
    account: Account,
    *,
    policy: Optional[PasswordPolicy],
    directory: AccountDirectory,
    dispatcher: NoticeDispatcher,
    result: RunResult,
    now: datetime,
    warning_days: int,
    preview: bool = False,
) -> Optional[Outcome]:
    """Run one account through resolve, filter and dispatch.

    Everything derived for the account lives in this call; only ``result``
    outlives it.
    """

    if not is_candidate(account, preview=preview):
        return None
    if account.password_last_set is None and not preview:
        logger.debug("Skipping %s: password has never been set", account.identifier)
        return None

    override = directory.fine_grained_policy(account)
    decision = resolve(
        account,
        policy,
        override,
        now=now,
        warning_days=warning_days,
        preview=preview,
    )
    if decision is None or not decision.included:
        return None
    return dispatcher.dispatch(decision, result)


def run_reminders(
    settings: Settings,
    mode: RunMode,
    *,
    directory: AccountDirectory,
    mailer: Mailer,
    audit: AuditSink,
    renderer: NoticeRenderer | None = None,
    now: datetime | None = None,
    timer: Callable[[], float] = time.monotonic,
    console: Callable[[str], None] = print,
) -> RunResult:
    """Execute one run and return what it did.

    A failing directory query aborts the run: the abort is audited, no summary
    is mailed and the error propagates.
    """

    renderer = renderer or NoticeRenderer(settings)
    started_at = now or datetime.now(timezone.utc)
    start = timer()

    summary = RunSummary(settings=settings, audit=audit, mailer=mailer, renderer=renderer, mode=mode)
    dispatcher = NoticeDispatcher(settings=settings, mailer=mailer, renderer=renderer, mode=mode, console=console)
    result = RunResult(warning_days=settings.warning_days)
    preview = isinstance(mode, PreviewMode)

    summary.started()
    try:
        policy = default_policy(settings, directory)
        if policy is None or policy.is_disabled:
            logger.warning("Domain password policy does not expire passwords; only fine-grained policies apply")
        accounts = fetch_accounts(settings, mode, directory)
        if isinstance(mode, DemoMode):
            dispatcher.print_header()
        for account in accounts:
            process_account(
                account,
                policy=policy,
                directory=directory,
                dispatcher=dispatcher,
                result=result,
                now=started_at,
                warning_days=settings.warning_days,
                preview=preview,
            )
    except Exception as exc:
        summary.aborted(exc, timedelta(seconds=timer() - start))
        raise

    result.elapsed = timedelta(seconds=timer() - start)
    if isinstance(mode, DemoMode):
        console(f"\n{result.listed + len(result.skipped)} account(s) within {settings.warning_days} days.")
    summary.completed(result, started_at=started_at)
    return result


__all__ = ["default_policy", "fetch_accounts", "process_account", "run_reminders"]
