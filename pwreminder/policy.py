"""Effective password policy and days-until-expiry computation."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .eligibility import within_window
from .models import Account, ExpiryDecision, PasswordPolicy

logger = logging.getLogger("pwreminder.policy")

PREVIEW_DAYS = 1

_MICROSECONDS_PER_DAY = Decimal(86_400_000_000)


def effective_policy(
    default: Optional[PasswordPolicy],
    override: Optional[PasswordPolicy] = None,
) -> Optional[PasswordPolicy]:
    """Pick the policy that governs an account.

    A fine-grained override wins unless its maximum age is zero, in which case
    the domain default applies. ``None`` means passwords never expire.
    """

    if override is not None and not override.is_disabled:
        return override
    if default is None or default.is_disabled:
        return None
    return default


def days_until(expires_at: datetime, now: datetime) -> int:
    """Whole days from ``now`` to ``expires_at``.

    Half-day ties round away from zero, so 12 hours left is one day and
    12 hours overdue is minus one day.
    """

    remaining = _as_utc(expires_at) - _as_utc(now)
    microseconds = remaining // timedelta(microseconds=1)
    days = (Decimal(microseconds) / _MICROSECONDS_PER_DAY).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(days)


def resolve(
    account: Account,
    default_policy: Optional[PasswordPolicy],
    override_policy: Optional[PasswordPolicy] = None,
    *,
    now: datetime,
    warning_days: int,
    preview: bool = False,
) -> Optional[ExpiryDecision]:
    """Build the expiry decision for one account, or ``None`` when it cannot expire.

    The result depends only on the arguments; nothing is carried over from a
    previous account.
    """

    policy = effective_policy(default_policy, override_policy)

    if preview:
        expires_at = _expiry(account, policy)
        return ExpiryDecision(
            account=account,
            days_remaining=PREVIEW_DAYS,
            included=True,
            expires_at=expires_at,
            policy=policy,
        )

    if account.password_last_set is None:
        logger.debug("Skipping %s: password has never been set", account.identifier)
        return None
    if policy is None:
        logger.debug("Skipping %s: no expiring password policy applies", account.identifier)
        return None

    expires_at = _expiry(account, policy)
    if expires_at is None:
        logger.debug("Skipping %s: expiry date is out of range", account.identifier)
        return None

    days = days_until(expires_at, now)
    return ExpiryDecision(
        account=account,
        days_remaining=days,
        included=within_window(days, warning_days),
        expires_at=expires_at,
        policy=policy,
    )


def _expiry(account: Account, policy: Optional[PasswordPolicy]) -> Optional[datetime]:
    if account.password_last_set is None or policy is None:
        return None
    try:
        return _as_utc(account.password_last_set) + policy.max_age
    except OverflowError:
        return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


__all__ = ["PREVIEW_DAYS", "days_until", "effective_policy", "resolve"]
