"""Rules deciding which accounts take part in a run."""

from __future__ import annotations

from .models import Account

DEFAULT_WARNING_DAYS = 14


def is_candidate(account: Account, *, preview: bool = False) -> bool:
    """Return ``True`` when the account should go through policy resolution.

    A preview targets one named account on purpose, so the usual state checks
    do not apply to it.
    """

    if preview:
        return True
    return account.enabled and not account.password_expired and not account.password_never_expires


def within_window(days_remaining: int, warning_days: int) -> bool:
    # Negative values stay in: the computed expiry is already behind us but
    # the directory has not flagged the password as expired yet.
    return days_remaining <= warning_days


def validate_window(value: object) -> int:
    """Coerce a warning window to a positive number of days."""

    if isinstance(value, bool):
        raise ValueError("Warning window must be a positive number of days")
    try:
        days = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Warning window must be a positive number of days, got {value!r}") from exc
    if days <= 0:
        raise ValueError(f"Warning window must be a positive number of days, got {days}")
    return days


__all__ = ["DEFAULT_WARNING_DAYS", "is_candidate", "validate_window", "within_window"]
