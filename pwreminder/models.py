"""Domain models for a single reminder run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional


class Urgency(str, Enum):
    """Presentation bucket derived from the number of days left."""

    CRITICAL = "critical"
    WARNING = "warning"
    NOTICE = "notice"

    @classmethod
    def for_days(cls, days: int) -> "Urgency":
        if days <= CRITICAL_DAYS:
            return cls.CRITICAL
        if days <= WARNING_DAYS:
            return cls.WARNING
        return cls.NOTICE


CRITICAL_DAYS = 2
WARNING_DAYS = 7


@dataclass(frozen=True)
class Account:
    """Read-only snapshot of a directory user taken at the start of a run."""

    identifier: str
    name: str
    email: Optional[str] = None
    given_name: Optional[str] = None
    enabled: bool = True
    password_last_set: Optional[datetime] = None
    password_never_expires: bool = False
    password_expired: bool = False
    distinguished_name: Optional[str] = None

    @property
    def greeting_name(self) -> str:
        return self.given_name or self.name or self.identifier


@dataclass(frozen=True)
class PasswordPolicy:
    """Maximum password age from the domain or a password settings object."""

    max_age: timedelta
    source: str = "domain"
    name: Optional[str] = None

    @property
    def is_disabled(self) -> bool:
        # A zero age switches expiry off; it is not the shortest possible age.
        return self.max_age <= timedelta(0) or self.max_age == timedelta.max


@dataclass(frozen=True)
class ExpiryDecision:
    """Outcome of resolving one account, never shared between accounts."""

    account: Account
    days_remaining: int
    included: bool
    expires_at: Optional[datetime] = None
    policy: Optional[PasswordPolicy] = None

    @property
    def urgency(self) -> Urgency:
        return Urgency.for_days(self.days_remaining)


@dataclass(frozen=True)
class SkippedAccount:
    name: str
    identifier: str
    days_remaining: int

    @property
    def urgency(self) -> Urgency:
        return Urgency.for_days(self.days_remaining)


@dataclass(frozen=True)
class FailedDelivery:
    name: str
    identifier: str
    recipient: str
    error: str


@dataclass
class RunResult:
    """Counters accumulated while the directory is scanned."""

    warning_days: int
    delivered: int = 0
    listed: int = 0
    skipped: List[SkippedAccount] = field(default_factory=list)
    failed: List[FailedDelivery] = field(default_factory=list)
    elapsed: timedelta = timedelta(0)

    @property
    def processed(self) -> int:
        return self.delivered + self.listed + len(self.skipped) + len(self.failed)

    def record_delivered(self) -> None:
        self.delivered += 1

    def record_listed(self) -> None:
        self.listed += 1

    def record_skipped(self, decision: ExpiryDecision) -> None:
        account = decision.account
        self.skipped.append(
            SkippedAccount(
                name=account.name,
                identifier=account.identifier,
                days_remaining=decision.days_remaining,
            )
        )

    def record_failed(self, decision: ExpiryDecision, recipient: str, error: str) -> None:
        account = decision.account
        self.failed.append(
            FailedDelivery(
                name=account.name,
                identifier=account.identifier,
                recipient=recipient,
                error=error,
            )
        )


__all__ = [
    "Account",
    "ExpiryDecision",
    "FailedDelivery",
    "PasswordPolicy",
    "RunResult",
    "SkippedAccount",
    "Urgency",
]
