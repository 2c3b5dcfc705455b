from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pwreminder.config import Settings
from pwreminder.directory import DirectoryError
from pwreminder.mailer import DeliveryError, OutboundMessage
from pwreminder.models import Account, PasswordPolicy
from pwreminder.rendering import NoticeRenderer

NOW = datetime(2026, 10, 17, 6, 0, tzinfo=timezone.utc)
NINETY_DAYS = PasswordPolicy(max_age=timedelta(days=90))

_UNSET = object()


def make_account(
    identifier: str,
    *,
    days_ago: Optional[float] = 77,
    email: object = _UNSET,
    name: Optional[str] = None,
    enabled: bool = True,
    never_expires: bool = False,
    expired: bool = False,
) -> Account:
    return Account(
        identifier=identifier,
        name=name or identifier.title(),
        email=f"{identifier}@example.com" if email is _UNSET else email,  # type: ignore[arg-type]
        given_name=(name or identifier.title()).split()[0],
        enabled=enabled,
        password_last_set=None if days_ago is None else NOW - timedelta(days=days_ago),
        password_never_expires=never_expires,
        password_expired=expired,
    )


class FakeDirectory:
    """In-memory directory returning accounts in insertion order."""

    def __init__(
        self,
        accounts: Iterable[Account],
        *,
        domain: Optional[PasswordPolicy] = NINETY_DAYS,
        overrides: Optional[Dict[str, PasswordPolicy]] = None,
        fail_search: bool = False,
    ) -> None:
        self.accounts = list(accounts)
        self.domain = domain
        self.overrides = dict(overrides or {})
        self.fail_search = fail_search
        self.searched: List[str] = []
        self.policy_lookups: List[str] = []
        self.domain_lookups = 0
        self.closed = False

    def search(self, search_base: str) -> List[Account]:
        self.searched.append(search_base)
        if self.fail_search:
            raise DirectoryError("Search under %s failed: server down" % search_base)
        return list(self.accounts)

    def lookup(self, identifier: str) -> Optional[Account]:
        for account in self.accounts:
            if account.identifier == identifier:
                return account
        return None

    def fine_grained_policy(self, account: Account) -> Optional[PasswordPolicy]:
        self.policy_lookups.append(account.identifier)
        return self.overrides.get(account.identifier)

    def domain_policy(self) -> Optional[PasswordPolicy]:
        self.domain_lookups += 1
        return self.domain

    def close(self) -> None:
        self.closed = True


class RecordingMailer:
    def __init__(self, fail_for: Iterable[str] = ()) -> None:
        self.messages: List[OutboundMessage] = []
        self.fail_for = set(fail_for)

    def send(self, message: OutboundMessage) -> None:
        if message.to in self.fail_for:
            raise DeliveryError(f"Failed to deliver to {message.to}: 550 mailbox unavailable")
        self.messages.append(message)

    def recipients(self) -> List[str]:
        return [message.to for message in self.messages]


class RecordingAudit:
    def __init__(self) -> None:
        self.events: List[Tuple[str, str, int]] = []

    def record(self, message: str, severity: str = "information", code: int = 1000) -> None:
        self.events.append((message, severity, code))

    def codes(self) -> List[int]:
        return [code for _, _, code in self.events]


class FakeTimer:
    def __init__(self, *values: float) -> None:
        self._values = list(values)

    def __call__(self) -> float:
        if len(self._values) > 1:
            return self._values.pop(0)
        return self._values[0]


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        search_base="OU=Staff,DC=example,DC=com",
        smtp_server="mail.example.com",
        sender="IT Service Desk <it@example.com>",
        admin_address="admin@example.com",
        organization_name="Example Corp",
        support_contact="the service desk on extension 4000",
        change_password_url="https://password.example.com",
    )


@pytest.fixture()
def renderer(settings: Settings) -> NoticeRenderer:
    return NoticeRenderer(settings)


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def audit() -> RecordingAudit:
    return RecordingAudit()
