"""Directory collaborator: account records and password policies."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, List, Mapping, Optional, Protocol

from ..models import Account, PasswordPolicy

UF_ACCOUNTDISABLE = 0x2
UF_DONT_EXPIRE_PASSWD = 0x10000
UF_PASSWORD_EXPIRED = 0x800000

# Largest negative 64-bit value; AD uses it for "never" in interval attributes.
NEVER_INTERVAL = -(2**63)

_FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)


class DirectoryError(RuntimeError):
    """Raised when the directory cannot be queried."""


class AccountNotFoundError(DirectoryError):
    """Raised when a named account does not exist."""


class AccountDirectory(Protocol):
    def search(self, search_base: str) -> List[Account]:
        ...

    def lookup(self, identifier: str) -> Optional[Account]:
        ...

    def fine_grained_policy(self, account: Account) -> Optional[PasswordPolicy]:
        ...

    def domain_policy(self) -> Optional[PasswordPolicy]:
        ...

    def close(self) -> None:
        ...


def filetime_to_datetime(value: Any) -> Optional[datetime]:
    """Convert a FILETIME (``pwdLastSet``) to an aware datetime; 0 means never set."""

    if value is None:
        return None
    if isinstance(value, datetime):
        aware = value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
        return None if aware <= _FILETIME_EPOCH else aware
    try:
        ticks = int(value)
    except (TypeError, ValueError):
        return None
    if ticks <= 0:
        return None
    return _FILETIME_EPOCH + timedelta(microseconds=ticks // 10)


def datetime_to_filetime(value: datetime) -> int:
    aware = value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    return (aware - _FILETIME_EPOCH) // timedelta(microseconds=1) * 10


def interval_to_timedelta(value: Any) -> Optional[timedelta]:
    """Convert a negative 100ns interval (``maxPwdAge``) to a positive timedelta.

    ``timedelta.max`` stands for "never"; ``timedelta(0)`` for a disabled policy.
    """

    if value is None:
        return None
    if isinstance(value, timedelta):
        if value in (timedelta.max, timedelta.min):
            return timedelta.max
        return abs(value)
    try:
        ticks = int(value)
    except (TypeError, ValueError):
        return None
    if ticks == NEVER_INTERVAL:
        return timedelta.max
    return timedelta(microseconds=abs(ticks) // 10)


def attribute_value(attributes: Mapping[str, Any], name: str) -> Any:
    """First value of ``name`` in an entry, matched case-insensitively; blanks become ``None``."""

    lowered = name.lower()
    for key, raw in attributes.items():
        if key.lower() != lowered:
            continue
        if isinstance(raw, (list, tuple)):
            raw = raw[0] if raw else None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        if isinstance(raw, str):
            raw = raw.strip()
            return raw or None
        return raw
    return None


def _flags(value: Any) -> int:
    try:
        return int(value) if value is not None else 0
    except (TypeError, ValueError):
        return 0


def account_from_attributes(dn: str | None, attributes: Mapping[str, Any]) -> Account:
    """Build an :class:`Account` from one search result entry."""

    identifier = attribute_value(attributes, "sAMAccountName") or dn or ""
    uac = _flags(attribute_value(attributes, "userAccountControl"))
    computed = _flags(attribute_value(attributes, "msDS-User-Account-Control-Computed"))
    return Account(
        identifier=str(identifier),
        name=str(attribute_value(attributes, "displayName") or attribute_value(attributes, "cn") or identifier),
        given_name=attribute_value(attributes, "givenName"),
        email=attribute_value(attributes, "mail"),
        enabled=not uac & UF_ACCOUNTDISABLE,
        password_last_set=filetime_to_datetime(attribute_value(attributes, "pwdLastSet")),
        password_never_expires=bool(uac & UF_DONT_EXPIRE_PASSWD),
        password_expired=bool(computed & UF_PASSWORD_EXPIRED),
        distinguished_name=dn,
    )


__all__ = [
    "AccountDirectory",
    "AccountNotFoundError",
    "DirectoryError",
    "NEVER_INTERVAL",
    "account_from_attributes",
    "attribute_value",
    "datetime_to_filetime",
    "filetime_to_datetime",
    "interval_to_timedelta",
]
