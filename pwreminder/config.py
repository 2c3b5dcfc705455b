"""Settings for a reminder run, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional

from .eligibility import DEFAULT_WARNING_DAYS, validate_window
from .models import Urgency

DEFAULT_SENDER = "Password Expiration Reminder <noreply@localhost>"
DEFAULT_SMTP_PORT = 25

_TRUE_VALUES = {"1", "true", "yes", "on"}

# Field name -> environment variable, used for readable error messages.
ENVIRONMENT_NAMES = {
    "ad_server": "AD_SERVER",
    "ad_user": "AD_USERNAME",
    "ad_password": "AD_PASSWORD",
    "search_base": "BASE_DN",
    "domain_dn": "DOMAIN_DN",
    "smtp_server": "SMTP_SERVER",
    "admin_address": "ADMIN_EMAIL",
}


class ConfigurationError(ValueError):
    """Raised when the environment does not describe a usable run."""


@dataclass(frozen=True)
class BucketColors:
    """Accent colours used by the notice template for each urgency bucket."""

    critical: str = "#c0392b"
    warning: str = "#e67e22"
    notice: str = "#2471a3"

    def for_urgency(self, urgency: Urgency) -> str:
        return getattr(self, urgency.value)

    def as_dict(self) -> Dict[str, str]:
        return {urgency.value: self.for_urgency(urgency) for urgency in Urgency}


@dataclass(frozen=True)
class Settings:
    """Every option recognised by the reminder job.

    Directory: ``ad_server``, ``ad_user``, ``ad_password``, ``ad_use_ssl``,
    ``search_base`` (subtree scanned in default mode) and ``domain_dn`` (entry
    holding ``maxPwdAge``; derived from ``search_base`` when unset).
    ``password_expiry_days`` pins the domain default instead of querying it.

    Mail: ``smtp_server``, ``smtp_port``, ``smtp_user``, ``smtp_password``,
    ``smtp_starttls``, ``sender`` and ``admin_address`` (summary recipient).

    Presentation: ``organization_name``, ``support_contact``,
    ``change_password_url`` and ``colors``.
    """

    ad_server: Optional[str] = None
    ad_user: Optional[str] = None
    ad_password: Optional[str] = None
    ad_use_ssl: bool = False
    search_base: Optional[str] = None
    domain_dn: Optional[str] = None
    password_expiry_days: Optional[int] = None
    warning_days: int = DEFAULT_WARNING_DAYS
    smtp_server: Optional[str] = None
    smtp_port: int = DEFAULT_SMTP_PORT
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_starttls: bool = False
    sender: str = DEFAULT_SENDER
    admin_address: Optional[str] = None
    organization_name: str = "IT Department"
    support_contact: Optional[str] = None
    change_password_url: Optional[str] = None
    colors: BucketColors = field(default_factory=BucketColors)
    audit_syslog: Optional[str] = None

    def with_overrides(
        self,
        *,
        warning_days: int | None = None,
        search_base: str | None = None,
    ) -> "Settings":
        changes: Dict[str, object] = {}
        if warning_days is not None:
            changes["warning_days"] = _window(warning_days)
        if search_base:
            changes["search_base"] = search_base
        return replace(self, **changes) if changes else self

    def require(self, *names: str) -> None:
        """Raise :class:`ConfigurationError` naming every unset field in ``names``."""

        missing = [ENVIRONMENT_NAMES.get(name, name) for name in names if not getattr(self, name)]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    def resolved_domain_dn(self, scope: Optional[str] = None) -> Optional[str]:
        """``DOMAIN_DN``, else the ``DC=`` part of ``BASE_DN`` or of ``scope``."""

        if self.domain_dn:
            return self.domain_dn
        base = self.search_base or scope
        if not base:
            return None
        return domain_from_dn(base)


def domain_from_dn(dn: str) -> Optional[str]:
    """Return the ``DC=`` components of ``dn`` (the naming context of the domain)."""

    parts = [part.strip() for part in dn.split(",") if part.strip()]
    components = [part for part in parts if part[:3].upper() == "DC="]
    if not components:
        return None
    return ",".join(components)


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Create :class:`Settings` from environment variables."""

    env = os.environ if environ is None else environ

    expiry_days = _optional(env, "PASSWORD_EXPIRY_DAYS")
    return Settings(
        ad_server=_optional(env, "AD_SERVER"),
        ad_user=_optional(env, "AD_USERNAME"),
        ad_password=env.get("AD_PASSWORD") or None,
        ad_use_ssl=_flag(env, "AD_USE_SSL"),
        search_base=_optional(env, "BASE_DN"),
        domain_dn=_optional(env, "DOMAIN_DN"),
        password_expiry_days=_integer("PASSWORD_EXPIRY_DAYS", expiry_days) if expiry_days else None,
        warning_days=_window(env.get("WARNING_DAYS") or DEFAULT_WARNING_DAYS),
        smtp_server=_optional(env, "SMTP_SERVER"),
        smtp_port=_integer("SMTP_PORT", env.get("SMTP_PORT") or DEFAULT_SMTP_PORT),
        smtp_user=_optional(env, "SMTP_USER"),
        smtp_password=env.get("SMTP_PASSWORD") or None,
        smtp_starttls=_flag(env, "SMTP_STARTTLS"),
        sender=_optional(env, "MAIL_FROM") or DEFAULT_SENDER,
        admin_address=_optional(env, "ADMIN_EMAIL"),
        organization_name=_optional(env, "ORGANIZATION_NAME") or "IT Department",
        support_contact=_optional(env, "SUPPORT_CONTACT"),
        change_password_url=_optional(env, "PASSWORD_CHANGE_URL"),
        colors=BucketColors(
            critical=_optional(env, "COLOR_CRITICAL") or BucketColors.critical,
            warning=_optional(env, "COLOR_WARNING") or BucketColors.warning,
            notice=_optional(env, "COLOR_NOTICE") or BucketColors.notice,
        ),
        audit_syslog=_optional(env, "AUDIT_SYSLOG"),
    )


def _optional(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _flag(env: Mapping[str, str], name: str) -> bool:
    return (env.get(name) or "").strip().lower() in _TRUE_VALUES


def _integer(name: str, value: object) -> int:
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


def _window(value: object) -> int:
    try:
        return validate_window(value)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


__all__ = [
    "BucketColors",
    "ConfigurationError",
    "DEFAULT_SENDER",
    "Settings",
    "domain_from_dn",
    "load_settings",
]
