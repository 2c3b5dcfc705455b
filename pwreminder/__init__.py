"""Password expiry reminders for Active Directory users."""

from __future__ import annotations

from .config import ConfigurationError, Settings, load_settings
from .models import Account, ExpiryDecision, PasswordPolicy, RunResult, Urgency
from .modes import DefaultMode, DemoMode, PreviewMode, RunMode, TestMode
from .policy import days_until, effective_policy, resolve
from .runner import run_reminders

__version__ = "1.0.0"

__all__ = [
    "Account",
    "ConfigurationError",
    "DefaultMode",
    "DemoMode",
    "ExpiryDecision",
    "PasswordPolicy",
    "PreviewMode",
    "RunMode",
    "RunResult",
    "Settings",
    "TestMode",
    "Urgency",
    "days_until",
    "effective_policy",
    "load_settings",
    "resolve",
    "run_reminders",
]
