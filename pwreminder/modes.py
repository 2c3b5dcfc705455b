"""Run modes selected once on the command line."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class DefaultMode:
    """Full run: every expiring account is notified and a summary is mailed."""


@dataclass(frozen=True)
class DemoMode:
    """List the candidates on the console without sending any email."""


@dataclass(frozen=True)
class PreviewMode:
    """Render the notice for a single account regardless of its state."""

    account_id: str


@dataclass(frozen=True)
class TestMode:
    """Scan a narrower subtree and redirect every notice to one address."""

    __test__ = False

    search_base: str
    recipient: str


RunMode = Union[DefaultMode, DemoMode, PreviewMode, TestMode]


def sends_summary(mode: RunMode) -> bool:
    return isinstance(mode, (DefaultMode, TestMode))


def override_recipient(mode: RunMode) -> str | None:
    if isinstance(mode, TestMode):
        return mode.recipient
    return None


def describe(mode: RunMode) -> str:
    if isinstance(mode, DemoMode):
        return "demo"
    if isinstance(mode, PreviewMode):
        return f"preview of {mode.account_id}"
    if isinstance(mode, TestMode):
        return f"test under {mode.search_base} (redirected to {mode.recipient})"
    return "default"


__all__ = [
    "DefaultMode",
    "DemoMode",
    "PreviewMode",
    "RunMode",
    "TestMode",
    "describe",
    "override_recipient",
    "sends_summary",
]
