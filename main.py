"""Command-line entry point for the password expiry reminder."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from pwreminder.audit import ERROR, RUN_ABORTED, LoggingAuditSink
from pwreminder.config import ConfigurationError, Settings, load_settings
from pwreminder.directory import AccountDirectory, DirectoryError
from pwreminder.mailer import DeliveryError, SmtpMailer
from pwreminder.modes import DefaultMode, DemoMode, PreviewMode, RunMode, TestMode, describe
from pwreminder.runner import run_reminders

logger = logging.getLogger("pwreminder.main")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Email Active Directory users whose passwords are about to expire",
    )
    modes = parser.add_mutually_exclusive_group()
    modes.add_argument(
        "--demo",
        action="store_true",
        help="List the accounts that would be notified without sending any email",
    )
    modes.add_argument(
        "--preview",
        metavar="ACCOUNT",
        default=None,
        help="Send the notice for a single account (sAMAccountName) regardless of its expiry date",
    )
    modes.add_argument(
        "--test",
        action="store_true",
        help="Scan --test-base only and redirect every notice to --test-recipient",
    )
    parser.add_argument("--test-base", metavar="DN", default=None, help="Subtree scanned in test mode")
    parser.add_argument(
        "--test-recipient",
        metavar="ADDRESS",
        default=None,
        help="Address receiving every notice in test mode",
    )
    parser.add_argument(
        "--warning-days",
        type=int,
        default=None,
        help="Notify users whose password expires within this many days (default: 14)",
    )
    parser.add_argument("--base-dn", default=None, help="Override BASE_DN for this run")
    parser.add_argument("--log-file", default=None, help="Also write log output to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    if args.test and not (args.test_base and args.test_recipient):
        parser.error("--test requires --test-base and --test-recipient")
    if not args.test and (args.test_base or args.test_recipient):
        parser.error("--test-base and --test-recipient are only valid with --test")
    if args.warning_days is not None and args.warning_days <= 0:
        parser.error("--warning-days must be a positive number of days")

    return args


def _resolve_mode(args: argparse.Namespace) -> RunMode:
    if args.demo:
        return DemoMode()
    if args.preview:
        return PreviewMode(account_id=args.preview)
    if args.test:
        return TestMode(search_base=args.test_base, recipient=args.test_recipient)
    return DefaultMode()


def _configure_logging(verbose: bool, log_file: str | None) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def _build_mailer(settings: Settings) -> SmtpMailer:
    return SmtpMailer(
        settings.smtp_server or "localhost",
        settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_password,
        starttls=settings.smtp_starttls,
    )


def _connect(settings: Settings, mode: RunMode) -> AccountDirectory:
    from pwreminder.directory.ldap import connect

    scope = mode.search_base if isinstance(mode, TestMode) else None
    return connect(settings, scope=scope)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage; returns the process exit status."""

    args = _parse_args(argv)
    _configure_logging(args.verbose, args.log_file)

    mode = _resolve_mode(args)
    try:
        settings = load_settings().with_overrides(warning_days=args.warning_days, search_base=args.base_dn)
        if not isinstance(mode, DemoMode):
            settings.require("smtp_server")
        if isinstance(mode, (DefaultMode, DemoMode)):
            settings.require("search_base")
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2

    logger.info("Starting password expiry reminder in %s mode", describe(mode))
    audit = LoggingAuditSink(syslog_address=settings.audit_syslog)
    try:
        return _run(settings, mode, audit)
    finally:
        audit.close()


def _run(settings: Settings, mode: RunMode, audit: LoggingAuditSink) -> int:
    try:
        directory = _connect(settings, mode)
    except (ConfigurationError, DirectoryError) as exc:
        logger.error("%s", exc)
        audit.record(f"Password expiry reminder aborted before the scan: {exc}", ERROR, RUN_ABORTED)
        return 2 if isinstance(exc, ConfigurationError) else 1

    try:
        result = run_reminders(
            settings,
            mode,
            directory=directory,
            mailer=_build_mailer(settings),
            audit=audit,
        )
    except (DirectoryError, DeliveryError) as exc:
        logger.error("Run aborted: %s", exc)
        return 1
    finally:
        directory.close()

    logger.info(
        "Finished: %d processed, %d sent, %d skipped, %d failed",
        result.processed,
        result.delivered,
        len(result.skipped),
        len(result.failed),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
