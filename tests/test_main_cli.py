import logging
from dataclasses import replace

import pytest

import main
from conftest import FakeDirectory, RecordingMailer, make_account
from main import _parse_args, _resolve_mode
from pwreminder.audit import RUN_ABORTED, RUN_COMPLETED, RUN_STARTED
from pwreminder.config import ConfigurationError, Settings
from pwreminder.directory import DirectoryError
from pwreminder.modes import DefaultMode, DemoMode, PreviewMode, TestMode

PILOT = "OU=Pilot,DC=example,DC=com"


def test_no_arguments_selects_default_mode() -> None:
    assert _resolve_mode(_parse_args([])) == DefaultMode()


def test_demo_flag() -> None:
    assert _resolve_mode(_parse_args(["--demo"])) == DemoMode()


def test_preview_takes_account_name() -> None:
    assert _resolve_mode(_parse_args(["--preview", "jdoe"])) == PreviewMode("jdoe")


def test_test_mode_requires_scope_and_recipient() -> None:
    args = _parse_args(["--test", "--test-base", PILOT, "--test-recipient", "qa@example.com"])
    assert _resolve_mode(args) == TestMode(PILOT, "qa@example.com")

    with pytest.raises(SystemExit):
        _parse_args(["--test", "--test-base", PILOT])


@pytest.mark.parametrize(
    "argv",
    [
        ["--demo", "--preview", "jdoe"],
        ["--demo", "--test"],
        ["--test-recipient", "qa@example.com"],
        ["--warning-days", "0"],
    ],
)
def test_invalid_combinations_are_rejected(argv) -> None:
    with pytest.raises(SystemExit):
        _parse_args(argv)


def test_missing_smtp_server_is_a_configuration_error(monkeypatch) -> None:
    monkeypatch.setattr(main, "load_settings", lambda: Settings(search_base="OU=Staff,DC=example,DC=com"))
    assert main.main(["--preview", "jdoe"]) == 2


@pytest.fixture()
def wired(monkeypatch, settings):
    """Point ``main`` at in-memory collaborators; returns the recorded connect calls."""

    calls = []
    state = {"settings": settings, "directory": FakeDirectory([]), "mailer": RecordingMailer()}

    def fake_connect(current, mode):
        calls.append((current, mode))
        error = state.get("connect_error")
        if error is not None:
            raise error
        return state["directory"]

    monkeypatch.setattr(main, "load_settings", lambda: state["settings"])
    monkeypatch.setattr(main, "_connect", fake_connect)
    monkeypatch.setattr(main, "_build_mailer", lambda current: state["mailer"])
    state["calls"] = calls
    return state


def _audit_records(caplog):
    return [record for record in caplog.records if record.name == "pwreminder.audit"]


def test_bind_failure_is_audited_and_exits_1(wired, caplog) -> None:
    wired["connect_error"] = DirectoryError("Unable to bind to dc01.example.com: timeout")

    with caplog.at_level(logging.INFO):
        assert main.main([]) == 1

    records = _audit_records(caplog)
    assert [record.event_code for record in records] == [RUN_ABORTED]
    assert records[0].levelno == logging.ERROR
    assert "Unable to bind" in records[0].getMessage()


def test_connection_configuration_error_is_audited_and_exits_2(wired, caplog) -> None:
    wired["connect_error"] = ConfigurationError("Missing required configuration: AD_SERVER")

    with caplog.at_level(logging.INFO):
        assert main.main([]) == 2

    assert [record.event_code for record in _audit_records(caplog)] == [RUN_ABORTED]


def test_directory_failure_during_scan_exits_1(wired, caplog) -> None:
    wired["directory"] = FakeDirectory([make_account("alice")], fail_search=True)

    with caplog.at_level(logging.INFO):
        assert main.main([]) == 1

    assert [record.event_code for record in _audit_records(caplog)] == [RUN_STARTED, RUN_ABORTED]
    assert wired["mailer"].messages == []
    assert wired["directory"].closed is True


def test_failed_summary_send_exits_1_after_completion_entry(wired, caplog) -> None:
    wired["directory"] = FakeDirectory([make_account("alice")])
    wired["mailer"] = RecordingMailer(fail_for=["admin@example.com"])

    with caplog.at_level(logging.INFO):
        assert main.main([]) == 1

    assert [record.event_code for record in _audit_records(caplog)] == [RUN_STARTED, RUN_COMPLETED]
    assert "admin@example.com" not in wired["mailer"].recipients()
    assert wired["directory"].closed is True


def test_successful_run_exits_0(wired, caplog) -> None:
    with caplog.at_level(logging.INFO):
        assert main.main([]) == 0

    assert [record.event_code for record in _audit_records(caplog)] == [RUN_STARTED, RUN_COMPLETED]
    assert wired["mailer"].recipients() == ["admin@example.com"]


def test_test_mode_runs_without_base_dn(wired) -> None:
    wired["settings"] = replace(wired["settings"], search_base=None)

    assert main.main(["--test", "--test-base", PILOT, "--test-recipient", "qa@example.com"]) == 0

    assert wired["calls"][0][1] == TestMode(PILOT, "qa@example.com")
    assert wired["directory"].searched == [PILOT]


def test_default_mode_still_requires_base_dn(wired) -> None:
    wired["settings"] = replace(wired["settings"], search_base=None)

    assert main.main([]) == 2
    assert wired["calls"] == []
