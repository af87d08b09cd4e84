"""!
@brief Exec utils behaviour tests.
@details Validates environment sanitisation and the structured events
:func:`office_remover.exec_utils.run_command` emits for completed, missing,
timed out and failed commands.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from office_remover import exec_utils  # noqa: E402


class _StubLogger:
    """!
    @brief Lightweight logger capturing structured log calls.
    """

    def __init__(self) -> None:
        self.records: List[tuple[str, str, Dict[str, object]]] = []

    def _record(self, level: str, message: str, args: tuple[object, ...], kwargs: Dict[str, object]) -> None:
        text = message % args if args else message
        self.records.append((level, text, dict(kwargs)))

    def debug(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("debug", message, args, kwargs)

    def info(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("info", message, args, kwargs)

    def warning(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("warning", message, args, kwargs)

    def error(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("error", message, args, kwargs)


@pytest.fixture
def loggers(monkeypatch: pytest.MonkeyPatch) -> SimpleNamespace:
    human_logger = _StubLogger()
    machine_logger = _StubLogger()
    monkeypatch.setattr(exec_utils.logging_ext, "get_human_logger", lambda: human_logger)
    monkeypatch.setattr(exec_utils.logging_ext, "get_machine_logger", lambda: machine_logger)
    return SimpleNamespace(human=human_logger, machine=machine_logger)


def test_sanitize_environment_strips_blocklist() -> None:
    base_env = {"PYTHONPATH": "should_remove", "VIRTUAL_ENV": "x", "KEEP": "1", "LANG": "C"}

    sanitized = exec_utils.sanitize_environment(base_env=base_env, remove=["KEEP"])

    assert sanitized == {"LANG": "C"}


def test_run_command_executes_with_sanitized_environment(monkeypatch, loggers) -> None:
    captured: Dict[str, object] = {}

    def fake_run(command, *, capture_output, text, timeout, check, env, cwd):
        captured["command"] = command
        captured["env"] = dict(env)
        captured["timeout"] = timeout
        return SimpleNamespace(returncode=0, stdout="ok", stderr="")

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    result = exec_utils.run_command(
        ["sc.exe", "query", "ClickToRunSvc"],
        event="service_query",
        timeout=30,
        env={"PYTHONPATH": "value", "KEEP": "1"},
        human_message="Querying service",
    )

    assert result.succeeded
    assert result.stdout == "ok"
    assert captured["command"] == ["sc.exe", "query", "ClickToRunSvc"]
    assert captured["env"] == {"KEEP": "1"}
    assert captured["timeout"] == 30
    assert loggers.human.records[0][1] == "Querying service"
    assert [record[1] for record in loggers.machine.records] == [
        "service_query_plan",
        "service_query_result",
    ]
    assert loggers.machine.records[-1][2]["extra"]["result"]["rc"] == 0


def test_run_command_reports_nonzero_exit(monkeypatch, loggers) -> None:
    monkeypatch.setattr(
        exec_utils.subprocess,
        "run",
        lambda command, **kwargs: SimpleNamespace(returncode=1605, stdout="", stderr="unknown product"),
    )

    result = exec_utils.run_command(["msiexec.exe", "/x", "{X}"], event="msi_uninstall")

    assert not result.succeeded
    assert result.returncode == 1605
    assert result.output_text() == "unknown product"
    assert loggers.machine.records[-1][2]["extra"]["result"]["stderr"] == "unknown product"


def test_run_command_missing_executable(monkeypatch, loggers) -> None:
    def fake_run(command, **kwargs):
        raise FileNotFoundError(2, "No such file", command[0])

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    result = exec_utils.run_command(["OfficeC2RClient.exe"], event="c2r_uninstall")

    assert result.missing
    assert result.returncode == exec_utils.MISSING_RETURN_CODE
    assert not result.succeeded
    assert loggers.machine.records[-1][1] == "c2r_uninstall_missing"


def test_run_command_timeout(monkeypatch, loggers) -> None:
    def fake_run(command, **kwargs):
        raise subprocess.TimeoutExpired(command, kwargs["timeout"])

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    result = exec_utils.run_command(["schtasks.exe"], event="task_delete", timeout=1)

    assert result.timed_out
    assert not result.succeeded
    assert loggers.machine.records[-1][1] == "task_delete_timeout"
    assert any(record[0] == "error" for record in loggers.human.records)


def test_run_command_os_error(monkeypatch, loggers) -> None:
    def fake_run(command, **kwargs):
        raise PermissionError(13, "Access is denied")

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    result = exec_utils.run_command(["powershell.exe"], event="appx_remove")

    assert result.returncode == 1
    assert "Access is denied" in (result.error or "")
    assert loggers.machine.records[-1][1] == "appx_remove_error"
