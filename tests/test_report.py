"""!
@brief Outcome classification and report aggregation tests.
"""

from __future__ import annotations

import pathlib
import sys
from collections.abc import Sequence

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from office_remover import constants, exec_utils, report  # noqa: E402
from office_remover.report import OutcomeStatus, RemovalReport, TargetKind  # noqa: E402


def _command_result(
    command: Sequence[str] = ("sc.exe", "delete", "ClickToRunSvc"),
    *,
    returncode: int = 0,
    stdout: str = "",
    stderr: str = "",
    timed_out: bool = False,
    error: str | None = None,
) -> exec_utils.CommandResult:
    return exec_utils.CommandResult(
        command=list(command),
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
        duration=0.0,
        timed_out=timed_out,
        error=error,
    )


@pytest.mark.parametrize(
    ("result", "expected"),
    [
        (_command_result(returncode=0), OutcomeStatus.SUCCEEDED),
        (_command_result(returncode=1060), OutcomeStatus.NOT_FOUND),
        (_command_result(returncode=5), OutcomeStatus.ACCESS_DENIED),
        (_command_result(returncode=1, stderr="ERROR: Access is denied."), OutcomeStatus.ACCESS_DENIED),
        (_command_result(returncode=1, stdout="ERROR: The system cannot find the file specified."), OutcomeStatus.NOT_FOUND),
        (_command_result(returncode=1603, stdout="Fatal error during installation."), OutcomeStatus.OTHER_FAILURE),
        (_command_result(returncode=1, timed_out=True), OutcomeStatus.OTHER_FAILURE),
        (_command_result(returncode=127, error="[WinError 2] not found"), OutcomeStatus.OTHER_FAILURE),
    ],
)
def test_classify_command(result, expected) -> None:
    outcome = report.classify_command(
        result,
        target="service ClickToRunSvc",
        kind=TargetKind.SERVICE,
        not_found_codes=(constants.ERROR_SERVICE_DOES_NOT_EXIST,),
        not_found_markers=("cannot find the file specified",),
    )
    assert outcome.status is expected
    assert outcome.target == "service ClickToRunSvc"
    assert outcome.kind is TargetKind.SERVICE


def test_classify_command_detail_uses_first_output_line() -> None:
    outcome = report.classify_command(
        _command_result(returncode=1603, stdout="\nFatal error during installation.\nmore"),
        target="product X",
        kind=TargetKind.PRODUCT,
    )
    assert outcome.detail == "exit code 1603: Fatal error during installation."


def test_report_exit_code_and_counts() -> None:
    run = RemovalReport("ClickToRun", 16, "Remove")
    run.add(report.succeeded("a", TargetKind.REGISTRY))
    run.add(report.not_found("b", TargetKind.TASK))

    assert run.all_succeeded
    assert run.exit_code() is constants.ExitCode.SUCCESS

    run.add(report.access_denied("c", TargetKind.REGISTRY, "Access is denied"))
    run.add(report.other_failure("d", TargetKind.SERVICE, "exit code 2"))

    assert not run.all_succeeded
    assert run.exit_code() is constants.ExitCode.TARGETS_FAILED
    assert [outcome.target for outcome in run.failures] == ["c", "d"]
    assert [outcome.target for outcome in run.removed] == ["a"]
    assert run.counts() == {
        "Succeeded": 1,
        "NotFound": 1,
        "AccessDenied": 1,
        "OtherFailure": 1,
    }


def test_report_summary_and_dict() -> None:
    run = RemovalReport("WindowsInstaller", 14, "Uninstall", restart_required=True)
    run.add(report.other_failure("product {X}", TargetKind.PRODUCT, "exit code 1603"))

    lines = run.summary_lines()
    assert lines[0].startswith("Uninstall WindowsInstaller 14:")
    assert "  OtherFailure: product {X} (exit code 1603)" in lines
    assert lines[-1] == "A restart is required to complete the cleanup."

    payload = run.as_dict()
    assert payload["restart_required"] is True
    assert payload["outcomes"] == [
        {"target": "product {X}", "kind": "product", "status": "OtherFailure", "detail": "exit code 1603"}
    ]
