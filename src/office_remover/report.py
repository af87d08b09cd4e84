"""!
@brief Per-target removal outcomes and the aggregated run report.
@details Every target a strategy attempts produces exactly one
:class:`RemovalOutcome`; the :class:`RemovalReport` keeps them in attempt
order and derives the run-level exit code from them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Collection, Dict, Iterable, List, Optional

from . import constants
from .exec_utils import CommandResult

_ACCESS_DENIED_MARKERS = ("access is denied", "0x80070005", "access denied")


class OutcomeStatus(Enum):
    """!
    @brief Result of attempting one removal target.
    """

    SUCCEEDED = "Succeeded"
    NOT_FOUND = "NotFound"
    ACCESS_DENIED = "AccessDenied"
    OTHER_FAILURE = "OtherFailure"


class TargetKind(Enum):
    """!
    @brief What kind of system object a removal target names.
    """

    REGISTRY = "registry"
    SERVICE = "service"
    TASK = "task"
    PACKAGE = "package"
    PROVISIONED_PACKAGE = "provisioned_package"
    PRODUCT = "product"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class RemovalOutcome:
    """!
    @brief Outcome for a single removal target.
    """

    target: str
    status: OutcomeStatus
    kind: TargetKind = TargetKind.REGISTRY
    detail: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status in (OutcomeStatus.ACCESS_DENIED, OutcomeStatus.OTHER_FAILURE)

    def as_dict(self) -> Dict[str, object]:
        return {
            "target": self.target,
            "kind": self.kind.value,
            "status": self.status.value,
            "detail": self.detail,
        }


def succeeded(target: str, kind: TargetKind, detail: Optional[str] = None) -> RemovalOutcome:
    return RemovalOutcome(target, OutcomeStatus.SUCCEEDED, kind, detail)


def not_found(target: str, kind: TargetKind, detail: Optional[str] = None) -> RemovalOutcome:
    return RemovalOutcome(target, OutcomeStatus.NOT_FOUND, kind, detail)


def access_denied(target: str, kind: TargetKind, detail: Optional[str] = None) -> RemovalOutcome:
    return RemovalOutcome(target, OutcomeStatus.ACCESS_DENIED, kind, detail)


def other_failure(target: str, kind: TargetKind, detail: str) -> RemovalOutcome:
    return RemovalOutcome(target, OutcomeStatus.OTHER_FAILURE, kind, detail)


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


def classify_command(
    result: CommandResult,
    *,
    target: str,
    kind: TargetKind,
    success_codes: Collection[int] = (0,),
    not_found_codes: Collection[int] = (),
    not_found_markers: Iterable[str] = (),
) -> RemovalOutcome:
    """!
    @brief Convert a :class:`CommandResult` into a :class:`RemovalOutcome`.
    @details A missing executable or a timeout is ``OtherFailure``. Exit code
    ``5`` or an "access is denied" message is ``AccessDenied``. Exit codes in
    ``not_found_codes`` or output containing one of ``not_found_markers``
    (case-insensitive) is ``NotFound``.
    """

    if result.missing:
        return other_failure(target, kind, f"{result.command[0]} not available")
    if result.timed_out:
        return other_failure(target, kind, f"timed out after {result.duration:.0f}s")
    if result.returncode in success_codes and not result.error:
        return succeeded(target, kind)

    text = result.output_text()
    lowered = text.lower()
    if result.returncode in not_found_codes or any(
        marker.lower() in lowered for marker in not_found_markers
    ):
        return not_found(target, kind)
    if result.returncode == constants.ERROR_ACCESS_DENIED or any(
        marker in lowered for marker in _ACCESS_DENIED_MARKERS
    ):
        return access_denied(target, kind, _first_line(text) or None)

    detail = f"exit code {result.returncode}"
    message = _first_line(text) or (result.error or "")
    if message:
        detail = f"{detail}: {message}"
    return other_failure(target, kind, detail)


@dataclass
class RemovalReport:
    """!
    @brief Ordered outcomes of one Remove or Uninstall run.
    """

    product: str
    version: int
    work_mode: str
    outcomes: List[RemovalOutcome] = field(default_factory=list)
    restart_required: bool = False

    def add(self, outcome: RemovalOutcome) -> RemovalOutcome:
        self.outcomes.append(outcome)
        return outcome

    @property
    def failures(self) -> List[RemovalOutcome]:
        return [outcome for outcome in self.outcomes if outcome.failed]

    @property
    def removed(self) -> List[RemovalOutcome]:
        return [
            outcome for outcome in self.outcomes if outcome.status is OutcomeStatus.SUCCEEDED
        ]

    @property
    def all_succeeded(self) -> bool:
        """!
        @brief ``True`` when no target failed; ``NotFound`` counts as done.
        """

        return not self.failures

    def counts(self) -> Dict[str, int]:
        tally = {status.value: 0 for status in OutcomeStatus}
        for outcome in self.outcomes:
            tally[outcome.status.value] += 1
        return tally

    def exit_code(self) -> constants.ExitCode:
        if self.all_succeeded:
            return constants.ExitCode.SUCCESS
        return constants.ExitCode.TARGETS_FAILED

    def summary_lines(self) -> List[str]:
        counts = self.counts()
        lines = [
            f"{self.work_mode} {self.product} {self.version}: "
            + ", ".join(f"{name} {count}" for name, count in counts.items())
        ]
        for outcome in self.failures:
            suffix = f" ({outcome.detail})" if outcome.detail else ""
            lines.append(f"  {outcome.status.value}: {outcome.target}{suffix}")
        if self.restart_required:
            lines.append("A restart is required to complete the cleanup.")
        return lines

    def as_dict(self) -> Dict[str, object]:
        return {
            "product": self.product,
            "version": self.version,
            "work_mode": self.work_mode,
            "restart_required": self.restart_required,
            "counts": self.counts(),
            "outcomes": [outcome.as_dict() for outcome in self.outcomes],
        }


__all__ = [
    "OutcomeStatus",
    "RemovalOutcome",
    "RemovalReport",
    "TargetKind",
    "access_denied",
    "classify_command",
    "not_found",
    "other_failure",
    "succeeded",
]
