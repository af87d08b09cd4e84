"""!
@brief Filesystem helpers for cached payload and user-data removal.
"""
from __future__ import annotations

import os
import shutil
import stat
import sys
from pathlib import Path

from . import logging_ext
from .report import (
    OutcomeStatus,
    RemovalOutcome,
    TargetKind,
    access_denied,
    not_found,
    other_failure,
    succeeded,
)


def expand_path(template: str) -> Path:
    """!
    @brief Expand ``%VAR%`` and ``~`` references in ``template``.
    @details Unknown variables are left in place, which yields a path that
    does not exist and is therefore reported as ``NotFound``.
    """

    return Path(os.path.expanduser(os.path.expandvars(template)))


def _clear_readonly(function, path, _excinfo) -> None:  # pragma: no cover - Windows only
    """!
    @brief Clear the read-only attribute and retry the failed operation once.
    """

    os.chmod(path, stat.S_IWRITE)
    function(path)


def _rmtree(target: Path) -> None:
    if sys.version_info >= (3, 12):
        shutil.rmtree(target, onexc=_clear_readonly)
    else:  # pragma: no cover - older interpreters
        shutil.rmtree(target, onerror=_clear_readonly)


def remove_directory(path: Path) -> RemovalOutcome:
    """!
    @brief Delete ``path`` recursively.
    @returns ``NotFound`` when the path does not exist, ``AccessDenied`` when a
    file is locked or protected, ``OtherFailure`` for other errors.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()
    target = Path(path)
    label = str(target)

    machine_logger.info(
        "filesystem_remove_plan",
        extra={"event": "filesystem_remove_plan", "path": label},
    )

    outcome: RemovalOutcome
    try:
        if not target.exists():
            outcome = not_found(label, TargetKind.DIRECTORY)
        elif target.is_dir():
            _rmtree(target)
            outcome = succeeded(label, TargetKind.DIRECTORY)
        else:
            target.unlink()
            outcome = succeeded(label, TargetKind.DIRECTORY)
    except PermissionError as exc:
        outcome = access_denied(label, TargetKind.DIRECTORY, str(exc))
    except OSError as exc:
        outcome = other_failure(label, TargetKind.DIRECTORY, str(exc))

    if outcome.failed:
        human_logger.warning("Could not remove %s: %s", label, outcome.detail)
    elif outcome.status is OutcomeStatus.SUCCEEDED:
        human_logger.info("Removed %s", label)
    else:
        human_logger.debug("Path %s not present", label)

    machine_logger.info(
        "filesystem_remove_result",
        extra={
            "event": "filesystem_remove_result",
            "path": label,
            "status": outcome.status.value,
            "detail": outcome.detail,
        },
    )
    return outcome


__all__ = ["expand_path", "remove_directory"]
