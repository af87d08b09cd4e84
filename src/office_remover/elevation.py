"""!
@brief Administrative rights detection and elevated relaunch.
@details Elevation is a two-phase handoff: :func:`ensure_elevated` either
reports that the process already runs elevated, or asks the shell to start a
second, elevated copy of the program and reports ``ElevationRequested`` so
the caller can end the current run without touching the system. The parent
never waits for the child.
"""
from __future__ import annotations

import ctypes
import os
import subprocess
import sys
from enum import Enum
from typing import Any, List, Sequence, Tuple

from . import logging_ext
from .errors import ElevationDenied
from .options import has_flag

NO_LOGO_FLAGS = ("-c", "--no-copyright-logo")

_SHELL_EXECUTE_OK = 32
_SW_SHOWNORMAL = 1


class ElevationState(Enum):
    """!
    @brief Elevation status of the current process; recomputed every start.
    """

    NOT_ELEVATED = "NotElevated"
    ELEVATION_REQUESTED = "ElevationRequested"
    ELEVATED = "Elevated"


def _shell32() -> Any | None:
    """!
    @brief Return the ``shell32`` ctypes binding, or ``None`` off Windows.
    """

    if os.name != "nt":
        return None
    try:
        return ctypes.windll.shell32  # type: ignore[attr-defined]
    except Exception:
        return None


def is_admin() -> bool:
    """!
    @brief Determine whether the current process token has administrative rights.
    """

    shell32 = _shell32()
    if shell32 is None:
        return False
    try:
        return bool(shell32.IsUserAnAdmin())
    except Exception:
        return False


def current_state() -> ElevationState:
    return ElevationState.ELEVATED if is_admin() else ElevationState.NOT_ELEVATED


def self_command() -> Tuple[str, List[str]]:
    """!
    @brief Executable and leading arguments that start this program again.
    @details A frozen bundle is its own executable; otherwise the interpreter
    runs the package with ``-m``.
    """

    if getattr(sys, "frozen", False):
        return sys.executable, []
    return sys.executable, ["-m", "office_remover"]


def relaunch_arguments(argv: Sequence[str]) -> List[str]:
    """!
    @brief Arguments for the elevated copy: ``argv`` plus the no-banner flag.
    """

    arguments = [str(item) for item in argv]
    if not has_flag(arguments, *NO_LOGO_FLAGS):
        arguments.append(NO_LOGO_FLAGS[1])
    return arguments


def relaunch_as_admin(argv: Sequence[str], executable: str | None = None) -> bool:
    """!
    @brief Ask the shell to start this program elevated with ``argv``.
    @param executable Program to start; defaults to :func:`self_command`.
    @returns ``True`` when the shell accepted the ``runas`` request.
    """

    shell32 = _shell32()
    if shell32 is None:
        return False

    if executable is None:
        executable, prefix = self_command()
    else:
        prefix = []
    params = subprocess.list2cmdline([*prefix, *argv])
    try:
        result = shell32.ShellExecuteW(
            None, "runas", executable, params, os.getcwd(), _SW_SHOWNORMAL
        )
    except Exception:
        return False
    return int(result) > _SHELL_EXECUTE_OK


def ensure_elevated(argv: Sequence[str], *, self_path: str | None = None) -> ElevationState:
    """!
    @brief Make sure the work runs with administrative rights.
    @details Returns ``Elevated`` when the current process is already an
    administrator. Otherwise makes exactly one relaunch request with
    :func:`relaunch_arguments` and returns ``ElevationRequested``; the caller
    must then exit without performing any mutation.
    @param argv Arguments describing the current request.
    @param self_path Executable to relaunch; defaults to this program.
    @throws ElevationDenied When the prompt was declined or the spawn failed.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    if current_state() is ElevationState.ELEVATED:
        machine_logger.info(
            "elevation_state",
            extra={"event": "elevation_state", "state": ElevationState.ELEVATED.value},
        )
        return ElevationState.ELEVATED

    arguments = relaunch_arguments(argv)
    human_logger.info("Administrative rights are required; requesting elevation.")
    accepted = relaunch_as_admin(arguments, self_path)
    machine_logger.info(
        "elevation_request",
        extra={"event": "elevation_request", "arguments": arguments, "accepted": accepted},
    )
    if not accepted:
        raise ElevationDenied("Administrative rights were not granted.")

    human_logger.info("Continuing in the elevated process.")
    return ElevationState.ELEVATION_REQUESTED


__all__ = [
    "ElevationState",
    "NO_LOGO_FLAGS",
    "current_state",
    "ensure_elevated",
    "is_admin",
    "relaunch_arguments",
    "relaunch_as_admin",
    "self_command",
]
