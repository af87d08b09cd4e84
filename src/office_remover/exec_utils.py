"""!
@brief Subprocess execution helpers with sanitised environments.
@details Centralises invocation of :func:`subprocess.run` so PowerShell,
``sc.exe``, ``schtasks.exe``, ``msiexec.exe`` and the Click-to-Run client all
share the same telemetry and failure handling. Launch failures and timeouts
are returned as :class:`CommandResult` values instead of raising, which lets
the removal strategies turn every command into a per-target outcome.
"""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from dataclasses import dataclass

from . import logging_ext

_SANITIZE_BLOCKLIST = {
    "PYTHONPATH",
    "PYTHONHOME",
    "PYTHONWARNINGS",
    "VIRTUAL_ENV",
    "PIP_REQUIRE_VIRTUALENV",
    "CONDA_PREFIX",
    "CONDA_DEFAULT_ENV",
    "PYENV_VERSION",
    "POETRY_ACTIVE",
    "__PYVENV_LAUNCHER__",
}

MISSING_RETURN_CODE = 127


@dataclass
class CommandResult:
    """!
    @brief Outcome information from :func:`run_command`.
    @details ``returncode`` is ``127`` when the executable could not be found.
    ``timed_out`` is ``True`` when the command exceeded its timeout.
    """

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float
    timed_out: bool = False
    error: str | None = None

    @property
    def missing(self) -> bool:
        return self.returncode == MISSING_RETURN_CODE and self.error is not None

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0 and not self.error and not self.timed_out

    def output_text(self) -> str:
        """!
        @brief Combined stdout/stderr text, used when matching error messages.
        """

        return "\n".join(part for part in (self.stdout, self.stderr) if part)


def sanitize_environment(
    *,
    base_env: Mapping[str, str] | None = None,
    remove: Iterable[str] | None = None,
) -> MutableMapping[str, str]:
    """!
    @brief Produce a subprocess environment stripped of virtualenv artefacts.
    @details ``base_env`` defaults to :data:`os.environ`. Variables that
    commonly confuse child processes of a frozen or virtualenv interpreter
    are dropped, together with any names listed in ``remove``.
    """

    source = os.environ if base_env is None else base_env
    environment: MutableMapping[str, str] = {
        str(key): str(value) for key, value in source.items() if value is not None
    }
    for key in _SANITIZE_BLOCKLIST:
        environment.pop(key, None)
    if remove is not None:
        for key in remove:
            environment.pop(key, None)
    return environment


def _call_payload(
    command_list: Sequence[str],
    *,
    timeout: float | int | None,
    extra: Mapping[str, object] | None,
) -> MutableMapping[str, object]:
    payload: MutableMapping[str, object] = {"command": list(command_list), "timeout": timeout}
    if extra:
        for key, value in extra.items():
            if key not in {"event", "result", "message"}:
                payload[key] = value
    return payload


def _result_payload(
    *,
    return_code: int,
    duration: float,
    stdout: str,
    stderr: str,
    error: str | None = None,
    timed_out: bool = False,
) -> dict[str, object]:
    return {
        "rc": return_code,
        "duration_ms": round(duration * 1000, 3),
        "stdout": stdout,
        "stderr": stderr,
        "error": error,
        "timed_out": timed_out,
    }


def run_command(
    command: Sequence[str] | str,
    *,
    event: str,
    timeout: int | float | None = None,
    human_message: str | None = None,
    extra: Mapping[str, object] | None = None,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
) -> CommandResult:
    """!
    @brief Execute ``command`` with consistent logging and environment hygiene.
    @details Emits ``<event>_plan`` before and ``<event>_result`` (or
    ``_missing``/``_timeout``/``_error``) after execution on the machine
    channel.
    @param command Sequence of command arguments.
    @param event Base name for structured log events.
    @param timeout Optional timeout (seconds) passed to :func:`subprocess.run`.
    @param human_message Optional message emitted to the human logger before
    execution.
    @param extra Additional metadata merged into machine log payloads.
    @param env Environment mapping to start from prior to sanitisation.
    @param cwd Working directory supplied to :func:`subprocess.run`.
    @returns :class:`CommandResult` describing the observed outcome.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    if isinstance(command, str):
        command_list = [command]
    else:
        command_list = [str(part) for part in command]

    call = _call_payload(command_list, timeout=timeout, extra=extra)
    machine_logger.info(f"{event}_plan", extra={"event": f"{event}_plan", "call": dict(call)})

    if human_message:
        human_logger.info(human_message)

    start = time.monotonic()
    try:
        completed = subprocess.run(  # noqa: S603 - intentional command execution
            command_list,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
            env=sanitize_environment(base_env=env),
            cwd=cwd,
        )
    except FileNotFoundError as exc:
        duration = time.monotonic() - start
        human_logger.debug("Command not found: %s", command_list[0])
        machine_logger.error(
            f"{event}_missing",
            extra={
                "event": f"{event}_missing",
                "call": dict(call),
                "result": _result_payload(
                    return_code=MISSING_RETURN_CODE,
                    duration=duration,
                    stdout="",
                    stderr="",
                    error=str(exc),
                ),
            },
        )
        return CommandResult(
            command=command_list,
            returncode=MISSING_RETURN_CODE,
            stdout="",
            stderr="",
            duration=duration,
            error=str(exc),
        )
    except subprocess.TimeoutExpired as exc:
        duration = time.monotonic() - start
        human_logger.error("Command timed out after %.1fs: %s", duration, command_list[0])
        stdout = exc.stdout if isinstance(exc.stdout, str) else ""
        stderr = exc.stderr if isinstance(exc.stderr, str) else ""
        machine_logger.error(
            f"{event}_timeout",
            extra={
                "event": f"{event}_timeout",
                "call": dict(call),
                "result": _result_payload(
                    return_code=1,
                    duration=duration,
                    stdout=stdout,
                    stderr=stderr,
                    error="timeout",
                    timed_out=True,
                ),
            },
        )
        return CommandResult(
            command=command_list,
            returncode=1,
            stdout=stdout,
            stderr=stderr,
            duration=duration,
            timed_out=True,
            error="timeout",
        )
    except OSError as exc:
        duration = time.monotonic() - start
        human_logger.error("Failed to execute %s: %s", command_list[0], exc)
        machine_logger.error(
            f"{event}_error",
            extra={
                "event": f"{event}_error",
                "call": dict(call),
                "result": _result_payload(
                    return_code=1,
                    duration=duration,
                    stdout="",
                    stderr="",
                    error=str(exc),
                ),
            },
        )
        return CommandResult(
            command=command_list,
            returncode=1,
            stdout="",
            stderr="",
            duration=duration,
            error=str(exc),
        )

    duration = time.monotonic() - start
    machine_logger.info(
        f"{event}_result",
        extra={
            "event": f"{event}_result",
            "call": dict(call),
            "result": _result_payload(
                return_code=completed.returncode,
                duration=duration,
                stdout=str(completed.stdout),
                stderr=str(completed.stderr),
            ),
        },
    )

    if completed.returncode != 0:
        human_logger.debug("Command %s exited with %s", command_list[0], completed.returncode)

    return CommandResult(
        command=command_list,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        duration=duration,
    )


__all__ = ["CommandResult", "MISSING_RETURN_CODE", "run_command", "sanitize_environment"]
