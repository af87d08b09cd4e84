"""!
@brief Scheduled task and service removal.
@details Wraps ``schtasks.exe`` and ``sc.exe`` so each service or task is
removed in one call that returns a :class:`RemovalOutcome`. Services that do
not stop within the timeout are remembered so the caller can ask for a
restart.
"""
from __future__ import annotations

from typing import List

from . import constants, exec_utils, logging_ext
from .report import OutcomeStatus, RemovalOutcome, TargetKind, classify_command, not_found

_TASK_NOT_FOUND_MARKERS = (
    "cannot find the file specified",
    "does not exist",
    "cannot find",
)

_PENDING_REBOOT_SERVICES: set[str] = set()
"""!
@brief Services that could not be stopped cleanly and require a reboot.
"""


def consume_reboot_recommendations() -> List[str]:
    """!
    @brief Return and clear the services that timed out while stopping.
    """

    if not _PENDING_REBOOT_SERVICES:
        return []
    services = sorted(_PENDING_REBOOT_SERVICES)
    _PENDING_REBOOT_SERVICES.clear()
    return services


def stop_service(
    service: str, *, timeout: int = constants.SERVICE_TIMEOUT
) -> exec_utils.CommandResult:
    """!
    @brief Stop ``service`` and disable it so it cannot restart during cleanup.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    result = exec_utils.run_command(
        ["sc.exe", "stop", service],
        event="service_stop",
        timeout=timeout,
        human_message=f"Stopping service {service}",
        extra={"service": service},
    )
    if result.timed_out:
        _PENDING_REBOOT_SERVICES.add(service)
        human_logger.warning(
            "Timed out stopping service %s; a restart is needed to finish shutting it down.",
            service,
        )
        machine_logger.warning(
            "service_stop_timeout",
            extra={"event": "service_stop_timeout", "service": service, "reboot_required": True},
        )
    if result.returncode == constants.ERROR_SERVICE_DOES_NOT_EXIST:
        return result

    exec_utils.run_command(
        ["sc.exe", "config", service, "start=", "disabled"],
        event="service_disable",
        timeout=timeout,
        extra={"service": service},
    )
    return result


def remove_service(service: str, *, timeout: int = constants.SERVICE_TIMEOUT) -> RemovalOutcome:
    """!
    @brief Stop, disable and delete ``service``.
    @returns ``NotFound`` when the service is not installed.
    """

    human_logger = logging_ext.get_human_logger()
    label = f"service {service}"

    stopped = stop_service(service, timeout=timeout)
    if stopped.returncode == constants.ERROR_SERVICE_DOES_NOT_EXIST:
        human_logger.debug("Service %s is not installed", service)
        return not_found(label, TargetKind.SERVICE)

    result = exec_utils.run_command(
        ["sc.exe", "delete", service],
        event="service_delete",
        timeout=timeout,
        human_message=f"Deleting service {service}",
        extra={"service": service},
    )
    outcome = classify_command(
        result,
        target=label,
        kind=TargetKind.SERVICE,
        success_codes=(0, constants.ERROR_SERVICE_MARKED_FOR_DELETE),
        not_found_codes=(constants.ERROR_SERVICE_DOES_NOT_EXIST,),
    )
    if outcome.status is OutcomeStatus.SUCCEEDED:
        human_logger.info("Deleted service %s", service)
    elif outcome.failed:
        human_logger.warning("Could not delete service %s: %s", service, outcome.detail)
    return outcome


def remove_task(task: str, *, timeout: int = constants.TASK_TIMEOUT) -> RemovalOutcome:
    """!
    @brief Delete a scheduled task with ``schtasks /Delete``.
    @returns ``NotFound`` when the task does not exist.
    """

    human_logger = logging_ext.get_human_logger()
    label = f"task {task}"

    result = exec_utils.run_command(
        ["schtasks.exe", "/Delete", "/TN", task, "/F"],
        event="task_delete",
        timeout=timeout,
        extra={"task": task},
    )
    outcome = classify_command(
        result,
        target=label,
        kind=TargetKind.TASK,
        not_found_markers=_TASK_NOT_FOUND_MARKERS,
    )
    if outcome.status is OutcomeStatus.SUCCEEDED:
        human_logger.info("Deleted scheduled task %s", task)
    elif outcome.failed:
        human_logger.warning("Could not delete scheduled task %s: %s", task, outcome.detail)
    return outcome


__all__ = [
    "consume_reboot_recommendations",
    "remove_service",
    "remove_task",
    "stop_service",
]
