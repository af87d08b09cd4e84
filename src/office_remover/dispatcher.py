"""!
@brief Work-mode dispatch: Detect, Remove or Uninstall.
@details Each run executes exactly one work mode. Detect only reads and
never asks for elevation. Remove and Uninstall pass through the elevation
gate first; when that hands the work to an elevated copy of the program the
current run ends immediately with success and no report.
"""
from __future__ import annotations

from typing import Optional

from . import constants, elevation, exec_utils, logging_ext, strategies
from .elevation import ElevationState
from .errors import ElevationDenied
from .options import ParsedArgs, to_command_line
from .report import RemovalReport

RESTART_COMMENT = "Office Remover: restarting to finish Office cleanup."


def run_detect(strategy: strategies.OfficeProductStrategy) -> int:
    """!
    @brief Report whether the product is installed; never mutates.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    presence = strategy.detect()
    human_logger.info(
        "%s Office %s.0: %s",
        strategy.product_type.value,
        strategy.version,
        presence.describe(),
    )
    for key, value in presence.metadata.items():
        human_logger.debug("  %s: %s", key, value)
    machine_logger.info(
        "detection_result",
        extra={
            "event": "detection_result",
            "product": strategy.product_type.value,
            "version": strategy.version,
            "present": presence.present,
            "detected_version": presence.version,
            "metadata": presence.metadata,
        },
    )
    return int(constants.ExitCode.SUCCESS)


def schedule_restart(delay: int = constants.RESTART_DELAY_SECONDS) -> exec_utils.CommandResult:
    """!
    @brief Ask Windows to restart after ``delay`` seconds.
    """

    result = exec_utils.run_command(
        ["shutdown.exe", "/r", "/t", str(delay), "/c", RESTART_COMMENT],
        event="restart_schedule",
        timeout=constants.SERVICE_TIMEOUT,
        human_message=f"Scheduling a restart in {delay} seconds",
    )
    if not result.succeeded:
        logging_ext.get_human_logger().warning(
            "Could not schedule a restart (exit code %s); restart manually to finish cleanup.",
            result.returncode,
        )
    return result


def report_results(report: RemovalReport) -> None:
    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    lines = report.summary_lines()
    human_logger.info(lines[0])
    for line in lines[1:]:
        if report.failures:
            human_logger.warning(line)
        else:
            human_logger.info(line)
    machine_logger.info(
        "removal_report",
        extra={"event": "removal_report", **report.as_dict()},
    )


def dispatch(
    args: ParsedArgs,
    *,
    strategy: Optional[strategies.OfficeProductStrategy] = None,
) -> int:
    """!
    @brief Run the work mode selected in ``args`` and return the exit code.
    @param args Validated request.
    @param strategy Strategy to use instead of the one matching ``args``.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    if strategy is None:
        strategy = strategies.strategy_for(args.product_type, args.version)

    machine_logger.info(
        "dispatch",
        extra={
            "event": "dispatch",
            "work_mode": args.work_mode.value,
            "product": args.product_type.value,
            "version": args.version,
            "keep_activation_info": args.keep_activation_info,
            "no_restart": args.no_restart,
        },
    )

    if not args.work_mode.mutates:
        return run_detect(strategy)

    try:
        state = elevation.ensure_elevated(to_command_line(args))
    except ElevationDenied as exc:
        human_logger.error(
            "%s %s requires administrative rights: %s",
            args.work_mode.value,
            args.product_type.value,
            exc,
        )
        return int(constants.ExitCode.ELEVATION_DENIED)

    if state is ElevationState.ELEVATION_REQUESTED:
        return int(constants.ExitCode.SUCCESS)

    report = strategy.remove(args)
    report_results(report)

    if report.restart_required:
        if args.no_restart:
            human_logger.info("Restart suppressed; restart Windows to finish the cleanup.")
        else:
            schedule_restart()

    return int(report.exit_code())


__all__ = ["dispatch", "report_results", "run_detect", "schedule_restart"]
