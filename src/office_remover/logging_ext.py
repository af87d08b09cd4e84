"""!
@brief Structured logging helpers for Office Remover.
@details Two logger channels are configured: a human-readable text stream
that also feeds the console according to ``--output-state``, and a JSONL
machine stream carrying one event per command, registry mutation and target
outcome. Both are written to rotating files below ``--log-path``.
"""
from __future__ import annotations

import datetime as _dt
import json
import logging
import sys
import uuid
from logging import handlers
from pathlib import Path
from typing import Dict, Iterable, Tuple

from . import version
from .options import OutputState

HUMAN_LOGGER_NAME = "office_remover.human"
"""!
@brief Logger name for human-readable output.
"""

MACHINE_LOGGER_NAME = "office_remover.machine"
"""!
@brief Logger name for JSONL telemetry output.
"""

HUMAN_LOG_FILE = "office-remover.log"
MACHINE_LOG_FILE = "office-remover.jsonl"

CONSOLE_LEVELS: Dict[OutputState, int] = {
    OutputState.QUIET: logging.ERROR,
    OutputState.NORMAL: logging.INFO,
    OutputState.VERBOSE: logging.DEBUG,
}

_STANDARD_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "asctime",
        "channel",
    }
)

class _ChannelFilter(logging.Filter):
    """!
    @brief Inject a fixed ``channel`` attribute on log records.
    """

    def __init__(self, channel: str) -> None:
        super().__init__()
        self._channel = channel

    def filter(self, record: logging.LogRecord) -> bool:
        record.channel = self._channel
        return True


class _JsonLineFormatter(logging.Formatter):
    """!
    @brief Format ``LogRecord`` instances as single-line JSON objects.
    @details Standard metadata (timestamp, level, logger, message) is merged
    with any ``extra`` attributes supplied by the caller. Values that are not
    JSON serializable are coerced to their ``repr``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - concise override
        moment = _dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc)
        payload: Dict[str, object] = {
            "timestamp": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", "machine"),
        }
        payload.update(_extract_extras(record))
        try:
            return json.dumps(payload, ensure_ascii=False)
        except TypeError:
            sanitized = {key: _coerce_json(value) for key, value in payload.items()}
            return json.dumps(sanitized, ensure_ascii=False)


def _extract_extras(record: logging.LogRecord) -> Dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_KEYS
    }


def _coerce_json(value: object) -> object:
    try:
        json.dumps(value)
    except TypeError:
        return repr(value)
    return value


def _configure_logger(
    logger: logging.Logger,
    handlers_to_add: Iterable[Tuple[logging.Handler, logging.Formatter]],
) -> None:
    """!
    @brief Reset a logger and attach the supplied handler/formatter pairs.
    """

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for flt in list(logger.filters):
        logger.removeFilter(flt)
    for handler, formatter in handlers_to_add:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False


def setup_logging(
    root_dir: Path,
    *,
    output_state: OutputState = OutputState.NORMAL,
    console: bool = True,
) -> Tuple[logging.Logger, logging.Logger]:
    """!
    @brief Set up human and machine loggers.
    @details Creates ``root_dir`` when needed and attaches rotating file
    handlers for both channels. The console handler on the human channel
    follows ``output_state``; files always record INFO and above, and DEBUG
    in verbose mode.
    @returns The human and machine loggers.
    """

    root_dir.mkdir(parents=True, exist_ok=True)

    file_level = logging.DEBUG if output_state is OutputState.VERBOSE else logging.INFO

    human_logger = logging.getLogger(HUMAN_LOGGER_NAME)
    machine_logger = logging.getLogger(MACHINE_LOGGER_NAME)
    human_logger.setLevel(logging.DEBUG)
    machine_logger.setLevel(logging.DEBUG)

    human_formatter = logging.Formatter(
        "%(asctime)s %(levelname)-8s [%(channel)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    machine_formatter = _JsonLineFormatter()

    human_file = handlers.RotatingFileHandler(
        root_dir / HUMAN_LOG_FILE,
        maxBytes=1_048_576,
        backupCount=5,
        encoding="utf-8",
    )
    human_file.setLevel(file_level)
    machine_file = handlers.RotatingFileHandler(
        root_dir / MACHINE_LOG_FILE,
        maxBytes=1_048_576,
        backupCount=5,
        encoding="utf-8",
    )
    machine_file.setLevel(file_level)

    human_handlers: list[Tuple[logging.Handler, logging.Formatter]] = [
        (human_file, human_formatter)
    ]
    if console:
        console_handler = logging.StreamHandler(stream=sys.stdout)
        console_handler.setLevel(CONSOLE_LEVELS[output_state])
        human_handlers.append((console_handler, logging.Formatter("%(message)s")))

    _configure_logger(human_logger, human_handlers)
    _configure_logger(machine_logger, [(machine_file, machine_formatter)])

    human_logger.addFilter(_ChannelFilter("human"))
    machine_logger.addFilter(_ChannelFilter("machine"))

    _emit_run_metadata(human_logger, machine_logger, root_dir)

    return human_logger, machine_logger


def shutdown_logging() -> None:
    """!
    @brief Flush and close every handler attached to the two channels.
    """

    for name in (HUMAN_LOGGER_NAME, MACHINE_LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.flush()
            handler.close()
            logger.removeHandler(handler)


def get_human_logger() -> logging.Logger:
    """!
    @brief Retrieve the configured human-readable logger.
    """

    return logging.getLogger(HUMAN_LOGGER_NAME)


def get_machine_logger() -> logging.Logger:
    """!
    @brief Retrieve the configured machine/JSON logger.
    """

    return logging.getLogger(MACHINE_LOGGER_NAME)


def _emit_run_metadata(
    human_logger: logging.Logger, machine_logger: logging.Logger, root_dir: Path
) -> None:
    moment = _dt.datetime.now(tz=_dt.timezone.utc)
    metadata: Dict[str, object] = {
        "run_id": uuid.uuid4().hex,
        "timestamp": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "version": version.__version__,
        "build": version.__build__,
        "python": sys.version.split()[0],
        "logdir": str(root_dir),
    }

    human_logger.debug(
        "Office Remover %s (%s) starting, run %s",
        version.__version__,
        version.__build__,
        metadata["run_id"],
    )
    human_logger.debug("Logs directory: %s", root_dir)

    machine_logger.info("run_start", extra={"event": "run_start", "run": metadata})


__all__ = [
    "CONSOLE_LEVELS",
    "HUMAN_LOGGER_NAME",
    "HUMAN_LOG_FILE",
    "MACHINE_LOGGER_NAME",
    "MACHINE_LOG_FILE",
    "get_human_logger",
    "get_machine_logger",
    "setup_logging",
    "shutdown_logging",
]
