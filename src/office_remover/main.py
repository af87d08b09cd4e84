"""!
@brief Primary entry point for the Office Remover CLI.
@details Parses and validates the command line, prints the banner, sets up
the human and machine log channels, and hands the request to
:func:`office_remover.dispatcher.dispatch`. Validation failures end the run
before logging starts and before anything on the system is touched.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, Optional

from . import constants, dispatcher, logging_ext, version
from .errors import ValidationError
from .options import OutputState, ParsedArgs, parse_arguments

BANNER_TITLE = "Microsoft Office Remover"
COPYRIGHT_NOTICE = "Removes Store, Click-to-Run and Windows Installer Office installations."


def print_banner(stream=None) -> None:
    """!
    @brief Print the product banner with version metadata.
    """

    stream = stream or sys.stdout
    metadata = version.build_info()
    print(f"{BANNER_TITLE} {metadata['version']} ({metadata['build']})", file=stream)
    print(COPYRIGHT_NOTICE, file=stream)
    print(file=stream)


def _resolve_log_directory(candidate: str) -> Path:
    expanded = Path(candidate or constants.DEFAULT_LOG_PATH).expanduser()
    try:
        return expanded.resolve()
    except OSError:
        return expanded


def run(args: ParsedArgs) -> int:
    """!
    @brief Execute a validated request with logging configured.
    """

    if not args.no_copyright_logo and args.output_state is not OutputState.QUIET:
        print_banner()

    log_directory = _resolve_log_directory(args.log_path)
    try:
        logging_ext.setup_logging(log_directory, output_state=args.output_state)
    except OSError as exc:
        logging_ext.shutdown_logging()
        print(f"error: cannot use log directory {log_directory}: {exc}", file=sys.stderr)
        return int(constants.ExitCode.INVALID_ARGUMENTS)
    try:
        return dispatcher.dispatch(args)
    finally:
        logging_ext.shutdown_logging()


def main(argv: Optional[Iterable[str]] = None) -> int:
    """!
    @brief Entry point invoked by the console script, ``python -m`` and the shim.
    @returns Process exit code integer.
    """

    try:
        args = parse_arguments(argv)
    except ValidationError as exc:
        for message in exc.messages:
            print(f"error: {message}", file=sys.stderr)
        print("Run with --help for usage.", file=sys.stderr)
        return int(constants.ExitCode.INVALID_ARGUMENTS)
    return run(args)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
