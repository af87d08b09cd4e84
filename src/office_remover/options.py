"""!
@brief Command-line surface and argument validation.
@details :func:`build_arg_parser` exposes the option set and
:func:`validate_arguments` turns the raw option mapping into an immutable
:class:`ParsedArgs`. Validation is a pure function: it gathers every problem
into a :class:`ValidationResult` and never touches the system, so a rejected
request cannot leave partial side effects behind.
"""
from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from . import constants, version
from .errors import ValidationError


class ProductType(Enum):
    """!
    @brief Installer technology that delivered the Office installation.
    """

    STORE = "Store"
    CLICK_TO_RUN = "ClickToRun"
    WINDOWS_INSTALLER = "WindowsInstaller"


class WorkMode(Enum):
    """!
    @brief What the run does: report presence, remove components, or also
    remove the installation record and license.
    """

    DETECT = "Detect"
    REMOVE = "Remove"
    UNINSTALL = "Uninstall"

    @property
    def mutates(self) -> bool:
        return self is not WorkMode.DETECT


class OutputState(Enum):
    """!
    @brief Console verbosity.
    """

    QUIET = "Quiet"
    NORMAL = "Normal"
    VERBOSE = "Verbose"


@dataclass(frozen=True)
class ParsedArgs:
    """!
    @brief Validated, immutable request for a single run.
    """

    product_type: ProductType
    version: int
    work_mode: WorkMode = WorkMode.DETECT
    keep_activation_info: bool = False
    no_restart: bool = False
    log_path: str = constants.DEFAULT_LOG_PATH
    output_state: OutputState = OutputState.NORMAL
    no_copyright_logo: bool = False


@dataclass(frozen=True)
class ValidationResult:
    """!
    @brief Either a :class:`ParsedArgs` or the list of reasons it could not be built.
    """

    args: Optional[ParsedArgs] = None
    errors: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.args is not None and not self.errors

    def unwrap(self) -> ParsedArgs:
        """!
        @brief Return the parsed arguments or raise :class:`ValidationError`.
        """

        if self.args is None or self.errors:
            raise ValidationError(self.errors)
        return self.args


_E = TypeVar("_E", bound=Enum)


def _lookup_enum(enum_cls: Type[_E], raw: object) -> Optional[_E]:
    """!
    @brief Resolve ``raw`` to a member of ``enum_cls`` by value or name, ignoring case.
    """

    if isinstance(raw, enum_cls):
        return raw
    text = str(raw).strip().lower()
    for member in enum_cls:
        if text in (str(member.value).lower(), member.name.lower()):
            return member
    return None


def _choices(enum_cls: Type[Enum]) -> str:
    return ", ".join(str(member.value) for member in enum_cls)


def _parse_version(raw: object, errors: List[str]) -> Optional[int]:
    if isinstance(raw, bool):
        errors.append(f"Invalid Office version: {raw}")
        return None
    try:
        parsed = int(str(raw).strip())
    except (TypeError, ValueError):
        errors.append(f"Invalid Office version: {raw}")
        return None
    if parsed not in constants.SUPPORTED_VERSIONS:
        allowed = ", ".join(str(item) for item in constants.SUPPORTED_VERSIONS)
        errors.append(f"Invalid Office version: {parsed} (expected one of {allowed})")
        return None
    return parsed


def validate_arguments(raw: Mapping[str, object]) -> ValidationResult:
    """!
    @brief Validate a raw option mapping into :class:`ParsedArgs`.
    @details ``product_type`` and ``version`` are mandatory; a missing value is
    an error rather than a default. Optional fields fall back to their
    documented defaults when absent or ``None``. Every problem is reported.
    @param raw Mapping keyed by :class:`ParsedArgs` field names.
    @returns :class:`ValidationResult` holding either the arguments or the errors.
    """

    errors: List[str] = []

    product_type: Optional[ProductType] = None
    raw_product = raw.get("product_type")
    if raw_product is None or str(raw_product).strip() == "":
        errors.append("Missing required option --office-product-type")
    else:
        product_type = _lookup_enum(ProductType, raw_product)
        if product_type is None:
            errors.append(
                f"Invalid Office product type: {raw_product} "
                f"(expected one of {_choices(ProductType)})"
            )

    office_version: Optional[int] = None
    raw_version = raw.get("version")
    if raw_version is None or str(raw_version).strip() == "":
        errors.append("Missing required option --office-version")
    else:
        office_version = _parse_version(raw_version, errors)

    work_mode = WorkMode.DETECT
    raw_mode = raw.get("work_mode")
    if raw_mode is not None:
        resolved_mode = _lookup_enum(WorkMode, raw_mode)
        if resolved_mode is None:
            errors.append(f"Invalid work mode: {raw_mode} (expected one of {_choices(WorkMode)})")
        else:
            work_mode = resolved_mode

    output_state = OutputState.NORMAL
    raw_state = raw.get("output_state")
    if raw_state is not None:
        resolved_state = _lookup_enum(OutputState, raw_state)
        if resolved_state is None:
            errors.append(
                f"Invalid output state: {raw_state} (expected one of {_choices(OutputState)})"
            )
        else:
            output_state = resolved_state

    raw_log_path = raw.get("log_path")
    log_path = constants.DEFAULT_LOG_PATH if raw_log_path is None else str(raw_log_path)
    if not log_path.strip():
        errors.append("Log path must not be empty")

    if errors or product_type is None or office_version is None:
        return ValidationResult(args=None, errors=tuple(errors))

    return ValidationResult(
        args=ParsedArgs(
            product_type=product_type,
            version=office_version,
            work_mode=work_mode,
            keep_activation_info=bool(raw.get("keep_activation_info", False)),
            no_restart=bool(raw.get("no_restart", False)),
            log_path=log_path,
            output_state=output_state,
            no_copyright_logo=bool(raw.get("no_copyright_logo", False)),
        )
    )


def build_arg_parser() -> argparse.ArgumentParser:
    """!
    @brief Create the argument parser for the Office Remover command line.
    @details Enumerated options are accepted as free text and checked by
    :func:`validate_arguments` so that all problems are reported together.
    """

    parser = argparse.ArgumentParser(
        prog="office-remover",
        description="Microsoft Office removing commands.",
    )
    metadata = version.build_info()
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"{metadata['version']} ({metadata['build']})",
    )
    parser.add_argument(
        "-p",
        "--office-product-type",
        dest="product_type",
        metavar="TYPE",
        help=f"Installed Office product type (required): {_choices(ProductType)}.",
    )
    parser.add_argument(
        "-o",
        "--office-version",
        dest="version",
        metavar="VER",
        help="Installed Office version (required): "
        + ", ".join(str(item) for item in constants.SUPPORTED_VERSIONS)
        + ".",
    )
    parser.add_argument(
        "-m",
        "--work-mode",
        dest="work_mode",
        metavar="MODE",
        default=WorkMode.DETECT.value,
        help=f"Work mode: {_choices(WorkMode)} (default: %(default)s).",
    )
    parser.add_argument(
        "-k",
        "--keep-activation-info",
        dest="keep_activation_info",
        action="store_true",
        help="Keep activation and licensing information.",
    )
    parser.add_argument(
        "-r",
        "--no-restart",
        dest="no_restart",
        action="store_true",
        help="Do not restart the computer after removal.",
    )
    parser.add_argument(
        "-l",
        "--log-path",
        dest="log_path",
        metavar="DIR",
        default=constants.DEFAULT_LOG_PATH,
        help="Directory for log files (default: %(default)s).",
    )
    parser.add_argument(
        "-s",
        "--output-state",
        dest="output_state",
        metavar="STATE",
        default=OutputState.NORMAL.value,
        help=f"Console output: {_choices(OutputState)} (default: %(default)s).",
    )
    parser.add_argument(
        "-c",
        "--no-copyright-logo",
        dest="no_copyright_logo",
        action="store_true",
        help="Do not print the copyright banner.",
    )
    return parser


def parse_arguments(argv: Optional[Iterable[str]] = None) -> ParsedArgs:
    """!
    @brief Parse and validate ``argv``.
    @throws ValidationError When the options do not form a valid request.
    """

    parser = build_arg_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    return validate_arguments(vars(namespace)).unwrap()


def to_command_line(args: ParsedArgs) -> List[str]:
    """!
    @brief Render ``args`` back into an argument vector.
    @details The log path is made absolute because an elevated relaunch may
    start in a different working directory.
    """

    argv: List[str] = [
        "--office-product-type",
        args.product_type.value,
        "--office-version",
        str(args.version),
        "--work-mode",
        args.work_mode.value,
        "--log-path",
        os.path.abspath(args.log_path),
        "--output-state",
        args.output_state.value,
    ]
    if args.keep_activation_info:
        argv.append("--keep-activation-info")
    if args.no_restart:
        argv.append("--no-restart")
    if args.no_copyright_logo:
        argv.append("--no-copyright-logo")
    return argv


def has_flag(argv: Sequence[str], *names: str) -> bool:
    return any(item in names for item in argv)


__all__ = [
    "OutputState",
    "ParsedArgs",
    "ProductType",
    "ValidationResult",
    "WorkMode",
    "build_arg_parser",
    "has_flag",
    "parse_arguments",
    "to_command_line",
    "validate_arguments",
]
