"""!
@brief Windows Installer (MSI) Office product detection and uninstall.
@details Office MSI products are recognised by their product code layout
(``{BR<version>mmmm-PPPP-LLLL-p000-0000000FF1CE}``) under the ``Uninstall``
registry key, in both the 32-bit and 64-bit views. Each product is removed
with ``msiexec /x`` and reported as a :class:`RemovalOutcome`; a busy
Windows Installer (exit code ``1618``) is retried with exponential backoff.
"""
from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from . import constants, exec_utils, logging_ext, registry_tools
from .guid_utils import GuidError, normalize_guid
from .registry_tools import RegistryView
from .report import (
    OutcomeStatus,
    RemovalOutcome,
    TargetKind,
    classify_command,
    not_found,
    other_failure,
)

MSIEXEC_BASE_COMMAND = ("msiexec.exe", "/x")
MSIEXEC_ADDITIONAL_ARGS = ("/qn", "/norestart")
"""!
@brief Silent UI and reboot suppression; restarts are scheduled by the caller.
"""

MSI_BUSY_ATTEMPTS = 3
MSI_RETRY_DELAY = 5.0
MSI_BUSY_BACKOFF_CAP = 60.0

_SEARCH_VIEWS = (RegistryView.REGISTRY_64, RegistryView.REGISTRY_32)


@dataclass
class MsiProduct:
    """!
    @brief An installed Office MSI product and the registry views listing it.
    """

    product_code: str
    display_name: str = ""
    version: str = ""
    views: List[RegistryView] = field(default_factory=list)

    @property
    def label(self) -> str:
        if self.display_name:
            return f"{self.display_name} {self.product_code}"
        return self.product_code

    def as_dict(self) -> Dict[str, object]:
        return {
            "product_code": self.product_code,
            "display_name": self.display_name,
            "version": self.version,
        }


def office_code_pattern(version: int) -> re.Pattern[str]:
    """!
    @brief Compile the Office product code pattern for a major version.
    """

    return re.compile(
        constants.MSI_OFFICE_CODE_PATTERN.format(version=f"{version:02d}"), re.IGNORECASE
    )


def detect_products(version: int) -> List[MsiProduct]:
    """!
    @brief Enumerate installed Office MSI products for ``version``.
    @details Child components flagged ``SystemComponent=1`` are skipped; they
    are removed together with their parent product.
    """

    pattern = office_code_pattern(version)
    products: Dict[str, MsiProduct] = {}
    for view in _SEARCH_VIEWS:
        for name in registry_tools.list_subkeys(constants.HKLM, constants.UNINSTALL_ROOT, view):
            if not pattern.match(name):
                continue
            path = f"{constants.UNINSTALL_ROOT}\\{name}"
            values = registry_tools.read_values(constants.HKLM, path, view)
            if str(values.get("SystemComponent", "0")) == "1":
                continue
            try:
                code = normalize_guid(name)
            except GuidError:
                continue
            product = products.get(code)
            if product is None:
                product = products[code] = MsiProduct(
                    product_code=code,
                    display_name=str(values.get("DisplayName") or ""),
                    version=str(values.get("DisplayVersion") or ""),
                )
            if view not in product.views:
                product.views.append(view)
    return sorted(products.values(), key=lambda item: item.product_code)


def is_product_present(product_code: str) -> bool:
    path = f"{constants.UNINSTALL_ROOT}\\{product_code}"
    return any(registry_tools.key_exists(constants.HKLM, path, view) for view in _SEARCH_VIEWS)


def build_command(product_code: str) -> List[str]:
    """!
    @brief Compose the ``msiexec`` command that removes ``product_code``.
    @throws ValueError When ``product_code`` is not a GUID.
    """

    try:
        normalized = normalize_guid(product_code)
    except GuidError as exc:
        raise ValueError(str(exc)) from exc
    return [*MSIEXEC_BASE_COMMAND, normalized, *MSIEXEC_ADDITIONAL_ARGS]


def _compute_busy_backoff(attempt: int) -> float:
    """!
    @brief Exponential delay before retrying a busy Windows Installer.
    """

    exponent = max(0, int(attempt) - 1)
    return float(min(MSI_BUSY_BACKOFF_CAP, MSI_RETRY_DELAY * (2**exponent)))


def uninstall_product(product: MsiProduct) -> Tuple[RemovalOutcome, bool]:
    """!
    @brief Remove ``product`` with ``msiexec``.
    @returns The outcome and whether ``msiexec`` asked for a restart
    (exit codes ``3010`` and ``1641``).
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()
    label = f"product {product.label}"

    try:
        command = build_command(product.product_code)
    except ValueError as exc:
        return other_failure(label, TargetKind.PRODUCT, str(exc)), False

    if not is_product_present(product.product_code):
        human_logger.info("%s is already absent; skipping msiexec.", product.label)
        return not_found(label, TargetKind.PRODUCT), False

    result: exec_utils.CommandResult | None = None
    for attempt in range(1, MSI_BUSY_ATTEMPTS + 1):
        result = exec_utils.run_command(
            command,
            event="msi_uninstall",
            timeout=constants.UNINSTALL_TIMEOUT,
            human_message=(
                f"Uninstalling MSI product {product.label} "
                f"[attempt {attempt}/{MSI_BUSY_ATTEMPTS}]"
            ),
            extra={**product.as_dict(), "attempt": attempt, "attempts": MSI_BUSY_ATTEMPTS},
        )
        if result.returncode != constants.MSIEXEC_BUSY or attempt == MSI_BUSY_ATTEMPTS:
            break
        delay = _compute_busy_backoff(attempt)
        human_logger.warning(
            "Windows Installer is busy with another setup while removing %s; retrying in %.0fs.",
            product.label,
            delay,
        )
        machine_logger.info(
            "msi_uninstall_busy",
            extra={
                "event": "msi_uninstall_busy",
                "product_code": product.product_code,
                "attempt": attempt,
                "delay": delay,
            },
        )
        time.sleep(delay)

    assert result is not None
    outcome = classify_command(
        result,
        target=label,
        kind=TargetKind.PRODUCT,
        success_codes=constants.MSIEXEC_SUCCESS_CODES | constants.MSIEXEC_RESTART_CODES,
        not_found_codes=(constants.MSIEXEC_UNKNOWN_PRODUCT,),
    )
    restart = (
        outcome.status is OutcomeStatus.SUCCEEDED
        and result.returncode in constants.MSIEXEC_RESTART_CODES
    )
    if restart:
        human_logger.info("msiexec requested a restart to finish removing %s", product.label)
    if outcome.failed:
        machine_logger.error(
            "msi_uninstall_failure",
            extra={
                "event": "msi_uninstall_failure",
                "product_code": product.product_code,
                "return_code": result.returncode,
                "status": outcome.status.value,
            },
        )
    return outcome, restart


__all__ = [
    "MsiProduct",
    "build_command",
    "detect_products",
    "is_product_present",
    "office_code_pattern",
    "uninstall_product",
]
