"""!
@file appx_uninstall.py
@brief Microsoft Store (AppX) Office package detection and removal.
@details Uses the PowerShell AppX cmdlets. Detection only reads package
records; ``-AllUsers`` is passed only when the caller runs elevated because
the switch itself requires administrative rights.
"""

from __future__ import annotations

import json
from typing import Iterable

from . import constants, exec_utils, logging_ext
from .report import OutcomeStatus, RemovalOutcome, TargetKind, classify_command

__all__ = [
    "NOT_FOUND_MARKER",
    "detect_office_appx_packages",
    "remove_appx_package",
    "remove_provisioned_package",
]

_logger = logging_ext.get_human_logger()

NOT_FOUND_MARKER = "OFFICE_REMOVER_NOT_FOUND"


def _run_powershell(command: str, *, event: str, timeout: int) -> exec_utils.CommandResult:
    """!
    @brief Execute a PowerShell command with errors promoted to failures.
    """

    script = f"$ErrorActionPreference = 'Stop'; {command}"
    return exec_utils.run_command(
        ["powershell.exe", "-NoProfile", "-NonInteractive", "-Command", script],
        event=event,
        timeout=timeout,
    )


def _parse_packages(stdout: str) -> list[dict[str, str]]:
    text = stdout.strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        _logger.debug("Failed to parse AppX query result: %s", text[:200])
        return []
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    return []


def detect_office_appx_packages(
    names: Iterable[str] = constants.OFFICE_APPX_PACKAGES,
    *,
    all_users: bool = False,
) -> list[dict[str, str]]:
    """!
    @brief Detect installed Microsoft Store Office packages.
    @param names Package names to look for.
    @param all_users Query every user profile (requires elevation).
    @returns Package dictionaries (Name, PackageFullName, Version), deduplicated
    by ``PackageFullName``.
    """

    scope = " -AllUsers" if all_users else ""
    packages: list[dict[str, str]] = []
    for name in names:
        command = (
            f'Get-AppxPackage -Name "{name}"{scope} | '
            "Select-Object Name, PackageFullName, Version | ConvertTo-Json -Compress"
        )
        result = _run_powershell(command, event="appx_query", timeout=60)
        if result.returncode != 0:
            _logger.debug("AppX query for %s returned %s", name, result.returncode)
            continue
        packages.extend(_parse_packages(result.stdout))

    seen: set[str] = set()
    unique: list[dict[str, str]] = []
    for pkg in packages:
        full_name = str(pkg.get("PackageFullName", ""))
        if full_name and full_name not in seen:
            seen.add(full_name)
            unique.append(pkg)
    return unique


def remove_appx_package(name: str, *, all_users: bool = True) -> RemovalOutcome:
    """!
    @brief Remove every installed instance of the package ``name``.
    @returns ``NotFound`` when no such package is installed.
    """

    scope = " -AllUsers" if all_users else ""
    command = (
        f'$packages = @(Get-AppxPackage -Name "{name}"{scope}); '
        f"if ($packages.Count -eq 0) {{ Write-Output '{NOT_FOUND_MARKER}'; exit 0 }}; "
        f"$packages | Remove-AppxPackage{scope}"
    )
    _logger.info("Removing AppX package: %s", name)
    result = _run_powershell(command, event="appx_remove", timeout=constants.POWERSHELL_TIMEOUT)
    outcome = classify_command(
        result,
        target=f"package {name}",
        kind=TargetKind.PACKAGE,
    )
    if outcome.status is OutcomeStatus.SUCCEEDED and NOT_FOUND_MARKER in result.stdout:
        outcome = RemovalOutcome(outcome.target, OutcomeStatus.NOT_FOUND, TargetKind.PACKAGE)
    if outcome.failed:
        _logger.warning("Failed to remove AppX package %s: %s", name, outcome.detail)
    return outcome


def remove_provisioned_package(name: str) -> RemovalOutcome:
    """!
    @brief Remove the provisioned (machine-wide) record of package ``name``.
    @details Provisioned packages are installed into every new user profile;
    removing the record is what takes the product off the machine image.
    """

    command = (
        "$provisioned = @(Get-AppxProvisionedPackage -Online | "
        f"Where-Object {{ $_.DisplayName -eq '{name}' }}); "
        f"if ($provisioned.Count -eq 0) {{ Write-Output '{NOT_FOUND_MARKER}'; exit 0 }}; "
        "$provisioned | Remove-AppxProvisionedPackage -Online -AllUsers | Out-Null"
    )
    _logger.info("Removing provisioned AppX package: %s", name)
    result = _run_powershell(
        command, event="appx_deprovision", timeout=constants.POWERSHELL_TIMEOUT
    )
    outcome = classify_command(
        result,
        target=f"provisioned package {name}",
        kind=TargetKind.PROVISIONED_PACKAGE,
    )
    if outcome.status is OutcomeStatus.SUCCEEDED and NOT_FOUND_MARKER in result.stdout:
        outcome = RemovalOutcome(
            outcome.target, OutcomeStatus.NOT_FOUND, TargetKind.PROVISIONED_PACKAGE
        )
    if outcome.failed:
        _logger.warning("Failed to remove provisioned package %s: %s", name, outcome.detail)
    return outcome
