"""!
@brief Click-to-Run detection and product uninstall.
@details Reads the Click-to-Run configuration from the registry and removes
the installed product releases, preferring ``OfficeC2RClient.exe`` and
falling back to an Office Deployment Tool ``setup.exe /configure`` run with a
generated removal XML. Component cleanup (service, tasks, registry, caches)
is driven by :mod:`office_remover.strategies`.
"""
from __future__ import annotations

import tempfile
import time
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

from . import constants, exec_utils, logging_ext, registry_tools
from .registry_tools import RegistryView
from .report import (
    OutcomeStatus,
    RemovalOutcome,
    TargetKind,
    classify_command,
    not_found,
    other_failure,
)

C2R_CLIENT_CANDIDATES = (
    Path(r"C:\Program Files\Common Files\Microsoft Shared\ClickToRun\OfficeC2RClient.exe"),
    Path(r"C:\Program Files (x86)\Common Files\Microsoft Shared\ClickToRun\OfficeC2RClient.exe"),
)
"""!
@brief Default filesystem locations checked for ``OfficeC2RClient.exe``.
"""

ODT_SETUP_CANDIDATES = (
    Path(r"C:\Program Files\Common Files\Microsoft Shared\ClickToRun\setup.exe"),
    Path(r"C:\Program Files (x86)\Common Files\Microsoft Shared\ClickToRun\setup.exe"),
)
"""!
@brief Default filesystem locations checked for the ODT ``setup.exe``.
"""

ODT_REMOVE_XML_TEMPLATE = """<Configuration>
  <Remove All="TRUE" />
  <Display Level="None" AcceptEULA="TRUE" />
</Configuration>
"""

C2R_UNINSTALL_MARKER = "officeclicktorun.exe"
"""!
@brief Substring of the ``UninstallString`` of Click-to-Run uninstall entries.
"""

C2R_VERIFICATION_ATTEMPTS = 3
C2R_VERIFICATION_DELAY = 5.0


def configuration_path(version: int) -> str | None:
    root = constants.C2R_ROOTS.get(version)
    return f"{root}\\Configuration" if root else None


def read_configuration(version: int) -> Dict[str, object]:
    """!
    @brief Read the Click-to-Run ``Configuration`` values for ``version``.
    @returns Value mapping, empty when Click-to-Run is not configured.
    """

    path = configuration_path(version)
    if path is None:
        return {}
    return registry_tools.read_values(constants.HKLM, path, RegistryView.REGISTRY_64)


def _release_ids(raw: object) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in str(raw).replace(";", ",").split(",") if part.strip()]


def detect_installation(version: int) -> Dict[str, object] | None:
    """!
    @brief Describe the Click-to-Run installation for ``version``, if any.
    @details A configuration reporting a different major version (for example
    a 16.x client when 15 was requested) does not count as a match.
    """

    values = read_configuration(version)
    if not values:
        return None
    reported = str(values.get("VersionToReport") or values.get("ClientVersionToReport") or "")
    if reported and not reported.startswith(f"{version}."):
        return None
    return {
        "version": reported or None,
        "release_ids": _release_ids(values.get("ProductReleaseIds")),
        "platform": values.get("Platform"),
        "channel": values.get("CDNBaseUrl") or values.get("UpdateChannel"),
        "client_folder": values.get("ClientFolder"),
        "install_path": values.get("InstallationPath"),
    }


def find_uninstall_entries(version: int) -> List[registry_tools.RegistryKeyRef]:
    """!
    @brief Locate Click-to-Run uninstall entries in both registry views.
    """

    entries: List[registry_tools.RegistryKeyRef] = []
    for view in (RegistryView.REGISTRY_64, RegistryView.REGISTRY_32):
        for name in registry_tools.list_subkeys(constants.HKLM, constants.UNINSTALL_ROOT, view):
            path = f"{constants.UNINSTALL_ROOT}\\{name}"
            uninstall_string = str(
                registry_tools.get_value(constants.HKLM, path, "UninstallString", "", view) or ""
            ).lower()
            if C2R_UNINSTALL_MARKER not in uninstall_string:
                continue
            display_version = str(
                registry_tools.get_value(constants.HKLM, path, "DisplayVersion", "", view) or ""
            )
            if display_version and not display_version.startswith(f"{version}."):
                continue
            ref = registry_tools.RegistryKeyRef(constants.HKLM, path, view)
            if ref not in entries:
                entries.append(ref)
    return entries


def _find_existing_path(candidates: Sequence[Path]) -> Path | None:
    for candidate in candidates:
        try:
            if candidate.exists():
                return candidate
        except OSError:
            continue
    return None


def _client_candidates(installation: Mapping[str, object]) -> List[Path]:
    candidates: List[Path] = []
    folder = installation.get("client_folder")
    if folder:
        candidates.append(Path(str(folder)) / "OfficeC2RClient.exe")
    candidates.extend(C2R_CLIENT_CANDIDATES)
    return list(dict.fromkeys(candidates))


def build_remove_xml(output_path: Path) -> Path:
    """!
    @brief Write an ODT configuration that removes every Click-to-Run product.
    """

    output_path.write_text(ODT_REMOVE_XML_TEMPLATE, encoding="utf-8")
    return output_path


def _await_removal(version: int) -> bool:
    """!
    @brief Poll the configuration key until the client finishes removing it.
    """

    machine_logger = logging_ext.get_machine_logger()
    for attempt in range(1, C2R_VERIFICATION_ATTEMPTS + 1):
        present = detect_installation(version) is not None
        machine_logger.info(
            "c2r_uninstall_verify",
            extra={"event": "c2r_uninstall_verify", "attempt": attempt, "present": present},
        )
        if not present:
            return True
        if attempt < C2R_VERIFICATION_ATTEMPTS:
            time.sleep(C2R_VERIFICATION_DELAY)
    return False


def uninstall_product(version: int) -> RemovalOutcome:
    """!
    @brief Uninstall the Click-to-Run product releases for ``version``.
    @returns ``NotFound`` when Click-to-Run is not installed for ``version``.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    installation = detect_installation(version)
    label = f"Click-to-Run {version}.0 product"
    if installation is None:
        return not_found(label, TargetKind.PRODUCT)

    release_ids = list(installation.get("release_ids") or [])  # type: ignore[call-overload]
    if release_ids:
        label = f"Click-to-Run {', '.join(release_ids)}"
    machine_logger.info(
        "c2r_uninstall_plan",
        extra={"event": "c2r_uninstall_plan", "release_ids": release_ids, "version": version},
    )

    client_path = _find_existing_path(_client_candidates(installation))
    if client_path is not None:
        result = exec_utils.run_command(
            [str(client_path), *constants.C2R_CLIENT_ARGS],
            event="c2r_uninstall",
            timeout=constants.UNINSTALL_TIMEOUT,
            human_message=f"Uninstalling {label} via OfficeC2RClient.exe",
            extra={"release_ids": release_ids, "executable": str(client_path)},
        )
    else:
        setup_path = _find_existing_path(ODT_SETUP_CANDIDATES)
        if setup_path is None:
            return other_failure(
                label, TargetKind.PRODUCT, "neither OfficeC2RClient.exe nor setup.exe was found"
            )
        with tempfile.TemporaryDirectory(prefix="office-remover-") as workdir:
            xml_path = build_remove_xml(Path(workdir) / "remove.xml")
            result = exec_utils.run_command(
                [str(setup_path), "/configure", str(xml_path)],
                event="c2r_odt_uninstall",
                timeout=constants.UNINSTALL_TIMEOUT,
                human_message=f"Uninstalling {label} via Office Deployment Tool",
                extra={"release_ids": release_ids, "executable": str(setup_path)},
            )

    outcome = classify_command(result, target=label, kind=TargetKind.PRODUCT)
    if outcome.status is OutcomeStatus.SUCCEEDED and not _await_removal(version):
        human_logger.warning(
            "Click-to-Run configuration for %s.0 is still present after uninstall", version
        )
    return outcome


__all__ = [
    "C2R_CLIENT_CANDIDATES",
    "ODT_SETUP_CANDIDATES",
    "build_remove_xml",
    "configuration_path",
    "detect_installation",
    "find_uninstall_entries",
    "read_configuration",
    "uninstall_product",
]
