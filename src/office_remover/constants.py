"""!
@brief Static data for Office Remover.
@details Centralises registry roots, per-technology registry paths, service
and scheduled task names, Store package families, command timeouts and exit
codes so detection and removal work from one source of truth. Paths that
depend on the Office major version carry a ``{version}`` placeholder.
"""
from __future__ import annotations

from enum import IntEnum
from typing import Dict, Tuple

try:  # pragma: no cover - Windows registry handles are optional on test hosts.
    import winreg
except ImportError:  # pragma: no cover - non-Windows hosts use the documented values.
    winreg = None  # type: ignore[assignment]


if winreg is not None:  # pragma: no branch - deterministic assignments.
    HKLM = winreg.HKEY_LOCAL_MACHINE
    HKCU = winreg.HKEY_CURRENT_USER
    HKCR = winreg.HKEY_CLASSES_ROOT
    HKU = winreg.HKEY_USERS
else:  # pragma: no cover - exercised implicitly in non-Windows CI.
    HKLM = 0x80000002
    HKCU = 0x80000001
    HKCR = 0x80000000
    HKU = 0x80000003


SUPPORTED_VERSIONS: Tuple[int, ...] = (12, 14, 15, 16)
"""!
@brief Office major versions accepted on the command line.
@details 12 = Office 2007, 14 = Office 2010, 15 = Office 2013,
16 = Office 2016 and later (2019, 2021, 2024, Microsoft 365).
"""

C2R_VERSIONS: Tuple[int, ...] = (15, 16)
STORE_VERSIONS: Tuple[int, ...] = (16,)

DEFAULT_LOG_PATH = "./log"


class ExitCode(IntEnum):
    """!
    @brief Process exit codes; each run-level outcome has its own value.
    """

    SUCCESS = 0
    TARGETS_FAILED = 1
    INVALID_ARGUMENTS = 2
    ELEVATION_DENIED = 3


OFFICE_APPLICATIONS: Tuple[str, ...] = (
    "Access",
    "Excel",
    "Groove",
    "OneNote",
    "Outlook",
    "PowerPoint",
    "Publisher",
    "Word",
)
"""!
@brief Per-application subtrees found below ``Office\\<version>.0``.
"""

OFFICE_VERSION_ROOT = r"SOFTWARE\Microsoft\Office\{version}.0"

# ---------------------------------------------------------------------------
# Activation and licensing
# ---------------------------------------------------------------------------

LICENSING_KEY = OFFICE_VERSION_ROOT + r"\Common\Licensing"
IDENTITY_KEY = OFFICE_VERSION_ROOT + r"\Common\Identity"
REGISTRATION_KEY = OFFICE_VERSION_ROOT + r"\Registration"
OSPP_REGISTRY_PATH = r"SOFTWARE\Microsoft\OfficeSoftwareProtectionPlatform"

# ---------------------------------------------------------------------------
# Microsoft Store
# ---------------------------------------------------------------------------

OFFICE_APPX_PACKAGES: Tuple[str, ...] = (
    "Microsoft.Office.Desktop",
    "Microsoft.Office.Desktop.Access",
    "Microsoft.Office.Desktop.Excel",
    "Microsoft.Office.Desktop.Outlook",
    "Microsoft.Office.Desktop.PowerPoint",
    "Microsoft.Office.Desktop.Publisher",
    "Microsoft.Office.Desktop.Word",
    "Microsoft.Office.Desktop.LyncForBusiness",
)
"""!
@brief Package names of the Store-distributed Office desktop suite.
"""

STORE_PACKAGE_FAMILY = "Microsoft.Office.Desktop_8wekyb3d8bbwe"
STORE_USER_DATA = r"%LOCALAPPDATA%\Packages\{family}"

# ---------------------------------------------------------------------------
# Click-to-Run
# ---------------------------------------------------------------------------

C2R_ROOTS: Dict[int, str] = {
    16: r"SOFTWARE\Microsoft\Office\ClickToRun",
    15: r"SOFTWARE\Microsoft\Office\15.0\ClickToRun",
}
"""!
@brief Click-to-Run registry root per Office major version.
"""

C2R_COMPONENT_SUBKEYS: Tuple[str, ...] = (
    "Configuration",
    "Scenario",
    "Updates",
    "REGISTRY",
)
"""!
@brief Subtrees below the Click-to-Run root removed in Remove mode.
"""


C2R_CLIENT_ARGS: Tuple[str, ...] = (
    "/updatepromptuser=False",
    "/uninstallpromptuser=False",
    "/uninstall",
    "/displaylevel=False",
)

C2R_SERVICES: Tuple[str, ...] = ("ClickToRunSvc",)
C2R_LEGACY_SERVICES: Dict[int, Tuple[str, ...]] = {
    15: ("OfficeSvc",),
}

C2R_SCHEDULED_TASKS: Tuple[str, ...] = (
    r"\Microsoft\Office\Office Automatic Updates 2.0",
    r"\Microsoft\Office\Office ClickToRun Service Monitor",
    r"\Microsoft\Office\Office Feature Updates",
    r"\Microsoft\Office\Office Feature Updates Logon",
    r"\Microsoft\Office\Office Performance Monitor",
    r"\Microsoft\Office\OfficeTelemetryAgentFallBack2016",
    r"\Microsoft\Office\OfficeTelemetryAgentLogOn2016",
)

C2R_CACHE_DIRECTORIES: Tuple[str, ...] = (
    r"%ProgramData%\Microsoft\ClickToRun",
    r"%ProgramData%\Microsoft\Office\ClickToRunPackageLocker",
    r"%ProgramFiles%\Microsoft Office\Updates\Download",
    r"%ProgramFiles(x86)%\Microsoft Office\Updates\Download",
)
"""!
@brief Cached installer payload locations; environment variables are expanded
at planning time.
"""

# ---------------------------------------------------------------------------
# Windows Installer
# ---------------------------------------------------------------------------

UNINSTALL_ROOT = r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"
INSTALLER_PRODUCTS_ROOT = r"Installer\Products"

MSI_OFFICE_CODE_PATTERN = (
    r"^\{{[0-9A-F]{{2}}{version}[0-9A-F]{{4}}-[0-9A-F]{{4}}-[0-9A-F]{{4}}-[01]000-0000000FF1CE\}}$"
)
"""!
@brief Office product code layout ``{BR<version>mmmm-PPPP-LLLL-p000-0000000FF1CE}``.
@details Formatted with the two digit major version before compiling.
"""

MSI_COMMON_SUBKEYS: Tuple[str, ...] = (
    r"Common\InstallRoot",
    r"Common\ProductVersion",
    r"Common\FilesPaths",
    "Delivery",
)

MSIEXEC_SUCCESS_CODES = frozenset({0})
MSIEXEC_RESTART_CODES = frozenset({1641, 3010})
MSIEXEC_UNKNOWN_PRODUCT = 1605
MSIEXEC_BUSY = 1618

# ---------------------------------------------------------------------------
# Command exit codes and timeouts
# ---------------------------------------------------------------------------

ERROR_ACCESS_DENIED = 5
ERROR_SERVICE_DOES_NOT_EXIST = 1060
ERROR_SERVICE_MARKED_FOR_DELETE = 1072

SERVICE_TIMEOUT = 60
TASK_TIMEOUT = 60
POWERSHELL_TIMEOUT = 300
UNINSTALL_TIMEOUT = 3600

RESTART_DELAY_SECONDS = 30

__all__ = [
    "C2R_CACHE_DIRECTORIES",
    "C2R_CLIENT_ARGS",
    "C2R_COMPONENT_SUBKEYS",
    "C2R_LEGACY_SERVICES",
    "C2R_ROOTS",
    "C2R_SCHEDULED_TASKS",
    "C2R_SERVICES",
    "C2R_VERSIONS",
    "DEFAULT_LOG_PATH",
    "ERROR_ACCESS_DENIED",
    "ERROR_SERVICE_DOES_NOT_EXIST",
    "ERROR_SERVICE_MARKED_FOR_DELETE",
    "ExitCode",
    "HKCR",
    "HKCU",
    "HKLM",
    "HKU",
    "IDENTITY_KEY",
    "INSTALLER_PRODUCTS_ROOT",
    "LICENSING_KEY",
    "MSIEXEC_BUSY",
    "MSIEXEC_RESTART_CODES",
    "MSIEXEC_SUCCESS_CODES",
    "MSIEXEC_UNKNOWN_PRODUCT",
    "MSI_COMMON_SUBKEYS",
    "MSI_OFFICE_CODE_PATTERN",
    "OFFICE_APPLICATIONS",
    "OFFICE_APPX_PACKAGES",
    "OFFICE_VERSION_ROOT",
    "OSPP_REGISTRY_PATH",
    "POWERSHELL_TIMEOUT",
    "REGISTRATION_KEY",
    "RESTART_DELAY_SECONDS",
    "SERVICE_TIMEOUT",
    "STORE_PACKAGE_FAMILY",
    "STORE_USER_DATA",
    "STORE_VERSIONS",
    "SUPPORTED_VERSIONS",
    "TASK_TIMEOUT",
    "UNINSTALL_ROOT",
    "UNINSTALL_TIMEOUT",
]
