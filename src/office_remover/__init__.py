"""!
@brief Office Remover package root.
@details Modules under this namespace detect and remove Microsoft Office
installations delivered through the Microsoft Store, Click-to-Run or
Windows Installer.
"""

__all__ = [
    "main",
    "dispatcher",
    "options",
    "elevation",
    "strategies",
    "report",
    "registry_tools",
    "appx_uninstall",
    "c2r_uninstall",
    "msi_uninstall",
    "tasks_services",
    "fs_tools",
    "exec_utils",
    "logging_ext",
    "guid_utils",
    "constants",
    "errors",
    "version",
]
