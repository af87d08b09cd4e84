"""!
@brief Shim entry point for Office Remover.
@details Makes the package in ``src/`` importable before handing control to
:func:`office_remover.main.main`; frozen builds use this file as their entry
script.
"""
from __future__ import annotations

import os
import sys

__all__ = ["main"]

_REPO_ROOT = os.path.dirname(os.path.abspath(__file__))
_SRC_PATH = os.path.join(_REPO_ROOT, "src")
_PACKAGE_PATH = os.path.join(_SRC_PATH, "office_remover")

if os.path.isdir(_SRC_PATH) and _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)

if os.path.isdir(_PACKAGE_PATH):
    __path__ = [_PACKAGE_PATH]
    if __spec__ is not None:  # pragma: no cover - import system attribute
        __spec__.submodule_search_locations = list(__path__)


def main() -> int:
    """!
    @brief Invoke the package entry point.
    @returns Exit status propagated from :func:`office_remover.main.main`.
    """

    from office_remover.main import main as package_main

    return package_main()


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
