"""!
@brief Registry access helpers.
@details :func:`delete_subkey` is the single mutating primitive used by the
removal strategies: it deletes one subtree under a hive and registry view and
reports the result as a :class:`office_remover.report.RemovalOutcome`
instead of raising. The remaining helpers are read-only ``winreg`` wrappers
used by detection. Every handle is opened through :func:`open_key` and
closed before the helper returns.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Tuple

from . import constants, logging_ext
from .report import (
    OutcomeStatus,
    RemovalOutcome,
    TargetKind,
    access_denied,
    not_found,
    other_failure,
    succeeded,
)

try:  # pragma: no cover - exercised through fakes on non-Windows platforms.
    import winreg
except ImportError:  # pragma: no cover - handled gracefully during tests.
    winreg = None  # type: ignore[assignment]


class RegistryView(IntEnum):
    """!
    @brief 32/64-bit registry view, expressed as the ``KEY_WOW64_*`` access flag.
    """

    DEFAULT = 0
    REGISTRY_64 = 0x0100
    REGISTRY_32 = 0x0200


_VIEW_LABELS = {
    RegistryView.DEFAULT: "",
    RegistryView.REGISTRY_64: "64-bit",
    RegistryView.REGISTRY_32: "32-bit",
}

_HIVE_NAMES = {
    constants.HKLM: "HKLM",
    constants.HKCU: "HKCU",
    constants.HKU: "HKU",
    constants.HKCR: "HKCR",
}


def hive_name(root: int) -> str:
    """!
    @brief Provide a friendly identifier for a registry hive.
    """

    return _HIVE_NAMES.get(root, hex(root))


@dataclass(frozen=True)
class RegistryKeyRef:
    """!
    @brief Lookup descriptor for one registry location; never an open handle.
    """

    hive: int
    path: str
    view: RegistryView = RegistryView.DEFAULT

    def __str__(self) -> str:
        label = f"{hive_name(self.hive)}\\{self.path}"
        view_label = _VIEW_LABELS[self.view]
        return f"{label} [{view_label}]" if view_label else label


def _ensure_winreg() -> None:
    """!
    @brief Raise an informative error when ``winreg`` is unavailable.
    """

    if winreg is None:
        raise FileNotFoundError("Windows registry APIs are unavailable on this platform")


@contextmanager
def open_key(
    root: int,
    path: str,
    access: int | None = None,
    view: RegistryView = RegistryView.DEFAULT,
) -> Iterator[Any]:
    """!
    @brief Context manager that mirrors ``winreg.OpenKey`` while ensuring
    handles are closed correctly.
    """

    _ensure_winreg()
    access_mask = access if access is not None else winreg.KEY_READ  # type: ignore[union-attr]
    handle = winreg.OpenKey(root, path, 0, access_mask | int(view))  # type: ignore[union-attr]
    try:
        yield handle
    finally:
        winreg.CloseKey(handle)  # type: ignore[union-attr]


def iter_subkeys(
    root: int, path: str, view: RegistryView = RegistryView.DEFAULT
) -> Iterator[str]:
    """!
    @brief Yield subkey names for ``root``/``path``.
    """

    with open_key(root, path, view=view) as handle:
        subkey_count, _, _ = winreg.QueryInfoKey(handle)  # type: ignore[union-attr]
        for index in range(subkey_count):
            yield winreg.EnumKey(handle, index)  # type: ignore[union-attr]


def list_subkeys(root: int, path: str, view: RegistryView = RegistryView.DEFAULT) -> List[str]:
    """!
    @brief Return subkey names, or an empty list when the key cannot be read.
    """

    try:
        return list(iter_subkeys(root, path, view))
    except OSError:
        return []


def iter_values(
    root: int, path: str, view: RegistryView = RegistryView.DEFAULT
) -> Iterator[Tuple[str, Any]]:
    with open_key(root, path, view=view) as handle:
        _, value_count, _ = winreg.QueryInfoKey(handle)  # type: ignore[union-attr]
        for index in range(value_count):
            name, value, _ = winreg.EnumValue(handle, index)  # type: ignore[union-attr]
            yield name, value


def read_values(
    root: int, path: str, view: RegistryView = RegistryView.DEFAULT
) -> Dict[str, Any]:
    """!
    @brief Read all values beneath ``root``/``path`` into a dictionary.
    """

    try:
        return dict(iter_values(root, path, view))
    except OSError:
        return {}


def get_value(
    root: int,
    path: str,
    value_name: str,
    default: Any | None = None,
    view: RegistryView = RegistryView.DEFAULT,
) -> Any | None:
    try:
        with open_key(root, path, view=view) as handle:
            value, _ = winreg.QueryValueEx(handle, value_name)  # type: ignore[union-attr]
            return value
    except OSError:
        return default


def key_exists(root: int, path: str, view: RegistryView = RegistryView.DEFAULT) -> bool:
    """!
    @brief Determine whether the given key exists.
    """

    try:
        with open_key(root, path, view=view):
            return True
    except OSError:
        return False


def _delete_tree(root: int, path: str, view: RegistryView) -> None:
    """!
    @brief Delete ``path`` and everything below it, children first.
    @details Child names are collected and the handle closed before any
    deletion, so no handle is held while the subtree is modified.
    """

    with open_key(root, path, winreg.KEY_READ, view) as handle:  # type: ignore[union-attr]
        children: List[str] = []
        index = 0
        while True:
            try:
                children.append(winreg.EnumKey(handle, index))  # type: ignore[union-attr]
            except OSError:
                break
            index += 1

    for child in children:
        _delete_tree(root, f"{path}\\{child}", view)

    if int(view) == RegistryView.DEFAULT:
        winreg.DeleteKey(root, path)  # type: ignore[union-attr]
    else:
        winreg.DeleteKeyEx(root, path, int(view), 0)  # type: ignore[union-attr]


def delete_subkey(
    hive: int,
    path: str,
    view: RegistryView = RegistryView.DEFAULT,
) -> RemovalOutcome:
    """!
    @brief Delete the subtree ``hive``/``path`` under ``view``.
    @details Never raises. ``NotFound`` when the key does not exist,
    ``AccessDenied`` when a handle lacks rights, ``OtherFailure`` for any
    other error including a host without registry APIs. No retry is made.
    @returns :class:`RemovalOutcome` describing the result.
    """

    ref = RegistryKeyRef(hive, path, view)
    label = str(ref)
    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()
    machine_logger.info(
        "registry_delete_plan",
        extra={"event": "registry_delete_plan", "key": label},
    )

    outcome: RemovalOutcome
    if winreg is None:
        outcome = other_failure(label, TargetKind.REGISTRY, "Windows registry APIs are unavailable")
    elif not path.strip("\\"):
        outcome = other_failure(label, TargetKind.REGISTRY, "refusing to delete a hive root")
    else:
        try:
            _delete_tree(hive, path.strip("\\"), view)
        except FileNotFoundError:
            outcome = not_found(label, TargetKind.REGISTRY)
        except PermissionError as exc:
            outcome = access_denied(label, TargetKind.REGISTRY, str(exc))
        except OSError as exc:
            outcome = other_failure(label, TargetKind.REGISTRY, str(exc))
        else:
            outcome = succeeded(label, TargetKind.REGISTRY)

    if outcome.status is OutcomeStatus.SUCCEEDED:
        human_logger.info("Deleted registry key %s", label)
    elif outcome.failed:
        human_logger.warning("Could not delete registry key %s: %s", label, outcome.detail)
    else:
        human_logger.debug("Registry key %s not present", label)

    machine_logger.info(
        "registry_delete_result",
        extra={
            "event": "registry_delete_result",
            "key": label,
            "status": outcome.status.value,
            "detail": outcome.detail,
        },
    )
    return outcome


def delete_key_ref(ref: RegistryKeyRef) -> RemovalOutcome:
    return delete_subkey(ref.hive, ref.path, ref.view)


__all__ = [
    "RegistryKeyRef",
    "RegistryView",
    "delete_key_ref",
    "delete_subkey",
    "get_value",
    "hive_name",
    "iter_subkeys",
    "iter_values",
    "key_exists",
    "list_subkeys",
    "open_key",
    "read_values",
]
