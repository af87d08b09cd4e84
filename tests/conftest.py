"""!
@brief Shared fixtures: an in-memory ``winreg`` fake.
@details The fake models keys per (hive, view, path), tracks open handles and
records deletions, so tests can check children-first deletion, handle hygiene
and the mapping of errors onto removal outcomes.
"""

from __future__ import annotations

import pathlib
import sys
from typing import Dict, List, Tuple

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from office_remover import registry_tools  # noqa: E402
from office_remover.registry_tools import RegistryView  # noqa: E402

_VIEW_MASK = int(RegistryView.REGISTRY_32) | int(RegistryView.REGISTRY_64)


class _Handle:
    def __init__(self, key: Tuple[int, int, str]) -> None:
        self.key = key


class FakeWinreg:
    """!
    @brief Minimal ``winreg`` replacement keyed by ``(hive, view, path)``.
    """

    KEY_READ = 0x20019

    def __init__(self) -> None:
        self.keys: Dict[Tuple[int, int, str], Dict[str, object]] = {}
        self.names: Dict[Tuple[int, int, str], str] = {}
        self.open_handles: List[_Handle] = []
        self.deleted: List[str] = []
        self.protected: set[str] = set()
        self.broken: set[str] = set()

    def add(self, hive: int, path: str, view: int = 0, **values: object) -> None:
        parts = path.split("\\")
        for index in range(1, len(parts) + 1):
            key = (hive, view, "\\".join(parts[:index]).lower())
            self.keys.setdefault(key, {})
            self.names.setdefault(key, parts[index - 1])
        self.keys[(hive, view, path.lower())].update(values)

    def _children(self, key: Tuple[int, int, str]) -> List[str]:
        hive, view, path = key
        prefix = path + "\\"
        names = []
        for other_hive, other_view, other_path in self.keys:
            if (other_hive, other_view) != (hive, view) or not other_path.startswith(prefix):
                continue
            remainder = other_path[len(prefix):]
            if "\\" not in remainder:
                names.append(self.names[(other_hive, other_view, other_path)])
        return sorted(names, key=str.lower)

    def OpenKey(self, root, path, reserved, access):  # noqa: N802 - winreg API
        key = (root, access & _VIEW_MASK, path.lower())
        if key not in self.keys:
            raise FileNotFoundError(2, "The system cannot find the file specified")
        handle = _Handle(key)
        self.open_handles.append(handle)
        return handle

    def CloseKey(self, handle):  # noqa: N802
        self.open_handles.remove(handle)

    def EnumKey(self, handle, index):  # noqa: N802
        children = self._children(handle.key)
        if index >= len(children):
            raise OSError(259, "No more data is available")
        return children[index]

    def QueryInfoKey(self, handle):  # noqa: N802
        return len(self._children(handle.key)), len(self.keys[handle.key]), 0

    def EnumValue(self, handle, index):  # noqa: N802
        name, value = list(self.keys[handle.key].items())[index]
        return name, value, 1

    def QueryValueEx(self, handle, name):  # noqa: N802
        values = self.keys[handle.key]
        if name not in values:
            raise FileNotFoundError(2, "value not found")
        return values[name], 1

    def _delete(self, key: Tuple[int, int, str]) -> None:
        assert not any(handle.key == key for handle in self.open_handles), "deleting an open key"
        if key not in self.keys:
            raise FileNotFoundError(2, "The system cannot find the file specified")
        if self._children(key):
            raise OSError(5, "key has subkeys")
        if key[2] in self.protected:
            raise PermissionError(5, "Access is denied")
        if key[2] in self.broken:
            raise OSError(1018, "Illegal operation attempted on a registry key")
        del self.keys[key]
        self.names.pop(key, None)
        self.deleted.append(key[2])

    def DeleteKey(self, root, path):  # noqa: N802
        self._delete((root, 0, path.lower()))

    def DeleteKeyEx(self, root, path, access, reserved):  # noqa: N802
        self._delete((root, access & _VIEW_MASK, path.lower()))


@pytest.fixture
def fake_winreg(monkeypatch) -> FakeWinreg:
    fake = FakeWinreg()
    monkeypatch.setattr(registry_tools, "winreg", fake)
    return fake


