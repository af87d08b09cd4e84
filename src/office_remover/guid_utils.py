"""!
@brief GUID helpers for Windows Installer registry paths.
@details Windows Installer stores product codes under
``HKCR\\Installer\\Products`` in a "compressed" form: the first three GUID
groups are reversed character by character and the remaining bytes have their
hex digits swapped pairwise. ``{90160000-000F-0000-1000-0000000FF1CE}`` is
stored as ``00006109F00000000100000000F01FEC``.
"""

from __future__ import annotations

import re
from typing import Final

_GUID_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\{?([0-9A-Fa-f]{8})-?([0-9A-Fa-f]{4})-?([0-9A-Fa-f]{4})-?"
    r"([0-9A-Fa-f]{4})-?([0-9A-Fa-f]{12})\}?$"
)


class GuidError(ValueError):
    """!
    @brief Raised when a string is not a GUID in the expected format.
    """


def _swap_pairs(s: str) -> str:
    return "".join(s[i + 1] + s[i] for i in range(0, len(s), 2))


def normalize_guid(guid: str) -> str:
    """!
    @brief Normalise ``guid`` to ``{XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX}``.
    @throws GuidError If the input is not a valid GUID.
    """

    match = _GUID_PATTERN.match(guid.strip())
    if not match:
        raise GuidError(f"Invalid GUID format: {guid}")
    return "{" + "-".join(match.groups()).upper() + "}"


def compress_guid(guid: str) -> str:
    """!
    @brief Convert a standard GUID to the 32 character Windows Installer form.
    @throws GuidError If the input is not a valid GUID.
    """

    match = _GUID_PATTERN.match(guid.strip())
    if not match:
        raise GuidError(f"Invalid GUID format: {guid}")
    g1, g2, g3, g4, g5 = match.groups()
    return (g1[::-1] + g2[::-1] + g3[::-1] + _swap_pairs(g4) + _swap_pairs(g5)).upper()


__all__ = [
    "GuidError",
    "compress_guid",
    "normalize_guid",
]
