"""Byte-size humanizer for the user statistics header."""
from __future__ import annotations

from typing import Union

DATA_SIZE_PREFIXES = ("", "Ki", "Mi", "Gi", "Ti", "Pi", "Ei", "Zi", "Yi")


def data_size(amount: Union[int, float]) -> str:
    """Format ``amount`` bytes with binary prefixes.

    Amounts below 1 KiB are shown without decimals (``"512 B"``), everything
    else with two (``"1.50 MiB"``). Negative amounts keep their sign.
    """

    value = float(amount)
    was_negative = value < 0
    if was_negative:
        value = -value

    prefix = 0
    while value >= 1024 and prefix < len(DATA_SIZE_PREFIXES) - 1:
        value /= 1024
        prefix += 1

    if was_negative:
        value = -value

    if prefix == 0:
        return f"{value:.0f} B"

    return f"{value:.2f} {DATA_SIZE_PREFIXES[prefix]}B"
