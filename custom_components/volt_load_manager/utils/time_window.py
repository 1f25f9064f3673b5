"""Time window helpers for hour-based ranges."""
from __future__ import annotations

from collections.abc import Iterable


def is_hour_in_window(hour: int, start_hour: int, end_hour: int) -> bool:
    """Return True when hour is inside the window; supports midnight wrap."""
    if end_hour < start_hour:
        return hour >= start_hour or hour < end_hour
    return start_hour <= hour < end_hour

def is_hour_in_any_window(hour: int, windows: Iterable[tuple[int, int]]) -> bool:
    """Return True when hour falls inside at least one (start, end) window."""
    return any(is_hour_in_window(hour, start, end) for start, end in windows)

def parse_hour_windows(value: object) -> list[tuple[int, int]]:
    """Parse windows given as pairs or as a "10-14, 18-22" string.

    Invalid fragments are skipped.
    """
    if value is None:
        return []

    if isinstance(value, str):
        fragments: list[object] = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple)):
        fragments = list(value)
    else:
        return []

    windows: list[tuple[int, int]] = []
    for fragment in fragments:
        if isinstance(fragment, str):
            bounds = fragment.split("-", 1)
        elif isinstance(fragment, (list, tuple)):
            bounds = list(fragment)
        else:
            continue
        if len(bounds) != 2:
            continue
        try:
            start, end = int(bounds[0]), int(bounds[1])
        except (TypeError, ValueError):
            continue
        if 0 <= start <= 23 and 0 <= end <= 24:
            windows.append((start, end))
    return windows
