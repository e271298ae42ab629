"""Deterministic colors for tasks and activity levels."""

from __future__ import annotations

import colorsys
from dataclasses import dataclass
from typing import Iterable

from .models import UNASSIGNED_TASK

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193
_LIGHTNESS_STEPS = (-0.07, 0.0, 0.06)


@dataclass(frozen=True, slots=True)
class HueBand:
    hue_min: float
    hue_max: float
    saturation: float
    lightness: float


# Band 0 is neutral and reserved for unassigned time.
PALETTE_BANDS: tuple[HueBand, ...] = (
    HueBand(0, 360, 0.00, 0.60),  # gray
    HueBand(210, 230, 0.70, 0.52),  # blue
    HueBand(35, 45, 0.85, 0.50),  # amber
    HueBand(95, 110, 0.70, 0.48),  # lime
    HueBand(270, 290, 0.60, 0.52),  # purple
    HueBand(310, 330, 0.65, 0.52),  # magenta
    HueBand(50, 60, 0.90, 0.46),  # yellow
    HueBand(335, 350, 0.65, 0.52),  # pink
    HueBand(170, 185, 0.65, 0.50),  # teal
    HueBand(120, 135, 0.65, 0.50),  # green
    HueBand(190, 205, 0.70, 0.48),  # cyan
    HueBand(235, 255, 0.65, 0.52),  # indigo
    HueBand(20, 30, 0.80, 0.50),  # orange
)

_RED = (220, 60, 60)
_YELLOW = (235, 190, 50)
_GREEN = (60, 180, 90)
_GREEN_PEAK = (20, 180, 45)


def fnv1a_32(text: str) -> int:
    value = _FNV_OFFSET
    for byte in text.encode("utf-8"):
        value ^= byte
        value = (value * _FNV_PRIME) & 0xFFFFFFFF
    return value


def task_color(rank: int, task_name: str) -> str:
    """Return ``#RRGGBB`` for a task: ``rank`` picks the band, the name picks the shade."""
    name_hash = fnv1a_32(task_name)
    band = PALETTE_BANDS[rank % len(PALETTE_BANDS)]

    inner = ((name_hash >> 8) % 1000) / 1000.0
    hue = band.hue_min + inner * (band.hue_max - band.hue_min)
    step = _LIGHTNESS_STEPS[(name_hash >> 18) % len(_LIGHTNESS_STEPS)]
    lightness = _clamp01(band.lightness + step)

    red, green, blue = colorsys.hls_to_rgb((hue % 360.0) / 360.0, lightness, band.saturation)
    return _to_hex(red * 255.0, green * 255.0, blue * 255.0)


def assign_task_colors(task_order: Iterable[str]) -> dict[str, str]:
    """Color a ranked task list; unassigned time always owns the gray band."""
    colors: dict[str, str] = {}
    rank = 1
    for task_name in task_order:
        if task_name == UNASSIGNED_TASK:
            colors[task_name] = task_color(0, task_name)
            continue
        colors[task_name] = task_color(rank, task_name)
        rank += 1
    return colors


def activity_color(percent: float) -> str:
    """Ramp for activity bars: red at 0%, yellow at 50%, green at 75%, deep green at 100%."""
    t = _clamp01(percent / 100.0)
    if t <= 0.5:
        return _lerp_hex(_RED, _YELLOW, t * 2.0)
    if t <= 0.75:
        return _lerp_hex(_YELLOW, _GREEN, (t - 0.5) * 4.0)
    return _lerp_hex(_GREEN, _GREEN_PEAK, (t - 0.75) * 4.0)


def _lerp_hex(start: tuple[int, int, int], end: tuple[int, int, int], t: float) -> str:
    return _to_hex(*(a + (b - a) * t for a, b in zip(start, end)))


def _to_hex(red: float, green: float, blue: float) -> str:
    return "#{:02X}{:02X}{:02X}".format(*(int(channel + 0.5) for channel in (red, green, blue)))


def _clamp01(value: float) -> float:
    return min(max(value, 0.0), 1.0)
