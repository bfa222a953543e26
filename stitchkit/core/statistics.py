"""
Pattern statistics and whole-pattern processing helpers.

All pattern coordinates are in 0.1 mm units; statistics are reported in mm
(and inches for total thread length).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .commands import Action, is_thread_change
from .pattern import Pattern
from .thread import Thread

MM_PER_INCH: float = 25.4
UNITS_PER_MM: float = 10.0

# Colors handed out by fix_color_count, cycled in order.
DEFAULT_THREAD_COLORS: tuple[int, ...] = (
    0x000000,
    0xFF0000,
    0x00FF00,
    0x0000FF,
    0xFFFF00,
    0xFF00FF,
    0x00FFFF,
)


@dataclass(frozen=True)
class ThreadUsage:
    thread_index: int
    thread: Thread
    stitch_count: int
    length_mm: float


@dataclass(frozen=True)
class PatternStatistics:
    stitch_count: int
    jump_count: int
    trim_count: int
    color_change_count: int
    total_length_mm: float
    total_length_inches: float
    estimated_time_minutes: float
    thread_usage: tuple[ThreadUsage, ...]
    density_per_cm2: float
    width_mm: float
    height_mm: float
    average_stitch_length_mm: float
    max_stitch_length_mm: float


def _thread_usage(pattern: Pattern) -> tuple[ThreadUsage, ...]:
    counts: dict[int, int] = {}
    lengths: dict[int, float] = {}
    cursor = 0
    prev_x, prev_y = 0.0, 0.0
    for s in pattern.stitches:
        if is_thread_change(s.command):
            cursor += 1
        elif s.action == Action.STITCH:
            counts[cursor] = counts.get(cursor, 0) + 1
            lengths[cursor] = lengths.get(cursor, 0.0) + math.hypot(s.x - prev_x, s.y - prev_y)
        prev_x, prev_y = s.x, s.y
    threads = pattern.threads
    return tuple(
        ThreadUsage(
            thread_index=i,
            thread=threads[i] if i < len(threads) else Thread(0x000000),
            stitch_count=counts[i],
            length_mm=lengths[i] / UNITS_PER_MM,
        )
        for i in sorted(counts)
    )


def calculate_statistics(pattern: Pattern, machine_speed_spm: float = 800.0) -> PatternStatistics:
    """
    Summarize a pattern.

    Args:
        pattern: Pattern to measure.
        machine_speed_spm: Machine speed in stitches per minute, used for the
            time estimate. A non-positive speed gives an estimate of 0.

    Returns:
        A PatternStatistics snapshot.
    """
    stitch_count = pattern.count_stitches()
    total_mm = pattern.total_stitch_length() / UNITS_PER_MM
    width_mm = pattern.width / UNITS_PER_MM
    height_mm = pattern.height / UNITS_PER_MM
    area_cm2 = (width_mm / 10.0) * (height_mm / 10.0)
    return PatternStatistics(
        stitch_count=stitch_count,
        jump_count=pattern.count_jumps(),
        trim_count=pattern.count_trims(),
        color_change_count=pattern.count_color_changes(),
        total_length_mm=total_mm,
        total_length_inches=total_mm / MM_PER_INCH,
        estimated_time_minutes=stitch_count / machine_speed_spm if machine_speed_spm > 0 else 0.0,
        thread_usage=_thread_usage(pattern),
        density_per_cm2=stitch_count / area_cm2 if area_cm2 > 0 else 0.0,
        width_mm=width_mm,
        height_mm=height_mm,
        average_stitch_length_mm=pattern.average_stitch_length() / UNITS_PER_MM,
        max_stitch_length_mm=pattern.max_stitch_length() / UNITS_PER_MM,
    )


def normalize(pattern: Pattern) -> None:
    """Translate so the bounds' minimum corner sits at the origin."""
    min_x, min_y, _, _ = pattern.bounds()
    if min_x != 0.0 or min_y != 0.0:
        pattern.translate(-min_x, -min_y)


def fix_color_count(pattern: Pattern) -> int:
    """
    Append default threads until every color change has a thread to advance to.

    Returns:
        The number of threads added.
    """
    needed = pattern.count_color_changes() + 1
    added = 0
    while len(pattern.threads) < needed:
        pattern.add_thread(Thread(DEFAULT_THREAD_COLORS[len(pattern.threads) % len(DEFAULT_THREAD_COLORS)]))
        added += 1
    return added
