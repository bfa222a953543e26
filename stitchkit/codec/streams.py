"""
Split stitch sequences into parallel byte streams and back.

Entropy-coded formats store stitches as three streams (action flags, x
deltas, y deltas) so that each stream compresses on its own statistics.
Deltas are signed 8-bit values relative to the previous entry, starting at
the origin.
"""

from __future__ import annotations

from typing import Sequence

from stitchkit.core.commands import COMMAND_MASK
from stitchkit.core.errors import RangeExceededError, TruncatedDataError
from stitchkit.core.pattern import Pattern
from stitchkit.core.stitch import Stitch

MAX_STREAM_DELTA: int = 127


def _delta_byte(value: float, index: int) -> int:
    rounded = round(value)
    if abs(rounded) > MAX_STREAM_DELTA:
        raise RangeExceededError(f"delta {rounded} outside ±{MAX_STREAM_DELTA}", index=index)
    return rounded & 0xFF


def _signed(byte: int) -> int:
    return byte - 0x100 if byte & 0x80 else byte


def stitches_to_streams(stitches: Sequence[Stitch]) -> tuple[bytes, bytes, bytes]:
    """
    Return (flags, dx, dy) streams for stitches.

    Coordinates are rounded to whole units; each delta is taken from the
    previous rounded position so rounding error does not accumulate.

    Raises:
        RangeExceededError: If a delta exceeds ±127; split long stitches first.
    """
    flags = bytearray()
    xs = bytearray()
    ys = bytearray()
    prev_x, prev_y = 0, 0
    for i, s in enumerate(stitches):
        x, y = round(s.x), round(s.y)
        flags.append(s.command & COMMAND_MASK)
        xs.append(_delta_byte(x - prev_x, i))
        ys.append(_delta_byte(y - prev_y, i))
        prev_x, prev_y = x, y
    return bytes(flags), bytes(xs), bytes(ys)


def streams_to_pattern(flags: bytes, xs: bytes, ys: bytes, pattern: Pattern) -> None:
    """
    Replay streams into pattern through add_stitch_relative.

    Raises:
        TruncatedDataError: If the streams differ in length.
    """
    if not (len(flags) == len(xs) == len(ys)):
        raise TruncatedDataError(
            f"stream lengths differ: flags={len(flags)} x={len(xs)} y={len(ys)}",
            offset=min(len(flags), len(xs), len(ys)),
        )
    for flag, dx, dy in zip(flags, xs, ys):
        pattern.add_stitch_relative(_signed(dx), _signed(dy), flag)
