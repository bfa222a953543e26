"""Stitch: one absolute needle position plus its command word."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .commands import COMMAND_MASK, decode_command, with_action
from .errors import InvalidPatternError


@dataclass(frozen=True)
class Stitch:
    """
    A single needle event at an absolute position.

    Coordinates are in 0.1 mm units. Equality is exact on x, y and the full
    command word, metadata bits included.
    """

    x: float
    y: float
    command: int = 0

    def __post_init__(self) -> None:
        if not (math.isfinite(self.x) and math.isfinite(self.y)):
            raise InvalidPatternError(f"stitch coordinates must be finite, got ({self.x}, {self.y})")
        object.__setattr__(self, "command", int(self.command) & 0xFFFF_FFFF)

    @property
    def action(self) -> int:
        return self.command & COMMAND_MASK

    @property
    def thread(self) -> Optional[int]:
        return decode_command(self.command).thread

    @property
    def needle(self) -> Optional[int]:
        return decode_command(self.command).needle

    @property
    def order(self) -> Optional[int]:
        return decode_command(self.command).order

    def distance_to(self, other: Stitch) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def relative_to(self, other: Stitch) -> tuple[float, float]:
        """Offset (dx, dy) from other to this stitch."""
        return (self.x - other.x, self.y - other.y)

    def with_position(self, x: float, y: float) -> Stitch:
        return Stitch(x, y, self.command)

    def with_action(self, action: int) -> Stitch:
        return Stitch(self.x, self.y, with_action(self.command, action))
