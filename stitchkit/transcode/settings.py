"""
Encoder settings: the per-format physical constraints a transcode enforces.

Settings are frozen and validated on construction. Format defaults come
from the format registry (see stitchkit.formats.registry.encoder_settings_for).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class LongStitchContingency(str, Enum):
    """What to do with a stitch longer than max_stitch."""

    JUMP_THEN_STITCH = "jump_then_stitch"  # move there with jumps, then a zero-length stitch
    SPLIT_INTO_SEGMENTS = "split_into_segments"  # evenly spaced intermediate stitches


class SequinContingency(str, Enum):
    """What to do with SEQUIN_MODE / SEQUIN_EJECT for formats without sequins."""

    KEEP = "keep"
    CONVERT_TO_JUMP = "convert_to_jump"
    CONVERT_TO_STITCH = "convert_to_stitch"
    REMOVE = "remove"


class ThreadChangeCommand(str, Enum):
    """How a format expresses a thread change."""

    COLOR_CHANGE = "color_change"
    NEEDLE_SET = "needle_set"


@dataclass(frozen=True)
class EncoderSettings:
    """
    Constraints applied by one transcode call.

    Lengths are in 0.1 mm units. Infinite limits mean "no limit".
    needle_remap selects the policy when a NEEDLE_SET design uses more
    threads than needle_count: False fails, True cycles needles modulo
    needle_count.
    """

    max_stitch: float = math.inf
    max_jump: float = math.inf
    needle_count: int = 5
    thread_change_command: ThreadChangeCommand = ThreadChangeCommand.COLOR_CHANGE
    explicit_trim: bool = False
    round: bool = False
    long_stitch_contingency: LongStitchContingency = LongStitchContingency.SPLIT_INTO_SEGMENTS
    sequin_contingency: SequinContingency = SequinContingency.CONVERT_TO_JUMP
    writes_speeds: bool = True
    needle_remap: bool = False

    def __post_init__(self) -> None:
        for name in ("max_stitch", "max_jump"):
            value = getattr(self, name)
            if math.isnan(value) or value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.needle_count < 1:
            raise ValueError(f"needle_count must be at least 1, got {self.needle_count}")
        # Accept plain strings from YAML or callers
        object.__setattr__(self, "thread_change_command", ThreadChangeCommand(self.thread_change_command))
        object.__setattr__(self, "long_stitch_contingency", LongStitchContingency(self.long_stitch_contingency))
        object.__setattr__(self, "sequin_contingency", SequinContingency(self.sequin_contingency))
