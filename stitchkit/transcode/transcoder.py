"""
Transcoder: turns a source pattern into one a specific format can encode.

One call walks these states:

    IDLE → TRANSFORMING → SPLITTING → ROUNDING → DONE   (FAILED on error)

TRANSFORMING
    Maps every coordinate, and the pattern's start position, through the
    configured AffineTransform. The transform's inverse is only computed
    when inverse_transform is first read, so a projection (a singular
    transform) can still be applied; reading its inverse raises.

SPLITTING
    A single walk over the transformed stitches, measuring each entry from
    the previous emitted position (the first from the start position):

    - SEQUIN_MODE / SEQUIN_EJECT are resolved first by sequin_contingency,
      so a sequin rewritten to a STITCH or JUMP is length-checked as one.
    - A STITCH longer than max_stitch is handled by long_stitch_contingency.
    - A JUMP longer than max_jump is always split into shorter jumps.
    - A move needing more than MAX_SEGMENTS pieces raises RangeExceededError.
    - SLOW / FAST are dropped unless writes_speeds is set.
    - Thread changes are rewritten per thread_change_command, and with
      explicit_trim a TRIM is placed before any change not already
      preceded by one.

ROUNDING
    Rounds coordinates to whole 0.1 mm units when settings.round is set.

The source pattern is never mutated, and a failure never yields a partial
destination pattern.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from enum import Enum
from typing import Optional

from stitchkit.core.commands import Action, decode_command, encode_command, is_thread_change
from stitchkit.core.errors import InvalidPatternError, StitchkitError
from stitchkit.core.matrix import AffineTransform
from stitchkit.core.pattern import Pattern, split_segment_count
from stitchkit.core.stitch import Stitch

from .settings import EncoderSettings, LongStitchContingency, SequinContingency, ThreadChangeCommand

logger = logging.getLogger(__name__)

_SequinHandler = Callable[[Stitch], Optional[Stitch]]

_SEQUIN_ACTIONS = frozenset({Action.SEQUIN_MODE, Action.SEQUIN_EJECT})
_SPEED_ACTIONS = frozenset({Action.SLOW, Action.FAST})


class TranscodeState(str, Enum):
    IDLE = "idle"
    TRANSFORMING = "transforming"
    SPLITTING = "splitting"
    ROUNDING = "rounding"
    DONE = "done"
    FAILED = "failed"


# ── Sequin contingencies ───────────────────────────────────────────────────────


def _sequin_keep(s: Stitch) -> Optional[Stitch]:
    return s


def _sequin_to_jump(s: Stitch) -> Optional[Stitch]:
    return s.with_action(Action.JUMP)


def _sequin_to_stitch(s: Stitch) -> Optional[Stitch]:
    return s.with_action(Action.STITCH)


def _sequin_remove(s: Stitch) -> Optional[Stitch]:
    return None


_SEQUIN_DISPATCH: dict[SequinContingency, _SequinHandler] = {
    SequinContingency.KEEP: _sequin_keep,
    SequinContingency.CONVERT_TO_JUMP: _sequin_to_jump,
    SequinContingency.CONVERT_TO_STITCH: _sequin_to_stitch,
    SequinContingency.REMOVE: _sequin_remove,
}


# ── Geometry helpers ───────────────────────────────────────────────────────────


def _interpolate(x0: float, y0: float, x1: float, y1: float, segments: int) -> list[tuple[float, float]]:
    """The segments - 1 evenly spaced interior points from (x0, y0) to (x1, y1)."""
    dx, dy = x1 - x0, y1 - y0
    return [(x0 + dx * k / segments, y0 + dy * k / segments) for k in range(1, segments)]


class Transcoder:
    """
    Applies one EncoderSettings (and an optional transform) to patterns.

    Attributes:
        settings: Constraints to enforce.
        transform: Transform applied to every coordinate, or None.
        inverse_transform: Inverse of transform, computed when first read.
        state: Current TranscodeState; DONE or FAILED after a call returns.
    """

    def __init__(
        self,
        settings: Optional[EncoderSettings] = None,
        transform: Optional[AffineTransform] = None,
    ) -> None:
        self.settings = settings if settings is not None else EncoderSettings()
        self.transform = transform
        self.state = TranscodeState.IDLE
        self._counts: dict[str, int] = {}
        self._inverse: Optional[tuple[tuple[float, ...], AffineTransform]] = None

    @property
    def inverse_transform(self) -> Optional[AffineTransform]:
        """
        Inverse of transform (None without one), computed on first access.

        Raises:
            SingularMatrixError: If the transform is not invertible.
        """
        if self.transform is None:
            return None
        if self._inverse is None or self._inverse[0] != self.transform.values:
            self._inverse = (self.transform.values, self.transform.inverse())
        return self._inverse[1]

    def transcode(self, source: Pattern) -> Pattern:
        """
        Return a new pattern satisfying self.settings.

        Raises:
            InvalidPatternError: If the source fails validation, or a
                NEEDLE_SET design needs more needles than needle_count and
                needle_remap is off.
            RangeExceededError: If splitting one move would take more than
                MAX_SEGMENTS pieces.
        """
        self.state = TranscodeState.IDLE
        self._counts = {"split": 0, "sequins": 0, "trims": 0, "dropped": 0}
        try:
            destination = self._run(source)
        except StitchkitError:
            self.state = TranscodeState.FAILED
            raise
        self.state = TranscodeState.DONE
        logger.debug(
            "transcoded %d entries into %d (split=%d sequins=%d trims=%d dropped=%d)",
            len(source),
            len(destination),
            self._counts["split"],
            self._counts["sequins"],
            self._counts["trims"],
            self._counts["dropped"],
        )
        return destination

    def _run(self, source: Pattern) -> Pattern:
        source.validate()

        self.state = TranscodeState.TRANSFORMING
        stitches = list(source.stitches)
        start = source.start_position
        if self.transform is not None and not self.transform.is_identity():
            points = self.transform.transform_points([(s.x, s.y) for s in stitches])
            stitches = [Stitch(float(x), float(y), s.command) for (x, y), s in zip(points, stitches)]
            start = self.transform.transform_point(*start)

        self.state = TranscodeState.SPLITTING
        out = self._walk(stitches, start)

        self.state = TranscodeState.ROUNDING
        if self.settings.round:
            out = [Stitch(float(round(s.x)), float(round(s.y)), s.command) for s in out]
            start = (float(round(start[0])), float(round(start[1])))

        destination = Pattern(out, source.threads, dict(source.metadata), start)
        if source.color_grouping is not None:
            destination.color_grouping = source.copy().color_grouping
        return destination

    # ── Splitting walk ─────────────────────────────────────────────────────────

    def _walk(self, stitches: list[Stitch], start: tuple[float, float]) -> list[Stitch]:
        settings = self.settings
        sequin = _SEQUIN_DISPATCH[settings.sequin_contingency]
        out: list[Stitch] = []
        prev_x, prev_y = start
        thread_cursor = 0

        for index, s in enumerate(stitches):
            if s.action in _SEQUIN_ACTIONS:
                self._counts["sequins"] += 1
                resolved = sequin(s)
                if resolved is None:
                    continue
                s = resolved

            action = s.action
            length = math.hypot(s.x - prev_x, s.y - prev_y)

            if action == Action.STITCH and length > settings.max_stitch:
                self._counts["split"] += 1
                self._emit_long_stitch(out, prev_x, prev_y, s, length, index)
            elif action == Action.JUMP and length > settings.max_jump:
                self._counts["split"] += 1
                self._emit_jumps(out, prev_x, prev_y, s.x, s.y, length, index)
                out.append(s)
            elif action in _SPEED_ACTIONS and not settings.writes_speeds:
                self._counts["dropped"] += 1
                continue
            elif is_thread_change(s.command):
                thread_cursor += 1
                if settings.explicit_trim and not (out and out[-1].action == Action.TRIM):
                    self._counts["trims"] += 1
                    out.append(Stitch(prev_x, prev_y, Action.TRIM))
                out.append(self._thread_change(s, thread_cursor, index))
            else:
                out.append(s)
            prev_x, prev_y = s.x, s.y
        return out

    def _emit_jumps(
        self, out: list[Stitch], x0: float, y0: float, x1: float, y1: float, length: float, index: int
    ) -> None:
        """Append the interior jumps of a move from (x0, y0) to (x1, y1)."""
        segments = split_segment_count(length, self.settings.max_jump, index)
        out.extend(Stitch(x, y, Action.JUMP) for x, y in _interpolate(x0, y0, x1, y1, segments))

    def _emit_long_stitch(
        self, out: list[Stitch], x0: float, y0: float, s: Stitch, length: float, index: int
    ) -> None:
        if self.settings.long_stitch_contingency is LongStitchContingency.SPLIT_INTO_SEGMENTS:
            segments = split_segment_count(length, self.settings.max_stitch, index)
            out.extend(Stitch(x, y, Action.STITCH) for x, y in _interpolate(x0, y0, s.x, s.y, segments))
            out.append(s)
            return
        # JUMP_THEN_STITCH: travel with jumps, then a zero-length stitch carrying the command
        self._emit_jumps(out, x0, y0, s.x, s.y, length, index)
        out.append(Stitch(s.x, s.y, Action.JUMP))
        out.append(s)

    def _thread_change(self, s: Stitch, cursor: int, index: int) -> Stitch:
        settings = self.settings
        fields = decode_command(s.command)
        if settings.thread_change_command is ThreadChangeCommand.COLOR_CHANGE:
            return Stitch(s.x, s.y, encode_command(Action.COLOR_CHANGE, fields.thread, fields.needle, fields.order))
        needle = cursor
        if needle >= settings.needle_count:
            if not settings.needle_remap:
                raise InvalidPatternError(
                    f"thread change {cursor} needs needle {needle + 1} but only "
                    f"{settings.needle_count} are available",
                    index=index,
                )
            needle %= settings.needle_count
        return Stitch(s.x, s.y, encode_command(Action.NEEDLE_SET, fields.thread, needle, fields.order))


def transcode(
    source: Pattern,
    settings: Optional[EncoderSettings] = None,
    transform: Optional[AffineTransform] = None,
) -> Pattern:
    """Transcode source with a one-off Transcoder."""
    return Transcoder(settings, transform).transcode(source)
