"""
Pattern: the canonical in-memory embroidery design.

A pattern owns an ordered stitch sequence (insertion order is execution
order), an ordered thread list referenced by index, and a string metadata
map. It also tracks the last absolute position so readers can append
relative moves, and the start position (the origin until a transform moves
it) where the needle sits before the first entry.

Readers populate a pattern only through the construction API
(add_stitch_relative / add_stitch_absolute / add_command / add_thread /
set_metadata); writers serialize only from the query API (stitches,
threads, bounds, metadata).

Conventions
-----------
- bounds() of an empty pattern is (0.0, 0.0, 0.0, 0.0). A non-empty
  pattern's bounds cover every entry plus the start position.
- Length metrics count STITCH segments only. Each STITCH is measured from
  the entry before it, of any action; the first entry is measured from the
  start position. average_stitch_length() divides by count_stitches().
- Filtering operations (remove_duplicates, split_long_stitches,
  interpolate_*) replace the stitch sequence wholesale.
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Iterator, Optional, Sequence, Union

from .color_group import ColorGroup, ThreadGrouping, auto_group_by_similarity
from .commands import Action, decode_command
from .errors import InvalidPatternError, RangeExceededError
from .matrix import AffineTransform
from .stitch import Stitch
from .thread import Thread

Bounds = tuple[float, float, float, float]

_EMPTY_BOUNDS: Bounds = (0.0, 0.0, 0.0, 0.0)

# Upper bound on the segments one stitch may be split into.
MAX_SEGMENTS = 10_000


def split_segment_count(length: float, limit: float, index: int) -> int:
    """
    Segments needed so that no piece of a move of `length` exceeds `limit`.

    Raises:
        RangeExceededError: If that takes more than MAX_SEGMENTS segments.
    """
    segments = max(1, math.ceil(length / limit))
    if segments > MAX_SEGMENTS:
        raise RangeExceededError(
            f"splitting a move of {length:g} at limit {limit:g} needs {segments} segments, "
            f"more than {MAX_SEGMENTS}",
            index=index,
        )
    return segments


class Pattern:
    """Ordered stitches, ordered threads and free-form metadata."""

    def __init__(
        self,
        stitches: Sequence[Stitch] = (),
        threads: Sequence[Thread] = (),
        metadata: Optional[dict[str, str]] = None,
        start: tuple[float, float] = (0.0, 0.0),
    ) -> None:
        self._stitches: list[Stitch] = list(stitches)
        self._threads: list[Thread] = list(threads)
        self._metadata: dict[str, str] = dict(metadata or {})
        self._start_x, self._start_y = start
        self._last_x, self._last_y = start
        if self._stitches:
            self._last_x, self._last_y = self._stitches[-1].x, self._stitches[-1].y
        self.color_grouping: Optional[ThreadGrouping] = None

    def __len__(self) -> int:
        return len(self._stitches)

    def __iter__(self) -> Iterator[Stitch]:
        return iter(self._stitches)

    def __repr__(self) -> str:
        return f"Pattern(stitches={len(self._stitches)}, threads={len(self._threads)})"

    # ── Construction ───────────────────────────────────────────────────────────

    def add_stitch_absolute(self, command: int, x: float, y: float) -> None:
        """Append at (x, y) and move the last position there."""
        self._stitches.append(Stitch(x, y, command))
        self._last_x, self._last_y = x, y

    def add_stitch_relative(self, dx: float, dy: float, command: int = Action.STITCH) -> None:
        """Append at last_position + (dx, dy) and advance the last position."""
        self.add_stitch_absolute(command, self._last_x + dx, self._last_y + dy)

    def add_command(self, command: int, x: Optional[float] = None, y: Optional[float] = None) -> None:
        """Append a command without moving the last position.

        x and y default to the current last position.
        """
        self._stitches.append(
            Stitch(self._last_x if x is None else x, self._last_y if y is None else y, command)
        )

    def add_thread(self, thread: Union[Thread, str]) -> int:
        """Append a thread (or a color string) and return its index."""
        if isinstance(thread, str):
            thread = Thread.from_string(thread)
        self._threads.append(thread)
        return len(self._threads) - 1

    def replace_threads(self, threads: Sequence[Thread]) -> None:
        """Swap in a new thread list; stitches keep their thread indices."""
        self._threads = list(threads)

    def set_metadata(self, key: str, value: str) -> None:
        self._metadata[key] = value

    def get_metadata(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._metadata.get(key, default)

    def stitch(self, dx: float, dy: float) -> None:
        self.add_stitch_relative(dx, dy, Action.STITCH)

    def stitch_abs(self, x: float, y: float) -> None:
        self.add_stitch_absolute(Action.STITCH, x, y)

    def jump(self, dx: float, dy: float) -> None:
        self.add_stitch_relative(dx, dy, Action.JUMP)

    def jump_abs(self, x: float, y: float) -> None:
        self.add_stitch_absolute(Action.JUMP, x, y)

    def trim(self) -> None:
        self.add_stitch_relative(0.0, 0.0, Action.TRIM)

    def stop(self) -> None:
        self.add_stitch_relative(0.0, 0.0, Action.STOP)

    def end(self) -> None:
        self.add_stitch_relative(0.0, 0.0, Action.END)

    def color_change(self, dx: float = 0.0, dy: float = 0.0) -> None:
        self.add_stitch_relative(dx, dy, Action.COLOR_CHANGE)

    # ── Queries ────────────────────────────────────────────────────────────────

    @property
    def stitches(self) -> tuple[Stitch, ...]:
        return tuple(self._stitches)

    @property
    def threads(self) -> tuple[Thread, ...]:
        return tuple(self._threads)

    @property
    def metadata(self) -> MappingProxyType[str, str]:
        return MappingProxyType(self._metadata)

    @property
    def last_position(self) -> tuple[float, float]:
        return (self._last_x, self._last_y)

    @property
    def start_position(self) -> tuple[float, float]:
        return (self._start_x, self._start_y)

    def bounds(self) -> Bounds:
        """(min_x, min_y, max_x, max_y) over every entry and the start position; all zero when empty."""
        if not self._stitches:
            return _EMPTY_BOUNDS
        xs = [self._start_x] + [s.x for s in self._stitches]
        ys = [self._start_y] + [s.y for s in self._stitches]
        return (min(xs), min(ys), max(xs), max(ys))

    @property
    def width(self) -> float:
        min_x, _, max_x, _ = self.bounds()
        return max_x - min_x

    @property
    def height(self) -> float:
        _, min_y, _, max_y = self.bounds()
        return max_y - min_y

    def _count(self, action: Action) -> int:
        return sum(1 for s in self._stitches if s.action == action)

    def count_stitches(self) -> int:
        return self._count(Action.STITCH)

    def count_jumps(self) -> int:
        return self._count(Action.JUMP)

    def count_trims(self) -> int:
        return self._count(Action.TRIM)

    def count_color_changes(self) -> int:
        return self._count(Action.COLOR_CHANGE)

    def _stitch_lengths(self) -> Iterator[float]:
        prev_x, prev_y = self._start_x, self._start_y
        for s in self._stitches:
            if s.action == Action.STITCH:
                yield math.hypot(s.x - prev_x, s.y - prev_y)
            prev_x, prev_y = s.x, s.y

    def total_stitch_length(self) -> float:
        return math.fsum(self._stitch_lengths())

    def average_stitch_length(self) -> float:
        count = self.count_stitches()
        return self.total_stitch_length() / count if count else 0.0

    def max_stitch_length(self) -> float:
        return max(self._stitch_lengths(), default=0.0)

    def iter_color_blocks(self) -> Iterator[tuple[list[tuple[float, float]], Thread]]:
        """
        Yield (points, thread) for each run of STITCH entries.

        Any non-stitch command closes the current run; COLOR_CHANGE also
        advances the thread cursor. Runs past the end of the thread list get
        a generated filler color.
        """
        block: list[tuple[float, float]] = []
        cursor = 0
        for s in self._stitches:
            if s.action == Action.STITCH:
                block.append((s.x, s.y))
                continue
            if block:
                yield block, self._thread_or_filler(cursor)
                block = []
            if s.action == Action.COLOR_CHANGE:
                cursor += 1
        if block:
            yield block, self._thread_or_filler(cursor)

    def _thread_or_filler(self, index: int) -> Thread:
        if index < len(self._threads):
            return self._threads[index]
        return Thread.from_rgb((index * 37) % 256, (index * 91) % 256, (index * 173) % 256)

    def validate(self) -> None:
        """
        Check structural invariants.

        Raises:
            InvalidPatternError: For a non-finite coordinate, an explicit
                thread slot beyond the thread list, or (when the pattern has
                threads) a color change that moves the thread cursor past the
                end of the list. The error carries the stitch index.
        """
        cursor = 0
        for i, s in enumerate(self._stitches):
            if not (math.isfinite(s.x) and math.isfinite(s.y)):
                raise InvalidPatternError(f"non-finite coordinate ({s.x}, {s.y})", index=i)
            slot = decode_command(s.command).thread
            if slot is not None and slot >= len(self._threads):
                raise InvalidPatternError(
                    f"thread slot {slot} exceeds thread list of {len(self._threads)}", index=i
                )
            if s.action == Action.COLOR_CHANGE:
                cursor += 1
                if self._threads and cursor >= len(self._threads):
                    raise InvalidPatternError(
                        f"color change {cursor} exceeds thread list of {len(self._threads)}", index=i
                    )

    def copy(self) -> Pattern:
        """Independent copy; stitches and threads are immutable so a shallow copy suffices."""
        other = Pattern(self._stitches, self._threads, self._metadata, self.start_position)
        other._last_x, other._last_y = self._last_x, self._last_y
        if self.color_grouping is not None:
            grouping = ThreadGrouping()
            grouping.default_group_name = self.color_grouping.default_group_name
            for g in self.color_grouping.groups.values():
                grouping.add_group(
                    ColorGroup(
                        g.name,
                        description=g.description,
                        thread_indices=set(g.thread_indices),
                        parent_group=g.parent_group,
                        metadata=dict(g.metadata),
                        display_order=g.display_order,
                        visible=g.visible,
                        locked=g.locked,
                    )
                )
            other.color_grouping = grouping
        return other

    # ── Geometry ───────────────────────────────────────────────────────────────

    def translate(self, dx: float, dy: float) -> None:
        """Shift every entry, the start and the last position by (dx, dy), in place."""
        if not (math.isfinite(dx) and math.isfinite(dy)):
            raise InvalidPatternError(f"translation must be finite, got ({dx}, {dy})")
        self._stitches = [Stitch(s.x + dx, s.y + dy, s.command) for s in self._stitches]
        self._start_x += dx
        self._start_y += dy
        self._last_x += dx
        self._last_y += dy

    def move_center_to_origin(self) -> None:
        """Translate so the bounds center (rounded to whole units) sits at the origin."""
        min_x, min_y, max_x, max_y = self.bounds()
        self.translate(-round((min_x + max_x) / 2), -round((min_y + max_y) / 2))

    def apply_transform(self, transform: AffineTransform) -> None:
        """Map every entry, the start and the last position through transform."""
        if self._stitches:
            points = transform.transform_points([(s.x, s.y) for s in self._stitches])
            self._stitches = [
                Stitch(float(x), float(y), s.command) for (x, y), s in zip(points, self._stitches)
            ]
        self._start_x, self._start_y = transform.transform_point(self._start_x, self._start_y)
        self._last_x, self._last_y = transform.transform_point(self._last_x, self._last_y)

    def rotate(self, degrees: float, cx: float = 0.0, cy: float = 0.0) -> None:
        """Rotate counter-clockwise about (cx, cy)."""
        self.apply_transform(AffineTransform().rotate(degrees, cx, cy))

    def scale(self, sx: float, sy: Optional[float] = None, cx: float = 0.0, cy: float = 0.0) -> None:
        if sy is None:
            sy = sx
        if sx == 0 or sy == 0:
            raise ValueError(f"scale factors must be non-zero, got ({sx}, {sy})")
        self.apply_transform(AffineTransform().scale(sx, sy, cx, cy))

    def flip_horizontal(self) -> None:
        """Mirror across the y axis (x -> -x)."""
        self.apply_transform(AffineTransform().scale(-1.0, 1.0))

    def flip_vertical(self) -> None:
        """Mirror across the x axis (y -> -y)."""
        self.apply_transform(AffineTransform().scale(1.0, -1.0))

    # ── Filters ────────────────────────────────────────────────────────────────

    def split_long_stitches(self, max_length: float) -> None:
        """
        Break every STITCH longer than max_length into equal STITCH segments.

        A stitch of length L becomes ceil(L / max_length) segments; the last
        one keeps the original command word. The first entry is measured from
        the start position. Other actions pass through unchanged.

        Raises:
            InvalidPatternError: If max_length is not a positive finite number.
            RangeExceededError: If a stitch would need more than MAX_SEGMENTS
                segments; the pattern is left unchanged.
        """
        if not math.isfinite(max_length) or max_length <= 0:
            raise InvalidPatternError(f"max_length must be positive and finite, got {max_length}")
        result: list[Stitch] = []
        prev_x, prev_y = self._start_x, self._start_y
        for i, s in enumerate(self._stitches):
            dx, dy = s.x - prev_x, s.y - prev_y
            length = math.hypot(dx, dy)
            if s.action == Action.STITCH and length > max_length:
                segments = split_segment_count(length, max_length, i)
                for k in range(1, segments):
                    result.append(Stitch(prev_x + dx * k / segments, prev_y + dy * k / segments, Action.STITCH))
            result.append(s)
            prev_x, prev_y = s.x, s.y
        self._stitches = result

    def remove_duplicates(self) -> None:
        """Collapse runs of identical (x, y, command) entries to their first entry."""
        result: list[Stitch] = []
        for s in self._stitches:
            if not result or result[-1] != s:
                result.append(s)
        self._stitches = result

    def interpolate_trims(self, trim_at: int, trim_distance: Optional[float] = None) -> None:
        """
        Replace every trim_at-th consecutive JUMP with a TRIM.

        Formats without a trim command encode one as a burst of jumps; this
        recovers the TRIM. With trim_distance set, the replacement only happens
        when the jump lands at least that far from the previous entry.
        """
        if trim_at < 1:
            raise ValueError(f"trim_at must be at least 1, got {trim_at}")
        result: list[Stitch] = []
        run = 0
        for s in self._stitches:
            if s.action != Action.JUMP:
                run = 0
                result.append(s)
                continue
            run += 1
            if run >= trim_at:
                far_enough = (
                    trim_distance is None or not result or s.distance_to(result[-1]) >= trim_distance
                )
                if far_enough:
                    result.append(s.with_action(Action.TRIM))
                    run = 0
                    continue
            result.append(s)
        self._stitches = result

    def interpolate_duplicate_color_as_stop(self) -> None:
        """Turn a COLOR_CHANGE immediately followed by another COLOR_CHANGE into a STOP."""
        result: list[Stitch] = []
        for s in self._stitches:
            if s.action == Action.COLOR_CHANGE and result and result[-1].action == Action.COLOR_CHANGE:
                result[-1] = result[-1].with_action(Action.STOP)
            result.append(s)
        self._stitches = result

    # ── Color groups ───────────────────────────────────────────────────────────

    def init_color_grouping(self, default_group_name: Optional[str] = None) -> ThreadGrouping:
        if self.color_grouping is None:
            self.color_grouping = ThreadGrouping(default_group_name)
        return self.color_grouping

    def _require_grouping(self) -> ThreadGrouping:
        if self.color_grouping is None:
            raise ValueError("color grouping is not initialized")
        return self.color_grouping

    def add_color_group(self, group: ColorGroup) -> None:
        self.init_color_grouping().add_group(group)

    def add_thread_to_group(self, group_name: str, thread_index: int) -> bool:
        if not (0 <= thread_index < len(self._threads)):
            raise InvalidPatternError(
                f"thread index {thread_index} out of range for {len(self._threads)} threads"
            )
        return self._require_grouping().add_thread_to_group(group_name, thread_index)

    def get_threads_by_group(self, group_name: str) -> list[tuple[int, Thread]]:
        group = self._require_grouping().get_group(group_name)
        return [(i, self._threads[i]) for i in group.sorted_indices() if i < len(self._threads)]

    def find_groups_for_thread(self, thread_index: int) -> list[str]:
        if self.color_grouping is None:
            return []
        return self.color_grouping.find_groups_with_thread(thread_index)

    def assign_ungrouped_to_default(self) -> int:
        return self._require_grouping().assign_to_default_group(len(self._threads))

    def auto_group_by_color_similarity(self, threshold: float, prefix: str = "Group") -> None:
        """Replace the grouping with greedy similarity groups (see auto_group_by_similarity)."""
        groups = auto_group_by_similarity(self._threads, threshold, prefix)
        grouping = ThreadGrouping()
        for g in groups:
            grouping.add_group(g)
        self.color_grouping = grouping
