"""
Tajima DST reader and writer.

Layout: a 512-byte text header of CR-terminated ``XX:value`` lines ended by
0x1A and padded with spaces, then 3-byte records. Each record carries a
balanced-ternary dx/dy (±121 per axis, y pointing down) in the
stitchkit.codec.ternary TAJIMA layouts, and control bits in byte 2:

    b2 & 0xF3 == 0xF3   END
    b2 & 0xC3 == 0xC3   COLOR_CHANGE
    b2 & 0x43 == 0x43   SEQUIN_MODE (toggles sequin mode)
    b2 & 0x83 == 0x83   JUMP, or SEQUIN_EJECT while in sequin mode
    otherwise           STITCH

DST has no trim record; a TRIM is written as a burst of tiny jumps that
cancel out, and on reading every trim_at-th consecutive jump becomes a TRIM.

Options (both directions): ``trim_at`` (default 3). Reader only:
``trim_distance`` in mm. Writer only: ``extended_header`` (write AU/CP/TC
lines, default False).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Mapping
from typing import Any, BinaryIO

from stitchkit.codec.ternary import TAJIMA_X, TAJIMA_Y, decode_pair, encode_pair
from stitchkit.core.commands import Action
from stitchkit.core.errors import CorruptDataError, TruncatedDataError
from stitchkit.core.pattern import Pattern
from stitchkit.core.thread import Thread, parse_color

from .registry import register_handlers

logger = logging.getLogger(__name__)

HEADER_SIZE: int = 512
RECORD_SIZE: int = 3
MAX_DELTA: int = TAJIMA_X.max_magnitude  # 121
DEFAULT_TRIM_AT: int = 3

_END_OF_TEXT = 0x1A

_CONTROL_END = 0b1111_0011
_CONTROL_COLOR = 0b1100_0011
_CONTROL_SEQUIN_MODE = 0b0100_0011
_CONTROL_JUMP = 0b1000_0011
_CONTROL_MOVE = 0b0000_0011

# Header fields the writer derives from the stitches; not kept as metadata.
_COMPUTED_FIELDS = frozenset({"ST", "CO", "+X", "-X", "+Y", "-Y", "AX", "AY", "MX", "MY", "PD"})
_METADATA_FIELDS = {"LA": "name", "AU": "author", "CP": "copyright"}


# ── Reading ────────────────────────────────────────────────────────────────────


def _parse_thread(value: str) -> Thread:
    parts = [p.strip() for p in value.split(",")]
    color = parse_color(parts[0]) if parts[0] else 0x000000
    return Thread(
        color,
        description=parts[1] if len(parts) > 1 and parts[1] else None,
        catalog_number=parts[2] if len(parts) > 2 and parts[2] else None,
    )


def _read_header(header: bytes, pattern: Pattern) -> None:
    text = header.split(bytes([_END_OF_TEXT]), 1)[0].decode("latin-1")
    if not any(marker in text[:32] for marker in ("LA:", "ST:", "CO:")):
        printable = sum(1 for b in header[:32] if 32 <= b < 127 or b in (0, 10, 13))
        if printable < 24:
            raise CorruptDataError("not a DST header", offset=0)
    for line in text.replace("\n", "\r").split("\r"):
        line = line.strip()
        if len(line) <= 3 or line[2] != ":":
            continue
        prefix, value = line[:2].strip(), line[3:].strip()
        if prefix in _METADATA_FIELDS:
            pattern.set_metadata(_METADATA_FIELDS[prefix], value)
        elif prefix == "TC":
            pattern.add_thread(_parse_thread(value))
        elif prefix not in _COMPUTED_FIELDS:
            logger.warning("unknown DST header field %r kept as metadata", prefix)
            pattern.set_metadata(prefix, value)


def read(stream: BinaryIO, pattern: Pattern, options: Mapping[str, Any]) -> None:
    """Read a DST design from stream into pattern."""
    header = stream.read(HEADER_SIZE)
    if len(header) < HEADER_SIZE:
        raise TruncatedDataError(f"DST header needs {HEADER_SIZE} bytes", offset=len(header))
    _read_header(header, pattern)

    data = stream.read()
    sequin_mode = False
    offset = 0
    while offset + RECORD_SIZE <= len(data):
        dx, dy = decode_pair(data, TAJIMA_X, TAJIMA_Y, offset)
        dy = -dy
        control = data[offset + 2]
        offset += RECORD_SIZE
        if control & _CONTROL_END == _CONTROL_END:
            break
        if control & _CONTROL_COLOR == _CONTROL_COLOR:
            pattern.color_change(dx, dy)
        elif control & _CONTROL_SEQUIN_MODE == _CONTROL_SEQUIN_MODE:
            pattern.add_stitch_relative(dx, dy, Action.SEQUIN_MODE)
            sequin_mode = not sequin_mode
        elif control & _CONTROL_JUMP == _CONTROL_JUMP:
            pattern.add_stitch_relative(dx, dy, Action.SEQUIN_EJECT if sequin_mode else Action.JUMP)
        else:
            pattern.stitch(dx, dy)
    else:
        if offset < len(data):
            logger.warning("DST data ends with a partial %d-byte record", len(data) - offset)
    pattern.end()

    trim_distance = options.get("trim_distance")
    pattern.interpolate_trims(
        int(options.get("trim_at", DEFAULT_TRIM_AT)),
        None if trim_distance is None else float(trim_distance) * 10.0,
    )


# ── Writing ────────────────────────────────────────────────────────────────────


def _steps(dx: int, dy: int) -> Iterator[tuple[int, int]]:
    """Break (dx, dy) into per-axis steps of at most MAX_DELTA."""
    count = max(1, math.ceil(max(abs(dx), abs(dy)) / MAX_DELTA))
    done_x = done_y = 0
    for k in range(1, count + 1):
        tx, ty = round(dx * k / count), round(dy * k / count)
        yield tx - done_x, ty - done_y
        done_x, done_y = tx, ty


def _record(dx: int, dy: int, control: int) -> bytes:
    buf = encode_pair(dx, -dy, TAJIMA_X, TAJIMA_Y)
    buf[2] |= control
    return bytes(buf)


def _trim_records(trim_at: int) -> list[bytes]:
    """Jumps of +2, -4, +4 ... -2 that return to where they started."""
    records = [_record(2, 2, _CONTROL_JUMP)]
    delta = -4
    for _ in range(trim_at - 2):
        records.append(_record(delta, delta, _CONTROL_JUMP))
        delta = -delta
    records.append(_record(delta // 2, delta // 2, _CONTROL_JUMP))
    return records


def _encode_records(pattern: Pattern, trim_at: int) -> list[bytes]:
    records: list[bytes] = []
    x = y = 0
    ended = False
    for s in pattern.stitches:
        tx, ty = round(s.x), round(s.y)
        dx, dy = tx - x, ty - y
        x, y = tx, ty
        action = s.action

        if action in (Action.STITCH, Action.JUMP, Action.SEQUIN_EJECT):
            control = _CONTROL_MOVE if action == Action.STITCH else _CONTROL_JUMP
            records.extend(_record(sx, sy, control) for sx, sy in _steps(dx, dy))
            continue

        # Commands carry no movement; travel with jumps first.
        if dx or dy:
            records.extend(_record(sx, sy, _CONTROL_JUMP) for sx, sy in _steps(dx, dy))
        if action == Action.TRIM:
            records.extend(_trim_records(trim_at))
        elif action in (Action.COLOR_CHANGE, Action.STOP, Action.NEEDLE_SET):
            records.append(bytes([0, 0, _CONTROL_COLOR]))
        elif action == Action.SEQUIN_MODE:
            records.append(bytes([0, 0, _CONTROL_SEQUIN_MODE]))
        elif action == Action.END:
            records.append(bytes([0, 0, _CONTROL_END]))
            ended = True
            break
    if not ended:
        records.append(bytes([0, 0, _CONTROL_END]))
    return records


def _header(pattern: Pattern, record_count: int, extended: bool) -> bytes:
    min_x, min_y, max_x, max_y = pattern.bounds()
    last_x, last_y = (round(pattern.stitches[-1].x), -round(pattern.stitches[-1].y)) if len(pattern) else (0, 0)
    lines = [
        f"LA:{pattern.get_metadata('name', 'Untitled')[:16]:<16}",
        f"ST:{record_count:>7}",
        f"CO:{pattern.count_color_changes():>3}",
        f"+X:{abs(round(max_x)):>5}",
        f"-X:{abs(round(min_x)):>5}",
        f"+Y:{abs(round(max_y)):>5}",
        f"-Y:{abs(round(min_y)):>5}",
        f"AX:{'+' if last_x >= 0 else '-'}{abs(last_x):>5}",
        f"AY:{'+' if last_y >= 0 else '-'}{abs(last_y):>5}",
        f"MX:+{0:>5}",
        f"MY:+{0:>5}",
        f"PD:{'******':>6}",
    ]
    if extended:
        for prefix, key in (("AU", "author"), ("CP", "copyright")):
            value = pattern.get_metadata(key)
            if value is not None:
                lines.append(f"{prefix}:{value}")
        for t in pattern.threads:
            lines.append(f"TC:{t.hex_color},{t.description or ''},{t.catalog_number or ''}")
    text = "".join(f"{line}\r" for line in lines).encode("latin-1", errors="replace")
    text += bytes([_END_OF_TEXT])
    if len(text) > HEADER_SIZE:
        logger.warning("DST header text truncated to %d bytes", HEADER_SIZE)
        text = text[: HEADER_SIZE - 1] + bytes([_END_OF_TEXT])
    return text.ljust(HEADER_SIZE, b" ")


def write(pattern: Pattern, stream: BinaryIO, options: Mapping[str, Any]) -> None:
    """Write pattern to stream as DST."""
    trim_at = int(options.get("trim_at", DEFAULT_TRIM_AT))
    if trim_at < 2:
        raise ValueError(f"trim_at must be at least 2 for DST, got {trim_at}")
    records = _encode_records(pattern, trim_at)
    stream.write(_header(pattern, len(records), bool(options.get("extended_header", False))))
    stream.write(b"".join(records))


register_handlers("dst", reader=read, writer=write)
