"""
Tests for the Tajima DST reader and writer.

Covers:
  - record decoding of control bits (stitch, jump, color change, sequins, end)
  - trim bursts written as cancelling jumps and recovered on read
  - header fields: label, counts, extents, extended thread lines
  - writing through the registry (transcode first) and reading it back
  - truncated and non-DST input
"""

import io
import logging

import pytest

from stitchkit.codec.ternary import TAJIMA_X, TAJIMA_Y, encode_pair
from stitchkit.core import Action, Pattern, Thread
from stitchkit.core.errors import CorruptDataError, TruncatedDataError
from stitchkit.formats import dst, read_pattern, write_pattern


def _header(text=b"LA:test\r"):
    return (text + b"\x1a").ljust(dst.HEADER_SIZE, b" ")


def _rec(dx, dy, control):
    buf = encode_pair(dx, dy, TAJIMA_X, TAJIMA_Y)
    buf[2] |= control
    return bytes(buf)


def _read(data, **options):
    pattern = Pattern()
    dst.read(io.BytesIO(data), pattern, options)
    return pattern


def _write(pattern, **options):
    buf = io.BytesIO()
    write_pattern(pattern, buf, "dst", options=options)
    return buf.getvalue()


def _round_trip(pattern, **options):
    buf = io.BytesIO(_write(pattern, **options))
    result = Pattern()
    read_pattern(buf, "dst", result)
    return result


@pytest.fixture
def two_color():
    p = Pattern()
    p.add_thread(Thread(0xFF0000, description="Red", catalog_number="1147"))
    p.add_thread(Thread(0x0000FF, description="Blue"))
    p.set_metadata("name", "Flag")
    p.stitch(10, 0)
    p.stitch(0, 10)
    p.trim()
    p.color_change()
    p.stitch(-10, 0)
    p.end()
    return p


# ── Reading ────────────────────────────────────────────────────────────────────


class TestReadRecords:
    def test_stitch_with_y_flipped(self):
        pattern = _read(_header() + _rec(5, 3, dst._CONTROL_MOVE) + bytes([0, 0, 0xF3]))
        assert [(s.x, s.y, s.action) for s in pattern] == [(5, -3, Action.STITCH), (5, -3, Action.END)]

    def test_control_bits(self):
        data = _header() + b"".join(
            [
                _rec(1, 0, dst._CONTROL_JUMP),
                _rec(0, 0, dst._CONTROL_COLOR),
                _rec(0, 0, dst._CONTROL_SEQUIN_MODE),
                _rec(2, 0, dst._CONTROL_JUMP),
                _rec(0, 0, dst._CONTROL_SEQUIN_MODE),
                _rec(1, 0, dst._CONTROL_JUMP),
                bytes([0, 0, 0xF3]),
            ]
        )
        assert [s.action for s in _read(data)] == [
            Action.JUMP,
            Action.COLOR_CHANGE,
            Action.SEQUIN_MODE,
            Action.SEQUIN_EJECT,
            Action.SEQUIN_MODE,
            Action.JUMP,
            Action.END,
        ]

    def test_records_after_end_ignored(self):
        data = _header() + bytes([0, 0, 0xF3]) + _rec(1, 1, dst._CONTROL_MOVE)
        assert [s.action for s in _read(data)] == [Action.END]

    def test_missing_end_record_still_ends(self):
        pattern = _read(_header() + _rec(1, 0, dst._CONTROL_MOVE))
        assert pattern.stitches[-1].action == Action.END

    def test_partial_record_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="stitchkit.formats.dst"):
            pattern = _read(_header() + _rec(1, 0, dst._CONTROL_MOVE) + b"\x00\x00")
        assert pattern.count_stitches() == 1
        assert "partial" in caplog.text

    def test_jump_burst_becomes_trim(self):
        burst = [_rec(2, 2, dst._CONTROL_JUMP), _rec(-4, -4, dst._CONTROL_JUMP), _rec(2, 2, dst._CONTROL_JUMP)]
        pattern = _read(_header() + b"".join(burst) + bytes([0, 0, 0xF3]))
        assert [s.action for s in pattern] == [Action.JUMP, Action.JUMP, Action.TRIM, Action.END]

    def test_trim_at_option(self):
        burst = [_rec(1, 0, dst._CONTROL_JUMP)] * 3
        pattern = _read(_header() + b"".join(burst), trim_at=4)
        assert pattern.count_trims() == 0

    def test_trim_distance_option(self):
        burst = [_rec(1, 0, dst._CONTROL_JUMP)] * 3
        pattern = _read(_header() + b"".join(burst), trim_distance=1.0)
        assert pattern.count_trims() == 0


class TestReadHeader:
    def test_metadata_fields(self):
        pattern = _read(_header(b"LA:Rose    \rAU:Ann\rCP:2024\rST:      0\r"))
        assert pattern.get_metadata("name") == "Rose"
        assert pattern.get_metadata("author") == "Ann"
        assert pattern.get_metadata("copyright") == "2024"
        assert pattern.get_metadata("ST") is None

    def test_thread_lines(self):
        pattern = _read(_header(b"LA:x\rTC:#ff0000,Red,1147\rTC:#00ff00,,\r"))
        assert [t.color for t in pattern.threads] == [0xFF0000, 0x00FF00]
        assert pattern.threads[0].description == "Red"
        assert pattern.threads[0].catalog_number == "1147"
        assert pattern.threads[1].description is None

    def test_unknown_field_kept(self, caplog):
        with caplog.at_level(logging.WARNING, logger="stitchkit.formats.dst"):
            pattern = _read(_header(b"LA:x\rZZ:extra\r"))
        assert pattern.get_metadata("ZZ") == "extra"
        assert "ZZ" in caplog.text

    def test_truncated_header(self):
        with pytest.raises(TruncatedDataError):
            _read(b"LA:short\r\x1a")

    def test_not_a_dst_file(self):
        with pytest.raises(CorruptDataError, match="not a DST header"):
            _read(bytes([0xFF]) * 600)


# ── Writing ────────────────────────────────────────────────────────────────────


class TestWrite:
    def test_header_layout(self, two_color):
        data = _write(two_color)
        header = data[: dst.HEADER_SIZE]
        assert header.startswith(b"LA:Flag")
        assert b"\x1a" in header
        assert len(data) % dst.RECORD_SIZE == dst.HEADER_SIZE % dst.RECORD_SIZE

    def test_record_count_in_header(self, two_color):
        data = _write(two_color)
        records = (len(data) - dst.HEADER_SIZE) // dst.RECORD_SIZE
        assert f"ST:{records:>7}".encode() in data[: dst.HEADER_SIZE]
        assert b"CO:  1" in data[: dst.HEADER_SIZE]

    def test_ends_with_end_record(self, two_color):
        assert _write(two_color)[-3:] == bytes([0, 0, 0xF3])

    def test_end_appended_when_missing(self):
        p = Pattern()
        p.stitch(1, 1)
        assert _write(p)[-3:] == bytes([0, 0, 0xF3])

    def test_trim_burst_cancels(self, two_color):
        buf = io.BytesIO()
        dst.write(two_color, buf, {"trim_at": 4})
        body = buf.getvalue()[dst.HEADER_SIZE :]
        jumps = [body[i : i + 3] for i in range(0, len(body), 3) if body[i + 2] & 0xF3 == 0x83]
        assert len(jumps) == 4

    def test_trim_at_too_small(self, two_color):
        with pytest.raises(ValueError, match="trim_at"):
            dst.write(two_color, io.BytesIO(), {"trim_at": 1})

    def test_long_moves_split_per_axis(self):
        p = Pattern()
        p.jump_abs(300, -250)
        buf = io.BytesIO()
        dst.write(p, buf, {})
        body = buf.getvalue()[dst.HEADER_SIZE :]
        # ceil(300 / 121) = 3 jump records, then END
        assert len(body) == 4 * dst.RECORD_SIZE

    def test_extended_header(self, two_color):
        two_color.set_metadata("author", "Ann")
        header = _write(two_color, extended_header=True)[: dst.HEADER_SIZE]
        assert b"AU:Ann\r" in header
        assert b"TC:#ff0000,Red,1147\r" in header

    def test_plain_header_has_no_threads(self, two_color):
        assert b"TC:" not in _write(two_color)[: dst.HEADER_SIZE]


# ── Round trips ────────────────────────────────────────────────────────────────


class TestRoundTrip:
    def test_positions_and_commands(self, two_color):
        result = _round_trip(two_color)
        stitched = [(s.x, s.y) for s in result if s.action == Action.STITCH]
        assert stitched == [(10, 0), (10, 10), (0, 10)]
        assert result.count_trims() == 1
        assert result.count_color_changes() == 1
        assert result.get_metadata("name") == "Flag"

    def test_threads_with_extended_header(self, two_color):
        result = _round_trip(two_color, extended_header=True)
        assert [t.color for t in result.threads] == [0xFF0000, 0x0000FF]

    def test_long_stitch_split_on_write(self):
        p = Pattern()
        p.stitch_abs(300, 0)
        result = _round_trip(p)
        stitches = [s for s in result if s.action == Action.STITCH]
        assert len(stitches) == 3
        assert (stitches[-1].x, stitches[-1].y) == (300, 0)

    def test_sequins_survive(self):
        p = Pattern()
        p.add_stitch_relative(0, 0, Action.SEQUIN_MODE)
        p.add_stitch_relative(20, 0, Action.SEQUIN_EJECT)
        p.add_stitch_relative(0, 0, Action.SEQUIN_MODE)
        p.stitch(5, 5)
        result = _round_trip(p)
        assert [s.action for s in result] == [
            Action.SEQUIN_MODE,
            Action.SEQUIN_EJECT,
            Action.SEQUIN_MODE,
            Action.STITCH,
            Action.END,
        ]

    def test_fractional_positions_rounded(self):
        p = Pattern()
        p.stitch_abs(10.4, -7.6)
        result = _round_trip(p)
        assert (result.stitches[0].x, result.stitches[0].y) == (10, -8)
