"""Tests for codec.bits."""

import pytest

from stitchkit.codec.bits import BitReader, BitWriter
from stitchkit.core.errors import TruncatedDataError


class TestBitWriter:
    def test_msb_first(self):
        w = BitWriter()
        w.write_bits(0b101, 3)
        assert w.getvalue() == bytes([0b1010_0000])

    def test_bit_length(self):
        w = BitWriter()
        w.write_bits(0xFF, 8)
        w.write_bit(1)
        assert w.bit_length == 9
        assert w.getvalue() == b"\xff\x80"

    def test_empty(self):
        assert BitWriter().getvalue() == b""


class TestBitReader:
    def test_reads_written_bits(self):
        w = BitWriter()
        w.write_bits(0x2A, 6)
        w.write_bits(0x3, 2)
        w.write_bits(0x1F, 5)
        r = BitReader(w.getvalue())
        assert r.read_bits(6) == 0x2A
        assert r.read_bits(2) == 0x3
        assert r.read_bits(5) == 0x1F

    def test_tell(self):
        r = BitReader(b"\x00\x00")
        r.read_bits(10)
        assert r.tell() == (1, 2)

    def test_past_end_raises_with_offset(self):
        r = BitReader(b"\xff")
        r.read_bits(8)
        with pytest.raises(TruncatedDataError) as excinfo:
            r.read_bit()
        assert excinfo.value.offset == 1

    def test_end_bound_respected(self):
        r = BitReader(b"\xff\xff\xff", start=1, end=2)
        assert r.read_bits(8) == 0xFF
        with pytest.raises(TruncatedDataError):
            r.read_bit()
