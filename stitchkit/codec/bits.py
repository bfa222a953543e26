"""MSB-first bit reader and writer over byte buffers."""

from __future__ import annotations

from stitchkit.core.errors import TruncatedDataError


class BitWriter:
    """Accumulates bits most-significant first; the final byte is zero-padded."""

    __slots__ = ("_buf", "_cur", "_nbits")

    def __init__(self) -> None:
        self._buf = bytearray()
        self._cur = 0
        self._nbits = 0  # bits used in _cur, 0..7

    def write_bit(self, bit: int) -> None:
        self._cur |= (bit & 1) << (7 - self._nbits)
        self._nbits += 1
        if self._nbits == 8:
            self._buf.append(self._cur)
            self._cur = 0
            self._nbits = 0

    def write_bits(self, value: int, count: int) -> None:
        for i in range(count - 1, -1, -1):
            self.write_bit((value >> i) & 1)

    @property
    def bit_length(self) -> int:
        return len(self._buf) * 8 + self._nbits

    def getvalue(self) -> bytes:
        if self._nbits:
            return bytes(self._buf) + bytes([self._cur])
        return bytes(self._buf)


class BitReader:
    """
    Reads bits most-significant first from data[start:end].

    Reading beyond end raises TruncatedDataError carrying the absolute byte
    offset, so a reader can never run into a neighbouring region.
    """

    __slots__ = ("_data", "_end", "_byte", "_bit")

    def __init__(self, data: bytes, start: int = 0, end: int | None = None) -> None:
        self._data = data
        self._end = len(data) if end is None else min(end, len(data))
        self._byte = start
        self._bit = 0

    def read_bit(self) -> int:
        if self._byte >= self._end:
            raise TruncatedDataError("bit stream ended early", offset=self._byte)
        value = (self._data[self._byte] >> (7 - self._bit)) & 1
        self._bit += 1
        if self._bit == 8:
            self._bit = 0
            self._byte += 1
        return value

    def read_bits(self, count: int) -> int:
        value = 0
        for _ in range(count):
            value = (value << 1) | self.read_bit()
        return value

    def tell(self) -> tuple[int, int]:
        """(byte offset, bit index within that byte)."""
        return (self._byte, self._bit)
