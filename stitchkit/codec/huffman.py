"""
Canonical Huffman compression of parallel byte streams.

Several streams (for stitch data: action flags, x deltas, y deltas) share
one code table built from their combined symbol frequencies. Only the code
lengths are stored; both sides derive the same canonical codes by sorting
symbols on (length, symbol) and counting upward.

Wire layout, little endian:

    u8        stream count n
    128 bytes code lengths for symbols 0..255, two 4-bit lengths per byte
              (high nibble = even symbol), 0 = symbol unused
    n × (u32 symbol count, u32 payload length)
    payloads  MSB-first bit-packed codes, each zero-padded to a byte

Decoding reads exactly the declared number of symbols from each payload and
never looks past the payload's declared length.
"""

from __future__ import annotations

import heapq
import struct
from collections import Counter
from dataclasses import dataclass
from functools import cached_property
from typing import Mapping, Sequence

from stitchkit.core.errors import CorruptDataError, TruncatedDataError

from .bits import BitReader, BitWriter

SYMBOL_COUNT: int = 256
MAX_CODE_LENGTH: int = 15
TABLE_SIZE: int = SYMBOL_COUNT // 2

_COUNT = struct.Struct("<B")
_STREAM_HEADER = struct.Struct("<II")


# ── Code construction ──────────────────────────────────────────────────────────


def _tree_lengths(freqs: Mapping[int, int]) -> dict[int, int]:
    heap: list[tuple[int, int, list[int]]] = [
        (f, sym, [sym]) for sym, f in sorted(freqs.items()) if f > 0
    ]
    if not heap:
        return {}
    if len(heap) == 1:
        return {heap[0][1]: 1}
    heapq.heapify(heap)
    lengths = {sym: 0 for _, sym, _ in heap}
    tiebreak = SYMBOL_COUNT
    while len(heap) > 1:
        wa, _, a = heapq.heappop(heap)
        wb, _, b = heapq.heappop(heap)
        for sym in a + b:
            lengths[sym] += 1
        heapq.heappush(heap, (wa + wb, tiebreak, a + b))
        tiebreak += 1
    return lengths


def build_code_lengths(freqs: Mapping[int, int], max_length: int = MAX_CODE_LENGTH) -> list[int]:
    """
    Huffman code lengths for byte symbols, capped at max_length.

    When the optimal tree is deeper than max_length, frequencies are halved
    (keeping every used symbol at least 1) and the tree rebuilt until it
    fits. Returns a list of SYMBOL_COUNT lengths, 0 for unused symbols.
    """
    for sym in freqs:
        if not (0 <= sym < SYMBOL_COUNT):
            raise ValueError(f"symbol must be in [0, {SYMBOL_COUNT}), got {sym}")
    current = {sym: f for sym, f in freqs.items() if f > 0}
    while True:
        lengths = _tree_lengths(current)
        if not lengths or max(lengths.values()) <= max_length:
            break
        current = {sym: max(1, f >> 1) for sym, f in current.items()}
    result = [0] * SYMBOL_COUNT
    for sym, length in lengths.items():
        result[sym] = length
    return result


def canonical_codes(lengths: Sequence[int]) -> dict[int, tuple[int, int]]:
    """
    Assign canonical codes: symbol -> (code, length).

    Raises:
        CorruptDataError: If the lengths over-subscribe the code space.
    """
    used = sorted((length, sym) for sym, length in enumerate(lengths) if length)
    if not used:
        return {}
    longest = used[-1][0]
    kraft = sum(1 << (longest - length) for length, _ in used)
    if kraft > 1 << longest:
        raise CorruptDataError("code lengths over-subscribe the prefix code space")
    codes: dict[int, tuple[int, int]] = {}
    code = 0
    prev = used[0][0]
    for length, sym in used:
        code <<= length - prev
        prev = length
        codes[sym] = (code, length)
        code += 1
    return codes


@dataclass(frozen=True)
class HuffmanTable:
    """A canonical code table, fully described by its code lengths."""

    lengths: tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.lengths) != SYMBOL_COUNT:
            raise ValueError(f"expected {SYMBOL_COUNT} code lengths, got {len(self.lengths)}")
        for sym, length in enumerate(self.lengths):
            if not (0 <= length <= MAX_CODE_LENGTH):
                raise CorruptDataError(f"code length {length} for symbol {sym} outside [0, {MAX_CODE_LENGTH}]")
        # Fail on an inconsistent table at construction time
        canonical_codes(self.lengths)

    @classmethod
    def from_frequencies(cls, freqs: Mapping[int, int]) -> HuffmanTable:
        return cls(tuple(build_code_lengths(freqs)))

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> HuffmanTable:
        """Parse the nibble-packed table at data[offset:offset + TABLE_SIZE]."""
        if len(data) - offset < TABLE_SIZE:
            raise TruncatedDataError("code length table is incomplete", offset=offset)
        lengths: list[int] = []
        for byte in data[offset : offset + TABLE_SIZE]:
            lengths.append(byte >> 4)
            lengths.append(byte & 0x0F)
        try:
            return cls(tuple(lengths))
        except CorruptDataError as exc:
            raise CorruptDataError(exc.detail, offset=offset) from None

    def to_bytes(self) -> bytes:
        return bytes((self.lengths[i] << 4) | self.lengths[i + 1] for i in range(0, SYMBOL_COUNT, 2))

    @cached_property
    def codes(self) -> dict[int, tuple[int, int]]:
        return canonical_codes(self.lengths)

    @cached_property
    def _decode_map(self) -> dict[tuple[int, int], int]:
        return {(length, code): sym for sym, (code, length) in self.codes.items()}

    @property
    def max_length(self) -> int:
        return max(self.lengths)

    def encode(self, symbols: bytes) -> bytes:
        writer = BitWriter()
        codes = self.codes
        for sym in symbols:
            try:
                code, length = codes[sym]
            except KeyError:
                raise ValueError(f"symbol {sym} has no code in this table") from None
            writer.write_bits(code, length)
        return writer.getvalue()

    def decode(self, data: bytes, count: int, start: int = 0, end: int | None = None) -> bytes:
        """
        Decode exactly count symbols from data[start:end].

        Raises:
            TruncatedDataError: If the payload ends before count symbols.
            CorruptDataError: If a bit sequence matches no code.
        """
        reader = BitReader(data, start, end)
        decode_map = self._decode_map
        longest = self.max_length
        out = bytearray()
        for _ in range(count):
            code = 0
            for length in range(1, longest + 1):
                code = (code << 1) | reader.read_bit()
                sym = decode_map.get((length, code))
                if sym is not None:
                    out.append(sym)
                    break
            else:
                raise CorruptDataError("bit sequence matches no code", offset=reader.tell()[0])
        return bytes(out)


# ── Stream container ───────────────────────────────────────────────────────────


def compress(streams: Sequence[bytes]) -> bytes:
    """
    Compress parallel streams against one shared canonical table.

    Raises:
        ValueError: If there are more than 255 streams.
    """
    if len(streams) > 0xFF:
        raise ValueError(f"at most 255 streams, got {len(streams)}")
    freqs: Counter[int] = Counter()
    for stream in streams:
        freqs.update(stream)
    table = HuffmanTable.from_frequencies(freqs)
    payloads = [table.encode(bytes(stream)) for stream in streams]
    parts = [_COUNT.pack(len(streams)), table.to_bytes()]
    parts.extend(_STREAM_HEADER.pack(len(stream), len(payload)) for stream, payload in zip(streams, payloads))
    parts.extend(payloads)
    return b"".join(parts)


def decompress(data: bytes) -> list[bytes]:
    """
    Inverse of compress.

    Raises:
        TruncatedDataError: If the input ends before a header, table or
            payload is complete, or a payload runs out before its symbol count.
        CorruptDataError: If the table is inconsistent, a code is undecodable,
            or bytes follow the last payload.
    """
    if len(data) < _COUNT.size:
        raise TruncatedDataError("missing stream count", offset=0)
    (count,) = _COUNT.unpack_from(data, 0)
    offset = _COUNT.size
    table = HuffmanTable.from_bytes(data, offset)
    offset += TABLE_SIZE

    headers: list[tuple[int, int]] = []
    for _ in range(count):
        if len(data) - offset < _STREAM_HEADER.size:
            raise TruncatedDataError("stream header is incomplete", offset=offset)
        headers.append(_STREAM_HEADER.unpack_from(data, offset))
        offset += _STREAM_HEADER.size

    streams: list[bytes] = []
    for symbols, payload_len in headers:
        end = offset + payload_len
        if end > len(data):
            raise TruncatedDataError(f"payload declares {payload_len} bytes", offset=offset)
        if symbols and not table.codes:
            raise CorruptDataError("stream has symbols but the code table is empty", offset=offset)
        streams.append(table.decode(data, symbols, offset, end))
        offset = end
    if offset != len(data):
        raise CorruptDataError(f"{len(data) - offset} unexpected trailing bytes", offset=offset)
    return streams
