"""
Positional (balanced-ternary) delta encoding.

A signed delta is spread across a fixed group of bytes in which single bits
contribute a signed power of three: one bit adds +3^k, another adds -3^k.
Decoding sums the contributions of every set bit. Encoding walks the powers
from largest to smallest and sets a bit whenever the remainder is beyond
what the smaller powers can still reach, which yields the unique balanced
ternary digit string.

The functions here know nothing about any file layout. A format supplies a
TernaryLayout naming where each digit lives; several layouts may share the
same byte group (Tajima DST packs x and y into one 3-byte record).
"""

from __future__ import annotations

from dataclasses import dataclass

from stitchkit.core.errors import RangeExceededError, TruncatedDataError

BitPosition = tuple[int, int]  # (byte index, bit index 0..7)


def ternary_limit(digits: int) -> int:
    """Largest magnitude representable with `digits` balanced-ternary digits."""
    return (3**digits - 1) // 2


@dataclass(frozen=True)
class TernaryLayout:
    """
    Bit positions of each ternary digit inside a fixed-width byte group.

    digits[k] is the (positive, negative) bit pair for 3**k, lowest power
    first.
    """

    width: int
    digits: tuple[tuple[BitPosition, BitPosition], ...]

    def __post_init__(self) -> None:
        if self.width < 1:
            raise ValueError(f"width must be at least 1, got {self.width}")
        if not self.digits:
            raise ValueError("layout needs at least one digit")
        seen: set[BitPosition] = set()
        for pos, neg in self.digits:
            for byte, bit in (pos, neg):
                if not (0 <= byte < self.width and 0 <= bit <= 7):
                    raise ValueError(f"bit position {(byte, bit)} outside a {self.width}-byte group")
                if (byte, bit) in seen:
                    raise ValueError(f"bit position {(byte, bit)} used twice")
                seen.add((byte, bit))

    @property
    def max_magnitude(self) -> int:
        return ternary_limit(len(self.digits))


def _check_value(value: int, layout: TernaryLayout) -> int:
    ivalue = int(value)
    if ivalue != value:
        raise ValueError(f"delta must be a whole number of units, got {value}")
    if abs(ivalue) > layout.max_magnitude:
        raise RangeExceededError(f"delta {ivalue} outside ±{layout.max_magnitude}")
    return ivalue


def pack_delta(value: int, layout: TernaryLayout, buf: bytearray) -> None:
    """OR the encoding of value into buf, which must be at least layout.width long."""
    remainder = _check_value(value, layout)
    for k in range(len(layout.digits) - 1, -1, -1):
        power = 3**k
        reach = ternary_limit(k)
        pos, neg = layout.digits[k]
        if remainder > reach:
            buf[pos[0]] |= 1 << pos[1]
            remainder -= power
        elif remainder < -reach:
            buf[neg[0]] |= 1 << neg[1]
            remainder += power


def encode_delta(value: int, layout: TernaryLayout) -> bytes:
    """
    Encode a signed delta into layout.width bytes.

    Raises:
        RangeExceededError: If |value| exceeds layout.max_magnitude.
        ValueError: If value is not a whole number.
    """
    buf = bytearray(layout.width)
    pack_delta(value, layout, buf)
    return bytes(buf)


def decode_delta(data: bytes, layout: TernaryLayout, offset: int = 0) -> int:
    """
    Sum the digit contributions found in data[offset:offset + layout.width].

    Raises:
        TruncatedDataError: If fewer than layout.width bytes are available.
    """
    if len(data) - offset < layout.width:
        raise TruncatedDataError(
            f"need {layout.width} bytes for a delta, have {max(len(data) - offset, 0)}", offset=offset
        )
    value = 0
    for k, (pos, neg) in enumerate(layout.digits):
        power = 3**k
        if data[offset + pos[0]] & (1 << pos[1]):
            value += power
        if data[offset + neg[0]] & (1 << neg[1]):
            value -= power
    return value


def encode_pair(dx: int, dy: int, x_layout: TernaryLayout, y_layout: TernaryLayout) -> bytearray:
    """Encode dx and dy into one shared byte group."""
    buf = bytearray(max(x_layout.width, y_layout.width))
    pack_delta(dx, x_layout, buf)
    pack_delta(dy, y_layout, buf)
    return buf


def decode_pair(
    data: bytes, x_layout: TernaryLayout, y_layout: TernaryLayout, offset: int = 0
) -> tuple[int, int]:
    return decode_delta(data, x_layout, offset), decode_delta(data, y_layout, offset)


# ── Tajima layouts ─────────────────────────────────────────────────────────────
# 3-byte records, ±121 per axis. Digits for 1, 3, 9, 27, 81.

TAJIMA_X = TernaryLayout(
    width=3,
    digits=(
        ((0, 0), (0, 1)),
        ((1, 0), (1, 1)),
        ((0, 2), (0, 3)),
        ((1, 2), (1, 3)),
        ((2, 2), (2, 3)),
    ),
)

TAJIMA_Y = TernaryLayout(
    width=3,
    digits=(
        ((0, 7), (0, 6)),
        ((1, 7), (1, 6)),
        ((0, 5), (0, 4)),
        ((1, 5), (1, 4)),
        ((2, 5), (2, 4)),
    ),
)
