"""
Bit-packed stitch command words.

A command word is a 32-bit unsigned integer:

    bits  0–7   core action (see Action)
    bits  8–15  thread slot   (stored as index + 1, 0 = unset)
    bits 16–23  needle        (stored as index + 1, 0 = unset)
    bits 24–31  sequence order (stored as index + 1, 0 = unset)

Consumers must mask with COMMAND_MASK before comparing actions; the upper
bits may carry metadata that readers and writers preserve.
"""

from __future__ import annotations

from enum import IntEnum
from typing import NamedTuple, Optional

COMMAND_MASK: int = 0x0000_00FF
THREAD_MASK: int = 0x0000_FF00
NEEDLE_MASK: int = 0x00FF_0000
ORDER_MASK: int = 0xFF00_0000

_THREAD_SHIFT = 8
_NEEDLE_SHIFT = 16
_ORDER_SHIFT = 24
_FIELD_MAX = 0xFE  # largest storable index (stored as index + 1)


class Action(IntEnum):
    """Core stitch actions (low byte of a command word)."""

    STITCH = 0x00
    JUMP = 0x01
    TRIM = 0x02
    STOP = 0x03
    END = 0x04
    COLOR_CHANGE = 0x05
    SEQUIN_MODE = 0x06
    SEQUIN_EJECT = 0x07
    NEEDLE_SET = 0x09
    SLOW = 0x0B
    FAST = 0x0C


_THREAD_CHANGES = frozenset({Action.COLOR_CHANGE, Action.NEEDLE_SET})


class DecodedCommand(NamedTuple):
    """Fields unpacked from a command word. Unset fields are None."""

    action: int
    thread: Optional[int]
    needle: Optional[int]
    order: Optional[int]


def _pack_field(value: Optional[int], name: str) -> int:
    if value is None:
        return 0
    if not (0 <= value <= _FIELD_MAX):
        raise ValueError(f"{name} must be in [0, {_FIELD_MAX}], got {value}")
    return value + 1


def _unpack_field(word: int, mask: int, shift: int) -> Optional[int]:
    raw = (word & mask) >> shift
    return None if raw == 0 else raw - 1


def encode_command(
    action: int,
    thread: Optional[int] = None,
    needle: Optional[int] = None,
    order: Optional[int] = None,
) -> int:
    """
    Pack an action and optional auxiliary fields into a command word.

    Args:
        action: Core action; only the low byte is kept.
        thread: Thread slot index, or None.
        needle: Needle index, or None.
        order: Sequence order, or None.

    Returns:
        The packed 32-bit command word.

    Raises:
        ValueError: If any auxiliary field is outside [0, 254].
    """
    return (
        (int(action) & COMMAND_MASK)
        | (_pack_field(thread, "thread") << _THREAD_SHIFT)
        | (_pack_field(needle, "needle") << _NEEDLE_SHIFT)
        | (_pack_field(order, "order") << _ORDER_SHIFT)
    )


def decode_command(word: int) -> DecodedCommand:
    """Inverse of encode_command."""
    return DecodedCommand(
        action=word & COMMAND_MASK,
        thread=_unpack_field(word, THREAD_MASK, _THREAD_SHIFT),
        needle=_unpack_field(word, NEEDLE_MASK, _NEEDLE_SHIFT),
        order=_unpack_field(word, ORDER_MASK, _ORDER_SHIFT),
    )


def command_action(word: int) -> int:
    return word & COMMAND_MASK


def with_action(word: int, action: int) -> int:
    """Replace the action byte of word, keeping the metadata bits."""
    return (word & ~COMMAND_MASK & 0xFFFF_FFFF) | (int(action) & COMMAND_MASK)


def is_thread_change(word: int) -> bool:
    return command_action(word) in _THREAD_CHANGES


def command_name(word: int) -> str:
    """Name of the action in word, or "UNKNOWN"."""
    try:
        return Action(command_action(word)).name
    except ValueError:
        return "UNKNOWN"
