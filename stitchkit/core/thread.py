"""
Thread colors and perceptual color matching.

Colors are 24-bit 0xRRGGBB integers. Distance uses the red-mean weighted
Euclidean approximation, which tracks perceived difference much better than
plain RGB distance at negligible cost:

    r̄ = (R₁ + R₂) / 2
    d = sqrt((2 + r̄/256)·ΔR² + 4·ΔG² + (2 + (255 − r̄)/256)·ΔB²)
"""

from __future__ import annotations

import math
import string
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Optional, Sequence, Union, cast

import numpy as np
import yaml

from .errors import InvalidColorError

_DATA_DIR = Path(__file__).parent / "data"
_HEX_DIGITS = frozenset(string.hexdigits)


def _load_named_colors(path: Path = _DATA_DIR / "named_colors.yaml") -> MappingProxyType[str, int]:
    try:
        with open(path) as f:
            data = cast(dict[str, Any], yaml.safe_load(f))
    except FileNotFoundError:
        raise FileNotFoundError(f"Named color table not found: {path}") from None
    except yaml.YAMLError as exc:
        raise ValueError(f"Failed to parse named color table {path}: {exc}") from exc
    return MappingProxyType({name.lower(): int(value, 16) for name, value in data["colors"].items()})


NAMED_COLORS: MappingProxyType[str, int] = _load_named_colors()


# ── Parsing ────────────────────────────────────────────────────────────────────


def parse_color_hex(text: str) -> int:
    """
    Parse a hex color with or without a leading '#'.

    Accepts 6 or 8 digits (RRGGBB[AA]) and the 3 or 4 digit shorthand
    (RGB[A]); any alpha digits are discarded.

    Raises:
        InvalidColorError: On a bad length or non-hex digit.
    """
    digits = text.strip().removeprefix("#")
    if not digits or not set(digits) <= _HEX_DIGITS:
        raise InvalidColorError(f"invalid hex color: {text!r}")
    if len(digits) in (3, 4):
        digits = "".join(c * 2 for c in digits[:3])
    elif len(digits) in (6, 8):
        digits = digits[:6]
    else:
        raise InvalidColorError(f"invalid hex color length: {text!r}")
    return int(digits, 16)


def parse_color(text: str) -> int:
    """
    Parse a color name or hex string into 0xRRGGBB.

    '#'-prefixed strings and bare 3 or 6 digit hex strings are parsed as hex;
    everything else is looked up case-insensitively among the named colors.

    Raises:
        InvalidColorError: If the string is neither valid hex nor a known name.
    """
    stripped = text.strip()
    if stripped.startswith("#"):
        return parse_color_hex(stripped)
    if len(stripped) in (3, 6) and set(stripped) <= _HEX_DIGITS:
        return parse_color_hex(stripped)
    try:
        return NAMED_COLORS[stripped.lower()]
    except KeyError:
        raise InvalidColorError(f"unknown color name: {text!r}") from None


# ── Distance ───────────────────────────────────────────────────────────────────


def _channels(color: int) -> tuple[int, int, int]:
    return (color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF


def color_distance(a: int, b: int) -> float:
    """Red-mean weighted distance between two 0xRRGGBB colors."""
    r1, g1, b1 = _channels(a)
    r2, g2, b2 = _channels(b)
    rmean = (r1 + r2) / 2.0
    dr, dg, db = r1 - r2, g1 - g2, b1 - b2
    return math.sqrt((2 + rmean / 256) * dr * dr + 4 * dg * dg + (2 + (255 - rmean) / 256) * db * db)


MAX_COLOR_DISTANCE: float = color_distance(0x000000, 0xFFFFFF)


def _palette_distances(color: int, palette: Sequence[int]) -> np.ndarray:
    pal = np.asarray(palette, dtype=np.int64)
    rgb = np.stack([(pal >> 16) & 0xFF, (pal >> 8) & 0xFF, pal & 0xFF], axis=1).astype(float)
    target = np.array(_channels(color), dtype=float)
    rmean = (rgb[:, 0] + target[0]) / 2.0
    delta = rgb - target
    weights = np.stack([2 + rmean / 256, np.full_like(rmean, 4.0), 2 + (255 - rmean) / 256], axis=1)
    return np.sqrt((weights * delta * delta).sum(axis=1))


def find_nearest_color_index(color: int, palette: Sequence[Union[int, Thread]]) -> Optional[int]:
    """
    Index of the palette entry closest to color, or None for an empty palette.

    Palette entries may be raw 0xRRGGBB integers or Thread objects. Ties go to
    the earliest entry.
    """
    if len(palette) == 0:
        return None
    values = [p.color if isinstance(p, Thread) else int(p) for p in palette]
    # np.argmin returns the first minimum
    return int(np.argmin(_palette_distances(color & 0xFFFFFF, values)))


# ── Thread ─────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Thread:
    """
    A thread spool referenced by index from a pattern.

    color is masked to 24 bits on construction; every other field is
    optional catalog metadata carried through readers and writers.
    """

    color: int
    description: Optional[str] = None
    catalog_number: Optional[str] = None
    brand: Optional[str] = None
    chart: Optional[str] = None
    details: Optional[str] = None
    weight: Optional[str] = None

    def __post_init__(self) -> None:
        if self.color < 0:
            raise InvalidColorError(f"color must be non-negative, got {self.color}")
        object.__setattr__(self, "color", int(self.color) & 0xFFFFFF)

    @classmethod
    def from_string(cls, text: str, **fields: Any) -> Thread:
        return cls(parse_color(text), **fields)

    @classmethod
    def from_rgb(cls, red: int, green: int, blue: int, **fields: Any) -> Thread:
        for name, value in (("red", red), ("green", green), ("blue", blue)):
            if not (0 <= value <= 255):
                raise InvalidColorError(f"{name} must be in [0, 255], got {value}")
        return cls((red << 16) | (green << 8) | blue, **fields)

    @property
    def red(self) -> int:
        return (self.color >> 16) & 0xFF

    @property
    def green(self) -> int:
        return (self.color >> 8) & 0xFF

    @property
    def blue(self) -> int:
        return self.color & 0xFF

    @property
    def hex_color(self) -> str:
        return f"#{self.color:06x}"

    @property
    def opaque_color(self) -> int:
        """Color with a fully opaque alpha byte (0xFFRRGGBB)."""
        return 0xFF000000 | self.color

    def color_distance(self, other: Union[Thread, int]) -> float:
        other_color = other.color if isinstance(other, Thread) else other
        return color_distance(self.color, other_color)

    def find_nearest_index(self, palette: Sequence[Union[int, Thread]]) -> Optional[int]:
        return find_nearest_color_index(self.color, palette)
