"""
Thread palettes: named thread collections and nearest-match quantization.

Built-in machine palettes live in data/palettes.yaml and are loaded once at
import. Look them up with get_palette() (by id or name, case-insensitive)
or list them with all_palettes().
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Optional, cast

import yaml

from .errors import InvalidPatternError
from .pattern import Pattern
from .thread import Thread, find_nearest_color_index

_DATA_DIR = Path(__file__).parent / "data"


@dataclass(frozen=True)
class ThreadPalette:
    """An ordered, named set of threads to match colors against."""

    name: str
    threads: tuple[Thread, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "threads", tuple(self.threads))

    def __len__(self) -> int:
        return len(self.threads)

    def find_closest_index(self, color: int) -> Optional[int]:
        """Index of the thread nearest to color; None when the palette is empty."""
        return find_nearest_color_index(color, self.threads)

    def find_closest(self, color: int) -> Optional[Thread]:
        index = self.find_closest_index(color)
        return None if index is None else self.threads[index]

    def quantize_pattern(self, pattern: Pattern) -> list[int]:
        """
        Replace every thread of pattern with its nearest palette thread.

        Thread indices are preserved, so stitches and color changes keep
        pointing at the same slots even when two threads map to the same
        palette entry.

        Returns:
            The palette index chosen for each pattern thread, in order.

        Raises:
            InvalidPatternError: If the palette is empty.
        """
        if not self.threads:
            raise InvalidPatternError(f"cannot quantize with empty palette {self.name!r}")
        chosen = [cast(int, self.find_closest_index(t.color)) for t in pattern.threads]
        pattern.replace_threads([self.threads[i] for i in chosen])
        return chosen


# ── Built-in palettes ──────────────────────────────────────────────────────────


def _load_palettes(path: Path = _DATA_DIR / "palettes.yaml") -> MappingProxyType[str, ThreadPalette]:
    try:
        with open(path) as f:
            data = cast(dict[str, Any], yaml.safe_load(f))
    except FileNotFoundError:
        raise FileNotFoundError(f"Palette table not found: {path}") from None
    except yaml.YAMLError as exc:
        raise ValueError(f"Failed to parse palette table {path}: {exc}") from exc

    palettes: dict[str, ThreadPalette] = {}
    for palette_id, entry in data["palettes"].items():
        threads = tuple(
            Thread(
                int(t["color"], 16),
                description=t.get("description"),
                catalog_number=t.get("catalog_number"),
                brand=t.get("brand"),
            )
            for t in entry["threads"]
        )
        palettes[palette_id.lower()] = ThreadPalette(entry["name"], threads)
    return MappingProxyType(palettes)


BUILTIN_PALETTES: MappingProxyType[str, ThreadPalette] = _load_palettes()


def all_palettes() -> list[ThreadPalette]:
    return list(BUILTIN_PALETTES.values())


def get_palette(name: str) -> ThreadPalette:
    """
    Look up a built-in palette by id ("hus") or display name ("Husqvarna HUS").

    Raises:
        KeyError: If no built-in palette matches.
    """
    key = name.strip().lower()
    if key in BUILTIN_PALETTES:
        return BUILTIN_PALETTES[key]
    for palette in BUILTIN_PALETTES.values():
        if palette.name.lower() == key:
            return palette
    raise KeyError(f"Unknown palette {name!r}. Available: {sorted(BUILTIN_PALETTES)}")
