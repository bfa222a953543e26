"""
Tests for core.palette.

Covers:
  - nearest-thread lookup (exact match, ties, empty palette)
  - quantize_pattern keeps thread indices and rejects an empty palette
  - built-in palettes loaded from data/palettes.yaml
"""

import pytest

from stitchkit.core import Pattern, Thread
from stitchkit.core.errors import InvalidPatternError
from stitchkit.core.palette import BUILTIN_PALETTES, ThreadPalette, all_palettes, get_palette


@pytest.fixture
def rgb():
    return ThreadPalette(
        "RGB",
        (
            Thread(0xFF0000, description="Red"),
            Thread(0x00FF00, description="Green"),
            Thread(0x0000FF, description="Blue"),
        ),
    )


class TestFindClosest:
    def test_exact_match(self, rgb):
        assert rgb.find_closest_index(0x00FF00) == 1
        assert rgb.find_closest(0x0000FF).description == "Blue"

    def test_nearest(self, rgb):
        assert rgb.find_closest_index(0xFA0A0A) == 0

    def test_empty_palette(self):
        empty = ThreadPalette("Empty")
        assert len(empty) == 0
        assert empty.find_closest_index(0xFF0000) is None
        assert empty.find_closest(0xFF0000) is None

    def test_threads_stored_as_tuple(self):
        palette = ThreadPalette("List", [Thread(0x123456)])
        assert isinstance(palette.threads, tuple)


class TestQuantize:
    def test_replaces_threads_in_place(self, rgb):
        p = Pattern(threads=[Thread(0xFA0A0A), Thread(0x0A0AFA), Thread(0xC83232)])
        p.stitch(1, 0)
        p.color_change()
        p.stitch(1, 0)
        before = p.stitches
        assert rgb.quantize_pattern(p) == [0, 2, 0]
        assert [t.color for t in p.threads] == [0xFF0000, 0x0000FF, 0xFF0000]
        assert p.threads[1].description == "Blue"
        assert p.stitches == before

    def test_exact_colors_unchanged(self, rgb):
        p = Pattern(threads=list(rgb.threads))
        rgb.quantize_pattern(p)
        assert p.threads == rgb.threads

    def test_empty_palette_rejected(self):
        p = Pattern(threads=[Thread(0xFF0000)])
        with pytest.raises(InvalidPatternError, match="empty palette"):
            ThreadPalette("Empty").quantize_pattern(p)
        assert p.threads[0].color == 0xFF0000


class TestBuiltins:
    def test_palette_sizes(self):
        assert len(get_palette("hus")) == 29
        assert len(get_palette("shv")) == 43
        assert len(get_palette("sew")) == 79

    def test_lookup_by_display_name(self):
        assert get_palette("husqvarna hus") is BUILTIN_PALETTES["hus"]

    def test_thread_fields(self):
        black = get_palette("HUS").threads[0]
        assert black.color == 0x000000
        assert black.description == "Black"
        assert black.catalog_number == "026"
        assert black.brand == "Hus"

    def test_all_palettes(self):
        assert {p.name for p in all_palettes()} == {"Husqvarna HUS", "Husqvarna SHV", "Janome SEW"}

    def test_unknown_palette(self):
        with pytest.raises(KeyError, match="Unknown palette"):
            get_palette("madeira")

    def test_builtins_read_only(self):
        with pytest.raises(TypeError):
            BUILTIN_PALETTES["custom"] = ThreadPalette("Custom")  # type: ignore[index]
