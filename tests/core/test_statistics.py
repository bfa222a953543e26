"""
Tests for core.statistics.

Covers:
  - calculate_statistics counts, lengths (0.1 mm units reported in mm), density and time
  - per-thread usage split on color changes and needle sets
  - normalize and fix_color_count
"""

import pytest

from stitchkit.core import Pattern, Thread, calculate_statistics, fix_color_count, normalize
from stitchkit.core.statistics import DEFAULT_THREAD_COLORS, MM_PER_INCH
from stitchkit.transcode import EncoderSettings, transcode


@pytest.fixture
def two_color():
    p = Pattern(threads=[Thread(0xFF0000), Thread(0x0000FF)])
    p.jump_abs(0, 0)
    p.stitch(100, 0)
    p.stitch(0, 100)
    p.color_change()
    p.stitch(-100, 0)
    p.trim()
    p.end()
    return p


class TestCalculateStatistics:
    def test_counts(self, two_color):
        stats = calculate_statistics(two_color)
        assert stats.stitch_count == 3
        assert stats.jump_count == 1
        assert stats.trim_count == 1
        assert stats.color_change_count == 1

    def test_lengths_in_mm(self, two_color):
        stats = calculate_statistics(two_color)
        assert stats.total_length_mm == pytest.approx(30.0)
        assert stats.total_length_inches == pytest.approx(30.0 / MM_PER_INCH)
        assert stats.average_stitch_length_mm == pytest.approx(10.0)
        assert stats.max_stitch_length_mm == pytest.approx(10.0)

    def test_dimensions_and_density(self, two_color):
        stats = calculate_statistics(two_color)
        assert stats.width_mm == pytest.approx(10.0)
        assert stats.height_mm == pytest.approx(10.0)
        assert stats.density_per_cm2 == pytest.approx(3.0)

    def test_time_estimate(self, two_color):
        assert calculate_statistics(two_color, machine_speed_spm=3).estimated_time_minutes == pytest.approx(1.0)
        assert calculate_statistics(two_color, machine_speed_spm=0).estimated_time_minutes == 0.0

    def test_thread_usage(self, two_color):
        usage = calculate_statistics(two_color).thread_usage
        assert [u.thread_index for u in usage] == [0, 1]
        assert [u.stitch_count for u in usage] == [2, 1]
        assert usage[0].length_mm == pytest.approx(20.0)
        assert usage[1].thread.color == 0x0000FF

    def test_thread_usage_after_needle_set(self, two_color):
        encoded = transcode(two_color, EncoderSettings(thread_change_command="needle_set"))
        usage = calculate_statistics(encoded).thread_usage
        assert [u.stitch_count for u in usage] == [2, 1]

    def test_empty_pattern(self):
        stats = calculate_statistics(Pattern())
        assert stats.stitch_count == 0
        assert stats.density_per_cm2 == 0.0
        assert stats.thread_usage == ()


class TestNormalize:
    def test_moves_min_corner_to_origin(self):
        p = Pattern()
        p.stitch_abs(-20, 5)
        p.stitch_abs(30, 15)
        normalize(p)
        assert p.bounds() == (0, 0, 50, 15)
        assert p.stitches[0].y == 5

    def test_already_normalized_untouched(self):
        p = Pattern()
        p.stitch_abs(0, 0)
        p.stitch_abs(4, 4)
        normalize(p)
        assert p.bounds() == (0, 0, 4, 4)


class TestFixColorCount:
    def test_adds_missing_threads(self):
        p = Pattern()
        p.stitch(1, 1)
        p.color_change()
        p.stitch(1, 1)
        p.color_change()
        assert fix_color_count(p) == 3
        assert [t.color for t in p.threads] == list(DEFAULT_THREAD_COLORS[:3])

    def test_enough_threads(self, two_color):
        assert fix_color_count(two_color) == 0
        assert len(two_color.threads) == 2

    def test_continues_palette_after_existing(self):
        p = Pattern(threads=[Thread(0x123456)])
        p.color_change()
        fix_color_count(p)
        assert p.threads[1].color == DEFAULT_THREAD_COLORS[1]
