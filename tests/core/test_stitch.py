"""Tests for core.stitch."""

import math

import pytest

from stitchkit.core.commands import Action, encode_command
from stitchkit.core.errors import InvalidPatternError
from stitchkit.core.stitch import Stitch


class TestConstruction:
    def test_defaults_to_stitch(self):
        s = Stitch(1.0, 2.0)
        assert s.action == Action.STITCH

    def test_nan_rejected(self):
        with pytest.raises(InvalidPatternError, match="finite"):
            Stitch(math.nan, 0.0)

    def test_infinity_rejected(self):
        with pytest.raises(InvalidPatternError):
            Stitch(0.0, math.inf)

    def test_frozen(self):
        s = Stitch(0.0, 0.0)
        with pytest.raises(AttributeError):
            s.x = 5.0  # type: ignore[misc]


class TestEquality:
    def test_metadata_bits_matter(self):
        a = Stitch(1.0, 1.0, encode_command(Action.STITCH, thread=0))
        b = Stitch(1.0, 1.0, Action.STITCH)
        assert a != b
        assert a.action == b.action

    def test_identical_values_equal(self):
        assert Stitch(3.0, 4.0, Action.JUMP) == Stitch(3.0, 4.0, Action.JUMP)


class TestGeometry:
    def test_distance(self):
        assert Stitch(0.0, 0.0).distance_to(Stitch(3.0, 4.0)) == pytest.approx(5.0)

    def test_relative_to(self):
        assert Stitch(5.0, 7.0).relative_to(Stitch(2.0, 3.0)) == (3.0, 4.0)

    def test_field_accessors(self):
        s = Stitch(0.0, 0.0, encode_command(Action.COLOR_CHANGE, thread=2, needle=1, order=0))
        assert s.thread == 2
        assert s.needle == 1
        assert s.order == 0

    def test_with_action_keeps_position_and_fields(self):
        s = Stitch(1.0, 2.0, encode_command(Action.SEQUIN_EJECT, thread=4))
        t = s.with_action(Action.STITCH)
        assert (t.x, t.y) == (1.0, 2.0)
        assert t.action == Action.STITCH
        assert t.thread == 4
