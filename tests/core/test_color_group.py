"""Tests for core.color_group: hierarchical groups and greedy auto-grouping."""

import pytest

from stitchkit.core.color_group import ColorGroup, ThreadGrouping, auto_group_by_similarity
from stitchkit.core.thread import Thread


class TestColorGroup:
    def test_defaults(self):
        g = ColorGroup("Outline")
        assert g.visible
        assert not g.locked
        assert len(g) == 0

    def test_add_and_remove(self):
        g = ColorGroup("A")
        assert g.add_thread(2)
        assert not g.add_thread(2)
        assert g.contains_thread(2)
        assert g.remove_thread(2)
        assert not g.remove_thread(2)

    def test_sorted_indices(self):
        assert ColorGroup("A", thread_indices={5, 1, 3}).sorted_indices() == [1, 3, 5]

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError, match="non-empty"):
            ColorGroup("")


class TestThreadGrouping:
    def test_default_group_created(self):
        grouping = ThreadGrouping("Default")
        assert "Default" in grouping
        assert grouping.validate() == []

    def test_unknown_group_raises_key_error(self):
        with pytest.raises(KeyError, match="missing"):
            ThreadGrouping().get_group("missing")

    def test_ungrouped_threads(self):
        grouping = ThreadGrouping()
        grouping.add_group(ColorGroup("Test", thread_indices={0, 2}))
        assert grouping.ungrouped_threads(5) == [1, 3, 4]

    def test_assign_to_default(self):
        grouping = ThreadGrouping("Default")
        grouping.add_group(ColorGroup("Skin", thread_indices={1}))
        assert grouping.assign_to_default_group(3) == 2
        assert grouping.get_group("Default").thread_indices == {0, 2}

    def test_assign_without_default_raises(self):
        with pytest.raises(ValueError, match="default"):
            ThreadGrouping().assign_to_default_group(3)

    def test_find_groups_with_thread(self):
        grouping = ThreadGrouping()
        grouping.add_group(ColorGroup("A", thread_indices={1}))
        grouping.add_group(ColorGroup("B", thread_indices={1, 2}))
        assert sorted(grouping.find_groups_with_thread(1)) == ["A", "B"]
        assert grouping.find_groups_with_thread(0) == []

    def test_sorted_by_display_order(self):
        grouping = ThreadGrouping()
        grouping.add_group(ColorGroup("late", display_order=5))
        grouping.add_group(ColorGroup("early", display_order=1))
        assert [g.name for g in grouping.groups_sorted_by_order()] == ["early", "late"]

    def test_children(self):
        grouping = ThreadGrouping()
        grouping.add_group(ColorGroup("Face"))
        grouping.add_group(ColorGroup("Eyes", parent_group="Face"))
        assert [g.name for g in grouping.children_of("Face")] == ["Eyes"]

    def test_validate_unknown_parent(self):
        grouping = ThreadGrouping()
        grouping.add_group(ColorGroup("Eyes", parent_group="Face"))
        errors = grouping.validate()
        assert len(errors) == 1
        assert "unknown parent" in errors[0]

    def test_validate_cycle(self):
        grouping = ThreadGrouping()
        grouping.add_group(ColorGroup("A", parent_group="B"))
        grouping.add_group(ColorGroup("B", parent_group="A"))
        assert any("cycle" in e for e in grouping.validate())

    def test_validate_missing_default(self):
        grouping = ThreadGrouping("Default")
        grouping.remove_group("Default")
        assert any("default group" in e for e in grouping.validate())

    def test_merge_replaces_same_name(self):
        a = ThreadGrouping()
        a.add_group(ColorGroup("X", thread_indices={0}))
        b = ThreadGrouping()
        b.add_group(ColorGroup("X", thread_indices={9}))
        b.add_group(ColorGroup("Y"))
        a.merge(b)
        assert a.get_group("X").thread_indices == {9}
        assert len(a) == 2


class TestAutoGroup:
    def test_similar_colors_share_group(self):
        threads = [Thread(0xFF0000), Thread(0xF00000), Thread(0x0000FF)]
        groups = auto_group_by_similarity(threads, 0.1)
        assert [g.sorted_indices() for g in groups] == [[0, 1], [2]]
        assert [g.name for g in groups] == ["Group 1", "Group 2"]

    def test_zero_threshold_groups_only_identical(self):
        threads = [Thread(0x111111), Thread(0x111111), Thread(0x111112)]
        groups = auto_group_by_similarity(threads, 0.0, prefix="C")
        assert [g.sorted_indices() for g in groups] == [[0, 1], [2]]
        assert groups[0].name == "C 1"

    def test_full_threshold_single_group(self):
        threads = [Thread(0x000000), Thread(0xFFFFFF), Thread(0x00FF00)]
        assert len(auto_group_by_similarity(threads, 1.0)) == 1

    def test_joins_most_recent_matching_group(self):
        # Grey sits within range of both black and white; it joins the newer group
        threads = [Thread(0x000000), Thread(0xFFFFFF), Thread(0x808080)]
        groups = auto_group_by_similarity(threads, 0.6)
        assert [g.sorted_indices() for g in groups] == [[0], [1, 2]]

    def test_threshold_out_of_range(self):
        with pytest.raises(ValueError, match="threshold"):
            auto_group_by_similarity([], 1.5)

    def test_empty_threads(self):
        assert auto_group_by_similarity([], 0.5) == []
