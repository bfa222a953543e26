"""
Color groups: a named, optionally hierarchical view over a pattern's threads.

Groups reference threads by index and never own them. A grouping is purely
organizational; it can be rebuilt at any time and is never needed to replay
stitches.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from .thread import MAX_COLOR_DISTANCE, Thread, color_distance


@dataclass
class ColorGroup:
    """A named set of thread indices with display hints."""

    name: str
    description: Optional[str] = None
    thread_indices: set[int] = field(default_factory=set)
    parent_group: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)
    display_order: int = 0
    visible: bool = True
    locked: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("group name must be non-empty")
        self.thread_indices = set(self.thread_indices)

    def add_thread(self, index: int) -> bool:
        """Add index; returns False if it was already present."""
        if index in self.thread_indices:
            return False
        self.thread_indices.add(index)
        return True

    def remove_thread(self, index: int) -> bool:
        if index not in self.thread_indices:
            return False
        self.thread_indices.discard(index)
        return True

    def contains_thread(self, index: int) -> bool:
        return index in self.thread_indices

    def sorted_indices(self) -> list[int]:
        return sorted(self.thread_indices)

    def __len__(self) -> int:
        return len(self.thread_indices)


class ThreadGrouping:
    """
    Collection of named ColorGroups with an optional default group.

    Lookups of a missing group raise KeyError. validate() reports structural
    problems (unknown parent, parent cycles, missing default group) as a list
    of messages instead of raising, so callers can show all of them at once.
    """

    def __init__(self, default_group_name: Optional[str] = None) -> None:
        self.groups: dict[str, ColorGroup] = {}
        self.default_group_name = default_group_name
        if default_group_name is not None:
            self.add_group(ColorGroup(default_group_name, description="Default group"))

    def __len__(self) -> int:
        return len(self.groups)

    def __contains__(self, name: object) -> bool:
        return name in self.groups

    # ── Groups ─────────────────────────────────────────────────────────────────

    def add_group(self, group: ColorGroup) -> Optional[ColorGroup]:
        """Add group, returning the group it replaced (if any)."""
        previous = self.groups.get(group.name)
        self.groups[group.name] = group
        return previous

    def remove_group(self, name: str) -> ColorGroup:
        try:
            return self.groups.pop(name)
        except KeyError:
            raise KeyError(f"Unknown color group: {name!r}") from None

    def get_group(self, name: str) -> ColorGroup:
        try:
            return self.groups[name]
        except KeyError:
            raise KeyError(f"Unknown color group: {name!r}") from None

    def groups_sorted_by_order(self) -> list[ColorGroup]:
        return sorted(self.groups.values(), key=lambda g: g.display_order)

    def children_of(self, name: str) -> list[ColorGroup]:
        return [g for g in self.groups.values() if g.parent_group == name]

    def clear(self) -> None:
        self.groups.clear()
        self.default_group_name = None

    # ── Membership ─────────────────────────────────────────────────────────────

    def add_thread_to_group(self, name: str, index: int) -> bool:
        return self.get_group(name).add_thread(index)

    def remove_thread_from_group(self, name: str, index: int) -> bool:
        return self.get_group(name).remove_thread(index)

    def find_groups_with_thread(self, index: int) -> list[str]:
        return [name for name, g in self.groups.items() if g.contains_thread(index)]

    def all_grouped_threads(self) -> set[int]:
        result: set[int] = set()
        for g in self.groups.values():
            result |= g.thread_indices
        return result

    def is_thread_grouped(self, index: int) -> bool:
        return any(g.contains_thread(index) for g in self.groups.values())

    def ungrouped_threads(self, thread_count: int) -> list[int]:
        grouped = self.all_grouped_threads()
        return [i for i in range(thread_count) if i not in grouped]

    def assign_to_default_group(self, thread_count: int) -> int:
        """
        Put every ungrouped thread index below thread_count into the default group.

        Returns:
            The number of threads assigned.

        Raises:
            ValueError: If no default group is configured.
            KeyError: If the configured default group does not exist.
        """
        if self.default_group_name is None:
            raise ValueError("no default group configured")
        group = self.get_group(self.default_group_name)
        ungrouped = self.ungrouped_threads(thread_count)
        group.thread_indices.update(ungrouped)
        return len(ungrouped)

    # ── Structure ──────────────────────────────────────────────────────────────

    def validate(self) -> list[str]:
        errors: list[str] = []
        for name, group in self.groups.items():
            if group.parent_group is None:
                continue
            if group.parent_group not in self.groups:
                errors.append(f"group {name!r} has unknown parent {group.parent_group!r}")
                continue
            seen: list[str] = []
            current: Optional[str] = name
            while current is not None and current in self.groups:
                if current in seen:
                    chain = " -> ".join(seen + [current])
                    errors.append(f"parent cycle through group {name!r}: {chain}")
                    break
                seen.append(current)
                current = self.groups[current].parent_group
        if self.default_group_name is not None and self.default_group_name not in self.groups:
            errors.append(f"default group {self.default_group_name!r} does not exist")
        return errors

    def merge(self, other: ThreadGrouping) -> None:
        """Copy other's groups in; groups with the same name are replaced."""
        self.groups.update(other.groups)


def auto_group_by_similarity(
    threads: Sequence[Thread],
    threshold: float,
    prefix: str = "Group",
) -> list[ColorGroup]:
    """
    Cluster threads into groups of similar color.

    This is a single-pass greedy clustering, not an optimal one: threads are
    visited in order and each joins the most recently opened group whose
    representative (its first member) lies within
    ``threshold * MAX_COLOR_DISTANCE``; otherwise it opens a new group. The
    result depends on thread order.

    Parameters
    ----------
    threads:
        Threads in palette order; group members are their indices.
    threshold:
        Similarity threshold in [0, 1], relative to the largest possible
        color distance. 0 groups only identical colors.
    prefix:
        Group names are ``f"{prefix} {n}"`` with n counting from 1.

    Raises
    ------
    ValueError
        If threshold is outside [0, 1].
    """
    if not (0.0 <= threshold <= 1.0):
        raise ValueError(f"threshold must be in [0, 1], got {threshold}")
    limit = threshold * MAX_COLOR_DISTANCE
    groups: list[ColorGroup] = []
    representatives: list[int] = []
    for index, thread in enumerate(threads):
        for group, rep in zip(reversed(groups), reversed(representatives)):
            if color_distance(rep, thread.color) <= limit:
                group.add_thread(index)
                break
        else:
            groups.append(
                ColorGroup(f"{prefix} {len(groups) + 1}", thread_indices={index}, display_order=len(groups))
            )
            representatives.append(thread.color)
    return groups
