"""Multicast group membership table."""

from __future__ import annotations

from lwmesh.core import NwkConfig

GROUP_FREE = 0xFFFF

_DEFAULT_SIZE = NwkConfig().groups_amount


class GroupTable:
    """Fixed-size table of multicast groups this node belongs to."""

    def __init__(self, size: int = _DEFAULT_SIZE) -> None:
        if size < 1:
            raise ValueError("group table needs at least one slot")
        self._groups = [GROUP_FREE] * size

    @property
    def size(self) -> int:
        return len(self._groups)

    def __len__(self) -> int:
        return sum(group != GROUP_FREE for group in self._groups)

    def add(self, group: int) -> bool:
        """Join a group; False when the table is full."""
        return self._switch(GROUP_FREE, group)

    def remove(self, group: int) -> bool:
        """Leave a group; False when the node is not a member."""
        return self._switch(group, GROUP_FREE)

    def is_member(self, group: int) -> bool:
        """True if the node belongs to ``group``."""
        _check_group(group)
        return group in self._groups

    def _switch(self, old: int, new: int) -> bool:
        _check_group(old)
        _check_group(new)
        try:
            index = self._groups.index(old)
        except ValueError:
            return False
        self._groups[index] = new
        return True


def _check_group(group: int) -> None:
    if not 0 <= group <= 0xFFFF:
        raise ValueError(f"group id must be between 0 and 0xffff, got {group!r}")