"""
Cost-center hierarchy value objects.

A cost-center allocation is an ordered 4-tuple (L1..L4).  Each level is only
meaningful beneath the levels above it, so a selection is always a prefix:
L3 never appears without L1 and L2.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from propfin_kernel.exceptions import InvalidParentError

MAX_LEVEL = 4
LEVELS: tuple[int, ...] = (1, 2, 3, 4)


def check_level(level: int) -> None:
    if level not in LEVELS:
        raise InvalidParentError(level, (), f"level must be between 1 and {MAX_LEVEL}")


@dataclass(frozen=True)
class CostCenterSelection:
    """Selected cost-center ids per level (None = not selected)."""

    level1: int | None = None
    level2: int | None = None
    level3: int | None = None
    level4: int | None = None

    @classmethod
    def of(cls, *ids: int | None) -> CostCenterSelection:
        """``CostCenterSelection.of(1, 12)`` selects L1=1, L2=12."""
        if len(ids) > MAX_LEVEL:
            raise InvalidParentError(len(ids), tuple(ids), "too many levels")
        padded = tuple(ids) + (None,) * (MAX_LEVEL - len(ids))
        return cls(*padded)

    def as_tuple(self) -> tuple[int | None, ...]:
        return (self.level1, self.level2, self.level3, self.level4)

    def get(self, level: int) -> int | None:
        check_level(level)
        return self.as_tuple()[level - 1]

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in self.as_tuple())

    @property
    def depth(self) -> int:
        """Number of contiguous selected levels from L1."""
        depth = 0
        for value in self.as_tuple():
            if value is None:
                break
            depth += 1
        return depth

    @property
    def is_consistent(self) -> bool:
        """True when the selected levels form a gap-free prefix."""
        return all(v is None for v in self.as_tuple()[self.depth:])

    def parent_chain(self, level: int) -> tuple[int | None, ...]:
        """Values of the levels above ``level``."""
        check_level(level)
        return self.as_tuple()[: level - 1]

    def with_level(self, level: int, value: int | None) -> CostCenterSelection:
        """Set ``level`` to ``value`` and clear every deeper level."""
        check_level(level)
        values = list(self.as_tuple()[: level - 1]) + [value]
        return CostCenterSelection.of(*values)


@dataclass(frozen=True)
class CostCenterOption:
    """One selectable cost center at a given level."""

    level: int
    cost_center_id: int
    parent_chain: tuple[int, ...]
    description: str
    parent_descriptions: tuple[str, ...] = ()

    @property
    def full_path(self) -> str:
        return " > ".join(self.parent_descriptions + (self.description,))


class CostCenterDirectory(Protocol):
    """Source of valid cost centers (master data owned by the caller)."""

    def children(
        self, level: int, parent_chain: tuple[int, ...]
    ) -> Sequence[CostCenterOption]:
        """Options at ``level`` whose ancestors are exactly ``parent_chain``."""
        ...


class InMemoryCostCenterDirectory:
    """Directory backed by a list of options, for tests and small deployments."""

    def __init__(self, options: Iterable[CostCenterOption] = ()):
        self._options: list[CostCenterOption] = list(options)

    def add(
        self, level: int, cost_center_id: int, description: str, *parent_chain: int
    ) -> CostCenterOption:
        """Register a cost center under an existing parent chain."""
        check_level(level)
        chain = tuple(parent_chain)
        if len(chain) != level - 1:
            raise InvalidParentError(level, chain, "parent chain length must be level - 1")
        descriptions: list[str] = []
        for depth in range(1, level):
            parent = self._find(depth, chain[: depth - 1], chain[depth - 1])
            if parent is None:
                raise InvalidParentError(level, chain, f"unknown level {depth} parent")
            descriptions.append(parent.description)
        option = CostCenterOption(
            level=level,
            cost_center_id=cost_center_id,
            parent_chain=chain,
            description=description,
            parent_descriptions=tuple(descriptions),
        )
        self._options.append(option)
        return option

    def _find(
        self, level: int, parent_chain: tuple[int, ...], cost_center_id: int
    ) -> CostCenterOption | None:
        for option in self.children(level, parent_chain):
            if option.cost_center_id == cost_center_id:
                return option
        return None

    def children(
        self, level: int, parent_chain: tuple[int, ...]
    ) -> Sequence[CostCenterOption]:
        return tuple(
            o
            for o in self._options
            if o.level == level and o.parent_chain == tuple(parent_chain)
        )
