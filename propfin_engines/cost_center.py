"""
Module: propfin_engines.cost_center
Responsibility:
    Resolve the valid cost centers for a level, cascade a selection
    (choosing a parent clears its descendants), and copy the header
    allocation down to voucher lines.

Architecture position:
    Engines -- pure calculation layer.  Master data comes from a
    CostCenterDirectory supplied by the caller.

Invariants enforced:
    - Level n is only selectable beneath a complete, valid chain L1..L(n-1).
    - Selecting or clearing level n clears every level below it.
    - A line with any explicit cost center keeps its whole tuple; header
      values never overwrite it.

Failure modes:
    - InvalidParentError for a bad level, a gap in the chain, or an id that
      is not a child of the chain.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from propfin_kernel.domain.cost_center import (
    LEVELS,
    MAX_LEVEL,
    CostCenterDirectory,
    CostCenterOption,
    CostCenterSelection,
    check_level,
)
from propfin_kernel.domain.voucher import VoucherLine
from propfin_kernel.exceptions import InvalidParentError
from propfin_kernel.logging_config import get_logger

logger = get_logger("engines.cost_center")


@dataclass(frozen=True)
class SelectionState:
    """Result of one selection step."""

    selection: CostCenterSelection
    level: int
    cleared_levels: tuple[int, ...]
    # Options for the next choice: the level below, or the same level when
    # it was just cleared.
    next_options: tuple[CostCenterOption, ...]


def resolve_options(
    level: int,
    parent_chain: Iterable[int | None],
    directory: CostCenterDirectory,
) -> tuple[CostCenterOption, ...]:
    """
    Cost centers selectable at ``level`` beneath ``parent_chain``.

    Raises:
        InvalidParentError: wrong chain length, a gap, or a chain element
            that is not a valid child of its own prefix.
    """
    check_level(level)
    chain = tuple(parent_chain)
    if len(chain) != level - 1:
        raise InvalidParentError(level, chain, f"expected {level - 1} parent level(s)")
    if any(value is None for value in chain):
        raise InvalidParentError(level, chain, "parent level not selected")

    for depth in range(1, level):
        prefix = chain[: depth - 1]
        ids = {o.cost_center_id for o in directory.children(depth, prefix)}
        if chain[depth - 1] not in ids:
            raise InvalidParentError(
                level, chain, f"{chain[depth - 1]} is not a valid level {depth} cost center"
            )
    return tuple(directory.children(level, chain))


def select(
    level: int,
    value: int | None,
    state: CostCenterSelection,
    directory: CostCenterDirectory,
) -> SelectionState:
    """Choose (or clear, with ``value=None``) the cost center at ``level``."""
    check_level(level)
    parent = state.parent_chain(level)
    if value is None:
        new_selection = state.with_level(level, None)
        next_options = (
            resolve_options(level, parent, directory)
            if all(v is not None for v in parent)
            else ()
        )
    else:
        options = resolve_options(level, parent, directory)
        if value not in {o.cost_center_id for o in options}:
            raise InvalidParentError(
                level, parent, f"{value} is not a child of the selected parents"
            )
        new_selection = state.with_level(level, value)
        next_options = (
            resolve_options(level + 1, new_selection.parent_chain(level + 1), directory)
            if level < MAX_LEVEL
            else ()
        )

    cleared = tuple(
        lvl for lvl in LEVELS if lvl > level and state.get(lvl) is not None
    )
    logger.debug("cost_center_selected", extra={
        "level": level,
        "value": value,
        "cleared_levels": list(cleared),
        "option_count": len(next_options),
    })
    return SelectionState(
        selection=new_selection,
        level=level,
        cleared_levels=cleared,
        next_options=next_options,
    )


def ensure_chain_consistent(selection: CostCenterSelection) -> None:
    """Reject a selection with a gap (e.g. L3 set without L2)."""
    if not selection.is_consistent:
        values = selection.as_tuple()
        gap_level = selection.depth + 1
        first_orphan = next(
            lvl for lvl in LEVELS if lvl > gap_level and values[lvl - 1] is not None
        )
        raise InvalidParentError(
            first_orphan, values[: first_orphan - 1], f"level {gap_level} not selected"
        )


def validate_selection(
    selection: CostCenterSelection, directory: CostCenterDirectory
) -> None:
    """Check every selected level against the directory."""
    ensure_chain_consistent(selection)
    values = selection.as_tuple()
    for level in range(1, selection.depth + 1):
        ids = {
            o.cost_center_id
            for o in resolve_options(level, values[: level - 1], directory)
        }
        if values[level - 1] not in ids:
            raise InvalidParentError(
                level, values[: level - 1], f"{values[level - 1]} is not a valid cost center"
            )


def copy_to_lines(
    header: CostCenterSelection,
    lines: Iterable[VoucherLine],
    copy_cost_centers: bool = True,
) -> tuple[VoucherLine, ...]:
    """
    Cascade the header allocation to lines without their own.

    Lines that are empty or still carry an earlier copy of the header take
    the current header values, so a header change on update reaches them.
    A line whose cost centers were set explicitly is kept as is.
    """
    lines = tuple(lines)
    if not copy_cost_centers:
        return lines

    def cascade(line: VoucherLine) -> VoucherLine:
        if not (line.cost_centers_inherited or line.cost_centers.is_empty):
            return line
        if header.is_empty:
            if not line.cost_centers_inherited:
                return line
            return line.with_changes(
                cost_centers=CostCenterSelection(), cost_centers_inherited=False
            )
        if line.cost_centers == header and line.cost_centers_inherited:
            return line
        return line.with_changes(cost_centers=header, cost_centers_inherited=True)

    return tuple(cascade(line) for line in lines)
