# stack_tree_layout.py

from typing import NamedTuple, Optional, Sequence

from stack_tree_data import (
    NODE_STYLE_CURRENT,
    NODE_STYLE_NORMAL,
    NODE_STYLE_UNCOMMITTED,
    BranchRow,
    ForkPoint,
    LaneCell,
    TreeFragment,
)

TRUNK_LANE = 0


class _OpenSegment(NamedTuple):
    """A connector occupying a lane until the row of the parent it resolves into."""

    ends_at: int
    needs_restack: bool


# lane -> markers currently open on that lane, oldest first
_LaneSegments = dict[int, tuple[_OpenSegment, ...]]


def build_tree_fragments(rows: Sequence[BranchRow]) -> dict[str, TreeFragment]:
    """
    Builds the per-row connector description for a stack of branches.

    `rows` is in display order: children first, their parents further down, the
    trunk last. Lanes are taken as given. For every row the result holds one
    LaneCell per lane (0..max_lane) telling whether a line enters the cell from
    above, leaves it below, carries the node glyph, and must be drawn in the
    restack style, plus the fork points where the row's line bends into a
    child's lane.

    The rows are walked top to bottom as a fold over an immutable lane->segments
    mapping. Each child->parent connection opens one segment on the child's lane
    at the child's row and one on the parent's lane from the next row on; both
    close at the parent's row. The same lane number may therefore open and close
    any number of times.

    Never raises: a parent name that is unknown, or that does not appear below
    the child, leaves the row without a connector. With duplicate names the last
    row wins.
    """
    if not rows:
        return {}

    max_lane = max(0, max(row.lane for row in rows))
    parent_rows = _resolve_parent_rows(rows)
    trunk_root = _find_trunk_root(rows)
    fork_points = _collect_fork_points(rows, parent_rows)

    fragments: dict[str, TreeFragment] = {}
    open_segments: _LaneSegments = {}

    for row_index, row in enumerate(rows):
        lanes = tuple(
            _build_cell(row, row_index, lane, open_segments.get(lane, ()), parent_rows[row_index], trunk_root)
            for lane in range(max_lane + 1)
        )
        fragments[row.name] = TreeFragment(
            node_lane=row.lane,
            max_lane=max_lane,
            lanes=lanes,
            child_fork_lanes=fork_points.get(row_index, ()),
            node_style=_node_style(row),
            node_needs_restack=row.needs_restack,
        )
        open_segments = _advance_segments(open_segments, rows, row_index, parent_rows[row_index])

    return fragments


def _resolve_parent_rows(rows: Sequence[BranchRow]) -> list[Optional[int]]:
    """Row index of each row's parent, or None when it has no usable parent below it."""
    index_by_name = {row.name: index for index, row in enumerate(rows)}
    parent_rows: list[Optional[int]] = []
    for index, row in enumerate(rows):
        parent_index = index_by_name.get(row.parent_name) if row.parent_name else None
        if parent_index is not None and parent_index <= index:
            parent_index = None
        parent_rows.append(parent_index)
    return parent_rows


def _find_trunk_root(rows: Sequence[BranchRow]) -> Optional[int]:
    """The last trunk-lane row without a parent; lane 0 stays open down to it."""
    trunk_root = None
    for index, row in enumerate(rows):
        if row.lane == TRUNK_LANE and not row.parent_name:
            trunk_root = index
    return trunk_root


def _collect_fork_points(
    rows: Sequence[BranchRow], parent_rows: Sequence[Optional[int]]
) -> dict[int, tuple[ForkPoint, ...]]:
    forks: dict[int, list[ForkPoint]] = {}
    for child_index, parent_index in enumerate(parent_rows):
        if parent_index is None:
            continue
        child = rows[child_index]
        if child.lane == rows[parent_index].lane:
            continue
        forks.setdefault(parent_index, []).append(
            ForkPoint(lane=child.lane, needs_restack=child.needs_restack, is_uncommitted=child.is_uncommitted)
        )
    return {index: tuple(sorted(points, key=lambda fork: fork.lane)) for index, points in forks.items()}


def _build_cell(
    row: BranchRow,
    row_index: int,
    lane: int,
    segments: tuple[_OpenSegment, ...],
    parent_index: Optional[int],
    trunk_root: Optional[int],
) -> LaneCell:
    has_node = row.lane == lane

    # Every open segment reaches at least this row; only those ending further down leave it
    continues_from_above = bool(segments)
    continues_below = any(segment.ends_at > row_index for segment in segments)
    needs_restack = any(segment.needs_restack for segment in segments)

    if has_node:
        continues_below = continues_below or parent_index is not None
        needs_restack = needs_restack or row.needs_restack

    if lane == TRUNK_LANE and trunk_root is not None and row_index <= trunk_root:
        continues_from_above = continues_from_above or row_index > 0
        continues_below = continues_below or row_index < trunk_root

    return LaneCell(
        continues_from_above=continues_from_above,
        continues_below=continues_below,
        has_node=has_node,
        needs_restack=needs_restack,
    )


def _advance_segments(
    open_segments: _LaneSegments,
    rows: Sequence[BranchRow],
    row_index: int,
    parent_index: Optional[int],
) -> _LaneSegments:
    """Closes the segments that resolved at this row and opens the row's own connector."""
    advanced: _LaneSegments = {}
    for lane, segments in open_segments.items():
        still_open = tuple(segment for segment in segments if segment.ends_at > row_index)
        if still_open:
            advanced[lane] = still_open

    if parent_index is None:
        return advanced

    row = rows[row_index]
    segment = _OpenSegment(ends_at=parent_index, needs_restack=row.needs_restack)
    for lane in {row.lane, rows[parent_index].lane}:
        advanced[lane] = advanced.get(lane, ()) + (segment,)
    return advanced


def _node_style(row: BranchRow) -> str:
    if row.is_current:
        return NODE_STYLE_CURRENT
    if row.is_uncommitted:
        return NODE_STYLE_UNCOMMITTED
    return NODE_STYLE_NORMAL
