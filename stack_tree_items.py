# stack_tree_items.py

from dataclasses import dataclass, replace

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QColor

from stack_tree_data import NODE_STYLE_UNCOMMITTED, LaneCell, TreeFragment

# --- Geometry, in pixels ---
LANE_WIDTH = 11
NODE_RADIUS = 4
NODE_RADIUS_CURRENT = 5
NODE_STROKE = 2
CURVE_RADIUS = 5
NODE_GAP = 7  # space between the graph and the branch name
LINE_WIDTH = 1.5
DASH_PATTERN = [3.0, 2.0]

# --- Colors ---
LINE_COLOR = QColor("#8a8a8a")
NODE_COLOR = QColor("#6a6a6a")
CURRENT_COLOR = QColor("#1f77b4")
RESTACK_COLOR = QColor("#d9822b")
UNCOMMITTED_COLOR = QColor(Qt.GlobalColor.darkGray)
# Hollow glyphs are filled so the lane lines do not show through
HOLLOW_NODE_FILL = QColor(Qt.GlobalColor.white)


def lane_x(lane: int) -> float:
    """Horizontal center of a lane, relative to the left edge of the graph."""
    return LANE_WIDTH * (lane + 0.5)


def fragment_width(fragment: TreeFragment) -> int:
    return LANE_WIDTH * (fragment.max_lane + 1) + NODE_RADIUS_CURRENT + NODE_STROKE


def graph_width(fragment: TreeFragment) -> int:
    """Width reserved in front of the branch name."""
    return fragment_width(fragment) + NODE_GAP


def line_color(needs_restack: bool, uncommitted: bool = False) -> QColor:
    if needs_restack:
        return RESTACK_COLOR
    # 未提交修改的连线与当前分支节点同色
    return CURRENT_COLOR if uncommitted else LINE_COLOR


@dataclass(frozen=True)
class LaneSegment:
    """One vertical half-row line, in graph-relative coordinates."""

    lane: int
    y1: float
    y2: float
    dashed: bool
    needs_restack: bool
    uncommitted: bool = False


def lane_segments(fragment: TreeFragment, row_height: float) -> list[LaneSegment]:
    """
    Vertical lines for one row: the top half reaches down to the node height,
    the bottom half continues to the next row. The top half is left out on
    lanes that fork into this row's node; the fork connector draws those.
    """
    mid_y = row_height / 2
    fork_lanes = set(fragment.fork_lane_numbers)
    segments = []

    for lane, cell in enumerate(fragment.lanes):
        own_uncommitted = lane == fragment.node_lane and fragment.node_style == NODE_STYLE_UNCOMMITTED
        dashed = cell.needs_restack or own_uncommitted
        if cell.continues_from_above and lane not in fork_lanes:
            segments.append(LaneSegment(lane, 0.0, mid_y, dashed, cell.needs_restack, own_uncommitted))
        if cell.continues_below:
            segments.append(LaneSegment(lane, mid_y, float(row_height), dashed, cell.needs_restack, own_uncommitted))

    return segments


def continuation_fragment(fragment: TreeFragment) -> TreeFragment:
    """
    Fragment for rows nested under a branch row (its commits, changed files).
    Every line that leaves the branch row downward passes straight through,
    with no node and no forks.
    """
    lanes = tuple(
        LaneCell(
            continues_from_above=cell.continues_below,
            continues_below=cell.continues_below,
            needs_restack=cell.needs_restack,
        )
        for cell in fragment.lanes
    )
    return replace(fragment, lanes=lanes, child_fork_lanes=())
