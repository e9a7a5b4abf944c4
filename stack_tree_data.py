# stack_tree_data.py

from dataclasses import dataclass, field
from typing import Optional

NODE_STYLE_CURRENT = "current"
NODE_STYLE_UNCOMMITTED = "uncommitted"
NODE_STYLE_NORMAL = "normal"

# Name of the pseudo-branch row that stands for uncommitted working-copy changes
UNCOMMITTED_ROW_NAME = "__uncommitted__"


@dataclass(frozen=True)
class BranchRow:
    """One displayed branch, in top-to-bottom order (newest first, trunk last)."""

    name: str
    parent_name: Optional[str] = None
    lane: int = 0
    is_current: bool = False
    is_uncommitted: bool = False
    needs_restack: bool = False


@dataclass(frozen=True)
class LaneCell:
    """Connector state of one lane within one row."""

    continues_from_above: bool = False
    continues_below: bool = False
    has_node: bool = False
    needs_restack: bool = False


@dataclass(frozen=True)
class ForkPoint:
    """A connector the parent row draws toward a child living in another lane."""

    lane: int
    needs_restack: bool = False
    is_uncommitted: bool = False


@dataclass(frozen=True)
class TreeFragment:
    node_lane: int
    max_lane: int
    lanes: tuple[LaneCell, ...]
    child_fork_lanes: tuple[ForkPoint, ...] = field(default_factory=tuple)
    node_style: str = NODE_STYLE_NORMAL
    node_needs_restack: bool = False
    # Kept for renderers that draw the connector from the child side; the
    # parent records lane transitions through child_fork_lanes instead.
    parent_lane: Optional[int] = None

    @property
    def fork_lane_numbers(self) -> set[int]:
        return {fork.lane for fork in self.child_fork_lanes}
