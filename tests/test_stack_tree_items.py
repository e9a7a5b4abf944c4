import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from stack_tree_data import UNCOMMITTED_ROW_NAME, BranchRow
from stack_tree_items import (
    CURRENT_COLOR,
    LANE_WIDTH,
    LINE_COLOR,
    NODE_GAP,
    RESTACK_COLOR,
    LaneSegment,
    continuation_fragment,
    fragment_width,
    graph_width,
    lane_segments,
    lane_x,
    line_color,
)
from stack_tree_layout import build_tree_fragments


class TestGeometry(unittest.TestCase):
    def test_lane_x_is_lane_center(self):
        self.assertEqual(lane_x(0), 5.5)
        self.assertEqual(lane_x(2), LANE_WIDTH * 2.5)

    def test_width_covers_all_lanes_and_current_node(self):
        fragments = build_tree_fragments(
            [BranchRow("b", "main", 2), BranchRow("a", "main", 0), BranchRow("main")]
        )
        self.assertEqual(fragment_width(fragments["main"]), 11 * 3 + 5 + 2)
        self.assertEqual(graph_width(fragments["main"]), fragment_width(fragments["main"]) + NODE_GAP)


class TestLaneSegments(unittest.TestCase):
    def test_straight_stack(self):
        fragments = build_tree_fragments([BranchRow("feature", "main"), BranchRow("main")])

        self.assertEqual(lane_segments(fragments["feature"], 20), [LaneSegment(0, 10.0, 20.0, False, False)])
        self.assertEqual(lane_segments(fragments["main"], 20), [LaneSegment(0, 0.0, 10.0, False, False)])

    def test_fork_lane_has_no_top_half_on_parent_row(self):
        fragments = build_tree_fragments([BranchRow("feature", "main", 1), BranchRow("main")])
        segments = lane_segments(fragments["main"], 20)
        self.assertEqual([segment.lane for segment in segments], [0])

    def test_restack_and_uncommitted_segments_are_dashed(self):
        fragments = build_tree_fragments(
            [
                BranchRow(UNCOMMITTED_ROW_NAME, "feature", 1, is_uncommitted=True),
                BranchRow("feature", "main", 0, needs_restack=True, is_current=True),
                BranchRow("main"),
            ]
        )
        uncommitted = lane_segments(fragments[UNCOMMITTED_ROW_NAME], 20)
        self.assertIn(LaneSegment(1, 10.0, 20.0, True, False, True), uncommitted)

        feature = lane_segments(fragments["feature"], 20)
        self.assertIn(LaneSegment(0, 10.0, 20.0, True, True), feature)


class TestContinuationFragment(unittest.TestCase):
    def test_lines_leaving_the_branch_pass_through(self):
        fragments = build_tree_fragments(
            [BranchRow("feature", "main", 1), BranchRow("other", "main", 0), BranchRow("main")]
        )
        continuation = continuation_fragment(fragments["feature"])

        self.assertFalse(any(cell.has_node for cell in continuation.lanes))
        self.assertEqual(
            lane_segments(continuation, 20),
            [
                LaneSegment(0, 0.0, 10.0, False, False),
                LaneSegment(0, 10.0, 20.0, False, False),
                LaneSegment(1, 0.0, 10.0, False, False),
                LaneSegment(1, 10.0, 20.0, False, False),
            ],
        )

    def test_trunk_root_has_nothing_below(self):
        fragments = build_tree_fragments([BranchRow("feature", "main", 1), BranchRow("main")])
        continuation = continuation_fragment(fragments["main"])

        self.assertEqual(continuation.child_fork_lanes, ())
        self.assertEqual(lane_segments(continuation, 20), [])

    def test_uncommitted_line_stays_dashed(self):
        fragments = build_tree_fragments(
            [
                BranchRow(UNCOMMITTED_ROW_NAME, "feature", 1, is_uncommitted=True),
                BranchRow("feature", "main", 0, needs_restack=True, is_current=True),
                BranchRow("main"),
            ]
        )
        segments = lane_segments(continuation_fragment(fragments[UNCOMMITTED_ROW_NAME]), 20)

        self.assertIn(LaneSegment(1, 0.0, 10.0, True, False, True), segments)
        self.assertIn(LaneSegment(1, 10.0, 20.0, True, False, True), segments)
        self.assertIn(LaneSegment(0, 10.0, 20.0, False, False), segments)


class TestLineColor(unittest.TestCase):
    def test_colors(self):
        self.assertEqual(line_color(False), LINE_COLOR)
        self.assertEqual(line_color(False, uncommitted=True), CURRENT_COLOR)
        self.assertEqual(line_color(True, uncommitted=True), RESTACK_COLOR)


if __name__ == "__main__":
    unittest.main()
