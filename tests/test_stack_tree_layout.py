import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from stack_tree_data import UNCOMMITTED_ROW_NAME, BranchRow, ForkPoint, LaneCell
from stack_tree_layout import build_tree_fragments


def row(name, parent=None, lane=0, **flags):
    return BranchRow(name=name, parent_name=parent, lane=lane, **flags)


def cell(from_above, below, has_node, needs_restack=False):
    return LaneCell(
        continues_from_above=from_above,
        continues_below=below,
        has_node=has_node,
        needs_restack=needs_restack,
    )


class TestBuildTreeFragmentsBasics(unittest.TestCase):
    def test_empty_input_gives_empty_map(self):
        self.assertEqual(build_tree_fragments([]), {})

    def test_one_fragment_per_row(self):
        rows = [row("c", "b"), row("b", "a", 1), row("x", None, 2), row("a")]
        fragments = build_tree_fragments(rows)
        self.assertEqual(set(fragments), {"a", "b", "c", "x"})

    def test_single_root_has_no_connections(self):
        fragments = build_tree_fragments([row("main")])
        main = fragments["main"]
        self.assertEqual(main.node_lane, 0)
        self.assertEqual(main.max_lane, 0)
        self.assertEqual(main.lanes, (cell(False, False, True),))
        self.assertEqual(main.child_fork_lanes, ())
        self.assertEqual(main.node_style, "normal")
        self.assertIsNone(main.parent_lane)

    def test_every_fragment_has_max_lane_plus_one_cells(self):
        rows = [row("b", "a", 3), row("c", "a", 1), row("a")]
        fragments = build_tree_fragments(rows)
        for fragment in fragments.values():
            self.assertEqual(fragment.max_lane, 3)
            self.assertEqual(len(fragment.lanes), 4)

    def test_has_node_only_on_own_lane(self):
        rows = [row("feature", "main", 2), row("child", "main", 1), row("main")]
        fragments = build_tree_fragments(rows)
        for name, fragment in fragments.items():
            node_lanes = [lane for lane, lane_cell in enumerate(fragment.lanes) if lane_cell.has_node]
            self.assertEqual(node_lanes, [fragment.node_lane], name)

    def test_input_is_not_modified(self):
        rows = [row("feature", "main", 1), row("main")]
        snapshot = list(rows)
        build_tree_fragments(rows)
        self.assertEqual(rows, snapshot)

    def test_repeated_calls_give_equal_results(self):
        rows = [row("a-1", "a"), row("b", "main", 1), row("a", "main"), row("main")]
        self.assertEqual(build_tree_fragments(rows), build_tree_fragments(rows))


class TestBuildTreeFragmentsConnections(unittest.TestCase):
    def test_feature_on_other_lane_forks_from_main(self):
        fragments = build_tree_fragments([row("feature", "main", 1), row("main")])

        feature = fragments["feature"]
        self.assertEqual(feature.node_lane, 1)
        self.assertEqual(feature.lanes[1], cell(False, True, True))

        main = fragments["main"]
        self.assertEqual(main.child_fork_lanes, (ForkPoint(lane=1, needs_restack=False, is_uncommitted=False),))
        self.assertEqual(main.lanes[0], cell(True, False, True))

    def test_child_on_same_lane_continues_into_parent(self):
        fragments = build_tree_fragments([row("feature", "main"), row("main")])
        self.assertEqual(fragments["feature"].lanes[0], cell(False, True, True))
        self.assertEqual(fragments["main"].lanes[0], cell(True, False, True))
        self.assertEqual(fragments["main"].child_fork_lanes, ())

    def test_deep_linear_stack(self):
        rows = [row("d", "c"), row("c", "b"), row("b", "a"), row("a")]
        fragments = build_tree_fragments(rows)

        self.assertEqual(fragments["d"].lanes[0], cell(False, True, True))
        self.assertEqual(fragments["c"].lanes[0], cell(True, True, True))
        self.assertEqual(fragments["b"].lanes[0], cell(True, True, True))
        self.assertEqual(fragments["a"].lanes[0], cell(True, False, True))

    def test_connection_passes_through_intermediate_row(self):
        rows = [row("feature", "main", 1), row("child", "main", 0), row("main")]
        fragments = build_tree_fragments(rows)

        child = fragments["child"]
        self.assertEqual(child.lanes[0], cell(True, True, True))
        self.assertEqual(child.lanes[1], cell(True, True, False))

        main = fragments["main"]
        self.assertEqual([fork.lane for fork in main.child_fork_lanes], [1])
        self.assertEqual(main.lanes[0], cell(True, False, True))

    def test_multiple_children_fork_sorted_by_lane(self):
        rows = [row("c3", "main", 3), row("c1", "main", 1), row("c2", "main", 2), row("main")]
        main = build_tree_fragments(rows)["main"]
        self.assertEqual([fork.lane for fork in main.child_fork_lanes], [1, 2, 3])

    def test_same_lane_child_does_not_fork(self):
        rows = [row("child2", "main", 1), row("child1", "main", 0), row("main")]
        fragments = build_tree_fragments(rows)
        main = fragments["main"]
        self.assertEqual(len(main.child_fork_lanes), 1)
        self.assertEqual(main.child_fork_lanes[0].lane, 1)
        self.assertTrue(main.lanes[0].continues_from_above)
        self.assertIsNone(fragments["child1"].parent_lane)
        self.assertIsNone(fragments["child2"].parent_lane)

    def test_complex_tree(self):
        rows = [
            row("feature-a-1", "feature-a"),
            row("feature-a", "main"),
            row("feature-b", "main", 1),
            row("main"),
        ]
        fragments = build_tree_fragments(rows)

        feature_b = fragments["feature-b"]
        self.assertEqual(feature_b.node_lane, 1)
        self.assertTrue(feature_b.lanes[1].continues_below)
        self.assertEqual(fragments["feature-a"].lanes[1], cell(False, False, False))

        main = fragments["main"]
        self.assertEqual([fork.lane for fork in main.child_fork_lanes], [1])
        self.assertTrue(main.lanes[0].continues_from_above)

    def test_fork_is_recorded_on_parent_not_on_trunk(self):
        rows = [
            row("child-of-3", "feature-3", 2),
            row(UNCOMMITTED_ROW_NAME, "feature-1", 3, is_uncommitted=True),
            row("feature-3", "main", 1),
            row("feature-1", "main", 0, is_current=True),
            row("main"),
        ]
        fragments = build_tree_fragments(rows)

        self.assertEqual(fragments["feature-3"].child_fork_lanes, (ForkPoint(lane=2),))
        self.assertEqual(fragments["feature-1"].child_fork_lanes, (ForkPoint(lane=3, is_uncommitted=True),))
        self.assertEqual(fragments["main"].child_fork_lanes, (ForkPoint(lane=1),))

    def test_lane_reused_by_unrelated_subtrees(self):
        # x and y both live on lane 1 but belong to different parents
        rows = [
            row("x", "a", 1),
            row("a", "main"),
            row("y", "b", 1),
            row("b", "main"),
            row("main"),
        ]
        fragments = build_tree_fragments(rows)

        self.assertEqual(fragments["x"].lanes[1], cell(False, True, True))
        self.assertEqual(fragments["a"].lanes[1], cell(True, False, False))
        # Lane 1 is closed between the two subtrees
        self.assertEqual(fragments["y"].lanes[1], cell(False, True, True))
        self.assertEqual(fragments["b"].lanes[1], cell(True, False, False))
        self.assertEqual(fragments["main"].lanes[1], cell(False, False, False))


class TestBuildTreeFragmentsTrunk(unittest.TestCase):
    def test_trunk_lane_passes_through_rows_on_other_lanes(self):
        rows = [row("a", "main"), row("b", "x", 1), row("x", None, 1), row("main")]
        fragments = build_tree_fragments(rows)

        self.assertEqual(fragments["b"].lanes[0], cell(True, True, False))
        self.assertEqual(fragments["x"].lanes[0], cell(True, True, False))
        self.assertEqual(fragments["main"].lanes[0], cell(True, False, True))

    def test_first_row_off_trunk_opens_trunk_lane_below(self):
        fragments = build_tree_fragments([row("feature", "main", 1), row("main")])
        self.assertEqual(fragments["feature"].lanes[0], cell(False, True, False))

    def test_last_trunk_lane_root_closes_trunk(self):
        rows = [row("main"), row("other", None, 1), row("orphan")]
        fragments = build_tree_fragments(rows)

        self.assertEqual(fragments["main"].lanes[0], cell(False, True, True))
        self.assertEqual(fragments["other"].lanes[0], cell(True, True, False))
        self.assertEqual(fragments["orphan"].lanes[0], cell(True, False, True))

    def test_empty_parent_name_counts_as_root(self):
        rows = [row("main"), row("other", None, 1), row("orphan", "")]
        fragments = build_tree_fragments(rows)

        self.assertEqual(fragments["other"].lanes[0], cell(True, True, False))
        self.assertEqual(fragments["orphan"].lanes[0], cell(True, False, True))

    def test_rows_below_trunk_root_do_not_see_trunk(self):
        rows = [row("main"), row("other", None, 1)]
        fragments = build_tree_fragments(rows)
        self.assertEqual(fragments["other"].lanes[0], cell(False, False, False))

    def test_separate_root_on_other_lane_has_no_connections(self):
        rows = [row("other", None, 1), row("main")]
        fragments = build_tree_fragments(rows)
        self.assertEqual(fragments["other"].lanes[1], cell(False, False, True))
        self.assertEqual(fragments["main"].lanes[1], cell(False, False, False))


class TestBuildTreeFragmentsFlags(unittest.TestCase):
    def test_restack_propagates_along_same_lane_connection(self):
        rows = [row("child", "main", needs_restack=True), row("main")]
        fragments = build_tree_fragments(rows)

        self.assertTrue(fragments["child"].lanes[0].needs_restack)
        self.assertTrue(fragments["child"].node_needs_restack)
        self.assertTrue(fragments["main"].lanes[0].needs_restack)
        self.assertFalse(fragments["main"].node_needs_restack)

    def test_restack_propagates_through_pass_through_rows(self):
        rows = [row("stale", "main", 1, needs_restack=True), row("fresh", "main"), row("main")]
        fragments = build_tree_fragments(rows)

        self.assertTrue(fragments["stale"].lanes[1].needs_restack)
        self.assertEqual(fragments["fresh"].lanes[1], cell(True, True, False, True))
        self.assertTrue(fragments["main"].lanes[1].needs_restack)
        self.assertTrue(fragments["main"].child_fork_lanes[0].needs_restack)

    def test_restack_does_not_leak_to_unrelated_connections(self):
        rows = [row("stale", "a", 1, needs_restack=True), row("a", "main"), row("b", "main", 1), row("main")]
        fragments = build_tree_fragments(rows)
        self.assertFalse(fragments["b"].lanes[1].needs_restack)
        self.assertFalse(fragments["main"].lanes[1].needs_restack)

    def test_fork_point_copies_child_flags(self):
        rows = [
            row("restack-child", "main", 1, needs_restack=True),
            row(UNCOMMITTED_ROW_NAME, "main", 2, is_uncommitted=True),
            row("main"),
        ]
        main = build_tree_fragments(rows)["main"]
        self.assertEqual(
            main.child_fork_lanes,
            (
                ForkPoint(lane=1, needs_restack=True, is_uncommitted=False),
                ForkPoint(lane=2, needs_restack=False, is_uncommitted=True),
            ),
        )

    def test_node_style(self):
        rows = [
            row("both", "feature", 2, is_current=True, is_uncommitted=True),
            row(UNCOMMITTED_ROW_NAME, "feature", 1, is_uncommitted=True),
            row("feature", "main", is_current=True),
            row("main"),
        ]
        fragments = build_tree_fragments(rows)
        self.assertEqual(fragments["both"].node_style, "current")
        self.assertEqual(fragments[UNCOMMITTED_ROW_NAME].node_style, "uncommitted")
        self.assertEqual(fragments["feature"].node_style, "current")
        self.assertEqual(fragments["main"].node_style, "normal")

    def test_uncommitted_row_between_child_and_current(self):
        rows = [
            row("test-feature", "current"),
            row(UNCOMMITTED_ROW_NAME, "current", 1, is_uncommitted=True),
            row("current", "main", is_current=True),
            row("main"),
        ]
        fragments = build_tree_fragments(rows)

        uncommitted = fragments[UNCOMMITTED_ROW_NAME]
        self.assertEqual(uncommitted.node_style, "uncommitted")
        self.assertEqual(uncommitted.lanes[0], cell(True, True, False))
        self.assertEqual(uncommitted.lanes[1], cell(False, True, True))

        current = fragments["current"]
        self.assertEqual(current.child_fork_lanes, (ForkPoint(lane=1, is_uncommitted=True),))


class TestBuildTreeFragmentsOddInput(unittest.TestCase):
    def test_unknown_parent_makes_row_rootless(self):
        rows = [row("lost", "gone", 1), row("main")]
        fragments = build_tree_fragments(rows)
        self.assertEqual(fragments["lost"].lanes[1], cell(False, False, True))
        self.assertEqual(fragments["main"].child_fork_lanes, ())

    def test_parent_above_child_is_ignored(self):
        rows = [row("main"), row("feature", "main", 1)]
        fragments = build_tree_fragments(rows)
        self.assertEqual(fragments["feature"].lanes[1], cell(False, False, True))
        self.assertEqual(fragments["main"].child_fork_lanes, ())

    def test_self_parent_is_ignored(self):
        fragments = build_tree_fragments([row("loop", "loop", 1)])
        self.assertEqual(fragments["loop"].lanes[1], cell(False, False, True))

    def test_duplicate_names_last_row_wins(self):
        rows = [row("dup", None, 1), row("dup", None, 2), row("main")]
        fragments = build_tree_fragments(rows)
        self.assertEqual(len(fragments), 2)
        self.assertEqual(fragments["dup"].node_lane, 2)


if __name__ == "__main__":
    unittest.main()
