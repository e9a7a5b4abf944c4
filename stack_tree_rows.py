# stack_tree_rows.py

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from git_spice_parser import GitSpiceBranch, GitSpiceChange, GitSpicePush
from stack_tree_data import UNCOMMITTED_ROW_NAME, BranchRow, TreeFragment
from stack_tree_layout import build_tree_fragments
from working_copy import UncommittedState

SHORT_SHA_LENGTH = 8


@dataclass(frozen=True)
class TreePosition:
    """Position of a branch within the stack hierarchy."""

    depth: int  # 0 = root/trunk
    is_last_child: bool
    ancestor_is_last: tuple[bool, ...]  # per ancestor level, whether that ancestor is the last child
    parent_name: Optional[str]
    sibling_index: int
    sibling_count: int
    lane: int


@dataclass(frozen=True)
class StackEntry:
    branch: GitSpiceBranch
    tree: TreePosition


@dataclass(frozen=True)
class BranchCommitViewModel:
    sha: str
    short_sha: str
    subject: str


@dataclass(frozen=True)
class BranchViewModel:
    name: str
    current: bool
    restack: bool
    tree: TreePosition
    fragment: TreeFragment
    change: Optional[GitSpiceChange] = None
    commits: tuple[BranchCommitViewModel, ...] = ()
    push: Optional[GitSpicePush] = None


@dataclass
class DisplayState:
    branches: list[BranchViewModel] = field(default_factory=list)
    # Names in display order, including the uncommitted pseudo-row when present
    row_order: list[str] = field(default_factory=list)
    uncommitted: Optional[UncommittedState] = None
    uncommitted_fragment: Optional[TreeFragment] = None
    error: Optional[str] = None

    def branch(self, name: str) -> Optional[BranchViewModel]:
        return next((b for b in self.branches if b.name == name), None)


def order_stack_with_tree(branches: Sequence[GitSpiceBranch]) -> list[StackEntry]:
    """
    Orders branches the way `gs ll -a` prints them: a post-order walk in which
    children come before (above) their parent and sibling subtrees follow
    name order. Assigns lanes on the way: the first child inherits its parent's
    lane, every other child and every extra root opens a fresh lane.
    """
    branch_map = {branch.name: branch for branch in branches}
    result: list[StackEntry] = []
    visited: set[str] = set()
    next_lane = 0

    roots = sorted(
        (b for b in branches if b.down is None or b.down.name not in branch_map),
        key=lambda b: b.name,
    )
    # Only a parent cycle leaves no root; start from every branch then
    starting = roots or list(branches)

    def children_of(branch: GitSpiceBranch) -> list[GitSpiceBranch]:
        children = [branch_map[link.name] for link in branch.ups or () if link.name in branch_map]
        return sorted(children, key=lambda b: b.name)

    def visit(branch: GitSpiceBranch, depth, ancestor_is_last, sibling_index, sibling_count, lane):
        nonlocal next_lane
        if branch.name in visited:
            return
        visited.add(branch.name)

        is_last_child = sibling_index == sibling_count - 1
        children = children_of(branch)
        for index, child in enumerate(children):
            if index == 0:
                child_lane = lane
            else:
                child_lane = next_lane
                next_lane += 1
            visit(child, depth + 1, ancestor_is_last + (is_last_child,), index, len(children), child_lane)

        result.append(
            StackEntry(
                branch=branch,
                tree=TreePosition(
                    depth=depth,
                    is_last_child=is_last_child,
                    ancestor_is_last=ancestor_is_last,
                    parent_name=branch.down.name if branch.down else None,
                    sibling_index=sibling_index,
                    sibling_count=sibling_count,
                    lane=lane,
                ),
            )
        )

    for index, root in enumerate(starting):
        if root.name in visited:
            continue
        root_lane = next_lane
        next_lane += 1
        visit(root, 0, (), index, len(starting), root_lane)

    return result


def build_branch_rows(entries: Sequence[StackEntry], has_uncommitted: bool = False) -> list[BranchRow]:
    """
    Flattens ordered entries into layout rows. With uncommitted changes, a pseudo-row
    parented to the current branch is placed directly above it.
    """
    rows: list[BranchRow] = []
    current = next((entry for entry in entries if entry.branch.current), None)

    for entry in entries:
        if has_uncommitted and entry is current:
            rows.append(_uncommitted_row(current, entries))
        down = entry.branch.down
        rows.append(
            BranchRow(
                name=entry.branch.name,
                parent_name=entry.tree.parent_name,
                lane=entry.tree.lane,
                is_current=entry.branch.current,
                needs_restack=down.needs_restack if down else False,
            )
        )

    return rows


def _uncommitted_row(current: StackEntry, entries: Sequence[StackEntry]) -> BranchRow:
    # The current branch's lane is free right above it only when nothing else hangs off it
    has_children = any(entry.tree.parent_name == current.branch.name for entry in entries)
    if has_children:
        lane = max(entry.tree.lane for entry in entries) + 1
    else:
        lane = current.tree.lane
    return BranchRow(name=UNCOMMITTED_ROW_NAME, parent_name=current.branch.name, lane=lane, is_uncommitted=True)


def build_display_state(
    branches: Sequence[GitSpiceBranch],
    uncommitted: Optional[UncommittedState] = None,
    error: Optional[str] = None,
) -> DisplayState:
    """Builds everything the stack view renders for one repository."""
    entries = order_stack_with_tree(branches)
    has_uncommitted = uncommitted is not None and not uncommitted.is_empty
    rows = build_branch_rows(entries, has_uncommitted)
    fragments = build_tree_fragments(rows)

    view_models = [_to_view_model(entry, fragments[entry.branch.name]) for entry in entries]
    uncommitted_fragment = fragments.get(UNCOMMITTED_ROW_NAME)
    logging.debug(
        "Built stack display state: %d branches, %d rows, max lane %d",
        len(view_models),
        len(rows),
        max((row.lane for row in rows), default=0),
    )

    return DisplayState(
        branches=view_models,
        row_order=[row.name for row in rows],
        uncommitted=uncommitted if has_uncommitted else None,
        uncommitted_fragment=uncommitted_fragment,
        error=error,
    )


def _to_view_model(entry: StackEntry, fragment: TreeFragment) -> BranchViewModel:
    branch = entry.branch
    restack = (branch.down is not None and branch.down.needs_restack) or any(
        link.needs_restack for link in branch.ups or ()
    )
    commits = tuple(
        BranchCommitViewModel(sha=commit.sha, short_sha=commit.sha[:SHORT_SHA_LENGTH], subject=commit.subject)
        for commit in branch.commits or ()
    )
    return BranchViewModel(
        name=branch.name,
        current=branch.current,
        restack=restack,
        tree=entry.tree,
        fragment=fragment,
        change=branch.change,
        commits=commits,
        push=branch.push,
    )


def push_text(push: Optional[GitSpicePush]) -> str:
    if push is None:
        return ""
    parts = []
    if push.ahead:
        parts.append(f"{push.ahead} ahead")
    if push.behind:
        parts.append(f"{push.behind} behind")
    if push.needs_push:
        parts.append("needs push")
    return ", ".join(parts)


def status_text(branch: BranchViewModel) -> str:
    parts = []
    if branch.current:
        parts.append("current")
    if branch.restack:
        parts.append("needs restack")
    pushed = push_text(branch.push)
    if pushed:
        parts.append(pushed)
    return ", ".join(parts)
