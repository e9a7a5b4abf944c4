import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from git_spice_parser import GitSpiceBranch
from stack_tree_rows import DisplayState, build_display_state
from utils import timeit, to_error_message
from working_copy import UncommittedState

if TYPE_CHECKING:
    from git_spice_manager import GitSpiceManager


@dataclass
class RepoState:
    """一个仓库在某一时刻的完整状态"""

    branches: list[GitSpiceBranch] = field(default_factory=list)
    uncommitted: UncommittedState = field(default_factory=UncommittedState)
    current_branch: Optional[str] = None
    # Current git branch when git-spice does not track it
    untracked_branch: Optional[str] = None
    error: Optional[str] = None

    def to_display_state(self) -> DisplayState:
        return build_display_state(self.branches, self.uncommitted, self.error)


@timeit
def fetch_repo_state(manager: "GitSpiceManager") -> RepoState:
    state = RepoState()

    try:
        state.branches = manager.load_branches()
    except Exception as e:
        logging.error("Failed to load git-spice branches: %s", e)
        state.error = to_error_message(e)

    state.uncommitted = manager.working_copy_changes()
    state.current_branch = manager.current_branch_name()

    if state.current_branch and not state.error:
        tracked = any(branch.name == state.current_branch for branch in state.branches)
        if not tracked:
            state.untracked_branch = state.current_branch

    return state
