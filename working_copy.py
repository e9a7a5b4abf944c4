# working_copy.py

from dataclasses import dataclass, field
from typing import Optional

# git status letter -> change status shown in the stack view; '?' (untracked) becomes 'U'
_STATUS_MAP = {
    "A": "A",
    "M": "M",
    "D": "D",
    "R": "R",
    "C": "C",
    "T": "T",
    "?": "U",
}


@dataclass(frozen=True)
class WorkingCopyChange:
    path: str
    status: str
    old_path: Optional[str] = None


@dataclass
class UncommittedState:
    staged: list[WorkingCopyChange] = field(default_factory=list)
    unstaged: list[WorkingCopyChange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.staged and not self.unstaged

    @property
    def file_count(self) -> int:
        return len({change.path for change in self.staged} | {change.path for change in self.unstaged})


def map_git_status_char(char: str) -> str:
    return _STATUS_MAP.get(char, "M")


def parse_git_status_output(output: str) -> UncommittedState:
    """
    Parses `git status --porcelain=v1` output.
    Each line is `XY PATH`, X being the staged status and Y the unstaged one.
    """
    state = UncommittedState()

    for line in output.splitlines():
        if len(line) < 3:
            continue

        staged_status = line[0]
        unstaged_status = line[1]
        file_path = line[3:]
        old_path = None
        # Renames and copies are reported as "old -> new"
        if (staged_status in "RC" or unstaged_status in "RC") and " -> " in file_path:
            old_path, file_path = file_path.split(" -> ", 1)

        if staged_status not in (" ", "?"):
            state.staged.append(
                WorkingCopyChange(path=file_path, status=map_git_status_char(staged_status), old_path=old_path)
            )

        if unstaged_status != " ":
            state.unstaged.append(
                WorkingCopyChange(path=file_path, status=map_git_status_char(unstaged_status), old_path=old_path)
            )

    return state
