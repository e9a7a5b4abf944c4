# git_spice_parser.py

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

CHANGE_STATUSES = ("open", "closed", "merged")


@dataclass(frozen=True)
class GitSpiceBranchLink:
    name: str
    needs_restack: bool = False


@dataclass(frozen=True)
class GitSpiceCommit:
    sha: str
    subject: str


@dataclass(frozen=True)
class GitSpiceComments:
    total: int
    resolved: int
    unresolved: int


@dataclass(frozen=True)
class GitSpiceChange:
    id: str
    url: str
    status: Optional[str] = None  # 'open', 'closed' or 'merged'
    comments: Optional[GitSpiceComments] = None


@dataclass(frozen=True)
class GitSpicePush:
    ahead: int
    behind: int
    needs_push: bool = False


@dataclass(frozen=True)
class GitSpiceBranch:
    """A branch tracked by git-spice, as reported by `gs ll -a --json`."""

    name: str
    current: bool = False
    down: Optional[GitSpiceBranchLink] = None  # parent
    ups: Optional[tuple[GitSpiceBranchLink, ...]] = None  # children
    commits: Optional[tuple[GitSpiceCommit, ...]] = None
    change: Optional[GitSpiceChange] = None
    push: Optional[GitSpicePush] = None


def parse_git_spice_branches(raw: str) -> list[GitSpiceBranch]:
    """
    Parses newline-delimited JSON output of git-spice into branch records.
    Lines that are not valid JSON objects, or that lack a branch name, are skipped.
    Example line:
        {"name": "feat", "current": true, "down": {"name": "main", "needsRestack": true}}
    """
    branches: list[GitSpiceBranch] = []

    for line in raw.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue

        parsed = _safe_parse(trimmed)
        if parsed is None:
            continue

        branch = _to_branch(parsed)
        if branch:
            branches.append(branch)

    return branches


def _safe_parse(value: str) -> Optional[dict]:
    try:
        parsed = json.loads(value)
    except ValueError as e:
        logging.warning("Failed to parse git-spice json line: %s (%s)", value[:80], e)
        return None
    if not isinstance(parsed, dict):
        logging.warning("Skipping git-spice json line that is not an object: %s", value[:80])
        return None
    return parsed


def _to_branch(data: dict) -> Optional[GitSpiceBranch]:
    name = _read_string(data.get("name"))
    if not name:
        return None

    return GitSpiceBranch(
        name=name,
        current=data.get("current") is True,
        down=_read_branch_link(data.get("down")),
        ups=_read_list(data.get("ups"), _read_branch_link),
        commits=_read_list(data.get("commits"), _read_commit),
        change=_read_change(data.get("change")),
        push=_read_push(data.get("push")),
    )


def _read_list(value: Any, reader) -> Optional[tuple]:
    """Reads every valid entry of a JSON array; an empty result is None."""
    if not isinstance(value, list):
        return None
    entries = tuple(entry for entry in (reader(item) for item in value) if entry is not None)
    return entries or None


def _read_branch_link(value: Any) -> Optional[GitSpiceBranchLink]:
    if not isinstance(value, dict):
        return None
    name = _read_string(value.get("name"))
    if not name:
        return None
    return GitSpiceBranchLink(name=name, needs_restack=value.get("needsRestack") is True)


def _read_commit(value: Any) -> Optional[GitSpiceCommit]:
    if not isinstance(value, dict):
        return None
    sha = _read_string(value.get("sha"))
    subject = _read_string(value.get("subject"))
    if not sha or not subject:
        return None
    return GitSpiceCommit(sha=sha, subject=subject)


def _read_change(value: Any) -> Optional[GitSpiceChange]:
    if not isinstance(value, dict):
        return None
    change_id = _read_string(value.get("id"))
    url = _read_string(value.get("url"))
    if not change_id or not url:
        return None

    status = value.get("status")
    return GitSpiceChange(
        id=change_id,
        url=url,
        status=status if status in CHANGE_STATUSES else None,
        comments=_read_comments(value.get("comments")),
    )


def _read_comments(value: Any) -> Optional[GitSpiceComments]:
    if not isinstance(value, dict):
        return None
    total = _read_number(value.get("total"))
    resolved = _read_number(value.get("resolved"))
    unresolved = _read_number(value.get("unresolved"))
    if total is None or resolved is None or unresolved is None:
        return None
    # Inconsistent counters are dropped rather than shown
    if resolved + unresolved != total:
        return None
    return GitSpiceComments(total=total, resolved=resolved, unresolved=unresolved)


def _read_push(value: Any) -> Optional[GitSpicePush]:
    if not isinstance(value, dict):
        return None
    ahead = _read_number(value.get("ahead"))
    behind = _read_number(value.get("behind"))
    if ahead is None or behind is None:
        return None
    return GitSpicePush(ahead=ahead, behind=behind, needs_push=value.get("needsPush") is True)


def _read_string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _read_number(value: Any):
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value
