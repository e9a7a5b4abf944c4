import logging
import os
import queue
import re
import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import git

from git_spice_parser import GitSpiceBranch, parse_git_spice_branches
from utils import format_error, to_error_message
from working_copy import UncommittedState, parse_git_status_output

GIT_SPICE_BINARY = "gs"
GIT_SPICE_TIMEOUT = 30  # seconds
BRANCH_CREATE_TIMEOUT = 10  # seconds

_SYNCED_COUNT_PATTERN = re.compile(r"(\d+) branch(?:es)? synced", re.IGNORECASE)
_DELETE_PROMPT_PATTERN = re.compile(r"Delete branch '([^']+)'\? \[y/N\]", re.IGNORECASE)


class GitSpiceError(Exception):
    """A git-spice or git command failed; the message is ready to show to the user."""


@dataclass
class RepoSyncResult:
    deleted_branches: list[str] = field(default_factory=list)
    synced_branches: int = 0


def parse_synced_branch_count(output: str) -> int:
    match = _SYNCED_COUNT_PATTERN.search(output)
    return int(match.group(1)) if match else 0


def extract_branch_from_prompt(text: str) -> Optional[str]:
    match = _DELETE_PROMPT_PATTERN.search(text)
    return match.group(1) if match else None


def _normalize(value: str, field_name: str, context: str) -> str:
    if not isinstance(value, str):
        raise GitSpiceError(format_error(context, f"{field_name} must be a string"))
    trimmed = value.strip()
    if not trimmed:
        raise GitSpiceError(format_error(context, f"{field_name} cannot be empty"))
    return trimmed


def _drain_pipe(pipe, sink: Callable[[bytes], None]):
    """Hands every chunk read from pipe to sink; an empty chunk marks EOF."""
    while True:
        chunk = pipe.read1(4096)
        sink(chunk)
        if not chunk:
            return


class GitSpiceManager:
    """Runs git-spice (`gs`) and git for a single repository."""

    def __init__(self, repo_path: str, binary: str = GIT_SPICE_BINARY, timeout: int = GIT_SPICE_TIMEOUT):
        self.repo_path = repo_path
        self.binary = binary
        self.timeout = timeout
        self.show_comment_progress = False
        self.repo: Optional[git.Repo] = None

    def initialize(self) -> bool:
        """打开仓库，并将 repo_path 修正为工作区根目录"""
        try:
            self.repo = git.Repo(self.repo_path, search_parent_directories=True)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError):
            logging.warning("Not a git repository: %s", self.repo_path)
            return False
        if self.repo.working_tree_dir:
            self.repo_path = str(self.repo.working_tree_dir)
        return True

    @property
    def name(self) -> str:
        return os.path.basename(os.path.normpath(self.repo_path))

    # --- gs process handling ---

    def _run(self, args: Sequence[str], context: str, timeout: Optional[int] = None) -> str:
        command = [self.binary, *args]
        logging.debug("Running %s in %s", " ".join(command), self.repo_path)
        try:
            result = subprocess.run(
                command,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                encoding="utf-8",
                timeout=timeout or self.timeout,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or (e.stdout or "").strip() or f"exited with code {e.returncode}"
            raise GitSpiceError(format_error(context, detail)) from e
        except subprocess.TimeoutExpired as e:
            raise GitSpiceError(format_error(context, f"timed out after {e.timeout}s")) from e
        except FileNotFoundError as e:
            raise GitSpiceError(format_error(context, f"'{self.binary}' not found, is git-spice installed?")) from e
        return result.stdout

    def load_branches(self) -> list[GitSpiceBranch]:
        """获取所有被 git-spice 跟踪的分支 (gs ll -a --json)"""
        args = ["ll", "-a", "-c", "--json"] if self.show_comment_progress else ["ll", "-a", "--json"]
        output = self._run(args, "Load branches")
        return parse_git_spice_branches(output)

    # --- git (GitPython) ---

    def current_branch_name(self) -> Optional[str]:
        if not self.repo:
            return None
        try:
            return self.repo.active_branch.name
        except TypeError:
            # detached HEAD
            return None

    def working_copy_changes(self) -> UncommittedState:
        """获取工作区的暂存与未暂存变更"""
        if not self.repo:
            return UncommittedState()
        try:
            output = self.repo.git.status("--porcelain=v1", "--untracked-files=all")
        except git.GitCommandError as e:
            logging.error("Failed to fetch working copy changes: %s", e)
            return UncommittedState()
        return parse_git_status_output(output)

    def stage_all(self):
        if not self.repo:
            raise GitSpiceError(format_error("Stage all", "repository is not initialized"))
        try:
            self.repo.git.add("-A")
        except git.GitCommandError as e:
            raise GitSpiceError(format_error("Stage all", to_error_message(e))) from e

    # --- branch commands ---

    def branch_checkout(self, branch_name: str):
        name = _normalize(branch_name, "Branch name", "Branch checkout")
        self._run(["branch", "checkout", name], "Branch checkout")

    def branch_restack(self, branch_name: str):
        name = _normalize(branch_name, "Branch name", "Branch restack")
        self._run(["branch", "restack", "--branch", name], "Branch restack")

    def branch_submit(self, branch_name: str):
        name = _normalize(branch_name, "Branch name", "Branch submit")
        self._run(["branch", "submit", "--branch", name], "Branch submit")

    def branch_delete(self, branch_name: str):
        """Untracks the branch and deletes the local git branch."""
        name = _normalize(branch_name, "Branch name", "Branch delete")
        self._run(["branch", "delete", "--force", name], "Branch delete")

    def branch_fold(self, branch_name: str):
        name = _normalize(branch_name, "Branch name", "Branch fold")
        self._run(["branch", "fold", "--branch", name], "Branch fold")

    def branch_squash(self, branch_name: str):
        name = _normalize(branch_name, "Branch name", "Branch squash")
        self._run(["branch", "squash", "--branch", name, "--no-edit"], "Branch squash")

    def branch_edit(self, branch_name: str):
        _normalize(branch_name, "Branch name", "Branch edit")
        self._run(["branch", "edit"], "Branch edit")

    def branch_rename(self, branch_name: str, new_name: str):
        name = _normalize(branch_name, "Current branch name", "Branch rename")
        target = _normalize(new_name, "New branch name", "Branch rename")
        self._run(["branch", "rename", name, target], "Branch rename")

    def branch_untrack(self, branch_name: str):
        name = _normalize(branch_name, "Branch name", "Branch untrack")
        self._run(["branch", "untrack", name], "Branch untrack")

    def branch_track(self, branch_name: str, base_branch: str):
        name = _normalize(branch_name, "Branch name", "Branch track")
        base = _normalize(base_branch, "Base branch", "Branch track")
        self._run(["branch", "track", "--base", base, name], "Branch track")

    def branch_create(self, message: str):
        """Commits all changes into a new branch stacked on the current one."""
        commit_message = _normalize(message, "Commit message", "Branch create")
        self._run(
            ["branch", "create", "-m", commit_message, "-a", "--no-prompt", "--no-verify"],
            "Branch create",
            timeout=BRANCH_CREATE_TIMEOUT,
        )

    def branch_move(self, branch_name: str, new_parent: str):
        """Changes the base of a single branch; its children stay where they are."""
        name = _normalize(branch_name, "Branch name", "Branch move")
        parent = _normalize(new_parent, "New parent name", "Branch move")
        self._run(["branch", "onto", parent, "--branch", name], "Branch move")

    def upstack_move(self, branch_name: str, new_parent: str):
        """Moves a branch together with all of its descendants."""
        name = _normalize(branch_name, "Branch name", "Upstack move")
        parent = _normalize(new_parent, "New parent name", "Upstack move")
        self._run(["upstack", "onto", parent, "--branch", name], "Upstack move")

    def branch_split(self, branch_name: str, sha: str, new_branch_name: str):
        name = _normalize(branch_name, "Branch name", "Branch split")
        commit_sha = _normalize(sha, "Commit SHA", "Branch split")
        new_branch = _normalize(new_branch_name, "New branch name", "Branch split")
        self._run(["branch", "split", "--branch", name, "--at", f"{commit_sha}^:{new_branch}"], "Branch split")

    def commit_fixup(self, sha: str):
        commit_sha = _normalize(sha, "Commit SHA", "Commit fixup")
        self._run(["commit", "fixup", commit_sha], "Commit fixup")

    # --- navigation and stack-wide commands ---

    def up(self):
        self._run(["up"], "Navigate up")

    def down(self):
        self._run(["down"], "Navigate down")

    def trunk(self):
        self._run(["trunk"], "Navigate to trunk")

    def stack_restack(self):
        self._run(["stack", "restack"], "Stack restack")

    def stack_submit(self):
        self._run(["stack", "submit", "--fill", "--no-draft"], "Stack submit")

    def repo_sync(self, prompt_callback: Callable[[str], bool]) -> RepoSyncResult:
        """
        Runs `gs repo sync`, answering each "Delete branch 'x'? [y/N]" prompt
        with prompt_callback(branch_name).

        stdout and stderr are drained on reader threads so a chatty stderr can
        not stall the child. The timeout applies to waiting on the process;
        time spent inside prompt_callback does not count.
        """
        context = "Repository sync"
        try:
            process = subprocess.Popen(
                [self.binary, "repo", "sync"],
                cwd=self.repo_path,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise GitSpiceError(format_error(context, f"'{self.binary}' not found, is git-spice installed?")) from e

        output_chunks: "queue.Queue[bytes]" = queue.Queue()
        error_chunks: list[bytes] = []
        stdout_reader = threading.Thread(target=_drain_pipe, args=(process.stdout, output_chunks.put), daemon=True)
        stderr_reader = threading.Thread(target=_drain_pipe, args=(process.stderr, error_chunks.append), daemon=True)
        stdout_reader.start()
        stderr_reader.start()

        result = RepoSyncResult()
        output = ""
        pending = ""
        deadline = time.monotonic() + self.timeout
        try:
            # Prompts are not newline terminated, so handle whatever arrives
            while True:
                try:
                    chunk = output_chunks.get(timeout=max(deadline - time.monotonic(), 0))
                except queue.Empty:
                    raise GitSpiceError(format_error(context, f"timed out after {self.timeout}s")) from None
                if not chunk:
                    break
                text = chunk.decode("utf-8", errors="replace")
                output += text
                pending += text
                branch_name = extract_branch_from_prompt(pending)
                if branch_name is None:
                    continue
                pending = ""
                should_delete = prompt_callback(branch_name)
                deadline = time.monotonic() + self.timeout
                try:
                    process.stdin.write(b"y\n" if should_delete else b"n\n")
                    process.stdin.flush()
                except BrokenPipeError:
                    # 进程已退出，退出码会说明原因
                    logging.warning("git-spice exited before the answer for %s was sent", branch_name)
                    continue
                if should_delete:
                    result.deleted_branches.append(branch_name)

            try:
                return_code = process.wait(timeout=max(deadline - time.monotonic(), 0))
            except subprocess.TimeoutExpired as e:
                raise GitSpiceError(format_error(context, f"timed out after {self.timeout}s")) from e
            stderr_reader.join(timeout=max(deadline - time.monotonic(), 0))
        finally:
            if process.poll() is None:
                logging.warning("Killing unfinished repository sync")
                process.kill()
                process.wait()

        error_output = b"".join(error_chunks).decode("utf-8", errors="replace")
        if return_code != 0:
            detail = error_output.strip() or output.strip() or f"exited with code {return_code}"
            raise GitSpiceError(format_error(context, detail))

        result.synced_branches = parse_synced_branch_count(output)
        logging.info(
            "Repository sync finished: %d synced, deleted %s", result.synced_branches, result.deleted_branches
        )
        return result
