import logging
import os
from typing import Optional

import pathspec
from PyQt6.QtCore import QObject, QTimer, pyqtSignal
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

# .git paths whose changes mean the stack may have changed
GIT_PATHS_OF_INTEREST = (".git/HEAD", ".git/index", ".git/refs/spice/data")
GIT_PREFIXES_OF_INTEREST = (".git/refs/heads/", ".git/refs/spice/data/")


class GitIgnoreMatcher:
    """Matches repository-relative paths against the top-level .gitignore."""

    def __init__(self, repo_path: str):
        self.repo_path = repo_path
        self.ignore_spec: Optional[pathspec.PathSpec] = None
        self.reload()

    def reload(self):
        """加载.gitignore 文件中的忽略规则"""
        gitignore_path = os.path.join(self.repo_path, ".gitignore")
        if not os.path.exists(gitignore_path):
            self.ignore_spec = None
            return

        with open(gitignore_path, "r", encoding="utf-8") as f:
            patterns = f.readlines()

        self.ignore_spec = pathspec.PathSpec.from_lines("gitwildmatch", patterns)

    def is_ignored(self, rel_path: str) -> bool:
        if not self.ignore_spec:
            return False
        return self.ignore_spec.match_file(rel_path)


def to_repo_relative(repo_path: str, path: str) -> Optional[str]:
    """Returns path relative to repo_path with forward slashes, or None when outside it."""
    try:
        rel_path = os.path.relpath(path, repo_path)
    except ValueError:
        return None
    rel_path = rel_path.replace(os.sep, "/")
    if rel_path == ".." or rel_path.startswith("../"):
        return None
    return rel_path


def is_git_change_of_interest(rel_path: str) -> bool:
    if rel_path in GIT_PATHS_OF_INTEREST:
        return True
    return rel_path.startswith(GIT_PREFIXES_OF_INTEREST)


def is_stack_change_of_interest(rel_path: Optional[str], matcher: Optional[GitIgnoreMatcher] = None) -> bool:
    """
    Whether a change at rel_path should refresh the stack: selected .git files
    (HEAD, index, branch refs, git-spice data) and working-tree files that are
    not ignored.
    """
    if not rel_path or rel_path == ".":
        return False
    if is_git_change_of_interest(rel_path):
        return True
    if rel_path == ".git" or rel_path.startswith(".git/"):
        return False
    if matcher is not None and matcher.is_ignored(rel_path):
        return False
    return True


class StackChangeHandler(FileSystemEventHandler, QObject):
    """Handles file system events from watchdog and signals the main window."""

    stack_changed = pyqtSignal(str, str)  # (event_type, path)

    def __init__(self, repo_path: str):
        FileSystemEventHandler.__init__(self)
        QObject.__init__(self)
        self.repo_path = repo_path
        self.matcher = GitIgnoreMatcher(repo_path)

    def on_any_event(self, event):
        if event.event_type in ("opened", "closed", "closed_no_write"):
            return

        paths = [event.src_path]
        dest_path = getattr(event, "dest_path", None)
        if dest_path:
            paths.append(dest_path)

        for path in paths:
            if isinstance(path, bytes):
                path = os.fsdecode(path)
            rel_path = to_repo_relative(self.repo_path, path)
            if rel_path == ".gitignore":
                self.matcher.reload()
            if is_stack_change_of_interest(rel_path, self.matcher):
                logging.debug("Stack watchdog event: %s on %s", event.event_type, rel_path)
                self.stack_changed.emit(event.event_type, path)
                return


class StackFileWatcher(QObject):
    """Watches one repository and emits refresh_requested, debounced."""

    refresh_requested = pyqtSignal()

    def __init__(self, debounce_ms: int = 300, parent=None):
        super().__init__(parent)
        self.observer = None
        self.handler: Optional[StackChangeHandler] = None
        self.refresh_timer = QTimer(self)
        self.refresh_timer.setSingleShot(True)
        self.refresh_timer.setInterval(debounce_ms)
        self.refresh_timer.timeout.connect(self.refresh_requested.emit)

    def start(self, repo_path: str):
        """Starts the watchdog observer for the given folder."""
        self.stop()

        self.handler = StackChangeHandler(repo_path)
        self.handler.stack_changed.connect(self.schedule_refresh)

        self.observer = Observer()
        self.observer.schedule(self.handler, repo_path, recursive=True)
        self.observer.start()
        logging.info("Started watching folder for changes: %s", repo_path)

    def stop(self):
        """Stops the watchdog observer if it's running."""
        self.refresh_timer.stop()
        if self.observer and self.observer.is_alive():
            self.observer.stop()
            self.observer.join()
            logging.info("Stopped watching folder.")
        self.observer = None
        self.handler = None

    def schedule_refresh(self, event_type=None, path=None):
        """Restarts the debounce timer; bursts of events refresh once."""
        logging.debug("Refresh scheduled by %s on %s", event_type, path)
        self.refresh_timer.start()
