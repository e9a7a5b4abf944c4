import logging
import threading
from typing import TYPE_CHECKING, Callable

from PyQt6.QtCore import QThread, pyqtSignal

from repo_state import fetch_repo_state
from utils import to_error_message

if TYPE_CHECKING:
    from git_spice_manager import GitSpiceManager


class StackLoadThread(QThread):
    """用于在后台读取仓库状态的线程"""

    loaded = pyqtSignal(object)  # RepoState
    finished = pyqtSignal(bool, str)  # (success, error_message)

    def __init__(self, manager: "GitSpiceManager"):
        super().__init__()
        self.manager = manager

    def run(self):
        try:
            state = fetch_repo_state(self.manager)
            self.loaded.emit(state)
            self.finished.emit(True, "")
        except Exception as e:
            logging.exception("Failed to load stack")
            self.finished.emit(False, to_error_message(e))


class GitSpiceCommandThread(QThread):
    """用于在后台执行 gs 命令的线程"""

    finished = pyqtSignal(bool, str)  # (success, error_message)

    def __init__(self, description: str, command: Callable[[], object]):
        super().__init__()
        self.description = description
        self.command = command

    def run(self):
        """执行命令"""
        try:
            self.command()
            self.finished.emit(True, "")
        except Exception as e:
            logging.error("%s failed: %s", self.description, e)
            self.finished.emit(False, to_error_message(e))


class RepoSyncThread(QThread):
    """
    执行 gs repo sync。遇到删除分支的提示时发出 prompt 信号，
    线程阻塞直到 UI 调用 answer() 或 cancel()
    """

    prompt = pyqtSignal(str)  # branch name
    synced = pyqtSignal(object)  # RepoSyncResult
    finished = pyqtSignal(bool, str)

    def __init__(self, manager: "GitSpiceManager"):
        super().__init__()
        self.manager = manager
        self._answered = threading.Event()
        self._answer = False
        self._cancelled = False

    def answer(self, should_delete: bool):
        self._answer = should_delete
        self._answered.set()

    def cancel(self):
        """Answers the pending and all later prompts with no."""
        self._cancelled = True
        self.answer(False)

    def _ask(self, branch_name: str) -> bool:
        # 先清除再检查，cancel() 在两者之间发生时 wait 也会立即返回
        self._answered.clear()
        if self._cancelled:
            return False
        self.prompt.emit(branch_name)
        self._answered.wait()
        return self._answer and not self._cancelled

    def run(self):
        try:
            result = self.manager.repo_sync(self._ask)
            self.synced.emit(result)
            self.finished.emit(True, "")
        except Exception as e:
            logging.error("Repository sync failed: %s", e)
            self.finished.emit(False, to_error_message(e))
