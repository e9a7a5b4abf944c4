import logging
import os
from functools import partial
from typing import Optional

from PyQt6.QtCore import QByteArray
from PyQt6.QtGui import QFont, QGuiApplication
from PyQt6.QtWidgets import (
    QApplication,
    QFileDialog,
    QInputDialog,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QVBoxLayout,
    QWidget,
)

from components.notification_widget import NotificationWidget
from file_watcher import StackFileWatcher
from git_spice_manager import GitSpiceManager
from repo_state import RepoState
from settings import settings
from threads import GitSpiceCommandThread, RepoSyncThread, StackLoadThread
from views.stack_view import StackView
from views.top_bar_widget import TopBarWidget

# action -> (manager method, notification text)
SIMPLE_BRANCH_ACTIONS = {
    "checkout": ("branch_checkout", "Checked out {0}"),
    "restack": ("branch_restack", "Restacked {0}"),
    "submit": ("branch_submit", "Submitted {0}"),
    "fold": ("branch_fold", "Folded {0} into its parent"),
    "squash": ("branch_squash", "Squashed {0}"),
    "edit": ("branch_edit", "Finished editing {0}"),
    "untrack": ("branch_untrack", "Stopped tracking {0}"),
}


class StackWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle(self.tr("mystack"))

        self.settings = settings
        self.manager: Optional[GitSpiceManager] = None
        self.repo_state: Optional[RepoState] = None
        self.load_thread: Optional[StackLoadThread] = None
        self._reload_pending = False
        # 保持线程引用，避免线程运行中被回收
        self.command_threads: set = set()
        self.sync_thread: Optional[RepoSyncThread] = None

        self._restore_geometry()

        main_widget = QWidget()
        self.setCentralWidget(main_widget)
        main_layout = QVBoxLayout()
        main_layout.setContentsMargins(0, 0, 0, 0)
        main_layout.setSpacing(0)
        main_widget.setLayout(main_layout)

        self.top_bar = TopBarWidget(self)
        main_layout.addWidget(self.top_bar)

        self.stack_view = StackView(self)
        self.stack_view.tree.setFont(QFont(self.settings.get_font_family(), self.settings.get_font_size()))
        main_layout.addWidget(self.stack_view)

        self.notification_widget = NotificationWidget(self)

        self.file_watcher = StackFileWatcher(self.settings.get_refresh_debounce_ms(), self)
        self.file_watcher.refresh_requested.connect(self.reload_stack)

        # Connect signals from TopBarWidget
        self.top_bar.open_folder_requested.connect(self.open_folder_dialog)
        self.top_bar.recent_folder_selected.connect(self.open_folder)
        self.top_bar.clear_recent_folders_requested.connect(self.clear_recent_folders)
        self.top_bar.refresh_requested.connect(self.reload_stack)
        self.top_bar.up_requested.connect(partial(self.run_repo_command, "up", "Moved up the stack"))
        self.top_bar.down_requested.connect(partial(self.run_repo_command, "down", "Moved down the stack"))
        self.top_bar.trunk_requested.connect(partial(self.run_repo_command, "trunk", "Checked out trunk"))
        self.top_bar.stack_restack_requested.connect(
            partial(self.run_repo_command, "stack_restack", "Stack restacked")
        )
        self.top_bar.stack_submit_requested.connect(partial(self.run_repo_command, "stack_submit", "Stack submitted"))
        self.top_bar.repo_sync_requested.connect(self.repo_sync)
        self.top_bar.track_branch_requested.connect(partial(self.on_branch_action, "track"))
        self.top_bar.comment_progress_toggled.connect(self.on_comment_progress_toggled)
        self.top_bar.set_comment_progress(self.settings.get_show_comment_progress())

        self.stack_view.branch_action_requested.connect(self.on_branch_action)
        self.stack_view.commit_action_requested.connect(self.on_commit_action)
        self.stack_view.uncommitted_action_requested.connect(self.on_uncommitted_action)
        self.stack_view.branch_activated.connect(partial(self.on_branch_action, "checkout"))

        self.update_recent_menu_on_top_bar()

        last_folder = self.settings.get_last_folder()
        if last_folder and os.path.exists(last_folder):
            self.open_folder(last_folder)

    def _restore_geometry(self):
        geometry = self.settings.get_window_geometry()
        if geometry and self.restoreGeometry(QByteArray.fromBase64(geometry.encode("ascii"))):
            return

        screen = QGuiApplication.primaryScreen()
        if screen:
            available = screen.availableGeometry()
            self.setGeometry(
                available.x() + int(available.width() * 0.2),
                available.y() + int(available.height() * 0.1),
                int(available.width() * 0.6),
                int(available.height() * 0.8),
            )
        else:
            self.resize(900, 700)

    # --- folders ---

    def update_recent_menu_on_top_bar(self):
        recent_folders = self.settings.get_recent_folders()
        valid_recent_folders = [f for f in recent_folders if os.path.exists(f)]
        self.top_bar.update_recent_menu(valid_recent_folders)

    def clear_recent_folders(self):
        """清除最近文件夹记录"""
        self.settings.settings["recent_folders"] = []
        self.settings.settings["last_folder"] = None
        self.settings.save_settings()
        self.update_recent_menu_on_top_bar()

    def open_folder_dialog(self):
        """打开文件夹选择对话框"""
        folder_path = QFileDialog.getExistingDirectory(self, self.tr("Select Git Repository"))
        if folder_path:
            self.open_folder(folder_path)

    def open_folder(self, folder_path):
        """打开指定的文件夹"""
        self.file_watcher.stop()
        manager = GitSpiceManager(
            folder_path,
            binary=self.settings.get_git_spice_binary(),
            timeout=self.settings.get_command_timeout(),
        )
        manager.show_comment_progress = self.settings.get_show_comment_progress()

        if not manager.initialize():
            self.manager = None
            self.stack_view.clear()
            self.top_bar.set_buttons_enabled(False)
            self.notification_widget.show_error(self.tr("Selected folder is not a valid Git repository"))
            return

        self.manager = manager
        self.settings.add_recent_folder(manager.repo_path)
        self.update_recent_menu_on_top_bar()
        self.top_bar.set_buttons_enabled(True)
        self.setWindowTitle(f"{self.tr('mystack')} - {manager.repo_path}")
        self.stack_view.clear()
        self.file_watcher.start(manager.repo_path)
        self.reload_stack()

    # --- loading ---

    def reload_stack(self):
        if not self.manager:
            return
        if self.load_thread and self.load_thread.isRunning():
            self._reload_pending = True
            return

        self._reload_pending = False
        self.top_bar.start_busy()
        self.load_thread = StackLoadThread(self.manager)
        self.load_thread.loaded.connect(self.handle_stack_loaded)
        self.load_thread.finished.connect(self.handle_load_finished)
        self.load_thread.start()

    def handle_stack_loaded(self, state: RepoState):
        self.repo_state = state
        self.stack_view.update_stack(state.to_display_state())
        self.top_bar.update_current_branch(state.current_branch, untracked=state.untracked_branch is not None)

    def handle_load_finished(self, success, error_message):
        self.top_bar.stop_busy()
        if not success:
            self.notification_widget.show_error(f"{self.tr('Failed to load stack')}: {error_message}")
        if self._reload_pending:
            self.reload_stack()

    def on_comment_progress_toggled(self, enabled):
        self.settings.set_show_comment_progress(enabled)
        if self.manager:
            self.manager.show_comment_progress = enabled
            self.reload_stack()

    # --- commands ---

    def run_command(self, description: str, command, success_message: str = ""):
        """在后台线程执行 gs 命令，完成后刷新"""
        if not self.manager:
            return
        logging.info("Running %s", description)
        self.top_bar.start_busy()
        thread = GitSpiceCommandThread(description, command)
        thread.finished.connect(partial(self.handle_command_finished, thread, success_message))
        self.command_threads.add(thread)
        thread.start()

    def handle_command_finished(self, thread, success_message, success, error_message):
        """处理命令完成"""
        try:
            if not success:
                self.notification_widget.show_error(error_message)
            elif success_message:
                self.notification_widget.show_success(success_message)
        finally:
            self.command_threads.discard(thread)
            self.top_bar.stop_busy()
            self.reload_stack()
            QApplication.processEvents()

    def run_repo_command(self, method_name: str, success_message: str):
        if not self.manager:
            return
        self.run_command(method_name, getattr(self.manager, method_name), self.tr(success_message))

    def repo_sync(self):
        if not self.manager or (self.sync_thread and self.sync_thread.isRunning()):
            return
        self.top_bar.start_busy()
        self.sync_thread = RepoSyncThread(self.manager)
        self.sync_thread.prompt.connect(self.handle_sync_prompt)
        self.sync_thread.synced.connect(self.handle_sync_result)
        self.sync_thread.finished.connect(self.handle_sync_finished)
        self.sync_thread.start()

    def handle_sync_prompt(self, branch_name):
        reply = QMessageBox.question(
            self,
            self.tr("Delete branch"),
            self.tr("Branch '{0}' was merged or closed. Delete it?").format(branch_name),
        )
        self.sync_thread.answer(reply == QMessageBox.StandardButton.Yes)

    def handle_sync_result(self, result):
        message = self.tr("Synced {0} branches").format(result.synced_branches)
        if result.deleted_branches:
            message += self.tr(", deleted {0}").format(", ".join(result.deleted_branches))
        self.notification_widget.show_success(message)

    def handle_sync_finished(self, success, error_message):
        self.top_bar.stop_busy()
        if not success:
            self.notification_widget.show_error(error_message)
        self.reload_stack()

    def _other_branch_names(self, branch_name):
        names = [b.name for b in self.repo_state.branches] if self.repo_state else []
        return [name for name in names if name != branch_name]

    def _ask_text(self, title, label, text=""):
        value, ok = QInputDialog.getText(self, title, label, QLineEdit.EchoMode.Normal, text)
        return value if ok else None

    def _ask_branch(self, title, label, branch_name):
        choices = self._other_branch_names(branch_name)
        if not choices:
            self.notification_widget.show_message(self.tr("No other branch to choose from"))
            return None
        value, ok = QInputDialog.getItem(self, title, label, choices, 0, True)
        return value if ok else None

    def on_branch_action(self, action, branch_name):
        if not self.manager:
            return
        manager = self.manager

        if action in SIMPLE_BRANCH_ACTIONS:
            method_name, message = SIMPLE_BRANCH_ACTIONS[action]
            self.run_command(
                f"{action} {branch_name}",
                partial(getattr(manager, method_name), branch_name),
                self.tr(message).format(branch_name),
            )
        elif action == "rename":
            new_name = self._ask_text(self.tr("Rename branch"), self.tr("New name:"), branch_name)
            if new_name is not None:
                self.run_command(
                    f"rename {branch_name}",
                    partial(manager.branch_rename, branch_name, new_name),
                    self.tr("Renamed {0} to {1}").format(branch_name, new_name.strip()),
                )
        elif action in ("move", "upstack_move"):
            new_parent = self._ask_branch(self.tr("Move branch"), self.tr("Move {0} onto:").format(branch_name), branch_name)
            if new_parent is not None:
                method = manager.branch_move if action == "move" else manager.upstack_move
                self.run_command(
                    f"{action} {branch_name}",
                    partial(method, branch_name, new_parent),
                    self.tr("Moved {0} onto {1}").format(branch_name, new_parent),
                )
        elif action == "track":
            base = self._ask_branch(
                self.tr("Track branch"), self.tr("Base branch for {0}:").format(branch_name), branch_name
            )
            if base is not None:
                self.run_command(
                    f"track {branch_name}",
                    partial(manager.branch_track, branch_name, base),
                    self.tr("Tracking {0} on top of {1}").format(branch_name, base),
                )
        elif action == "delete":
            reply = QMessageBox.question(
                self,
                self.tr("Delete branch"),
                self.tr("Delete branch '{0}'? Its commits are lost if not merged.").format(branch_name),
            )
            if reply == QMessageBox.StandardButton.Yes:
                self.run_command(
                    f"delete {branch_name}",
                    partial(manager.branch_delete, branch_name),
                    self.tr("Deleted {0}").format(branch_name),
                )
        else:
            logging.warning("Unknown branch action: %s", action)

    def on_commit_action(self, action, branch_name, sha):
        if not self.manager:
            return
        if action == "fixup":
            self.run_command(
                f"fixup {sha}", partial(self.manager.commit_fixup, sha), self.tr("Fixup commit created")
            )
        elif action == "split":
            new_name = self._ask_text(self.tr("Split branch"), self.tr("Name of the new lower branch:"))
            if new_name is not None:
                self.run_command(
                    f"split {branch_name}",
                    partial(self.manager.branch_split, branch_name, sha, new_name),
                    self.tr("Split {0} at {1}").format(branch_name, sha[:8]),
                )
        elif action == "copy_sha":
            QApplication.clipboard().setText(sha)
        else:
            logging.warning("Unknown commit action: %s", action)

    def on_uncommitted_action(self, action):
        if not self.manager:
            return
        if action == "create_branch":
            message = self._ask_text(self.tr("Create branch"), self.tr("Commit message:"))
            if message is not None:
                self.run_command(
                    "branch create", partial(self.manager.branch_create, message), self.tr("Branch created")
                )
        elif action == "stage_all":
            self.run_command("stage all", self.manager.stage_all, self.tr("All changes staged"))
        else:
            logging.warning("Unknown uncommitted action: %s", action)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.notification_widget.reposition()

    def closeEvent(self, event):
        """Ensure the watchdog observer is stopped on close."""
        self.settings.save_window_geometry(bytes(self.saveGeometry().toBase64()).decode("ascii"))
        self.file_watcher.stop()
        if self.sync_thread and self.sync_thread.isRunning():
            self.sync_thread.cancel()
            self.sync_thread.wait()
        super().closeEvent(event)
