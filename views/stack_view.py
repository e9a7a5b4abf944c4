import logging
from typing import Optional

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QBrush, QColor, QFont
from PyQt6.QtWidgets import QLabel, QMenu, QTreeWidget, QTreeWidgetItem, QVBoxLayout, QWidget

from components.stack_tree_delegate import FRAGMENT_ROLE, StackTreeDelegate
from stack_tree_data import UNCOMMITTED_ROW_NAME
from stack_tree_items import RESTACK_COLOR, continuation_fragment
from stack_tree_rows import BranchViewModel, DisplayState, status_text

# Item data (column 0, UserRole): ("branch", name) / ("commit", branch, sha) / ("uncommitted",)
ITEM_KIND_ROLE = Qt.ItemDataRole.UserRole

BRANCH_ACTIONS = [
    ("checkout", "Checkout"),
    ("restack", "Restack"),
    ("submit", "Submit"),
    None,
    ("rename", "Rename..."),
    ("move", "Move onto..."),
    ("upstack_move", "Move with upstack onto..."),
    ("edit", "Edit (interactive rebase)"),
    None,
    ("fold", "Fold into parent"),
    ("squash", "Squash commits"),
    ("untrack", "Untrack"),
    ("delete", "Delete..."),
]
COMMIT_ACTIONS = [
    ("fixup", "Fixup staged changes into this commit"),
    ("split", "Split branch at this commit..."),
    ("copy_sha", "Copy SHA"),
]
UNCOMMITTED_ACTIONS = [
    ("create_branch", "Create branch from changes..."),
    ("stage_all", "Stage all changes"),
]

COLUMN_BRANCH = 0
COLUMN_CHANGE = 1
COLUMN_STATUS = 2


def change_text(branch: BranchViewModel) -> str:
    change = branch.change
    if change is None:
        return ""
    text = change.id
    if change.status:
        text += f" ({change.status})"
    if change.comments is not None and change.comments.total:
        text += f" {change.comments.resolved}/{change.comments.total} resolved"
    return text


class StackView(QWidget):
    branch_action_requested = pyqtSignal(str, str)  # (action, branch_name)
    commit_action_requested = pyqtSignal(str, str, str)  # (action, branch_name, sha)
    uncommitted_action_requested = pyqtSignal(str)  # action
    branch_activated = pyqtSignal(str)  # double click -> checkout

    def __init__(self, parent=None):
        super().__init__(parent)
        self.display_state: Optional[DisplayState] = None
        self.setup_ui()

    def setup_ui(self):
        layout = QVBoxLayout()
        layout.setContentsMargins(5, 5, 5, 5)
        self.setLayout(layout)

        self.message_label = QLabel()
        self.message_label.setWordWrap(True)
        self.message_label.hide()
        layout.addWidget(self.message_label)

        self.tree = QTreeWidget(self)
        self.tree.setHeaderLabels([self.tr("Branch"), self.tr("Change"), self.tr("Status")])
        self.tree.setColumnWidth(COLUMN_BRANCH, 320)
        self.tree.setColumnWidth(COLUMN_CHANGE, 220)
        self.tree.setRootIsDecorated(False)
        self.tree.setIndentation(0)
        self.tree.setUniformRowHeights(True)
        self.tree.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.tree.customContextMenuRequested.connect(self._show_context_menu)
        self.tree.itemDoubleClicked.connect(self._on_item_double_clicked)

        # 第一列使用委托绘制分支树
        self.tree_delegate = StackTreeDelegate(self.tree)
        self.tree.setItemDelegateForColumn(COLUMN_BRANCH, self.tree_delegate)

        layout.addWidget(self.tree)

    def clear(self):
        self.display_state = None
        self.tree.clear()
        self.message_label.hide()

    def show_message(self, text: str):
        self.message_label.setText(text)
        self.message_label.show()

    def update_stack(self, display_state: DisplayState):
        """按显示顺序重建分支列表"""
        self.display_state = display_state
        expanded = self._expanded_branches()
        self.tree.clear()

        if display_state.error:
            self.show_message(display_state.error)
        elif not display_state.branches:
            self.show_message(self.tr("No branches are tracked by git-spice in this repository."))
        else:
            self.message_label.hide()

        for name in display_state.row_order:
            if name == UNCOMMITTED_ROW_NAME:
                self._add_uncommitted_item(display_state)
                continue
            branch = display_state.branch(name)
            if branch is None:
                logging.warning("Row %s has no branch view model", name)
                continue
            item = self._add_branch_item(branch)
            item.setExpanded(name in expanded)

    def _expanded_branches(self) -> set[str]:
        names = set()
        for i in range(self.tree.topLevelItemCount()):
            item = self.tree.topLevelItem(i)
            kind = item.data(COLUMN_BRANCH, ITEM_KIND_ROLE)
            if item.isExpanded() and kind and kind[0] == "branch":
                names.add(kind[1])
        return names

    def _add_branch_item(self, branch: BranchViewModel) -> QTreeWidgetItem:
        item = QTreeWidgetItem(self.tree)
        item.setText(COLUMN_BRANCH, branch.name)
        item.setData(COLUMN_BRANCH, ITEM_KIND_ROLE, ("branch", branch.name))
        item.setData(COLUMN_BRANCH, FRAGMENT_ROLE, branch.fragment)
        item.setText(COLUMN_CHANGE, change_text(branch))
        item.setText(COLUMN_STATUS, status_text(branch))
        if branch.change is not None:
            item.setToolTip(COLUMN_CHANGE, branch.change.url)

        if branch.current:
            font = QFont(item.font(COLUMN_BRANCH))
            font.setBold(True)
            item.setFont(COLUMN_BRANCH, font)
        if branch.restack:
            item.setForeground(COLUMN_STATUS, QBrush(RESTACK_COLOR))

        for commit in branch.commits:
            child = QTreeWidgetItem(item)
            child.setText(COLUMN_BRANCH, f"{commit.short_sha} {commit.subject}")
            child.setToolTip(COLUMN_BRANCH, commit.sha)
            child.setData(COLUMN_BRANCH, ITEM_KIND_ROLE, ("commit", branch.name, commit.sha))
            child.setData(COLUMN_BRANCH, FRAGMENT_ROLE, continuation_fragment(branch.fragment))
        return item

    def _add_uncommitted_item(self, display_state: DisplayState):
        uncommitted = display_state.uncommitted
        item = QTreeWidgetItem(self.tree)
        count = uncommitted.file_count if uncommitted else 0
        item.setText(COLUMN_BRANCH, self.tr("Uncommitted changes ({0} files)").format(count))
        item.setData(COLUMN_BRANCH, ITEM_KIND_ROLE, ("uncommitted",))
        item.setData(COLUMN_BRANCH, FRAGMENT_ROLE, display_state.uncommitted_fragment)
        item.setForeground(COLUMN_BRANCH, QBrush(QColor(Qt.GlobalColor.darkGray)))
        if uncommitted is None:
            return
        child_fragment = (
            continuation_fragment(display_state.uncommitted_fragment) if display_state.uncommitted_fragment else None
        )
        for label, changes in (("staged", uncommitted.staged), ("unstaged", uncommitted.unstaged)):
            for change in changes:
                child = QTreeWidgetItem(item)
                child.setText(COLUMN_BRANCH, f"{change.status} {change.path}")
                child.setText(COLUMN_STATUS, label)
                child.setData(COLUMN_BRANCH, ITEM_KIND_ROLE, ("uncommitted",))
                if child_fragment is not None:
                    child.setData(COLUMN_BRANCH, FRAGMENT_ROLE, child_fragment)

    def _on_item_double_clicked(self, item, column):
        kind = item.data(COLUMN_BRANCH, ITEM_KIND_ROLE)
        if kind and kind[0] == "branch":
            self.branch_activated.emit(kind[1])

    def _show_context_menu(self, position):
        """显示右键菜单"""
        item = self.tree.itemAt(position)
        if not item:
            return
        kind = item.data(COLUMN_BRANCH, ITEM_KIND_ROLE)
        if not kind:
            return

        context_menu = QMenu(self)
        if kind[0] == "branch":
            branch_name = kind[1]
            for entry in BRANCH_ACTIONS:
                if entry is None:
                    context_menu.addSeparator()
                    continue
                action_id, text = entry
                action = context_menu.addAction(self.tr(text))
                action.triggered.connect(
                    lambda checked=False, a=action_id: self.branch_action_requested.emit(a, branch_name)
                )
        elif kind[0] == "commit":
            _, branch_name, sha = kind
            for action_id, text in COMMIT_ACTIONS:
                action = context_menu.addAction(self.tr(text))
                action.triggered.connect(
                    lambda checked=False, a=action_id: self.commit_action_requested.emit(a, branch_name, sha)
                )
        else:
            for action_id, text in UNCOMMITTED_ACTIONS:
                action = context_menu.addAction(self.tr(text))
                action.triggered.connect(lambda checked=False, a=action_id: self.uncommitted_action_requested.emit(a))

        context_menu.exec(self.tree.viewport().mapToGlobal(position))
