from PyQt6.QtCore import QRectF, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QAction, QColor, QPainter, QPen, QPixmap
from PyQt6.QtWidgets import (
    QCheckBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QMenu,
    QPushButton,
    QToolButton,
    QWidget,
)

SPINNER_SIZE = 16


class TopBarWidget(QWidget):
    open_folder_requested = pyqtSignal()
    recent_folder_selected = pyqtSignal(str)
    clear_recent_folders_requested = pyqtSignal()
    refresh_requested = pyqtSignal()
    up_requested = pyqtSignal()
    down_requested = pyqtSignal()
    trunk_requested = pyqtSignal()
    stack_restack_requested = pyqtSignal()
    stack_submit_requested = pyqtSignal()
    repo_sync_requested = pyqtSignal()
    track_branch_requested = pyqtSignal(str)  # untracked branch name
    comment_progress_toggled = pyqtSignal(bool)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setFixedHeight(48)

        self._layout = QHBoxLayout()
        self._layout.setContentsMargins(10, 5, 10, 5)
        self._layout.setSpacing(8)
        self.setLayout(self._layout)

        # --- Open Folder Button ---
        self.open_button = QPushButton(self.tr("Open Folder"))
        self.open_button.clicked.connect(self.open_folder_requested.emit)
        self._layout.addWidget(self.open_button)

        # --- Recent Folders Button and Menu ---
        self.recent_button = QPushButton(self.tr("Recent"))
        self.recent_menu = QMenu(self)
        self.recent_button.setMenu(self.recent_menu)
        self._layout.addWidget(self.recent_button)

        self.branch_label = QLabel()
        self.branch_label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        self._layout.addWidget(self.branch_label)

        self._untracked_branch = None
        self.track_button = self._add_tool_button(
            self.tr("Track..."), self.tr("Start tracking the current branch with git-spice")
        )
        self.track_button.clicked.connect(self._on_track_clicked)
        self.track_button.hide()

        self._layout.addStretch(1)

        # --- Navigation ---
        self.up_button = self._add_tool_button(self.tr("Up"), self.tr("Check out the branch above (gs up)"))
        self.up_button.clicked.connect(self.up_requested.emit)
        self.down_button = self._add_tool_button(self.tr("Down"), self.tr("Check out the branch below (gs down)"))
        self.down_button.clicked.connect(self.down_requested.emit)
        self.trunk_button = self._add_tool_button(self.tr("Trunk"), self.tr("Check out the trunk branch (gs trunk)"))
        self.trunk_button.clicked.connect(self.trunk_requested.emit)

        self._add_separator()

        # --- Stack actions ---
        self.restack_button = self._add_tool_button(self.tr("Restack"), self.tr("Restack the current stack"))
        self.restack_button.clicked.connect(self.stack_restack_requested.emit)
        self.submit_button = self._add_tool_button(self.tr("Submit"), self.tr("Submit the current stack"))
        self.submit_button.clicked.connect(self.stack_submit_requested.emit)
        self.sync_button = self._add_tool_button(self.tr("Sync"), self.tr("Sync with the remote (gs repo sync)"))
        self.sync_button.clicked.connect(self.repo_sync_requested.emit)

        self._add_separator()

        self.comments_checkbox = QCheckBox(self.tr("Comments"))
        self.comments_checkbox.setToolTip(self.tr("Show review comment progress"))
        self.comments_checkbox.toggled.connect(self.comment_progress_toggled.emit)
        self._layout.addWidget(self.comments_checkbox)

        self.refresh_button = self._add_tool_button(self.tr("Refresh"), self.tr("Reload the stack"))
        self.refresh_button.clicked.connect(self.refresh_requested.emit)

        # 忙碌指示
        self.spinner_label = QLabel()
        self.spinner_label.setFixedSize(SPINNER_SIZE, SPINNER_SIZE)
        self._layout.addWidget(self.spinner_label)
        self._spinner_angle = 0
        self._busy_count = 0
        self._spinner_timer = QTimer(self)
        self._spinner_timer.setInterval(50)
        self._spinner_timer.timeout.connect(self._rotate_spinner)

        self.set_buttons_enabled(False)

    def _add_tool_button(self, text, tooltip):
        button = QToolButton()
        button.setText(text)
        button.setToolTip(tooltip)
        button.setToolButtonStyle(Qt.ToolButtonStyle.ToolButtonTextOnly)
        self._layout.addWidget(button)
        return button

    def _add_separator(self):
        separator = QFrame()
        separator.setFrameShape(QFrame.Shape.VLine)
        separator.setFrameShadow(QFrame.Shadow.Sunken)
        self._layout.addWidget(separator)

    def update_recent_menu(self, recent_folders):
        self.recent_menu.clear()
        for folder in recent_folders:
            action = QAction(folder, self)
            action.triggered.connect(lambda checked=False, f=folder: self.recent_folder_selected.emit(f))
            self.recent_menu.addAction(action)
        if recent_folders:
            self.recent_menu.addSeparator()
        clear_action = QAction(self.tr("Clear Recent"), self)
        clear_action.triggered.connect(self.clear_recent_folders_requested.emit)
        self.recent_menu.addAction(clear_action)
        self.recent_button.setEnabled(bool(recent_folders))

    def update_current_branch(self, branch_name, untracked=False):
        self._untracked_branch = branch_name if branch_name and untracked else None
        self.track_button.setVisible(self._untracked_branch is not None)
        if not branch_name:
            self.branch_label.setText(self.tr("(detached HEAD)"))
        elif untracked:
            self.branch_label.setText(self.tr("Branch: {0} (not tracked)").format(branch_name))
        else:
            self.branch_label.setText(self.tr("Branch: {0}").format(branch_name))

    def _on_track_clicked(self):
        if self._untracked_branch:
            self.track_branch_requested.emit(self._untracked_branch)

    def set_comment_progress(self, enabled):
        self.comments_checkbox.blockSignals(True)
        self.comments_checkbox.setChecked(enabled)
        self.comments_checkbox.blockSignals(False)

    def set_buttons_enabled(self, enabled):
        """Enable or disable buttons that require an open repository."""
        for button in (
            self.up_button,
            self.down_button,
            self.trunk_button,
            self.restack_button,
            self.submit_button,
            self.sync_button,
            self.refresh_button,
        ):
            button.setEnabled(enabled)

    def start_busy(self):
        self._busy_count += 1
        if not self._spinner_timer.isActive():
            self._spinner_timer.start()

    def stop_busy(self):
        self._busy_count = max(0, self._busy_count - 1)
        if self._busy_count == 0:
            self._spinner_timer.stop()
            self.spinner_label.clear()

    def is_busy(self):
        return self._busy_count > 0

    def _rotate_spinner(self):
        self._spinner_angle = (self._spinner_angle + 30) % 360
        pixmap = QPixmap(SPINNER_SIZE, SPINNER_SIZE)
        pixmap.fill(Qt.GlobalColor.transparent)
        painter = QPainter(pixmap)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setPen(QPen(QColor("#1f77b4"), 2))
        # QPainter angles are in 1/16th of a degree
        painter.drawArc(QRectF(2, 2, SPINNER_SIZE - 4, SPINNER_SIZE - 4), -self._spinner_angle * 16, 270 * 16)
        painter.end()
        self.spinner_label.setPixmap(pixmap)
