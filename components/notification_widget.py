from PyQt6.QtCore import Qt, QTimer
from PyQt6.QtWidgets import QFrame, QHBoxLayout, QLabel, QPushButton, QSizePolicy, QVBoxLayout

NOTIFICATION_LEVELS = {
    # level -> (background, border)
    "info": ("#eef6ff", "#91c3f5"),
    "success": ("#f0faf0", "#9bd39b"),
    "error": ("#fdf0f0", "#e6a1a1"),
}
ERROR_TIMEOUT_MS = 10000
DEFAULT_TIMEOUT_MS = 4000


class NotificationWidget(QFrame):
    """Transient message box shown at the top-right of its parent."""

    def __init__(self, parent=None):
        super().__init__(parent)

        self.level = "info"
        self.setFixedWidth(320)
        self.setMinimumHeight(50)
        self.setFrameShape(QFrame.Shape.StyledPanel)
        self._apply_level_style("info")
        self.hide()

        layout = QVBoxLayout(self)
        self.setLayout(layout)

        self.message_label = QLabel()
        self.message_label.setWordWrap(True)
        self.message_label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        self.message_label.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

        self.close_button = QPushButton(self.tr("Close"))
        self.close_button.clicked.connect(self.hide_widget)
        self.close_button.setSizePolicy(QSizePolicy.Policy.Fixed, QSizePolicy.Policy.Fixed)

        button_layout = QHBoxLayout()
        button_layout.addStretch()
        button_layout.addWidget(self.close_button)

        layout.addWidget(self.message_label)
        layout.addLayout(button_layout)

        self.hide_timer = QTimer(self)
        self.hide_timer.setSingleShot(True)
        self.hide_timer.timeout.connect(self.hide_widget)

    def _apply_level_style(self, level: str):
        background, border = NOTIFICATION_LEVELS.get(level, NOTIFICATION_LEVELS["info"])
        self.setStyleSheet(f"""
            NotificationWidget {{
                background-color: {background};
                border: 1px solid {border};
                border-radius: 5px;
            }}
        """)

    def show_message(self, message: str, level: str = "info"):
        self.level = level
        self._apply_level_style(level)
        self.message_label.setText(message)
        self.adjustSize()
        self.reposition()
        self.show()
        # Errors stay longer so they can be read or copied
        self.hide_timer.start(ERROR_TIMEOUT_MS if level == "error" else DEFAULT_TIMEOUT_MS)
        self.raise_()

    def show_error(self, message: str):
        self.show_message(message, "error")

    def show_success(self, message: str):
        self.show_message(message, "success")

    def reposition(self):
        if self.parentWidget():
            parent_rect = self.parentWidget().rect()
            self.move(parent_rect.right() - self.width() - 10, 10)  # 10px margin

    def hide_widget(self):
        self.hide()
        if self.hide_timer.isActive():
            self.hide_timer.stop()
