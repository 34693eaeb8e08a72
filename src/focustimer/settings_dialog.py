from PySide6.QtCore import Qt
from PySide6.QtGui import QPalette
from PySide6.QtWidgets import (
    QApplication, QDialog, QDialogButtonBox, QFormLayout, QLabel, QLineEdit,
    QVBoxLayout
    )

from .config import BREAK_MIN_BOUNDS, FOCUS_MIN_BOUNDS


class SettingsDialog(QDialog):
    """Raw text input for the block durations; clamping happens in logic."""

    def __init__(self, parent, focus_min: int, break_min: int):
        super().__init__(parent)

        app = QApplication.instance()
        bg = app.palette().color(QPalette.Window)
        dark = bg.lightness() < 128
        self.setStyleSheet("color: #d0d0d0;" if dark else "color: #111;")

        self.setWindowTitle("Settings")
        self.setWindowFlags(self.windowFlags() | Qt.WindowStaysOnTopHint)

        self.focus = QLineEdit(str(focus_min))
        self.focus.setPlaceholderText("%d-%d" % FOCUS_MIN_BOUNDS)

        self.brk = QLineEdit(str(break_min))
        self.brk.setPlaceholderText("%d-%d" % BREAK_MIN_BOUNDS)

        hint = QLabel("Changes apply to the next block while running.")
        hint.setWordWrap(True)

        form = QFormLayout()
        form.addRow("Focus (Min)", self.focus)
        form.addRow("Break (Min)", self.brk)

        buttons = QDialogButtonBox(
            QDialogButtonBox.Ok | QDialogButtonBox.Cancel
            )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)

        layout = QVBoxLayout()
        layout.addLayout(form)
        layout.addWidget(hint)
        layout.addWidget(buttons)
        self.setLayout(layout)

    def values(self):
        return self.focus.text(), self.brk.text()
