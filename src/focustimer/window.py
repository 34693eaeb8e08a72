from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QFont, QPalette
from PySide6.QtWidgets import (
    QApplication, QDialog, QHBoxLayout, QLabel, QListWidget, QListWidgetItem,
    QMessageBox, QProgressBar, QPushButton, QVBoxLayout, QWidget
    )

from .logic import FocusTimerLogic, HistoryLog, Settings, TimerState
from .scheduler import TickDriver
from .settings_dialog import SettingsDialog
from .storage import TimerStore
from .util import (
    beep, format_history_item, format_time_mmss, mode_label, progress_percent
    )

EMPTY_HISTORY_TEXT = "No sessions yet. Start a focus block."
EMPTY_HISTORY_HINT = "Ready when you are."


class FocusTimerWindow(QWidget):
    def __init__(self, store: Optional[TimerStore] = None, clock=None):
        super().__init__()
        self.setWindowTitle("Focus Timer")

        # ---------- Labels ----------
        self.mode_label = QLabel("")
        self.mode_label.setAlignment(Qt.AlignCenter)
        self.mode_label.setFont(QFont("Segoe UI", 10, QFont.Bold))

        self.timer_label = QLabel("")
        self.timer_label.setFont(QFont("Segoe UI", 26, QFont.Bold))
        self.timer_label.setAlignment(Qt.AlignCenter)

        self.cycle_label = QLabel("")
        self.cycle_label.setFont(QFont("Segoe UI", 10))
        self.cycle_label.setAlignment(Qt.AlignCenter)

        self.progress = QProgressBar()
        self.progress.setRange(0, 100)
        self.progress.setTextVisible(False)
        self.progress.setFixedHeight(6)

        # ---------- Controls ----------
        self.toggle_btn = QPushButton("Start")
        self.reset_btn = QPushButton("Reset")
        self.skip_btn = QPushButton("Skip")
        self.settings_btn = QPushButton("Settings")
        self.clear_btn = QPushButton("Clear data")

        self.toggle_btn.setToolTip("Start / Pause")
        self.reset_btn.setToolTip("Back to the first focus block")
        self.skip_btn.setToolTip("Finish the current block now")
        self.clear_btn.setToolTip("Erase settings, timer and history")

        ctrl_row = QHBoxLayout()
        ctrl_row.setSpacing(8)
        for b in (self.toggle_btn, self.reset_btn, self.skip_btn):
            b.setFixedHeight(32)
            ctrl_row.addWidget(b)

        extra_row = QHBoxLayout()
        extra_row.addWidget(self.settings_btn)
        extra_row.addStretch(1)
        extra_row.addWidget(self.clear_btn)

        # ---------- History ----------
        self.history_list = QListWidget()
        self.history_list.setSelectionMode(QListWidget.NoSelection)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(14, 10, 14, 14)
        layout.setSpacing(6)
        layout.addWidget(self.mode_label)
        layout.addWidget(self.timer_label)
        layout.addWidget(self.cycle_label)
        layout.addWidget(self.progress)
        layout.addLayout(ctrl_row)
        layout.addLayout(extra_row)
        layout.addWidget(self.history_list, 1)

        # ---------- Logic + tick driver ----------
        self.tick_timer = TickDriver(self)
        kwargs = {} if clock is None else {"clock": clock}
        self.logic = FocusTimerLogic(
            store if store is not None else TimerStore(),
            driver=self.tick_timer,
            on_render=self.render_state,
            on_history=self.render_history,
            on_beep=beep,
            **kwargs,
            )
        self.tick_timer.connect(self.logic.on_tick)

        # ---------- Signals ----------
        self.toggle_btn.clicked.connect(self.logic.toggle_start_pause)
        self.reset_btn.clicked.connect(self.logic.reset)
        self.skip_btn.clicked.connect(lambda: self.logic.skip())
        self.settings_btn.clicked.connect(self.open_settings)
        self.clear_btn.clicked.connect(self.on_clear)

        self.resize(280, 420)
        self.apply_theme()
        self.logic.render()

    # ---------- Rendering ----------
    def render_state(self, state: TimerState, settings: Settings):
        self.mode_label.setText(mode_label(state.mode))
        self.timer_label.setText(format_time_mmss(state.remaining))
        self.cycle_label.setText(f"Cycle {state.cycle}")
        self.toggle_btn.setText("Pause" if state.running else "Start")
        self.progress.setValue(int(progress_percent(state, settings)))

        if state.mode == "focus":
            self.timer_label.setStyleSheet("color: #7CFC98;")
        else:
            self.timer_label.setStyleSheet("color: #7CC7FF;")

    def render_history(self, history: HistoryLog):
        self.history_list.clear()
        if not len(history):
            item = QListWidgetItem(f"{EMPTY_HISTORY_TEXT}\n{EMPTY_HISTORY_HINT}")
            item.setFlags(Qt.NoItemFlags)
            self.history_list.addItem(item)
            return

        for entry in history:
            title, when = format_history_item(entry)
            self.history_list.addItem(QListWidgetItem(f"{title}\n{when}"))

    def apply_theme(self):
        app = QApplication.instance()
        bg = app.palette().color(QPalette.Window)
        dark = bg.lightness() < 128

        if dark:
            muted = "#999"
            ctrl_css = """
                QPushButton {
                    background: #2a2a2a;
                    border: 1px solid #3a3a3a;
                    border-radius: 10px;
                    color: #d0d0d0;
                    padding: 2px 10px;
                }
                QPushButton:hover { background: #353535; }
                QPushButton:pressed { background: #242424; }
            """
        else:
            muted = "#444"
            ctrl_css = """
                QPushButton {
                    background: #ffffff;
                    border: 1px solid #cfcfcf;
                    border-radius: 10px;
                    color: #111;
                    padding: 2px 10px;
                }
                QPushButton:hover { background: #f0f0f0; }
                QPushButton:pressed { background: #e2e2e2; }
            """

        self.mode_label.setStyleSheet(f"color: {muted};")
        self.cycle_label.setStyleSheet(f"color: {muted};")
        for b in (
                self.toggle_btn, self.reset_btn, self.skip_btn,
                self.settings_btn, self.clear_btn
                ):
            b.setStyleSheet(ctrl_css)

    # ---------- Dialogs ----------
    def open_settings(self):
        s = self.logic.settings
        dlg = SettingsDialog(self, s.focus_min, s.break_min)
        if dlg.exec() == QDialog.Accepted:
            self.logic.apply_settings(*dlg.values())

    def on_clear(self):
        answer = QMessageBox.question(
            self, "Clear data",
            "Erase settings, the running timer and the history?"
            )
        if answer == QMessageBox.Yes:
            self.logic.clear_all()

    def closeEvent(self, event):
        # state is persisted after every action; just stop ticking
        self.tick_timer.stop()
        event.accept()
