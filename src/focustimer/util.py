from __future__ import annotations

from datetime import datetime

from PySide6.QtWidgets import QApplication

from .logic import HistoryEntry, Settings, TimerState, block_seconds


def beep():
    # no application yet, nothing to play on
    if QApplication.instance() is None:
        return
    QApplication.beep()


def format_time_mmss(sec: int) -> str:
    m, s = divmod(max(0, int(sec)), 60)
    return f"{m:02d}:{s:02d}"


def progress_percent(state: TimerState, settings: Settings) -> float:
    total = block_seconds(settings, state.mode)
    pct = (total - state.remaining) / total * 100
    return min(100.0, max(0.0, pct))


def mode_label(mode: str) -> str:
    return "Focus" if mode == "focus" else "Break"


def format_history_item(entry: HistoryEntry) -> tuple[str, str]:
    """Title and local completion time of one history row."""
    title = f"{mode_label(entry.mode)} · {entry.duration_min} min"
    when: datetime = entry.completed_at.astimezone()
    return title, when.strftime("%d.%m.%Y %H:%M:%S")
