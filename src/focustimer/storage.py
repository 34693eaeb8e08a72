"""Persistence of settings, timer state and history in QSettings.

Each record is a JSON string under its own key. Loading never raises:
missing, corrupt or partial records fall back to defaults or to values
derived from the rest of the record.
"""
from __future__ import annotations

import json
import logging
import math
import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, Optional

from PySide6.QtCore import QSettings

from .config import (
    BREAK_MIN_BOUNDS, ENV_STORE_PATH, FOCUS_MIN_BOUNDS, HISTORY_KEY,
    HISTORY_LIMIT, QS_APPLICATION, QS_ORGANIZATION, SETTINGS_KEY, STATE_KEY
    )
from .logic import (
    MODES, HistoryEntry, HistoryLog, Settings, TimerState, clamp_int,
    is_finite
    )

logger = logging.getLogger(__name__)

MAX_BLOCK_SEC = max(FOCUS_MIN_BOUNDS[1], BREAK_MIN_BOUNDS[1]) * 60


def open_settings(path: Optional[str] = None) -> QSettings:
    path = path or os.environ.get(ENV_STORE_PATH)
    if path:
        return QSettings(str(path), QSettings.IniFormat)
    return QSettings(QS_ORGANIZATION, QS_APPLICATION)


def format_iso(dt: datetime) -> str:
    text = dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_iso(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _ms(value) -> Optional[int]:
    return int(value) if is_finite(value) else None


# ---------- Records ----------
def settings_to_record(settings: Settings) -> dict:
    return {
        "focusMinutes": settings.focus_min,
        "breakMinutes": settings.break_min,
        "historyLimit": settings.history_limit,
        }


def settings_from_record(record) -> Settings:
    settings = Settings()
    if not isinstance(record, dict):
        return settings

    focus = record.get("focusMinutes")
    if is_finite(focus):
        settings.focus_min = clamp_int(focus, *FOCUS_MIN_BOUNDS)
    brk = record.get("breakMinutes")
    if is_finite(brk):
        settings.break_min = clamp_int(brk, *BREAK_MIN_BOUNDS)
    return settings


def state_to_record(state: TimerState) -> dict:
    return {
        "mode": state.mode,
        "remaining": state.remaining,
        "running": state.running,
        "endAt": state.end_at,
        "savedAt": state.saved_at,
        "lastTick": state.last_tick,
        "cycle": state.cycle,
        }


def state_from_record(record, settings: Settings, now: int) -> TimerState:
    if not isinstance(record, dict):
        return TimerState.initial(settings)

    remaining = record.get("remaining")
    if is_finite(remaining):
        # never longer than the longest block
        remaining = min(max(0, math.ceil(remaining)), MAX_BLOCK_SEC)
    else:
        remaining = settings.focus_min * 60

    saved_at = _ms(record.get("savedAt"))
    last_tick = _ms(record.get("lastTick"))
    running = bool(record.get("running"))

    end_at = _ms(record.get("endAt"))
    if not running:
        end_at = None
    elif end_at is None:
        # rebuild the anchor from the last moment the countdown was seen;
        # a 0 timestamp counts as unset
        if last_tick:
            anchor = last_tick
        elif saved_at:
            anchor = saved_at
        else:
            anchor = now
        end_at = anchor + remaining * 1000

    mode = record.get("mode")
    if mode not in MODES:
        mode = "focus"

    cycle = record.get("cycle")
    cycle = int(cycle) if is_finite(cycle) and cycle >= 1 else 1

    return TimerState(
        mode=mode,
        remaining=remaining,
        running=running,
        end_at=end_at,
        saved_at=saved_at,
        last_tick=last_tick,
        cycle=cycle,
        )


def entry_to_record(entry: HistoryEntry) -> dict:
    return {
        "mode": entry.mode,
        "durationMinutes": entry.duration_min,
        "completedAt": format_iso(entry.completed_at),
        }


def entry_from_record(record) -> Optional[HistoryEntry]:
    if not isinstance(record, dict):
        return None
    mode = record.get("mode")
    duration = record.get("durationMinutes")
    completed_at = record.get("completedAt")
    if mode not in MODES or not is_finite(duration):
        return None
    if not isinstance(completed_at, str):
        return None
    try:
        when = parse_iso(completed_at)
    except ValueError:
        return None
    return HistoryEntry(mode, int(duration), when)


# ---------- Store ----------
@dataclass
class Transaction:
    settings: Settings
    state: TimerState
    history: HistoryLog
    discarded: bool = False

    def discard(self):
        """Skips the write-back when the block exits."""
        self.discarded = True


class TimerStore:
    def __init__(self, qs: Optional[QSettings] = None):
        self.qs = qs if qs is not None else open_settings()

    def _read(self, key: str):
        # pick up writes made by other instances
        self.qs.sync()
        raw = self.qs.value(key)
        if raw is None or raw == "":
            return None
        if not isinstance(raw, str):
            logger.warning("Ignoring non-text value stored under %s", key)
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable value stored under %s", key)
            return None

    def _write(self, key: str, record):
        self.qs.setValue(key, json.dumps(record))
        self.qs.sync()

    # ---------- Settings ----------
    def load_settings(self) -> Settings:
        return settings_from_record(self._read(SETTINGS_KEY))

    def save_settings(self, settings: Settings):
        self._write(SETTINGS_KEY, settings_to_record(settings))

    # ---------- State ----------
    def load_state(self, settings: Settings, now: int) -> TimerState:
        return state_from_record(self._read(STATE_KEY), settings, now)

    def save_state(self, state: TimerState, now: int):
        state.saved_at = now
        state.last_tick = now if state.running else None
        self._write(STATE_KEY, state_to_record(state))

    # ---------- History ----------
    def load_history(self) -> HistoryLog:
        records = self._read(HISTORY_KEY)
        if not isinstance(records, list):
            return HistoryLog()

        entries = []
        for record in records:
            entry = entry_from_record(record)
            if entry is None:
                logger.warning("Dropping malformed history entry %r", record)
                continue
            entries.append(entry)
        return HistoryLog(entries, limit=HISTORY_LIMIT)

    def save_history(self, history: HistoryLog):
        self._write(HISTORY_KEY, [entry_to_record(e) for e in history])

    # ---------- Whole store ----------
    def clear(self):
        for key in (SETTINGS_KEY, STATE_KEY, HISTORY_KEY):
            self.qs.remove(key)
        self.qs.sync()

    @contextmanager
    def transaction(self, now: int) -> Iterator[Transaction]:
        """Fresh read of everything, then write-back of state and history.

        Nothing is written if the block raises or calls ``discard()``.
        """
        settings = self.load_settings()
        tx = Transaction(
            settings=settings,
            state=self.load_state(settings, now),
            history=self.load_history(),
            )
        yield tx
        if tx.discarded:
            return
        self.save_state(tx.state, now)
        if tx.history.dirty:
            self.save_history(tx.history)
