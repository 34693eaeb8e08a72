from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Protocol

from .config import (
    BREAK_MIN_BOUNDS, DEFAULT_BREAK_MIN, DEFAULT_FOCUS_MIN, FOCUS_MIN_BOUNDS,
    HISTORY_LIMIT
    )

logger = logging.getLogger(__name__)

MODES = ("focus", "break")

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def _now_ms() -> int:
    return int(time.time() * 1000)


def is_finite(value) -> bool:
    """True for real int/float values that are not NaN or infinite."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range
        return False


def ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def clamp_int(value, lo: int, hi: int) -> int:
    """Reads the leading integer of raw input and clamps it to [lo, hi].

    Input without a leading integer ("abc", "", None) yields ``lo``.
    """
    if is_finite(value):
        number = int(value)
    else:
        match = _LEADING_INT_RE.match(value) if isinstance(value, str) else None
        if match is None:
            return lo
        number = int(match.group(1))
    return min(hi, max(lo, number))


# ---------- Data ----------
@dataclass
class Settings:
    focus_min: int = DEFAULT_FOCUS_MIN
    break_min: int = DEFAULT_BREAK_MIN
    history_limit: int = HISTORY_LIMIT

    @classmethod
    def from_input(cls, focus_raw, break_raw) -> Settings:
        return cls(
            focus_min=clamp_int(focus_raw, *FOCUS_MIN_BOUNDS),
            break_min=clamp_int(break_raw, *BREAK_MIN_BOUNDS),
            )

    def minutes_for(self, mode: str) -> int:
        return self.focus_min if mode == "focus" else self.break_min


@dataclass
class TimerState:
    mode: str = "focus"  # focus / break
    remaining: int = DEFAULT_FOCUS_MIN * 60
    running: bool = False

    # epoch milliseconds
    end_at: Optional[int] = None
    saved_at: Optional[int] = None
    last_tick: Optional[int] = None

    cycle: int = 1

    @classmethod
    def initial(cls, settings: Settings) -> TimerState:
        return cls(remaining=settings.focus_min * 60)


@dataclass(frozen=True)
class HistoryEntry:
    mode: str
    duration_min: int
    completed_at: datetime


class HistoryLog:
    """Completed blocks, most recent first, capped at ``limit``."""

    def __init__(self, entries=(), limit: int = HISTORY_LIMIT):
        self.limit = limit
        self.entries: List[HistoryEntry] = list(entries)[:limit]
        self.dirty = False

    def add(self, entry: HistoryEntry):
        self.entries.insert(0, entry)
        del self.entries[self.limit:]
        self.dirty = True

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self.entries)


# ---------- Reconciliation ----------
def block_seconds(settings: Settings, mode: str) -> int:
    return max(1, settings.minutes_for(mode)) * 60


def _chime(on_beep: Optional[Callable[[], None]]):
    if on_beep is None:
        return
    try:
        on_beep()
    except Exception:
        logger.debug("Completion chime failed", exc_info=True)


def complete_block(
    state: TimerState,
    settings: Settings,
    history: HistoryLog,
    completed_at: int,
    silent: bool = False,
    on_beep: Optional[Callable[[], None]] = None,
    ) -> HistoryEntry:
    """Records the current block as done and flips to the next mode.

    ``remaining`` is reset to the full length of the new block.
    """
    entry = HistoryEntry(
        mode=state.mode,
        duration_min=settings.minutes_for(state.mode),
        completed_at=ms_to_datetime(completed_at),
        )
    history.add(entry)

    if state.mode == "focus":
        state.mode = "break"
    else:
        state.mode = "focus"
        state.cycle += 1
    state.remaining = block_seconds(settings, state.mode)

    logger.info(
        "Completed %s block (%d min), now %s, cycle %d",
        entry.mode, entry.duration_min, state.mode, state.cycle
        )
    if not silent:
        _chime(on_beep)
    return entry


def reconcile(
    state: TimerState,
    settings: Settings,
    history: HistoryLog,
    now: int,
    silent: bool = False,
    on_beep: Optional[Callable[[], None]] = None,
    ) -> int:
    """Replays every block that ended at or before ``now``.

    Each completion is stamped with its scheduled end instant. Afterwards
    ``end_at`` lies in the future and ``remaining`` is derived from it.
    States without an anchor are left untouched. Returns the number of
    completed blocks.
    """
    if not is_finite(state.end_at):
        return 0

    # Whole focus+break pairs older than the history can hold only move
    # the anchor and bump the cycle; the newest ones are replayed.
    pair_ms = (block_seconds(settings, "focus")
               + block_seconds(settings, "break")) * 1000
    skipped_pairs = 0
    if state.end_at <= now:
        pairs = (now - state.end_at) // pair_ms
        skipped_pairs = max(0, pairs - (history.limit // 2 + 1))
    if skipped_pairs:
        state.end_at += skipped_pairs * pair_ms
        state.cycle += skipped_pairs
        logger.debug("Fast-forwarded %d block(s)", 2 * skipped_pairs)

    completed = 2 * skipped_pairs
    while state.end_at <= now:
        complete_block(
            state, settings, history, state.end_at, silent=silent,
            on_beep=on_beep
            )
        state.end_at += block_seconds(settings, state.mode) * 1000
        completed += 1

    state.remaining = max(0, math.ceil((state.end_at - now) / 1000))
    return completed


# ---------- Controller ----------
class Driver(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def is_active(self) -> bool: ...


class FocusTimerLogic:
    """Owns the timer session: every action reloads from the store,
    mutates, persists and then hands the result to the renderers."""

    def __init__(
        self,
        store,
        driver: Driver,
        on_render: Optional[Callable[[TimerState, Settings], None]] = None,
        on_history: Optional[Callable[[HistoryLog], None]] = None,
        on_beep: Optional[Callable[[], None]] = None,
        clock: Callable[[], int] = _now_ms,
        ):
        self.store = store
        self.driver = driver
        self._on_render = on_render
        self._on_history = on_history
        self._beep = on_beep
        self._clock = clock

        self.settings = store.load_settings()
        self.state = store.load_state(self.settings, clock())
        self.history = store.load_history()

    # ---------- Rendering ----------
    def render(self, history: bool = True):
        if self._on_render is not None:
            self._on_render(self.state, self.settings)
        if history and self._on_history is not None:
            self._on_history(self.history)

    def _adopt(self, tx):
        # another instance may have appended history since the last render
        history_changed = (tx.history.dirty
                           or tx.history.entries != self.history.entries)
        self.settings = tx.settings
        self.state = tx.state
        self.history = tx.history
        self.render(history=history_changed)

    # ---------- Scheduler ----------
    def on_tick(self):
        """Called once per second by the driver while running."""
        now = self._clock()
        with self.store.transaction(now) as tx:
            if tx.state.running:
                tx.state.last_tick = now
                reconcile(
                    tx.state, tx.settings, tx.history, now, on_beep=self._beep
                    )
            else:
                tx.discard()

        if not tx.state.running:
            # paused elsewhere
            self.driver.stop()
            return
        self._adopt(tx)

    # ---------- Actions ----------
    def toggle_start_pause(self):
        now = self._clock()
        with self.store.transaction(now) as tx:
            s = tx.state
            s.running = not s.running
            if s.running:
                s.end_at = now + s.remaining * 1000
                self.driver.start()
                logger.debug("Started %s, ends at %d", s.mode, s.end_at)
            else:
                # a pause right at expiry still records the completion
                reconcile(s, tx.settings, tx.history, now, on_beep=self._beep)
                s.end_at = None
                self.driver.stop()
                logger.debug("Paused %s with %ds left", s.mode, s.remaining)
        self._adopt(tx)

    def reset(self):
        self.driver.stop()
        with self.store.transaction(self._clock()) as tx:
            s = tx.state
            s.running = False
            s.mode = "focus"
            s.remaining = tx.settings.focus_min * 60
            s.cycle = 1
            s.end_at = None
        logger.debug("Reset")
        self._adopt(tx)

    def skip(self, silent: bool = False):
        self.driver.stop()
        now = self._clock()
        with self.store.transaction(now) as tx:
            tx.state.running = False
            tx.state.end_at = None
            complete_block(
                tx.state, tx.settings, tx.history, now, silent=silent,
                on_beep=self._beep
                )
        logger.debug("Skipped to %s", tx.state.mode)
        self._adopt(tx)

    def resume(self):
        """Catches up on blocks missed while closed, without chiming."""
        now = self._clock()
        with self.store.transaction(now) as tx:
            if tx.state.running:
                missed = reconcile(tx.state, tx.settings, tx.history, now,
                                   silent=True)
                if missed:
                    logger.info("Caught up on %d missed block(s)", missed)
            else:
                tx.discard()

        if tx.state.running:
            self.driver.start()
        self.settings = tx.settings
        self.state = tx.state
        self.history = tx.history
        self.render()

    def apply_settings(self, focus_raw, break_raw) -> Settings:
        """Clamps raw input, persists it and resizes a paused countdown.

        A running countdown keeps its anchor; only blocks that start later
        use the new durations.
        """
        self.store.save_settings(Settings.from_input(focus_raw, break_raw))

        with self.store.transaction(self._clock()) as tx:
            if tx.state.running:
                tx.discard()
            else:
                tx.state.remaining = block_seconds(tx.settings, tx.state.mode)
        self._adopt(tx)
        return tx.settings

    def clear_all(self):
        """Erases settings, state and history and starts over."""
        self.driver.stop()
        self.store.clear()
        self.settings = self.store.load_settings()
        self.state = self.store.load_state(self.settings, self._clock())
        self.history = self.store.load_history()
        logger.debug("Cleared stored data")
        self.render()
