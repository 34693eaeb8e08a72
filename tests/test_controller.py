import pytest
from PySide6.QtCore import QSettings

from focustimer.logic import (
    FocusTimerLogic, HistoryEntry, HistoryLog, Settings, TimerState,
    ms_to_datetime
    )
from focustimer.storage import TimerStore

from conftest import T0


class Recorder:
    def __init__(self):
        self.renders = []
        self.histories = []
        self.beeps = 0

    def render(self, state, settings):
        self.renders.append((state.mode, state.remaining, state.running))

    def history(self, log):
        self.histories.append(len(log))

    def beep(self):
        self.beeps += 1


@pytest.fixture
def rec():
    return Recorder()


@pytest.fixture
def make_logic(store, driver, clock, rec):
    def make(target=None):
        return FocusTimerLogic(
            target or store, driver, on_render=rec.render,
            on_history=rec.history, on_beep=rec.beep, clock=clock
            )
    return make


def test_start_anchors_countdown(make_logic, driver, store):
    logic = make_logic()
    logic.toggle_start_pause()

    assert logic.state.running
    assert logic.state.end_at == T0 + 25 * 60 * 1000
    assert driver.is_active()
    assert store.load_state(Settings(), T0).running


def test_tick_counts_down_from_anchor(make_logic, clock, rec):
    logic = make_logic()
    logic.toggle_start_pause()

    clock.advance(10)
    logic.on_tick()

    assert logic.state.remaining == 25 * 60 - 10
    assert logic.state.last_tick == clock.now
    assert rec.renders[-1] == ("focus", 1490, True)


def test_tick_completes_block_with_chime(make_logic, store, clock, rec):
    store.save_settings(Settings(focus_min=1, break_min=1))
    logic = make_logic()
    logic.toggle_start_pause()

    clock.advance(61)
    logic.on_tick()

    assert logic.state.mode == "break"
    assert logic.state.remaining == 59
    assert rec.beeps == 1
    assert rec.histories[-1] == 1
    assert [e.mode for e in store.load_history()] == ["focus"]


def test_pause_freezes_remaining(make_logic, driver, clock):
    logic = make_logic()
    logic.toggle_start_pause()
    clock.advance(100)
    logic.toggle_start_pause()

    assert not logic.state.running
    assert logic.state.end_at is None
    assert logic.state.remaining == 1400
    assert not driver.is_active()

    clock.advance(1000)
    logic.toggle_start_pause()
    assert logic.state.end_at == clock.now + 1400 * 1000


def test_pause_after_expiry_records_completion(make_logic, store, clock):
    store.save_settings(Settings(focus_min=1, break_min=5))
    logic = make_logic()
    logic.toggle_start_pause()

    clock.advance(60)
    logic.toggle_start_pause()

    assert logic.state.mode == "break"
    assert logic.state.remaining == 300
    assert len(store.load_history()) == 1


def test_tick_when_paused_elsewhere_stops_driver(make_logic, store, driver,
                                                  clock, ini_path):
    logic = make_logic()
    logic.toggle_start_pause()

    other = TimerStore(QSettings(ini_path, QSettings.IniFormat))
    other.save_state(TimerState(remaining=5), clock.now)

    clock.advance(1)
    logic.on_tick()

    assert not driver.is_active()
    assert store.load_state(Settings(), clock.now).remaining == 5


def test_reset_keeps_history(make_logic, store, driver, clock):
    logic = make_logic()
    logic.skip()
    logic.skip()
    logic.toggle_start_pause()
    before = len(store.load_history())

    logic.reset()

    assert len(store.load_history()) == before == 2
    assert logic.state == TimerState(
        remaining=1500, saved_at=clock.now, last_tick=None
        )
    assert not driver.is_active()


@pytest.mark.parametrize("elapsed", [0, 5, 1499, 4000])
def test_skip_ignores_elapsed_time(make_logic, store, driver, clock, elapsed):
    logic = make_logic()
    logic.toggle_start_pause()
    clock.advance(elapsed)

    logic.skip()

    assert [e.mode for e in store.load_history()] == ["focus"]
    assert (logic.state.mode, logic.state.cycle) == ("break", 1)
    assert not logic.state.running
    assert not driver.is_active()


def test_skip_from_first_focus(make_logic, store, clock, rec):
    logic = make_logic()

    logic.skip()

    state = logic.state
    assert (state.mode, state.cycle, state.running) == ("break", 1, False)
    assert state.remaining == 300
    assert state.end_at is None
    history = store.load_history()
    assert [e.mode for e in history] == ["focus"]
    assert history.entries[0].duration_min == 25
    assert rec.beeps == 1


def test_silent_skip(make_logic, rec):
    make_logic().skip(silent=True)
    assert rec.beeps == 0


def test_resume_catches_up_silently(make_logic, store, driver, clock, rec):
    store.save_settings(Settings(focus_min=1, break_min=1))
    store.save_state(
        TimerState(remaining=60, running=True, end_at=T0 - 90_000), T0 - 150_000
        )

    logic = make_logic()
    logic.resume()

    assert (logic.state.mode, logic.state.cycle) == ("focus", 2)
    assert logic.state.remaining == 30
    assert len(store.load_history()) == 2
    assert rec.beeps == 0
    assert driver.is_active()


def test_resume_rebuilds_lost_anchor(make_logic, store, clock):
    store.qs.setValue(
        "ft_state",
        '{"running": true, "remaining": 120, "lastTick": %d}' % (T0 - 20_000)
        )
    logic = make_logic()
    logic.resume()

    assert logic.state.end_at == T0 + 100_000
    assert logic.state.remaining == 100


def test_resume_when_paused_does_not_start(make_logic, store, driver):
    store.save_state(TimerState(remaining=33), T0 - 1000)
    logic = make_logic()
    logic.resume()

    assert not driver.is_active()
    assert logic.state.remaining == 33


def test_settings_resize_paused_countdown(make_logic, store):
    logic = make_logic()
    settings = logic.apply_settings("50", "10")

    assert (settings.focus_min, settings.break_min) == (50, 10)
    assert logic.state.remaining == 50 * 60
    assert store.load_settings() == Settings(focus_min=50, break_min=10)


def test_settings_resize_break_when_in_break(make_logic):
    logic = make_logic()
    logic.skip()
    logic.apply_settings("25", "12")
    assert logic.state.remaining == 12 * 60


@pytest.mark.parametrize("raw, expected", [("0", 1), ("9999", 180),
                                           ("abc", 1)])
def test_settings_input_is_clamped(make_logic, raw, expected):
    logic = make_logic()
    assert logic.apply_settings(raw, "5").focus_min == expected


def test_settings_leave_running_countdown_alone(make_logic, store, clock):
    store.save_settings(Settings(focus_min=1, break_min=1))
    logic = make_logic()
    logic.toggle_start_pause()
    end_at = logic.state.end_at

    clock.advance(10)
    logic.apply_settings("30", "20")
    assert logic.state.end_at == end_at
    assert store.load_state(Settings(), clock.now).end_at == end_at

    # the new break length applies once the focus block ends
    clock.advance(50)
    logic.on_tick()
    assert logic.state.mode == "break"
    assert logic.state.end_at == end_at + 20 * 60 * 1000
    assert store.load_history().entries[0].duration_min == 30


def test_clear_all_restores_defaults(make_logic, store, driver):
    logic = make_logic()
    logic.apply_settings("50", "10")
    logic.skip()
    logic.toggle_start_pause()

    logic.clear_all()

    assert not driver.is_active()
    assert logic.settings == Settings()
    assert logic.state == TimerState()
    assert len(logic.history) == 0
    assert store.qs.value("ft_history") is None


def test_broken_chime_is_swallowed(store, driver, clock):
    def broken():
        raise OSError("no audio device")

    store.save_settings(Settings(focus_min=1, break_min=1))
    logic = FocusTimerLogic(store, driver, on_beep=broken, clock=clock)
    logic.toggle_start_pause()
    clock.advance(60)
    logic.on_tick()

    assert logic.state.mode == "break"


def test_tick_shows_history_written_elsewhere(make_logic, clock, rec,
                                              ini_path):
    logic = make_logic()
    logic.toggle_start_pause()
    shown = len(rec.histories)

    other = TimerStore(QSettings(ini_path, QSettings.IniFormat))
    other.save_history(HistoryLog([HistoryEntry("focus", 25,
                                                ms_to_datetime(clock.now))]))

    clock.advance(1)
    logic.on_tick()
    assert rec.histories[shown:] == [1]

    # nothing new on the next tick
    clock.advance(1)
    logic.on_tick()
    assert rec.histories[shown:] == [1]


def test_resume_after_ancient_anchor(make_logic, store, driver):
    store.qs.setValue(
        "ft_state", '{"running": true, "remaining": 60, "endAt": 1000}'
        )
    logic = make_logic()
    logic.resume()

    assert driver.is_active()
    assert logic.state.end_at > T0
    assert len(store.load_history()) == 30
