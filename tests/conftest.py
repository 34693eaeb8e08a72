import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtCore import QSettings
from PySide6.QtWidgets import QApplication

from focustimer.storage import TimerStore

T0 = 1_700_000_000_000  # epoch ms


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def ini_path(tmp_path):
    return str(tmp_path / "focustimer.ini")


@pytest.fixture
def store(ini_path):
    return TimerStore(QSettings(ini_path, QSettings.IniFormat))


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += int(seconds * 1000)


class FakeDriver:
    def __init__(self):
        self.active = False
        self.starts = 0
        self.stops = 0

    def start(self):
        if not self.active:
            self.starts += 1
        self.active = True

    def stop(self):
        if self.active:
            self.stops += 1
        self.active = False

    def is_active(self):
        return self.active


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def driver():
    return FakeDriver()
