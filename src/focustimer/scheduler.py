from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer

from .config import TICK_INTERVAL_MS

logger = logging.getLogger(__name__)


class TickDriver:
    """Fires ``callback`` once per second while started.

    Starting a started driver and stopping a stopped one do nothing.
    """

    def __init__(
        self,
        parent: Optional[QObject] = None,
        callback: Optional[Callable[[], None]] = None,
        interval_ms: int = TICK_INTERVAL_MS,
        ):
        self._timer = QTimer(parent)
        self._timer.setInterval(interval_ms)
        if callback is not None:
            self.connect(callback)

    def connect(self, callback: Callable[[], None]):
        self._timer.timeout.connect(callback)

    def start(self):
        if self._timer.isActive():
            return
        self._timer.start()
        logger.debug("Tick driver started")

    def stop(self):
        if not self._timer.isActive():
            return
        self._timer.stop()
        logger.debug("Tick driver stopped")

    def is_active(self) -> bool:
        return self._timer.isActive()
