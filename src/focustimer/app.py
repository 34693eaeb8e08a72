import logging
import os
import sys

from PySide6.QtGui import QIcon
from PySide6.QtWidgets import QApplication

if __package__ is None or __package__ == "":
    # Running as a script (e.g., PyInstaller)
    sys.path.insert(
        0, os.path.abspath(
            os.path.join(os.path.dirname(__file__), "..")
            )
        )
    from focustimer.config import ENV_LOG_LEVEL
    from focustimer.window import FocusTimerWindow
else:
    # Running as a package
    from .config import ENV_LOG_LEVEL
    from .window import FocusTimerWindow


def configure_logging():
    level = os.environ.get(ENV_LOG_LEVEL, "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def main():
    configure_logging()
    app = QApplication(sys.argv)
    app.setWindowIcon(QIcon("icon.png"))

    w = FocusTimerWindow()
    w.logic.resume()
    w.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
