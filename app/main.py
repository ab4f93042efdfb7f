"""Application entry point."""

from __future__ import annotations

import logging
import sys

from PySide6.QtWidgets import QApplication

from app.config import Config
from app.controller import Controller
from ui.main_window import MainWindow


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )


def main() -> None:
    _configure_logging()
    logger = logging.getLogger(__name__)
    logger.info("Walk-around capture guide – starting up.")

    app = QApplication(sys.argv)
    app.setApplicationName("WalkaroundGuide")

    config = Config.load()

    controller = Controller(config)
    controller.start_detector()

    window = MainWindow(config, controller)
    window.show()

    ret = app.exec()

    controller.shutdown()
    logger.info("Exiting with code %d.", ret)
    sys.exit(ret)


if __name__ == "__main__":
    main()
