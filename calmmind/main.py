from __future__ import annotations

import logging
import sys

from PySide6.QtWidgets import QApplication

from .config import AppConfig
from .ui import MainWindow


def configure_logging(level_name: str) -> None:
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    app = QApplication(sys.argv)
    config = AppConfig()
    configure_logging(config.settings.get_str("app.log_level", "INFO"))
    window = MainWindow(config)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
