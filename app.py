# app.py
import logging
import os
import sys

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from PySide6.QtWidgets import QApplication

from context import AppContext
from settings import SettingsManager
from ui_main_window import MainWindow


def main() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QApplication(sys.argv)

    settings = SettingsManager()
    ctx = AppContext.from_settings(settings)

    window = MainWindow(ctx=ctx, settings=settings)
    window.resize(1000, 700)
    window.show()

    # El sensor empieza a anunciarse al arrancar la aplicación
    ctx.start()

    exit_code = app.exec()

    ctx.shutdown()
    settings.save()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
