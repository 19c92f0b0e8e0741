"""Module entry point for the s3nav application."""
import locale
import logging
import os
import tkinter as tk

from .tk_view import S3NavApp

LOG_LEVEL_ENV = "S3NAV_LOG_LEVEL"

LOGGER = logging.getLogger(__name__)


def configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def configure_collation() -> None:
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        LOGGER.warning("Falling back to default collation: %s", exc)


def main() -> None:
    configure_logging()
    configure_collation()
    root = tk.Tk()
    S3NavApp(root)
    root.mainloop()


if __name__ == "__main__":
    main()
