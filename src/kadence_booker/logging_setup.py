from __future__ import annotations

import logging
import pathlib


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "WARNING", log_file: str | pathlib.Path | None = None) -> None:
    """Configure root logging for the CLI and the proxy. Safe to call repeatedly."""
    level_value = getattr(logging, (level or "WARNING").upper(), logging.WARNING)
    logging.basicConfig(level=level_value, format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(level_value)

    if log_file:
        path = pathlib.Path(log_file).resolve()
        if not any(getattr(h, "baseFilename", None) == str(path) for h in root.handlers):
            path.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(path, encoding="utf-8")
            fh.setLevel(level_value)
            fh.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(fh)

    # Request-level logging from httpx is noisy unless debugging.
    if level_value > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
