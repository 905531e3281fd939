"""Process-wide logging configuration."""

from __future__ import annotations

import logging
import sys


class _ThirdPartyNoiseFilter(logging.Filter):
    """Keep ``app.*`` records; let other libraries through at WARNING and up."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "app" or record.name.startswith("app."):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(level: int = logging.INFO) -> None:
    """Attach a single stderr handler to the root logger.

    Safe to call more than once; earlier handlers are replaced.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler.addFilter(_ThirdPartyNoiseFilter())
    root.addHandler(handler)

    logging.captureWarnings(True)
