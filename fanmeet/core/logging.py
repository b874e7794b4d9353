from __future__ import annotations

import logging
import sys

from fanmeet.core.config import settings

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    resolved = (level or settings.log_level or "INFO").upper()
    root = logging.getLogger()
    if not any(getattr(h, "_fanmeet_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._fanmeet_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(resolved)
    # SQL echo is noisy at INFO; only surface warnings from the engine.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
