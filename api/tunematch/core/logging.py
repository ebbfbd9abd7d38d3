from __future__ import annotations

import logging

from tunematch.core.config import settings

LOG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the API process or an RQ worker."""
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT, force=True)
