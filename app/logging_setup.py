from __future__ import annotations

import logging


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # per-request lines from the HTTP client drown out the fetch summaries
    logging.getLogger("httpx").setLevel(logging.WARNING)
