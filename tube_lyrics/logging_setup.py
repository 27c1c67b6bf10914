from __future__ import annotations

import logging
import os


def _env_level(default: int) -> int:
    level_name = os.getenv("TUBE_LYRICS_LOG_LEVEL")
    if not level_name:
        return default
    level = logging.getLevelName(level_name.strip().upper())
    # getLevelName returns "Level X" for unknown names
    return level if isinstance(level, int) else default


def setup_logging(debug: bool) -> None:
    level = _env_level(logging.DEBUG if debug else logging.WARNING)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if level > logging.DEBUG:
        # connection pool chatter only helps when debugging providers
        logging.getLogger("urllib3").setLevel(logging.WARNING)
