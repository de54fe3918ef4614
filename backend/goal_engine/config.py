"""
Environment-driven settings and logging setup.

NOTE: load_dotenv() must be called BEFORE this module is imported
(done in main.py at startup) for .env values to be picked up.
"""

import os
import logging
from typing import Optional

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./goal_engine.db")
LOG_LEVEL = os.getenv("GOAL_ENGINE_LOG_LEVEL", "INFO").upper()
GOALS_FILE = os.getenv("GOAL_ENGINE_GOALS_FILE")  # optional YAML goal definitions
FUNNEL_BOTTLENECK_LIMIT = int(os.getenv("FUNNEL_BOTTLENECK_LIMIT", "3"))

LOG_FORMAT = '{"time":"%(asctime)s","level":"%(levelname)s","message":"%(message)s","module":"%(name)s"}'


def configure_logging(level: Optional[str] = None) -> None:
    """Structured-ish JSON log lines on the root logger."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
        format=LOG_FORMAT,
    )
