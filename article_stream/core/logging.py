import logging.config
import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_LOGGING_CONFIG = Path(__file__).resolve().parents[1] / "config" / "logging.yaml"


def setup_logging(config_path: Optional[Path] = None, level: Optional[str] = None) -> dict:
    """
    Apply the YAML logging config.

    `level` (or LOG_LEVEL) overrides the package logger level, e.g. DEBUG
    to see skipped frames and flushed stream tails.
    """
    path = Path(config_path or os.getenv("LOG_CONFIG") or DEFAULT_LOGGING_CONFIG)
    with open(path) as f:
        config = yaml.safe_load(f)

    level = level or os.getenv("LOG_LEVEL")
    if level:
        config.setdefault("loggers", {}).setdefault("article_stream", {})["level"] = level.upper()

    logging.config.dictConfig(config)
    return config
