import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_FILES = (".env", ".env.local")


def load_app_env(search_dir: str | Path = ".") -> Optional[Path]:
    """Load the first env file found in `search_dir` and return its path."""
    # containers get their environment injected
    if os.getenv("RUNNING_IN_DOCKER") == "true":
        logger.info("Docker environment detected, skipping env file")
        return None

    for name in ENV_FILES:
        path = Path(search_dir) / name
        if path.exists():
            load_dotenv(path, override=True)
            logger.info(f"Loaded environment from {path.resolve()}")
            return path

    logger.warning(f"No env file found in {Path(search_dir).resolve()}")
    return None
