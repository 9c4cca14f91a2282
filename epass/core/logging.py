"""Logging configuration."""
import logging
import sys
from pathlib import Path

from epass.core.config import Settings


def setup_logging(settings: Settings) -> Path:
    """Log to ``<log_dir>/latest.log`` and stdout. Returns the log file path."""
    log_dir = Path(settings.log_dir) if settings.log_dir else Path.home() / ".logs" / "epass"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "latest.log"

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout),
        ],
    )
    # SQL echo is controlled by the engine, keep the logger itself quiet
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    return log_file
