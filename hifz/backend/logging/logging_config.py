import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..config.config import settings


def setup_logging(level: int = logging.INFO):
    """
    Installs the application-wide logging configuration.

    Logs go both to the console (for development and container stdout) and to a
    rotating file under LOG_DIR that rolls over once it reaches 5 MB.
    """
    log_format = "%(asctime)s - [%(name)s] - %(levelname)s - %(message)s"

    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(level)

    # Drop handlers installed by uvicorn or basicConfig so every record uses our format.
    if logger.hasHandlers():
        logger.handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(stdout_handler)

    file_handler = RotatingFileHandler(
        log_dir / "app.log",
        maxBytes=5*1024*1024,  # 5 MB
        backupCount=5
    )
    file_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(file_handler)
