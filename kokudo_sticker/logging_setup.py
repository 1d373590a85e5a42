import logging
import logging.handlers
from pathlib import Path
from .config import settings

LOGGER_NAME = "kokudo_sticker"


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def setup_logging() -> logging.Logger:
    Path(settings.logs_dir).mkdir(parents=True, exist_ok=True)
    Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
    logger = get_logger()
    logger.setLevel(settings.log_level)

    # Avoid adding handlers twice if the app is created more than once
    if logger.handlers:
        return logger

    file_handler = logging.handlers.TimedRotatingFileHandler(
        str(settings.log_file), when="D", interval=7, backupCount=10, encoding="utf-8"
    )
    file_handler.suffix = "_%Y-%m-%d"
    console_handler = logging.StreamHandler()

    fmt = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    file_handler.setFormatter(fmt)
    console_handler.setFormatter(fmt)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.info(f"Logging to {settings.log_file} at {settings.log_level} with 7-day rotation")
    return logger
