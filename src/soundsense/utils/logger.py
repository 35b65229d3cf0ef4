import logging
import os
import sys
from logging.handlers import RotatingFileHandler

LOG_FILE_ENV = "SOUNDSENSE_LOG_FILE"
DEFAULT_LOG_FILE = "soundsense.log"


def get_logger(name=__name__):
    logger = logging.getLogger(name)

    # Only add handlers if the logger doesn't have them (prevents duplicate logs)
    if not logger.handlers:
        logger.setLevel(logging.DEBUG)

        common_format = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Console shows INFO and above
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(common_format)
        logger.addHandler(console_handler)

        # File stores everything, rotates at 5MB. Empty path disables it.
        log_file = os.environ.get(LOG_FILE_ENV, DEFAULT_LOG_FILE)
        if log_file:
            file_handler = RotatingFileHandler(
                log_file, maxBytes=5*1024*1024, backupCount=2
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(common_format)
            logger.addHandler(file_handler)

    return logger
