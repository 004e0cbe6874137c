import logging
import os
import sys
from datetime import datetime

from streamservice.core.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = None, log_dir: str = None):
    """configure structured logging for api and worker processes"""
    level = level or settings.LOG_LEVEL
    log_dir = settings.LOG_DIR if log_dir is None else log_dir

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir:
        # create logs directory if it doesn't exist
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            logging.FileHandler(
                os.path.join(log_dir, f'streamservice_{datetime.now().strftime("%Y%m%d")}.log'),
                mode='a'
            )
        )

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """get a configured logger instance"""
    return logging.getLogger(name)
