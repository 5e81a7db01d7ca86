import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FILE = os.getenv("LOG_FILE", "safebite.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
LOG_CONSOLE_LEVEL = os.getenv("LOG_CONSOLE_LEVEL", "ERROR").upper()

# Configure logging
logger = logging.getLogger("safebite")
logger.setLevel(LOG_LEVEL)

formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s - %(pathname)s:%(lineno)d")

# guard against duplicate handlers when the module is reloaded
if not logger.handlers:
    # rotating file handler, an empty LOG_FILE disables it
    if LOG_FILE:
        file_handler = RotatingFileHandler(LOG_FILE, maxBytes=5*1024*1024, backupCount=3)
        file_handler.setLevel(LOG_LEVEL)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(LOG_CONSOLE_LEVEL)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

def log_debug(message: str):
    logger.debug(message)

def log_info(message: str):
    logger.info(message)

def log_warning(message: str):
    logger.warning(message)

def log_error(message: str, exc: Exception = None):
    if exc:
        logger.error(message, exc_info=exc)
    else:
        logger.error(message)

def log_critical(message: str):
    logger.critical(message)
