# core/logger.py
import logging

from carpool.core.config import settings

logger = logging.getLogger("carpool")
logger.setLevel(settings.LOG_LEVEL.upper())

# uvicorn --reload imports the app twice in one process
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s"))
    logger.addHandler(console_handler)
