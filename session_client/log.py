import logging

from session_client.config import Config


def setup_logger(name: str = __name__, level: str = None) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level or Config.LOG_LEVEL)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
