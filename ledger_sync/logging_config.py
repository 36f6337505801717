import logging, sys
from pythonjsonlogger.json import JsonFormatter


def configure_logging(level: int = logging.INFO):
    logger = logging.getLogger()
    handler = logging.StreamHandler(sys.stdout)
    formatter = JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    handler.setFormatter(formatter)
    logger.setLevel(level)
    logger.handlers = [handler]
