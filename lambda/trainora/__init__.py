import logging

from . import config

logging.getLogger(__name__).setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))
