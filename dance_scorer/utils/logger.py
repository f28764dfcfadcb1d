import sys
import logging

# --------------------------------------------------------
# One logger shared by all dance_scorer modules
# --------------------------------------------------------
LOGGER_NAME = "dance_scorer"
logger = logging.getLogger(LOGGER_NAME)
logger.setLevel(logging.DEBUG)

# Only add a handler once (modules may be reloaded in tests)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)

    formatter = logging.Formatter(
        '[%(asctime)s] [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S'
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

logger.propagate = False


def set_level(level):
    """Change the console verbosity (e.g. logging.DEBUG for --verbose)."""
    for h in logger.handlers:
        h.setLevel(level)


def log(msg):
    logger.info(msg)


def debug(msg):
    logger.debug(msg)

def info(msg):
    logger.info(msg)

def warn(msg):
    logger.warning(msg)

def error(msg):
    logger.error(msg)
