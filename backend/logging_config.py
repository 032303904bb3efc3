import logging
import sys

from config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None):
    """Configure root logging once for the API process or the cron script."""
    resolved = (level or LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stdout,
    )
