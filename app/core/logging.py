import logging

from app.core.config import LOG_LEVEL

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = LOG_LEVEL):
    """Configures the root logger once for the API process and the poller."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger('tortoise').setLevel(logging.INFO)
