"""
Logging setup for BeginAI Platform
Environment-gated: info/debug output is silenced in production
"""

import logging

from utils.config import Config

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def configure_logging(config=None):
    """
    Configure the root logger from LOG_LEVEL and the runtime environment.
    Returns the effective level.
    """
    config = config or Config()
    level = getattr(logging, config.log_level, logging.INFO)

    if config.is_production and level < logging.WARNING:
        level = logging.WARNING

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
    return level
