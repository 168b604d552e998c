import logging

from esf.core.interfaces.logging import LoggingPort
from esf.core.logging_config import coerce_level


class LoggingAdapter(LoggingPort):
    """LoggingPort on top of a named stdlib logger.

    Adds no handlers: records propagate to the root handlers installed by
    `configure_logging`, which also stamp the correlation id.
    """

    def __init__(self, name: str = "ESF", log_level: int | str = logging.INFO):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(coerce_level(log_level))
        self.logger.propagate = True

    def debug(self, msg: str, *args):
        self.logger.debug(msg, *args)

    def info(self, msg: str, *args):
        self.logger.info(msg, *args)

    def warning(self, msg: str, *args):
        self.logger.warning(msg, *args)

    def error(self, msg: str, *args):
        self.logger.error(msg, *args)

    def exception(self, msg: str, *args):
        self.logger.exception(msg, *args)
