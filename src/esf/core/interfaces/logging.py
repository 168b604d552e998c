from abc import ABC, abstractmethod


class LoggingPort(ABC):
    """What core code needs from a logger; the adapter decides where it goes."""

    @abstractmethod
    def debug(self, msg: str, *args):
        pass

    @abstractmethod
    def info(self, msg: str, *args):
        pass

    @abstractmethod
    def warning(self, msg: str, *args):
        pass

    @abstractmethod
    def error(self, msg: str, *args):
        pass

    @abstractmethod
    def exception(self, msg: str, *args):
        """Log at ERROR level with the active exception's traceback."""
        pass
