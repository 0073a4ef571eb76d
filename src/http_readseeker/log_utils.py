import logging

__all__ = ["log", "set_up_logging"]

log = logging.getLogger("http_readseeker")  # Shared by all modules of the package


def set_up_logging(quiet: bool = True, level: int = logging.DEBUG) -> None:
    """
    Initialise the package log. Nothing is attached at import time, so range
    requests and seeks are only reported once this has been called with
    ``quiet=False`` (or the application configures the ``http_readseeker``
    logger itself).

    Args:
      quiet : Change this flag to True/False to turn off/on console logging
      level : The level for both the logger and the console handler
    """
    log.setLevel(level)
    log_format = logging.Formatter("[%(asctime)s] [%(levelname)s] - %(message)s")
    if not quiet and not log.handlers:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(log_format)
        log.addHandler(console)
