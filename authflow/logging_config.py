"""Logging setup for AUTHFLOW front ends."""
import logging
from contextvars import ContextVar
from typing import Optional

current_screen: ContextVar[str] = ContextVar("current_screen", default="-")


class ScreenFilter(logging.Filter):
    """Add the active screen to log records."""
    def filter(self, record):
        if not hasattr(record, "screen"):
            record.screen = current_screen.get()
        return True


def configure_logging(level: str = "INFO", fmt: Optional[str] = None) -> None:
    """
    Configure root logging.

    Args:
        level: Level name (e.g. "DEBUG")
        fmt: Format string; may reference `%(screen)s`
    """
    kwargs = {"level": getattr(logging, level.upper(), logging.INFO)}
    if fmt:
        kwargs["format"] = fmt
    logging.basicConfig(**kwargs)

    screen_filter = ScreenFilter()
    # Root logger filters don't see records propagated from child loggers
    for handler in logging.getLogger().handlers:
        handler.addFilter(screen_filter)
