# src/seerr_gateway/logger.py

import logging
import sys
from copy import copy
from datetime import datetime, timezone
from typing import Literal, Optional

import click


class ColourizedFormatter(logging.Formatter):
    level_name_colors = {
        logging.DEBUG: lambda level_name: click.style(str(level_name), fg="cyan"),
        logging.INFO: lambda level_name: click.style(str(level_name), fg="green"),
        logging.WARNING: lambda level_name: click.style(str(level_name), fg="yellow"),
        logging.ERROR: lambda level_name: click.style(str(level_name), fg="red"),
        logging.CRITICAL: lambda level_name: click.style(str(level_name), fg="bright_red"),
    }

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        style: Literal["%", "{", "$"] = "%",
        use_colors: Optional[bool] = None,
    ):
        if use_colors in (True, False):
            self.use_colors = use_colors
        else:
            self.use_colors = sys.stderr.isatty()
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)

    def color_level_name(self, level_name: str, level_no: int) -> str:
        func = self.level_name_colors.get(level_no)
        return func(level_name) if func else str(level_name)

    def formatMessage(self, record: logging.LogRecord) -> str:
        recordcopy = copy(record)
        levelname = recordcopy.levelname
        separator = " " * (8 - len(levelname))
        timestamp = datetime.fromtimestamp(recordcopy.created, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        if self.use_colors:
            levelname = self.color_level_name(levelname, recordcopy.levelno)
            timestamp = click.style(timestamp, fg=(101, 111, 104))
        recordcopy.__dict__["levelprefix"] = levelname + separator
        recordcopy.__dict__["asctime"] = timestamp
        return super().formatMessage(recordcopy)


def create_logger(name: str = "seerr_gateway", level: str = "INFO") -> logging.Logger:
    """Attach a single colourized stderr handler to ``name`` and set its level."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not any(getattr(handler, "_seerr_gateway", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(ColourizedFormatter(fmt="%(asctime)s %(levelprefix)s %(name)s: %(message)s"))
        handler._seerr_gateway = True
        logger.addHandler(handler)
    return logger
