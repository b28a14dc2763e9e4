# sheetqueue/core/logging.py
import logging
import sys
import time

_LOGGER_PREFIX = 'sheetqueue.'

# Level given to loggers created by get_logger() from now on.
_default_level: int = logging.INFO


class ColoredFormatter(logging.Formatter):
    """One aligned line per record: [time] [component]   [LEVEL]    message"""

    RESET = '\033[0m'
    TIME = '\033[94m'
    TEXT = '\033[97m'
    LEVEL_COLORS = {
        'DEBUG': '\033[90m',
        'INFO': '\033[92m',
        'WARNING': '\033[93m',
        'ERROR': '\033[91m',
        'CRITICAL': '\033[1;91m',
    }

    # Wide enough for "[loop_runner]" plus a gap.
    COMPONENT_WIDTH = 15
    LEVEL_WIDTH = 10

    def format(self, record: logging.LogRecord) -> str:
        stamp = time.strftime('%H:%M:%S', time.localtime(record.created))
        component = record.name.rpartition('.')[2]
        level_color = self.LEVEL_COLORS.get(record.levelname, self.TEXT)

        line = (
            f'{self.TIME}[{stamp}]{self.RESET} '
            f'{self.TEXT}{f"[{component}]":<{self.COMPONENT_WIDTH}}{self.RESET}'
            f'{level_color}{f"[{record.levelname}]":<{self.LEVEL_WIDTH}}{self.RESET}'
            f'{self.TEXT}{record.getMessage()}{self.RESET}'
        )
        if record.exc_info:
            line = f'{line}\n{self.formatException(record.exc_info)}'
        return line


def set_default_level(level: int) -> None:
    """Level for loggers created after this call."""
    global _default_level
    _default_level = level


def set_level(level: int) -> None:
    """Like set_default_level, and also retune every sheetqueue logger that exists."""
    set_default_level(level)
    for name, existing in list(logging.Logger.manager.loggerDict.items()):
        if name.startswith(_LOGGER_PREFIX) and isinstance(existing, logging.Logger):
            existing.setLevel(level)
            for handler in existing.handlers:
                handler.setLevel(level)


def get_logger(component_name: str) -> logging.Logger:
    """Logger named sheetqueue.<component_name> writing to stdout."""
    logger = logging.getLogger(f'{_LOGGER_PREFIX}{component_name}')
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter())
    handler.setLevel(_default_level)
    logger.addHandler(handler)
    logger.setLevel(_default_level)
    # The handler above already writes every record once.
    logger.propagate = False
    return logger
