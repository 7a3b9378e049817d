# Copyright (c) 2024, ftdiport authors
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Logging helpers for the command-line tools and the test suites."""

import logging
from os import environ
from sys import stderr
from typing import Dict, List, Union


class ColorLogFormatter(logging.Formatter):
    """Log formatter for ANSI terminals, which colorizes log levels.

       Optional features:
         * 'time' (boolean): prefix log messages with 24h HH:MM:SS time
         * 'ms' (boolean): also show milliseconds, implies 'time'
         * 'name_width' (int): padding width for logger names
         * 'color' (boolean): force log level colorization on or off
    """

    RESET = "\x1b[0m"
    LEVEL_COLORS = {
        logging.DEBUG: "\x1b[38;20m",     # grey
        logging.INFO: "\x1b[37;1m",       # white
        logging.WARNING: "\x1b[33;1m",    # yellow
        logging.ERROR: "\x1b[31;1m",      # red
        logging.CRITICAL: "\x1b[35;1m",   # magenta
    }

    def __init__(self, **kwargs):
        name_width = kwargs.pop('name_width', 12)
        use_ms = kwargs.pop('ms', False)
        use_time = kwargs.pop('time', use_ms)
        self._use_ansi = kwargs.pop('color', stderr.isatty())
        super().__init__(**kwargs)
        if use_time:
            prefix = '%(asctime)s.%(msecs)03d ' if use_ms else '%(asctime)s '
        else:
            prefix = ''
        trail = f' %(name)-{name_width}s %(message)s'
        self._formatters: Dict[int, logging.Formatter] = {}
        datefmt = '%H:%M:%S' if use_time else None
        for level, color in self.LEVEL_COLORS.items():
            if self._use_ansi:
                fmt = f'{prefix}{color}%(levelname)8s{self.RESET}{trail}'
            else:
                fmt = f'{prefix}%(levelname)8s{trail}'
            self._formatters[level] = logging.Formatter(fmt, datefmt)

    def format(self, record):
        formatter = self._formatters.get(record.levelno,
                                         self._formatters[logging.DEBUG])
        return formatter.format(record)


def _has_output(log: logging.Logger) -> bool:
    """Tell whether a logger, or one of its parents, already emits records
       somewhere."""
    while log:
        if any(not isinstance(h, logging.NullHandler) for h in log.handlers):
            return True
        if not log.propagate:
            break
        log = log.parent
    return False


def configure_loggers(level: int, *lognames: Union[str, int], **kwargs) \
        -> List[logging.Logger]:
    """Configure loggers.

       Each verbosity step lowers the log level by 10, starting from
       ``logging.ERROR``; integer items in ``lognames`` lower it further for
       the following logger names.

       :param level: verbosity level
       :param lognames: one or more loggers to configure
       :param kwargs: optional formatter features
       :return: the configured loggers
    """
    loglevel = min(logging.ERROR, logging.ERROR - (10 * (level or 0)))
    handler = logging.StreamHandler(stderr)
    handler.setFormatter(ColorLogFormatter(**kwargs))
    loggers: List[logging.Logger] = []
    for logdef in lognames:
        if isinstance(logdef, int):
            loglevel -= 10 * logdef
            continue
        log = logging.getLogger(logdef)
        log.setLevel(max(logging.DEBUG, loglevel))
        loggers.append(log)
    # parent loggers first, so that child loggers inherit their handler
    for log in sorted(loggers, key=lambda l: l.name.count('.')):
        if not _has_output(log):
            log.addHandler(handler)
    return loggers


def configure_test_loggers(*lognames: str, **kwargs) -> List[logging.Logger]:
    """Configure test loggers.

       Use `FTDI_LOGLEVEL` environment variable to select the log level.
    """
    level = environ.get('FTDI_LOGLEVEL', 'warning').upper()
    try:
        loglevel = getattr(logging, level)
    except AttributeError as exc:
        raise ValueError(f'Invalid log level: {level}') from exc
    if not isinstance(loglevel, int):
        raise ValueError(f'Invalid log level: {level}')
    loggers = []
    for name in lognames or ('ftdiport',):
        log = logging.getLogger(name)
        loggers.append(log)
    handler = logging.StreamHandler(stderr)
    handler.setFormatter(ColorLogFormatter(**kwargs))
    for log in loggers:
        log.setLevel(loglevel)
        if not _has_output(log):
            log.addHandler(handler)
    return loggers
