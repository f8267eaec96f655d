"""
Configure logging, mainly the format.

A call to the function ``config_logger`` in a launching script is all that is needed
to set up the logging format. Usually the 'level' argument is the only argument
one needs to customize::

  config_logger(level='debug')

If ``level`` is not specified, environment variable ``LOGLEVEL`` is used;
if that is not set, 'info' is used.

Do not call this in library modules. The modules of this package have ::

   logger = logging.getLogger(__name__)

and write only 'debug' messages, e.g. when an endpoint is waiting for
the other side or reopening the pipe after the other side has gone.
"""
import logging
import os
import time
import warnings
from datetime import datetime
from logging import Formatter
from typing import Dict, Union

import pytz


def log_level_from_str(level: str) -> int:
    '''
    `level`: 'debug', 'info', etc.
    '''
    return getattr(logging, level.upper())


def _make_config(
        *,
        level: Union[str, int, None] = None,
        with_process_name: bool = False,
        timezone: str = 'UTC',
        **kwargs) -> Dict:
    if level is None:
        level = os.environ.get('LOGLEVEL', 'info')
    if isinstance(level, str):
        level = log_level_from_str(level)

    if timezone.upper() == 'UTC':
        Formatter.converter = time.gmtime
    elif timezone.lower() == 'local':
        Formatter.converter = time.localtime
    else:
        tz = pytz.timezone(timezone)

        def custom_time(*args):
            # Called as a method of `Formatter`; the timestamp comes last.
            return datetime.fromtimestamp(args[-1], tz).timetuple()

        Formatter.converter = custom_time

    datefmt = '%Y-%m-%d %H:%M:%S'

    msg = '[%(asctime)s.%(msecs)03d ' + timezone + \
        '; %(levelname)s; %(name)s, %(funcName)s, %(lineno)d]  '

    if with_process_name:
        # Both ends of a channel usually log to the same terminal.
        fmt = f'{msg}[%(processName)s %(process)d]  %(message)s'
    else:
        fmt = f'{msg}%(message)s'

    return dict(format=fmt, datefmt=datefmt, level=level, **kwargs)


def config_logger(**kwargs) -> None:
    kw = _make_config(**kwargs)

    rootlogger = logging.getLogger()
    if rootlogger.hasHandlers():
        rootlogger.handlers = []

    logging.basicConfig(**kw)

    logging.captureWarnings(True)
    warnings.filterwarnings('default', category=ResourceWarning)
    warnings.filterwarnings('default', category=DeprecationWarning)
