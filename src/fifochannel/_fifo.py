from __future__ import annotations

import errno
import logging
import os
import stat

from ._common import FIFO_MODE, FatalSystemError, OSErrorClass, classify

logger = logging.getLogger(__name__)


def mkfifo(path: str, *, create_parents: bool = False) -> None:
    """
    Create a FIFO at ``path``.

    Call this only after an attempt to open ``path`` has found it missing.
    Errors are propagated as is, with one exception: if the file
    has been created by the other endpoint since that attempt,
    and it is a FIFO, there is nothing left to do.
    """
    if create_parents and os.path.dirname(path):
        os.makedirs(os.path.dirname(path), exist_ok=True)
    try:
        os.mkfifo(path, FIFO_MODE)
    except FileExistsError:
        if not stat.S_ISFIFO(os.stat(path).st_mode):
            raise
        logger.debug("FIFO '%s' was created by the other side", path)
    else:
        logger.debug("created FIFO '%s'", path)


def _check_fifo(fd: int, path: str) -> int:
    if not stat.S_ISFIFO(os.fstat(fd).st_mode):
        os.close(fd)
        raise FatalSystemError(
            errno.EINVAL, "file exists but is not a FIFO", path
        )
    return fd


def _provision(path: str, create_parents: bool) -> None:
    try:
        mkfifo(path, create_parents=create_parents)
    except OSError as e:
        raise FatalSystemError.wrap(e) from e


def open_read_end(path: str, *, create_parents: bool = False) -> int:
    """
    Open the read end of the FIFO at ``path``, creating the FIFO if it is missing.

    The descriptor is non-blocking, so this returns without waiting
    for a writer to show up.
    """
    while True:
        try:
            fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError as e:
            if classify(e) is not OSErrorClass.MISSING_NODE:
                raise FatalSystemError.wrap(e) from e
            _provision(path, create_parents)
            continue
        return _check_fifo(fd, path)


def try_open_write_end(path: str, *, create_parents: bool = False) -> int | None:
    """
    Make one attempt to open the write end of the FIFO at ``path``,
    creating the FIFO if it is missing.

    Return ``None`` if nobody has the FIFO open for reading;
    the caller decides how to wait before trying again.
    The descriptor is non-blocking.
    """
    while True:
        try:
            fd = os.open(path, os.O_WRONLY | os.O_NONBLOCK)
        except OSError as e:
            kind = classify(e)
            if kind is OSErrorClass.NO_RECEIVER:
                return None
            if kind is not OSErrorClass.MISSING_NODE:
                raise FatalSystemError.wrap(e) from e
            _provision(path, create_parents)
            continue
        return _check_fifo(fd, path)
