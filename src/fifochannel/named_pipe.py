'''
This module provides blocking endpoints of a "named pipe" (FIFO) channel
between two processes on the same machine.

One creates a `Sender` in one process and a `Receiver` in the other process,
providing the same `path`. The two can be created in any order.
Whichever comes first creates the FIFO file if it does not exist.

`Sender.send` takes a bytes-like object; `Receiver.receive` returns one
such message as `bytes`, exactly as it was sent. Messages are framed on the
byte stream, hence message boundaries are preserved.

The channel survives the other side going away. A sender that finds no reader
waits until one opens the pipe; a sender whose reader has closed the pipe
reopens it and sends the message to the next reader. A receiver whose writer
has closed the pipe reopens it and waits for the next writer.
None of these conditions is reported to the caller; they may make a call
block indefinitely. Other OS errors are raised as `FatalSystemError`,
after which the endpoint is closed.

For use in `asyncio` code, see `fifochannel.asyncio`.
'''

from __future__ import annotations

import logging
import os
import select
import time

from ._common import (
    RETRY_INTERVAL,
    FatalSystemError,
    IncompleteFrameError,
    OSErrorClass,
    StreamClosed,
    classify,
)
from ._fifo import open_read_end, try_open_write_end
from ._frame import HEADER_SIZE, decode_header, make_frame

__all__ = ['Sender', 'Receiver']

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 65536


def _wait(fd: int, events: int) -> None:
    # Hang-up and error conditions also end the wait.
    p = select.poll()
    p.register(fd, events)
    p.poll()


class _Endpoint:
    def __init__(self, path: str, *, create_parents: bool = False):
        self._fd = None
        self._path = os.path.abspath(path)
        self._create_parents = create_parents
        self._fd = self._connect()

    def __repr__(self):
        return f"{self.__class__.__name__}('{self._path}')"

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __del__(self):
        self.close()

    @property
    def path(self) -> str:
        return self._path

    @property
    def closed(self) -> bool:
        return self._fd is None

    def _connect(self) -> int:
        raise NotImplementedError

    def _fileno(self) -> int:
        if self._fd is None:
            raise ValueError(f'operation on closed {self!r}')
        return self._fd

    def _reconnect(self) -> None:
        self.close()
        self._fd = self._connect()

    def _fail(self, e: OSError):
        self.close()
        raise FatalSystemError.wrap(e) from e

    def close(self) -> None:
        fd, self._fd = self._fd, None
        if fd is not None:
            os.close(fd)


class Sender(_Endpoint):
    def __init__(
        self,
        path: str,
        *,
        retry_interval: float = RETRY_INTERVAL,
        create_parents: bool = False,
    ):
        """
        Open the write end of the FIFO at ``path``.

        This blocks until some process has the FIFO open for reading,
        checking every ``retry_interval`` seconds. The FIFO is created
        if it does not exist; if ``create_parents`` is ``True``,
        missing parent directories are created as well.
        """
        self._retry_interval = retry_interval
        super().__init__(path, create_parents=create_parents)

    def _connect(self) -> int:
        waiting = False
        while True:
            fd = try_open_write_end(self._path, create_parents=self._create_parents)
            if fd is not None:
                if waiting:
                    logger.debug("reader showed up on '%s'", self._path)
                return fd
            if not waiting:
                logger.debug("waiting for a reader on '%s'", self._path)
                waiting = True
            time.sleep(self._retry_interval)

    def _write(self, frame: bytes) -> None:
        view = memoryview(frame)
        while view:
            fd = self._fileno()
            try:
                n = os.write(fd, view)
            except BlockingIOError:
                # Pipe buffer is full; the reader is slow.
                _wait(fd, select.POLLOUT)
                continue
            view = view[n:]

    def send(self, data) -> None:
        """
        Send ``data``, a bytes-like object, as one message.

        Returns once the whole message is in the pipe. If the reader
        has closed the pipe, wait for the next reader and send to it.
        """
        frame = make_frame(data)
        while True:
            try:
                self._write(frame)
                return
            except OSError as e:
                if classify(e) is not OSErrorClass.BROKEN_PIPE:
                    self._fail(e)
            logger.debug("reader of '%s' is gone; reopening", self._path)
            self._reconnect()


class Receiver(_Endpoint):
    def __init__(self, path: str, *, create_parents: bool = False):
        """
        Open the read end of the FIFO at ``path``.

        This does not wait for a writer. The FIFO is created
        if it does not exist; if ``create_parents`` is ``True``,
        missing parent directories are created as well.
        """
        super().__init__(path, create_parents=create_parents)

    def _connect(self) -> int:
        return open_read_end(self._path, create_parents=self._create_parents)

    def _read(self, size: int) -> bytes:
        buf = bytearray()
        while len(buf) < size:
            fd = self._fileno()
            # Wait first: a read on a FIFO without a writer
            # returns EOF right away instead of blocking.
            _wait(fd, select.POLLIN)
            try:
                # Bounded, so that memory grows only as bytes arrive,
                # whatever length the header claims.
                chunk = os.read(fd, min(size - len(buf), _CHUNK_SIZE))
            except BlockingIOError:
                continue
            if not chunk:
                raise StreamClosed(bytes(buf), size)
            buf += chunk
        return bytes(buf)

    def receive(self) -> bytes:
        """
        Block until a whole message has arrived and return it.

        If the writer closes the pipe before the next message has started,
        wait for the next writer. If the writer closes the pipe in the middle
        of a message, raise `IncompleteFrameError`.
        """
        while True:
            try:
                header = self._read(HEADER_SIZE)
                break
            except (EOFError, OSError) as e:
                if classify(e) is not OSErrorClass.STREAM_CLOSED:
                    self._fail(e)
            logger.debug("writer of '%s' is gone; reopening", self._path)
            self._reconnect()

        # The header has been consumed; a message cut short here
        # can't be resumed, so any failure closes the receiver.
        size = decode_header(header)
        try:
            return self._read(size)
        except StreamClosed as e:
            self.close()
            raise IncompleteFrameError(size, len(e.partial)) from e
        except OSError as e:
            self._fail(e)
        except BaseException:
            self.close()
            raise
