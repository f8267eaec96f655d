"""
The module ``fifochannel.asyncio`` provides the ``asyncio`` counterparts of
:class:`fifochannel.named_pipe.Sender` and :class:`fifochannel.named_pipe.Receiver`,
with the same behavior. Waiting for the other side, or for the pipe to be ready,
suspends the task instead of blocking the thread.

Endpoints are created by the coroutine ``open``::

    async with await AsyncReceiver.open(path) as receiver:
        data = await receiver.receive()

and, in the other process::

    async with await AsyncSender.open(path) as sender:
        await sender.send(b'hello')

Call ``close`` (or use ``async with``) when done; unlike the blocking endpoints,
these are not closed upon garbage collection, as that may happen
after the event loop is gone.

If a ``receive`` is cancelled in the middle of a message, the receiver
is closed, as the rest of that message can't be told apart from the next one.
A ``receive`` cancelled while waiting for the next message leaves it usable.
"""

from __future__ import annotations

import asyncio
import logging
import os

from ._common import (
    RETRY_INTERVAL,
    FatalSystemError,
    IncompleteFrameError,
    OSErrorClass,
    classify,
)
from ._fifo import open_read_end, try_open_write_end
from ._frame import HEADER_SIZE, decode_header, make_frame

__all__ = ['AsyncSender', 'AsyncReceiver']

logger = logging.getLogger(__name__)


def _wake(fut: asyncio.Future) -> None:
    if not fut.done():
        fut.set_result(None)


async def _wait_writable(fd: int) -> None:
    loop = asyncio.get_running_loop()
    fut = loop.create_future()
    loop.add_writer(fd, _wake, fut)
    try:
        await fut
    finally:
        loop.remove_writer(fd)


class _AsyncEndpoint:
    def __init__(self, path: str, *, create_parents: bool = False):
        # Use the coroutine `open` instead.
        self._path = os.path.abspath(path)
        self._create_parents = create_parents

    @classmethod
    async def open(cls, path: str, **kwargs):
        """
        Create an endpoint on the FIFO at ``path`` and connect it,
        creating the FIFO if it does not exist.
        See the class for the keyword arguments.
        """
        obj = cls(path, **kwargs)
        await obj._connect()
        return obj

    def __repr__(self):
        return f"{self.__class__.__name__}('{self._path}')"

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        self.close()

    @property
    def path(self) -> str:
        return self._path

    async def _connect(self) -> None:
        raise NotImplementedError

    async def _reconnect(self) -> None:
        self.close()
        await self._connect()

    def _fail(self, e: OSError):
        self.close()
        raise FatalSystemError.wrap(e) from e

    def close(self) -> None:
        raise NotImplementedError


class AsyncSender(_AsyncEndpoint):
    """
    Write end of the channel.

    Keyword arguments of ``open``: ``retry_interval`` is the number of seconds
    to wait between attempts while no process has the FIFO open for reading;
    ``create_parents`` asks to create missing parent directories of the FIFO.
    """

    def __init__(
        self,
        path: str,
        *,
        retry_interval: float = RETRY_INTERVAL,
        create_parents: bool = False,
    ):
        super().__init__(path, create_parents=create_parents)
        self._retry_interval = retry_interval
        self._fd = None

    @property
    def closed(self) -> bool:
        return self._fd is None

    async def _connect(self) -> None:
        waiting = False
        while True:
            fd = try_open_write_end(self._path, create_parents=self._create_parents)
            if fd is not None:
                if waiting:
                    logger.debug("reader showed up on '%s'", self._path)
                self._fd = fd
                return
            if not waiting:
                logger.debug("waiting for a reader on '%s'", self._path)
                waiting = True
            await asyncio.sleep(self._retry_interval)

    def close(self) -> None:
        fd, self._fd = self._fd, None
        if fd is not None:
            os.close(fd)

    async def _write(self, frame: bytes) -> None:
        view = memoryview(frame)
        while view:
            if self._fd is None:
                raise ValueError(f'operation on closed {self!r}')
            try:
                n = os.write(self._fd, view)
            except BlockingIOError:
                await _wait_writable(self._fd)
                continue
            view = view[n:]

    async def send(self, data) -> None:
        """
        Send ``data``, a bytes-like object, as one message.

        Returns once the whole message is in the pipe. If the reader
        has closed the pipe, wait for the next reader and send to it.
        """
        frame = make_frame(data)
        while True:
            try:
                await self._write(frame)
                return
            except OSError as e:
                if classify(e) is not OSErrorClass.BROKEN_PIPE:
                    self._fail(e)
            logger.debug("reader of '%s' is gone; reopening", self._path)
            await self._reconnect()


class AsyncReceiver(_AsyncEndpoint):
    """
    Read end of the channel.

    Keyword argument of ``open``: ``create_parents`` asks to create
    missing parent directories of the FIFO.
    """

    def __init__(self, path: str, *, create_parents: bool = False):
        super().__init__(path, create_parents=create_parents)
        self._transport = None
        self._reader = None

    @property
    def closed(self) -> bool:
        return self._transport is None

    async def _connect(self) -> None:
        fd = open_read_end(self._path, create_parents=self._create_parents)
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        pipe = os.fdopen(fd, 'rb', buffering=0)
        try:
            transport, _ = await loop.connect_read_pipe(
                lambda: asyncio.StreamReaderProtocol(reader), pipe
            )
        except OSError as e:
            pipe.close()
            raise FatalSystemError.wrap(e) from e
        self._transport = transport
        self._reader = reader

    def close(self) -> None:
        transport, self._transport = self._transport, None
        self._reader = None
        if transport is not None:
            # No-op if the transport has closed itself upon EOF.
            transport.close()

    def _stream(self) -> asyncio.StreamReader:
        if self._reader is None:
            raise ValueError(f'operation on closed {self!r}')
        return self._reader

    async def receive(self) -> bytes:
        """
        Wait until a whole message has arrived and return it.

        If the writer closes the pipe before the next message has started,
        wait for the next writer. If the writer closes the pipe in the middle
        of a message, raise `IncompleteFrameError`.
        """
        while True:
            reader = self._stream()
            try:
                header = await reader.readexactly(HEADER_SIZE)
                break
            except (EOFError, OSError) as e:
                if classify(e) is not OSErrorClass.STREAM_CLOSED:
                    self._fail(e)
            logger.debug("writer of '%s' is gone; reopening", self._path)
            await self._reconnect()

        # The header has been consumed; a message cut short here
        # can't be resumed, so any failure closes the receiver.
        size = decode_header(header)
        try:
            return await reader.readexactly(size)
        except asyncio.IncompleteReadError as e:
            self.close()
            raise IncompleteFrameError(size, len(e.partial)) from e
        except OSError as e:
            self._fail(e)
        except BaseException:
            self.close()
            raise
