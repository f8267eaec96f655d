from __future__ import annotations

import enum
import errno

# Permission bits of a newly created FIFO, before the process umask applies.
FIFO_MODE = 0o666

# Seconds a sender waits before trying again when no reader has the pipe open.
RETRY_INTERVAL = 0.05


class FatalSystemError(OSError):
    """
    An OS-level failure that the endpoint does not recover from.

    The ``errno``, ``strerror`` and ``filename`` of the original error
    are kept, and the original error is the ``__cause__``, so callers
    that catch ``OSError`` keep working.
    """

    @classmethod
    def wrap(cls, e: OSError) -> FatalSystemError:
        if e.errno is None:
            return cls(str(e))
        if e.filename is None:
            return cls(e.errno, e.strerror)
        return cls(e.errno, e.strerror, e.filename)


class IncompleteFrameError(FatalSystemError):
    """The stream ended in the middle of a frame's payload."""

    def __init__(self, expected: int, received: int):
        super().__init__(
            f'stream closed after {received} of {expected} payload bytes'
        )
        self.expected = expected
        self.received = received


class StreamClosed(EOFError):
    """The writer closed the pipe before ``expected`` bytes were read."""

    def __init__(self, partial: bytes, expected: int):
        super().__init__(
            f'stream closed after {len(partial)} of {expected} bytes'
        )
        self.partial = partial
        self.expected = expected


class OSErrorClass(enum.Enum):
    NO_RECEIVER = 'no-receiver'
    MISSING_NODE = 'missing-node'
    BROKEN_PIPE = 'broken-pipe'
    STREAM_CLOSED = 'stream-closed'
    WOULD_BLOCK = 'would-block'
    OTHER = 'other'


def classify(e: BaseException) -> OSErrorClass:
    # `asyncio.IncompleteReadError` is an `EOFError`.
    if isinstance(e, EOFError):
        return OSErrorClass.STREAM_CLOSED
    if not isinstance(e, OSError) or isinstance(e, FatalSystemError):
        return OSErrorClass.OTHER
    if e.errno == errno.ENXIO:
        # Opening the write end of a FIFO that no one has open for reading.
        return OSErrorClass.NO_RECEIVER
    if isinstance(e, FileNotFoundError):
        return OSErrorClass.MISSING_NODE
    if isinstance(e, BrokenPipeError):
        return OSErrorClass.BROKEN_PIPE
    if isinstance(e, BlockingIOError):
        return OSErrorClass.WOULD_BLOCK
    return OSErrorClass.OTHER
