"""
The package ``fifochannel`` provides a message channel between two processes
on the same machine over a POSIX named pipe (FIFO), with one writer and one reader.

On top of a raw FIFO, it adds

1. creation of the FIFO file by whichever side needs it first;
2. reconnection when the other side has not shown up yet, has gone away,
   or has been replaced by a new process;
3. framing, so that byte messages, not an unstructured byte stream,
   are exchanged.

Blocking endpoints are in :mod:`fifochannel.named_pipe`; their ``asyncio``
counterparts are in :mod:`fifochannel.asyncio`.

To install, do

::

   python3 -m pip install fifochannel
"""

__version__ = '0.1.0'


from . import asyncio, named_pipe
from ._common import (
    FIFO_MODE,
    RETRY_INTERVAL,
    FatalSystemError,
    IncompleteFrameError,
    OSErrorClass,
    classify,
)
from ._fifo import mkfifo
from ._frame import HEADER_SIZE
from .asyncio import AsyncReceiver, AsyncSender
from .named_pipe import Receiver, Sender
