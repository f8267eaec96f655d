"""
A frame on the pipe is laid out this way::

    [payload length][payload]

The length is an unsigned integer of the host's native word width
(``size_t``), little-endian. There is no magic number, version, or checksum,
hence both sides must run on hosts of the same word width.
"""

import struct

HEADER_SIZE = struct.calcsize('N')


def encode_header(length: int) -> bytes:
    return length.to_bytes(HEADER_SIZE, 'little')


def decode_header(header: bytes) -> int:
    return int.from_bytes(header, 'little')


def make_frame(data) -> bytes:
    # `data` is any bytes-like object.
    data = memoryview(data).cast('B')
    return encode_header(data.nbytes) + data.tobytes()
