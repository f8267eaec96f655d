import concurrent.futures
import errno
import logging
import multiprocessing
import os
import stat
import time

import pytest
from fifochannel import HEADER_SIZE, FatalSystemError, IncompleteFrameError
from fifochannel._frame import encode_header
from fifochannel.named_pipe import Receiver, Sender


def test_hello(fifo_path):
    assert not os.path.exists(fifo_path)
    r = Receiver(fifo_path)
    assert stat.S_ISFIFO(os.stat(fifo_path).st_mode)
    s = Sender(fifo_path)
    s.send(b'hello')
    assert r.receive() == b'hello'
    s.close()
    r.close()


def test_wire_format(fifo_path):
    os.mkfifo(fifo_path)
    fd = os.open(fifo_path, os.O_RDONLY | os.O_NONBLOCK)
    with Sender(fifo_path) as s:
        s.send(b'hello')
        s.send(b'')
    assert os.read(fd, 100) == encode_header(5) + b'hello' + encode_header(0)
    os.close(fd)


def test_roundtrip(fifo_path):
    messages = [b'', b'a', b'\x00' * 7, bytes(range(256)) * 3, b'last']
    with Receiver(fifo_path) as r, Sender(fifo_path) as s:
        for m in messages:
            s.send(m)
        s.send(bytearray(b'abc'))
        s.send(memoryview(b'xyz'))
        for m in messages:
            assert r.receive() == m
        assert r.receive() == b'abc'
        assert r.receive() == b'xyz'


def test_large(fifo_path, background):
    # Larger than the pipe buffer; the sender has to wait for the reader.
    data = os.urandom(1024 * 1024 + 3)
    with Receiver(fifo_path) as r, Sender(fifo_path) as s:
        fut = background(s.send, data)
        assert r.receive() == data
        fut.result(timeout=5)


def test_sender_waits_for_receiver(fifo_path, background, caplog):
    caplog.set_level(logging.DEBUG, logger='fifochannel')
    fut = background(Sender, fifo_path)
    time.sleep(0.3)
    assert not fut.done()
    # The sender created the FIFO.
    assert stat.S_ISFIFO(os.stat(fifo_path).st_mode)
    assert 'waiting for a reader' in caplog.text

    with Receiver(fifo_path) as r:
        with fut.result(timeout=5) as s:
            s.send(b'ok')
        assert r.receive() == b'ok'


def test_receiver_reconnect(fifo_path, background):
    r = Receiver(fifo_path)
    s = Sender(fifo_path)
    s.send(b'first')
    assert r.receive() == b'first'
    r.close()

    fut = background(s.send, b'second')
    time.sleep(0.3)
    # Waiting for the next reader.
    assert not fut.done()

    with Receiver(fifo_path) as r:
        fut.result(timeout=5)
        assert r.receive() == b'second'
        s.send(b'third')
        assert r.receive() == b'third'
    s.close()


def test_sender_reconnect(fifo_path, background):
    r = Receiver(fifo_path)
    with Sender(fifo_path) as s:
        s.send(b'first')
    assert r.receive() == b'first'

    fut = background(r.receive)
    time.sleep(0.3)
    assert not fut.done()

    with Sender(fifo_path) as s:
        s.send(b'second')
        assert fut.result(timeout=5) == b'second'
        s.send(b'third')
        assert r.receive() == b'third'
    r.close()


def test_sender_gone_in_header(fifo_path, background):
    r = Receiver(fifo_path)
    fd = os.open(fifo_path, os.O_WRONLY | os.O_NONBLOCK)
    os.write(fd, encode_header(5)[:3])
    os.close(fd)

    # The partial header is dropped.
    fut = background(r.receive)
    time.sleep(0.3)
    with Sender(fifo_path) as s:
        s.send(b'hello')
        assert fut.result(timeout=5) == b'hello'
    r.close()


def test_sender_gone_in_payload(fifo_path):
    r = Receiver(fifo_path)
    fd = os.open(fifo_path, os.O_WRONLY | os.O_NONBLOCK)
    os.write(fd, encode_header(10) + b'abc')
    os.close(fd)

    with pytest.raises(IncompleteFrameError) as e:
        r.receive()
    assert e.value.expected == 10
    assert e.value.received == 3
    assert r.closed
    with pytest.raises(ValueError):
        r.receive()


@pytest.mark.parametrize('size', [2 ** (8 * HEADER_SIZE - 1), 2 ** (8 * HEADER_SIZE) - 1])
def test_sender_gone_in_huge_payload(fifo_path, size):
    # A length far larger than could ever be allocated.
    r = Receiver(fifo_path)
    fd = os.open(fifo_path, os.O_WRONLY | os.O_NONBLOCK)
    os.write(fd, encode_header(size) + b'abc')
    os.close(fd)

    with pytest.raises(IncompleteFrameError) as e:
        r.receive()
    assert e.value.expected == size
    assert e.value.received == 3
    assert r.closed


def test_send_fifo_replaced(fifo_path):
    r = Receiver(fifo_path)
    s = Sender(fifo_path)
    r.close()
    os.unlink(fifo_path)
    with open(fifo_path, 'w') as f:
        f.write('abc')

    # The reader is gone; reopening finds a regular file.
    with pytest.raises(FatalSystemError) as e:
        s.send(b'abc')
    assert e.value.errno == errno.EINVAL
    assert s.closed
    with pytest.raises(ValueError):
        s.send(b'abc')


def test_send_error(fifo_path, tmp_path):
    path = str(tmp_path / 'regular')
    with open(path, 'w') as f:
        f.write('abc')
    r = Receiver(fifo_path)
    s = Sender(fifo_path)
    # Writing to a read-only descriptor fails with EBADF, which is not retried.
    os.close(s._fd)
    s._fd = os.open(path, os.O_RDONLY)

    with pytest.raises(FatalSystemError) as e:
        s.send(b'abc')
    assert e.value.errno == errno.EBADF
    assert isinstance(e.value.__cause__, OSError)
    assert s.closed
    r.close()


def test_not_fifo(tmp_path):
    path = str(tmp_path / 'regular')
    with open(path, 'w') as f:
        f.write('abc')
    with pytest.raises(FatalSystemError):
        Receiver(path)
    with pytest.raises(FatalSystemError):
        Sender(path)


def test_create_parents(tmp_path):
    path = str(tmp_path / 'a' / 'b' / 'x.fifo')
    with pytest.raises(FatalSystemError):
        Receiver(path)
    with Receiver(path, create_parents=True) as r:
        with Sender(path) as s:
            s.send(b'abc')
        assert r.receive() == b'abc'


def test_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    r = Receiver('x.fifo')
    path = os.path.join(os.getcwd(), 'x.fifo')
    assert r.path == path
    assert repr(r) == f"Receiver('{path}')"
    assert not r.closed
    r.close()
    assert r.closed
    r.close()


def test_closed_sender(fifo_path):
    r = Receiver(fifo_path)
    s = Sender(fifo_path)
    s.close()
    with pytest.raises(ValueError):
        s.send(b'abc')
    r.close()


def _receive(path, n):
    with Receiver(path) as r:
        return [r.receive() for _ in range(n)]


def _send(path, n):
    with Sender(path) as s:
        for i in range(n):
            s.send(f'message {i}'.encode() * i)
    return 'sender done'


def test_processes(fifo_path):
    ctx = multiprocessing.get_context('spawn')
    with concurrent.futures.ProcessPoolExecutor(max_workers=2, mp_context=ctx) as executor:
        # The sender starts first and waits for the receiver.
        p1 = executor.submit(_send, fifo_path, 100)
        time.sleep(0.2)
        p2 = executor.submit(_receive, fifo_path, 100)
        assert p1.result(timeout=10) == 'sender done'
        got = p2.result(timeout=10)
    assert got == [f'message {i}'.encode() * i for i in range(100)]
