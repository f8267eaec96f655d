import logging
import multiprocessing
import os
import tempfile
import time

from fifochannel import Receiver, Sender
from fifochannel.logging import config_logger

logger = logging.getLogger(__name__)

NX = 10000


def receive(path, n):
    config_logger(level='debug', with_process_name=True)
    with Receiver(path) as r:
        total = 0
        for _ in range(n):
            total += len(r.receive())
    logger.info('received %d bytes', total)


def send(path, n, size):
    data = os.urandom(size)
    t0 = time.perf_counter()
    with Sender(path) as s:
        for _ in range(n):
            s.send(data)
    return time.perf_counter() - t0


def main():
    config_logger(level='debug', with_process_name=True)
    ctx = multiprocessing.get_context('spawn')
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, 'bench.fifo')
        for size in (10, 1000, 100_000):
            p = ctx.Process(target=receive, args=(path, NX))
            p.start()
            t = send(path, NX, size)
            p.join()
            print(f'size {size}: {NX} messages in {t:.3f} seconds')


if __name__ == '__main__':
    main()
