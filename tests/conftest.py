import concurrent.futures
import os
import threading

import pytest


@pytest.fixture
def fifo_path(tmp_path):
    # Does not exist yet.
    return str(tmp_path / 'test.fifo')


@pytest.fixture
def umask():
    mask = os.umask(0)
    os.umask(mask)
    return mask


def _run_in_thread(func, *args, **kwargs) -> concurrent.futures.Future:
    # A daemon thread, so that a peer stuck waiting on a pipe
    # does not keep the test session from exiting.
    fut = concurrent.futures.Future()

    def target():
        try:
            fut.set_result(func(*args, **kwargs))
        except BaseException as e:
            fut.set_exception(e)

    threading.Thread(target=target, daemon=True).start()
    return fut


@pytest.fixture
def background():
    return _run_in_thread
