import socket
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest

from latency_bench.channel import ChannelContext
from latency_bench.endpoint import InprocEndpoint

# Upper bound for any blocking role to finish in a test
JOIN_TIMEOUT = 10


def get_free_port():
    """
    Get a free TCP port on localhost.
    There is a race between returning and the caller binding to it.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def ctx():
    context = ChannelContext(io_threads=1)
    yield context
    context.close()


@pytest.fixture
def executor(ctx):
    # Depends on ctx so role threads are joined before the context terminates
    with ThreadPoolExecutor(max_workers=4) as ex:
        yield ex


@pytest.fixture
def inproc_endpoint():
    return InprocEndpoint(f"bench-{uuid.uuid4().hex[:8]}")
