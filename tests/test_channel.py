import threading

import pytest

from conftest import JOIN_TIMEOUT, get_free_port
from latency_bench.channel import (
    SHUTDOWN,
    BindError,
    Channel,
    ConnectError,
    ReceiveError,
    SendError,
    is_shutdown,
)
from latency_bench.endpoint import TcpEndpoint


def test_sentinel_is_zero_length():
    assert is_shutdown(SHUTDOWN)
    assert is_shutdown(b"")
    assert not is_shutdown(b"\x00")


def test_request_reply_roundtrip(ctx, inproc_endpoint):
    with Channel.bind(ctx, inproc_endpoint) as server, \
            Channel.connect(ctx, inproc_endpoint) as client:
        client.send(b"ping")
        assert server.receive() == b"ping"
        server.send(b"pong")
        assert client.receive() == b"pong"


def test_inproc_connect_before_bind_fails(ctx, inproc_endpoint):
    with pytest.raises(ConnectError):
        Channel.connect(ctx, inproc_endpoint)


def test_inproc_connect_after_responder_closed_fails(ctx, inproc_endpoint):
    Channel.bind(ctx, inproc_endpoint).close()
    with pytest.raises(ConnectError):
        Channel.connect(ctx, inproc_endpoint)


def test_inproc_bind_twice_fails(ctx, inproc_endpoint):
    with Channel.bind(ctx, inproc_endpoint):
        with pytest.raises(BindError):
            Channel.bind(ctx, inproc_endpoint)


def test_tcp_bind_port_in_use_fails(ctx):
    endpoint = TcpEndpoint("127.0.0.1", get_free_port())
    with Channel.bind(ctx, endpoint):
        with pytest.raises(BindError):
            Channel.bind(ctx, endpoint)


def test_receive_timeout(ctx, inproc_endpoint):
    with Channel.bind(ctx, inproc_endpoint, receive_timeout_ms=50) as server:
        with pytest.raises(ReceiveError):
            server.receive()


def test_send_twice_without_reply_fails(ctx, inproc_endpoint):
    with Channel.bind(ctx, inproc_endpoint), \
            Channel.connect(ctx, inproc_endpoint) as client:
        client.send(b"first")
        with pytest.raises(SendError):
            client.send(b"second")


def test_closed_channel_rejects_io(ctx, inproc_endpoint):
    with Channel.bind(ctx, inproc_endpoint):
        client = Channel.connect(ctx, inproc_endpoint)
        client.close()
        with pytest.raises(SendError):
            client.send(b"data")
        with pytest.raises(ReceiveError):
            client.receive()


def test_context_shared_across_threads(ctx, inproc_endpoint):
    bound = threading.Event()
    received = []

    def serve():
        with Channel.bind(ctx, inproc_endpoint) as server:
            bound.set()
            received.append(server.receive())
            server.send(received[-1])

    thread = threading.Thread(target=serve)
    thread.start()
    assert bound.wait(JOIN_TIMEOUT)

    with Channel.connect(ctx, inproc_endpoint) as client:
        client.send(b"hello")
        assert client.receive() == b"hello"

    thread.join(JOIN_TIMEOUT)
    assert not thread.is_alive()
    assert received == [b"hello"]
