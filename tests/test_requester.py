import threading

import numpy as np
import pytest

from conftest import JOIN_TIMEOUT
from latency_bench.channel import Channel, ConnectError, ReceiveError, is_shutdown
from latency_bench.endpoint import InprocEndpoint
from latency_bench.requester import generate_payload, run_requester, send_shutdown
from latency_bench.responder import Responder, ResponderState


def start_responder(executor, ctx, endpoint):
    responder = Responder(ctx, endpoint)
    ready = threading.Event()
    future = executor.submit(responder.serve, ready)
    assert ready.wait(JOIN_TIMEOUT)
    return responder, future


def test_payload_shape_and_range():
    payload = generate_payload(10000, np.random.default_rng(1))
    assert payload.dtype == np.float32
    assert payload.shape == (10000,)
    assert payload.nbytes == 40000
    assert payload.min() >= 0.0
    assert payload.max() < 128.0


def test_payload_is_seedable():
    first = generate_payload(16, np.random.default_rng(42))
    second = generate_payload(16, np.random.default_rng(42))
    assert np.array_equal(first, second)


def test_end_to_end_inproc_bench_1(ctx, executor):
    endpoint = InprocEndpoint("bench-1")
    responder, server = start_responder(executor, ctx, endpoint)
    samples = []

    summary = run_requester(ctx, endpoint, length=4, num=5, kill_after=True,
                            sample_sink=samples.append)

    assert server.result(JOIN_TIMEOUT) == 5
    assert responder.state is ResponderState.STOPPED
    assert summary.endpoint == "inproc://bench-1"
    assert summary.count == 5
    assert summary.length == 4
    assert summary.size_bytes == 16
    assert len(samples[0]) == 5
    assert np.all(samples[0] >= 0)
    assert summary.avg_seconds >= 0
    assert summary.stdev_seconds >= 0


def test_same_payload_every_round_trip(ctx, executor, inproc_endpoint):
    received = []
    bound = threading.Event()

    def recording_responder():
        with Channel.bind(ctx, inproc_endpoint) as channel:
            bound.set()
            while True:
                message = channel.receive()
                received.append(message)
                if is_shutdown(message):
                    return
                channel.send(message)

    server = executor.submit(recording_responder)
    assert bound.wait(JOIN_TIMEOUT)

    run_requester(ctx, inproc_endpoint, length=8, num=3, kill_after=True)
    server.result(JOIN_TIMEOUT)

    assert len(received) == 4
    assert received[0] == received[1] == received[2]
    assert len(received[0]) == 32
    assert received[3] == b""


def test_without_kill_responder_keeps_waiting(ctx, executor, inproc_endpoint):
    responder, server = start_responder(executor, ctx, inproc_endpoint)

    summary = run_requester(ctx, inproc_endpoint, length=2, num=3)
    assert summary.count == 3
    assert not server.done()

    send_shutdown(ctx, inproc_endpoint)
    assert server.result(JOIN_TIMEOUT) == 3


def test_shutdown_stops_waiting_responder(ctx, executor, inproc_endpoint):
    responder, server = start_responder(executor, ctx, inproc_endpoint)

    send_shutdown(ctx, inproc_endpoint)

    assert server.result(JOIN_TIMEOUT) == 0
    assert responder.state is ResponderState.STOPPED


@pytest.mark.parametrize("length,num", [(4, 0), (4, -1), (0, 5)])
def test_invalid_run_parameters(ctx, inproc_endpoint, length, num):
    with pytest.raises(ValueError):
        run_requester(ctx, inproc_endpoint, length=length, num=num)


def test_connect_before_bind(ctx, inproc_endpoint):
    with pytest.raises(ConnectError):
        run_requester(ctx, inproc_endpoint, length=4, num=1)


def test_failed_round_trip_produces_no_summary(ctx, inproc_endpoint):
    samples = []
    # Bound but never answers
    with Channel.bind(ctx, inproc_endpoint):
        with pytest.raises(ReceiveError):
            run_requester(ctx, inproc_endpoint, length=4, num=3,
                          receive_timeout_ms=50, sample_sink=samples.append)
    assert samples == []
