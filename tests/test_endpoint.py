import pytest

from latency_bench.endpoint import InprocEndpoint, IpcEndpoint, TcpEndpoint, parse_endpoint


def test_tcp_addresses():
    endpoint = TcpEndpoint("localhost", 5555)
    assert endpoint.address == "tcp://localhost:5555"
    assert endpoint.bind_address == "tcp://*:5555"


def test_ipc_and_inproc_bind_where_they_connect():
    ipc = IpcEndpoint("/tmp/zmq_socket")
    inproc = InprocEndpoint("bench-1")
    assert ipc.address == ipc.bind_address == "ipc:///tmp/zmq_socket"
    assert inproc.address == inproc.bind_address == "inproc://bench-1"


@pytest.mark.parametrize("address,expected", [
    ("tcp://localhost:5555", TcpEndpoint("localhost", 5555)),
    ("tcp://10.0.0.1:6000", TcpEndpoint("10.0.0.1", 6000)),
    ("ipc:///tmp/zmq_socket", IpcEndpoint("/tmp/zmq_socket")),
    ("inproc://inproc_socket", InprocEndpoint("inproc_socket")),
])
def test_parse_endpoint(address, expected):
    endpoint = parse_endpoint(address)
    assert endpoint == expected
    assert endpoint.address == address


@pytest.mark.parametrize("address", [
    "localhost:5555",
    "tcp://",
    "tcp://localhost",
    "tcp://localhost:http",
    "tcp://localhost:70000",
    "udp://localhost:5555",
])
def test_parse_endpoint_rejects_bad_addresses(address):
    with pytest.raises(ValueError):
        parse_endpoint(address)


def test_endpoints_are_immutable():
    endpoint = TcpEndpoint("localhost", 5555)
    with pytest.raises(AttributeError):
        endpoint.port = 1
