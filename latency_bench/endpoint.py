#!/usr/bin/env python3
"""
Endpoint definitions

A benchmark endpoint is one of three transports, each a small frozen
dataclass that knows its ZeroMQ address:

- TcpEndpoint:    tcp://host:port   (binds on tcp://*:port)
- IpcEndpoint:    ipc://path
- InprocEndpoint: inproc://name
"""

from dataclasses import dataclass
from typing import Union

DEFAULT_TCP_PORT = 5555


@dataclass(frozen=True)
class TcpEndpoint:
    host: str
    port: int

    @property
    def address(self) -> str:
        return f"tcp://{self.host}:{self.port}"

    @property
    def bind_address(self) -> str:
        # Responder listens on every interface, requesters use the host name
        return f"tcp://*:{self.port}"


@dataclass(frozen=True)
class IpcEndpoint:
    path: str

    @property
    def address(self) -> str:
        return f"ipc://{self.path}"

    @property
    def bind_address(self) -> str:
        return self.address


@dataclass(frozen=True)
class InprocEndpoint:
    name: str

    @property
    def address(self) -> str:
        return f"inproc://{self.name}"

    @property
    def bind_address(self) -> str:
        return self.address


Endpoint = Union[TcpEndpoint, IpcEndpoint, InprocEndpoint]


def parse_endpoint(address: str) -> Endpoint:
    """
    Turn a ZeroMQ address string into an Endpoint

    Args:
        address: e.g. "tcp://localhost:5555", "ipc:///tmp/sock", "inproc://bench-1"

    Returns:
        The matching endpoint variant

    Raises:
        ValueError: unknown scheme or malformed address
    """
    scheme, sep, rest = address.partition("://")
    if not sep or not rest:
        raise ValueError(f"Malformed endpoint address: {address!r}")

    if scheme == "tcp":
        host, colon, port_str = rest.rpartition(":")
        if not colon or not host:
            raise ValueError(f"TCP endpoint needs host:port, got {address!r}")
        try:
            port = int(port_str)
        except ValueError:
            raise ValueError(f"Invalid TCP port in {address!r}") from None
        if not 0 < port < 65536:
            raise ValueError(f"TCP port out of range in {address!r}")
        return TcpEndpoint(host, port)
    if scheme == "ipc":
        return IpcEndpoint(rest)
    if scheme == "inproc":
        return InprocEndpoint(rest)

    raise ValueError(f"Unsupported transport {scheme!r} in {address!r}")
