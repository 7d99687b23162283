#!/usr/bin/env python3
"""
メッセージングチャネル

ZeroMQ REQ/REPソケットの薄いラッパー。

- ChannelContext: one zmq.Context per process, passed explicitly to each role
- Channel.bind():    REP socket (responder side)
- Channel.connect(): REQ socket (requester side)

The channel is strictly half-duplex: every send must be followed by a
receive before the next send (ZeroMQ enforces this for REQ/REP).
A zero-length message is the shutdown sentinel.
"""

import os
import threading
import logging
from typing import Optional, Set

import zmq

from .endpoint import Endpoint, InprocEndpoint

logger = logging.getLogger(__name__)

SHUTDOWN = b""


def is_shutdown(message: bytes) -> bool:
    """Zero-length message == shutdown sentinel"""
    return len(message) == 0


# ===== Errors =====

class ChannelError(Exception):
    """Base class for channel failures (always fatal to the caller)"""


class BindError(ChannelError):
    pass


class ConnectError(ChannelError):
    pass


class SendError(ChannelError):
    pass


class ReceiveError(ChannelError):
    pass


class ChannelContext:
    """
    Shared ZeroMQ context

    Created once by the driver and handed to every responder/requester.
    zmq.Context is thread safe for socket creation; sockets themselves are
    not, so each role creates and owns its own Channel.

    In-process names are tracked here so that a connect before the matching
    bind fails instead of silently queueing (libzmq >= 4.2 allows that).
    """

    def __init__(self, io_threads: Optional[int] = None):
        """
        Args:
            io_threads: ZeroMQ I/O thread count (None -> CPU count)
        """
        self.io_threads = io_threads or os.cpu_count() or 1
        self.zmq_context = zmq.Context(io_threads=self.io_threads)
        self._bound_inproc: Set[str] = set()
        self._lock = threading.Lock()
        logger.debug(f"ChannelContext created with {self.io_threads} I/O threads")

    def register_inproc(self, name: str):
        with self._lock:
            self._bound_inproc.add(name)

    def unregister_inproc(self, name: str):
        with self._lock:
            self._bound_inproc.discard(name)

    def is_inproc_bound(self, name: str) -> bool:
        with self._lock:
            return name in self._bound_inproc

    def close(self):
        """
        Terminate the ZeroMQ context

        Blocks until every socket is closed. Calls blocked in other threads
        fail with ETERM (ReceiveError/SendError), so their channels close and
        this returns; used to interrupt a run.
        """
        if not self.zmq_context.closed:
            self.zmq_context.term()
            logger.debug("ChannelContext terminated")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class Channel:
    """
    One end of a request/reply channel

    Use Channel.bind() or Channel.connect() rather than the constructor.
    """

    def __init__(self, ctx: ChannelContext, endpoint: Endpoint, socket: zmq.Socket, bound: bool):
        self.ctx = ctx
        self.endpoint = endpoint
        self.socket = socket
        self.bound = bound
        self.closed = False

    @classmethod
    def bind(cls, ctx: ChannelContext, endpoint: Endpoint,
             receive_timeout_ms: Optional[int] = None) -> "Channel":
        """
        Bind a REP socket to the endpoint

        Raises:
            BindError: endpoint in use or malformed
        """
        try:
            socket = ctx.zmq_context.socket(zmq.REP)
        except zmq.ZMQError as e:
            raise BindError(f"Cannot create socket for {endpoint.bind_address}: {e}") from e
        _apply_timeout(socket, receive_timeout_ms)
        try:
            socket.bind(endpoint.bind_address)
        except zmq.ZMQError as e:
            socket.close(linger=0)
            raise BindError(f"Cannot bind {endpoint.bind_address}: {e}") from e

        if isinstance(endpoint, InprocEndpoint):
            ctx.register_inproc(endpoint.name)
        logger.info(f"Bound REP socket on {endpoint.bind_address}")
        return cls(ctx, endpoint, socket, bound=True)

    @classmethod
    def connect(cls, ctx: ChannelContext, endpoint: Endpoint,
                receive_timeout_ms: Optional[int] = None) -> "Channel":
        """
        Connect a REQ socket to the endpoint

        Raises:
            ConnectError: endpoint cannot be resolved, or in-process name not bound yet
        """
        if isinstance(endpoint, InprocEndpoint) and not ctx.is_inproc_bound(endpoint.name):
            raise ConnectError(f"No responder bound at {endpoint.address}")

        try:
            socket = ctx.zmq_context.socket(zmq.REQ)
        except zmq.ZMQError as e:
            raise ConnectError(f"Cannot create socket for {endpoint.address}: {e}") from e
        _apply_timeout(socket, receive_timeout_ms)
        try:
            socket.connect(endpoint.address)
        except zmq.ZMQError as e:
            socket.close(linger=0)
            raise ConnectError(f"Cannot connect {endpoint.address}: {e}") from e

        logger.info(f"Connected REQ socket to {endpoint.address}")
        return cls(ctx, endpoint, socket, bound=False)

    def send(self, data: bytes):
        """Blocking send of one whole message"""
        if self.closed:
            raise SendError(f"Channel to {self.endpoint.address} is closed")
        try:
            self.socket.send(data)
        except zmq.ZMQError as e:
            raise SendError(f"Send failed on {self.endpoint.address}: {e}") from e

    def receive(self) -> bytes:
        """Blocking receive of one whole message"""
        if self.closed:
            raise ReceiveError(f"Channel to {self.endpoint.address} is closed")
        try:
            return self.socket.recv()
        except zmq.Again as e:
            raise ReceiveError(f"Receive timed out on {self.endpoint.address}") from e
        except zmq.ZMQError as e:
            raise ReceiveError(f"Receive failed on {self.endpoint.address}: {e}") from e

    def close(self, linger: Optional[int] = None):
        """
        Close the socket

        Args:
            linger: ms to keep unsent messages (None -> ZeroMQ default)
        """
        if self.closed:
            return
        self.closed = True
        self.socket.close(linger=linger)
        if self.bound and isinstance(self.endpoint, InprocEndpoint):
            self.ctx.unregister_inproc(self.endpoint.name)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        # Drop anything still queued on failure so context.term() cannot hang
        self.close(linger=0 if exc_type is not None else None)


def _apply_timeout(socket: zmq.Socket, receive_timeout_ms: Optional[int]):
    if receive_timeout_ms is not None:
        socket.setsockopt(zmq.RCVTIMEO, receive_timeout_ms)
