#!/usr/bin/env python3
"""
Responder（エコーサーバー）

Binds the endpoint and echoes every request back unchanged until a
zero-length request (shutdown sentinel) arrives. The sentinel is not
answered.

State machine:
    BOUND -> WAITING -> (ECHOING -> WAITING)* -> STOPPED

主要機能:
- REPソケットbind・準備完了通知（threading.Event）
- 受信データをそのまま返送（バイト単位で同一）
- 長さ0メッセージで停止（応答なし）
"""

import logging
import threading
from enum import Enum
from typing import Optional

from .channel import Channel, ChannelContext, is_shutdown
from .endpoint import Endpoint

logger = logging.getLogger(__name__)


class ResponderState(Enum):
    BOUND = "bound"
    WAITING = "waiting"
    ECHOING = "echoing"
    STOPPED = "stopped"


class Responder:
    """
    Echo responder bound to one endpoint

    Any channel error while waiting or echoing propagates to the caller;
    the only normal exit is the shutdown sentinel.
    """

    def __init__(self, ctx: ChannelContext, endpoint: Endpoint,
                 receive_timeout_ms: Optional[int] = None):
        self.ctx = ctx
        self.endpoint = endpoint
        self.receive_timeout_ms = receive_timeout_ms
        self.state: Optional[ResponderState] = None
        self.echo_count = 0

    def serve(self, ready: Optional[threading.Event] = None) -> int:
        """
        Bind and run the echo loop until shutdown

        Args:
            ready: set once the socket is bound (readiness handshake for combined runs)

        Returns:
            Number of echoed messages
        """
        with Channel.bind(self.ctx, self.endpoint, self.receive_timeout_ms) as channel:
            self.state = ResponderState.BOUND
            if ready is not None:
                ready.set()

            while True:
                self.state = ResponderState.WAITING
                message = channel.receive()

                if is_shutdown(message):
                    self.state = ResponderState.STOPPED
                    logger.info(f"Shutdown received on {self.endpoint.address} "
                                f"after {self.echo_count} echoes")
                    break

                self.state = ResponderState.ECHOING
                channel.send(message)
                self.echo_count += 1

                if self.echo_count % 1000 == 0:
                    logger.debug(f"Responder echoed {self.echo_count} messages")

        return self.echo_count


def run_responder(ctx: ChannelContext, endpoint: Endpoint,
                  ready: Optional[threading.Event] = None,
                  receive_timeout_ms: Optional[int] = None) -> int:
    """Run a responder to completion, return the echo count"""
    return Responder(ctx, endpoint, receive_timeout_ms).serve(ready)
