#!/usr/bin/env python3
"""
Requester（計測クライアント）

Sends the same random float32 payload N times over a REQ socket, timing
each send/receive round trip with a nanosecond clock, then summarizes.

Also provides the one-shot shutdown signal: a fresh REQ socket that sends
only the zero-length sentinel.

主要機能:
- ペイロード生成（float32, 一様分布 [0, 128)、実行中は再利用）
- 高精度RTT測定（perf_counter_ns）
- 停止信号送信（新規接続で長さ0メッセージ）
"""

import time
import logging
from typing import Callable, Optional

import numpy as np

from .channel import SHUTDOWN, Channel, ChannelContext
from .endpoint import Endpoint
from .stats import RunSummary, summarize

logger = logging.getLogger(__name__)

PAYLOAD_LOW = 0.0
PAYLOAD_HIGH = 128.0
PAYLOAD_DTYPE = np.float32

# Keep the sentinel around briefly when nobody is listening, then drop it
SHUTDOWN_LINGER_MS = 1000


def generate_payload(length: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Random payload, uniform over [0, 128)

    Args:
        length: element count
        rng: numpy Generator (None -> fresh default_rng())

    Returns:
        float32 array of the given length
    """
    if rng is None:
        rng = np.random.default_rng()
    # Drawn directly in float32: casting a float64 sample could round up to 128.0
    unit = rng.random(length, dtype=PAYLOAD_DTYPE)
    return PAYLOAD_LOW + unit * PAYLOAD_DTYPE(PAYLOAD_HIGH - PAYLOAD_LOW)


def send_shutdown(ctx: ChannelContext, endpoint: Endpoint):
    """
    Tell a waiting responder to stop

    Connects a new REQ socket, sends the zero-length sentinel and closes.
    No reply is expected. Sending to a responder that has already stopped
    is undefined (the message is dropped after the linger period).
    """
    channel = Channel.connect(ctx, endpoint)
    try:
        channel.send(SHUTDOWN)
        logger.info(f"Sent shutdown to {endpoint.address}")
    finally:
        channel.close(linger=SHUTDOWN_LINGER_MS)


def run_requester(ctx: ChannelContext, endpoint: Endpoint, length: int, num: int,
                  kill_after: bool = False,
                  rng: Optional[np.random.Generator] = None,
                  receive_timeout_ms: Optional[int] = None,
                  sample_sink: Optional[Callable[[np.ndarray], None]] = None) -> RunSummary:
    """
    Perform num timed round trips and summarize them

    Args:
        ctx: shared channel context
        endpoint: responder endpoint
        length: payload element count (>= 1)
        num: round trip count (>= 1)
        kill_after: send the shutdown sentinel (fresh connection) when done
        rng: numpy Generator for the payload
        receive_timeout_ms: fail a round trip that waits longer than this
        sample_sink: called with the raw samples [s] after a successful run

    Returns:
        RunSummary

    Raises:
        ValueError: num < 1 or length < 1
        ChannelError: any failed connect/send/receive (no summary produced)
    """
    if num < 1:
        raise ValueError(f"Round trip count must be >= 1, got {num}")
    if length < 1:
        # An empty payload would be read as the shutdown sentinel
        raise ValueError(f"Payload length must be >= 1, got {length}")

    payload = generate_payload(length, rng)
    data = payload.tobytes()
    times = np.empty(num, dtype=np.float64)

    with Channel.connect(ctx, endpoint, receive_timeout_ms) as channel:
        logger.info(f"Starting {num} round trips of {len(data)} bytes to {endpoint.address}")

        # ===== 計測ループ（往復ごとに送信→受信を計時）=====
        for request_num in range(num):
            start = time.perf_counter_ns()
            channel.send(data)
            channel.receive()
            end = time.perf_counter_ns()
            times[request_num] = (end - start) / 1e9

            if (request_num + 1) % 1000 == 0:
                logger.debug(f"Round trip {request_num + 1}/{num}: {times[request_num] * 1e6:.1f}us")

    if kill_after:
        send_shutdown(ctx, endpoint)

    # ===== 統計計算 =====
    summary = summarize(times, endpoint.address, payload)
    if sample_sink is not None:
        sample_sink(times)
    return summary
