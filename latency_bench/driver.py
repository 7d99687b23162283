#!/usr/bin/env python3
"""
実行モード振り分け（ドライバ）

Starts the selected role(s) as threads on one shared ChannelContext and
waits for all of them:

- SHUTDOWN:  send the sentinel only
- RESPONDER: echo server only
- REQUESTER: timed client only
- COMBINED:  both in this process (responder bound before the requester connects)

Ctrl-C terminates the context, so threads blocked in recv fail with ETERM
and the run unwinds instead of hanging.
"""

import time
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import List, Optional

from .channel import ChannelContext, ChannelError
from .config import BenchConfig, ConfigError, validate
from .endpoint import Endpoint
from .requester import run_requester, send_shutdown
from .responder import run_responder
from .stats import RunSummary, write_samples_csv

logger = logging.getLogger(__name__)

# Upper bound on waiting for the responder to bind in combined mode
READY_TIMEOUT_S = 10.0
# Main thread wakes this often so SIGINT is handled while roles block
POLL_INTERVAL_S = 0.2


class Mode(Enum):
    RESPONDER = "responder"
    REQUESTER = "requester"
    SHUTDOWN = "shutdown"
    COMBINED = "combined"


def select_mode(config: BenchConfig) -> Mode:
    if config.kill_server:
        return Mode.SHUTDOWN
    if config.run_server:
        return Mode.RESPONDER
    if config.run_client:
        return Mode.REQUESTER
    return Mode.COMBINED


def run(config: BenchConfig, ctx: Optional[ChannelContext] = None) -> Optional[RunSummary]:
    """
    Run the benchmark described by config

    Args:
        config: benchmark configuration (validated here)
        ctx: shared channel context (None -> one is created and closed here)

    Returns:
        RunSummary for modes that run a requester, else None

    Raises:
        ConfigError: invalid configuration, before anything starts
        ChannelError: first failure of any launched role
        KeyboardInterrupt: after the context has been terminated
    """
    validate(config)
    if config.samples_csv:
        _check_writable(config.samples_csv)

    if ctx is None:
        with ChannelContext(config.io_threads) as own_ctx:
            return run(config, own_ctx)

    mode = select_mode(config)
    endpoint = config.endpoint()
    logger.info(f"Mode {mode.value} on {endpoint.address}")

    if mode is Mode.SHUTDOWN:
        print(f"Killing server at {endpoint.address}")
        send_shutdown(ctx, endpoint)
        return None

    samples: List = []
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="bench") as executor:
        try:
            summary = _dispatch(executor, ctx, config, mode, endpoint, samples)
        except KeyboardInterrupt:
            logger.warning("Interrupted, terminating channel context")
            ctx.close()
            raise

    # ===== 生サンプル出力（計測完了後）=====
    if summary is not None and config.samples_csv:
        write_samples_csv(config.samples_csv, samples[0])
        logger.info(f"Wrote {summary.count} samples to {config.samples_csv}")
    return summary


def _dispatch(executor: ThreadPoolExecutor, ctx: ChannelContext, config: BenchConfig,
              mode: Mode, endpoint: Endpoint, samples: List) -> Optional[RunSummary]:
    if mode is Mode.RESPONDER:
        _wait_result(executor.submit(run_responder, ctx, endpoint, None,
                                     config.receive_timeout_ms))
        return None

    if mode is Mode.REQUESTER:
        return _wait_result(executor.submit(run_requester, ctx, endpoint, config.length,
                                            config.num, config.one_shot, None,
                                            config.receive_timeout_ms, samples.append))

    # ===== COMBINED: responder を先に bind してから requester を起動 =====
    ready = threading.Event()
    responder = executor.submit(run_responder, ctx, endpoint, ready,
                                config.receive_timeout_ms)
    deadline = time.monotonic() + READY_TIMEOUT_S
    while not ready.wait(POLL_INTERVAL_S):
        if responder.done():
            responder.result()  # bind failed: raise it
        if time.monotonic() > deadline:
            # Unblock the responder thread so the executor can be joined
            ctx.close()
            raise ChannelError(f"Responder on {endpoint.address} did not become ready")

    requester = executor.submit(run_requester, ctx, endpoint, config.length, config.num,
                                config.one_shot, None, config.receive_timeout_ms,
                                samples.append)
    try:
        summary = _wait_result(requester)
    except Exception:
        # Requester failed before stopping the responder; nobody else will
        if not responder.done():
            _stop_responder(ctx, endpoint)
        raise

    # The responder only stops on the sentinel; send it unless the requester already did
    if not config.one_shot and not responder.done():
        _stop_responder(ctx, endpoint)

    _wait_result(responder)
    return summary


def _wait_result(future: Future):
    """future.result() that keeps the main thread responsive to signals"""
    while not future.done():
        wait([future], timeout=POLL_INTERVAL_S)
    return future.result()


def _stop_responder(ctx: ChannelContext, endpoint: Endpoint):
    try:
        send_shutdown(ctx, endpoint)
    except ChannelError as e:
        logger.warning(f"Could not stop responder on {endpoint.address}: {e}")


def _check_writable(path: str):
    # 計測前に出力先を確認（計測結果を失わないため）
    try:
        with open(path, 'a'):
            pass
    except OSError as e:
        raise ConfigError(f"Cannot write samples to {path}: {e}") from None
