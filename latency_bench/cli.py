#!/usr/bin/env python3
"""
Command line entry point

Examples:
    latency-bench -x -n 1000 -l 1000          # inproc, both roles in-process
    latency-bench -s -p 5555                  # responder only (TCP)
    latency-bench -c -h server -p 5555 -o     # requester, then stop the responder
    latency-bench -k -p 5555                  # stop a running responder
    latency-bench -c -e ipc:///tmp/bench -o   # requester on an explicit address
"""

import sys
import logging
import argparse
from typing import List, Optional

import yaml

from .channel import ChannelError
from .config import ConfigError, load_config
from .driver import run

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def build_parser() -> argparse.ArgumentParser:
    # -h is the TCP host, so help moves to --help only
    parser = argparse.ArgumentParser(
        prog="latency-bench",
        description="ZeroMQ request/reply round-trip latency benchmark",
        add_help=False,
    )
    parser.add_argument('--help', action='help', help='Show this help message and exit')
    parser.add_argument('-x', '--inproc', dest='use_inproc', action='store_true', default=None,
                        help='Run in inproc mode')
    parser.add_argument('-i', '--ipc', dest='use_ipc', action='store_true', default=None,
                        help='Run in ipc mode')
    parser.add_argument('-p', '--port', type=int, help='Port for connecting with tcp')
    parser.add_argument('-h', '--host', help='Host for connecting with tcp')
    parser.add_argument('-e', '--endpoint', dest='endpoint_address',
                        help='Explicit address (tcp://host:port, ipc://path, inproc://name)')
    parser.add_argument('-s', '--server', dest='run_server', action='store_true', default=None,
                        help='Run in server mode, cannot be used with "inproc"')
    parser.add_argument('-c', '--client', dest='run_client', action='store_true', default=None,
                        help='Run in client mode, cannot be used with "inproc"')
    parser.add_argument('-o', '--oneshot', dest='one_shot', action='store_true', default=None,
                        help='Run client once and kill server')
    parser.add_argument('-k', '--kill', dest='kill_server', action='store_true', default=None,
                        help='Kill the server')
    parser.add_argument('-n', '--num', type=int, help='Number of messages to pass between processes')
    parser.add_argument('-l', '--length', type=int, help='Length of a single message vector to pass')
    parser.add_argument('--config', help='YAML configuration file (section "bench")')
    parser.add_argument('--timeout-ms', dest='receive_timeout_ms', type=int,
                        help='Fail a receive that waits longer than this [ms]')
    parser.add_argument('--samples-csv', help='Write raw round-trip samples to this CSV file')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default INFO)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    overrides = vars(args)
    config_file = overrides.pop('config')

    try:
        config = load_config(config_file).with_overrides(overrides)
    except (ConfigError, OSError, yaml.YAMLError) as e:
        parser.print_help()
        print(f"\nerror: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO),
                        format=LOG_FORMAT)

    try:
        summary = run(config)
    except ConfigError as e:
        parser.print_help()
        print(f"\nerror: {e}", file=sys.stderr)
        return 2
    except ChannelError as e:
        logger.error(f"Benchmark failed: {e}")
        return 1
    except OSError as e:
        logger.error(f"Cannot write results: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130

    if summary is not None:
        print(summary.to_json(), flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
