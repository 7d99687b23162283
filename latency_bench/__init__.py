"""ZeroMQ request/reply latency benchmark"""

from .channel import (
    SHUTDOWN,
    BindError,
    Channel,
    ChannelContext,
    ChannelError,
    ConnectError,
    ReceiveError,
    SendError,
    is_shutdown,
)
from .config import BenchConfig, ConfigError, load_config, validate
from .driver import Mode, run, select_mode
from .endpoint import InprocEndpoint, IpcEndpoint, TcpEndpoint, parse_endpoint
from .requester import generate_payload, run_requester, send_shutdown
from .responder import Responder, ResponderState, run_responder
from .stats import RunSummary, mean_and_stdev, summarize

__version__ = "0.1.0"
