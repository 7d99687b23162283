#!/usr/bin/env python3
"""
ベンチマーク設定

Values are layered: dataclass defaults <- YAML file (section "bench") <-
environment variables <- command line flags (applied by the CLI).

主要機能:
- YAML設定ファイル読み込み（yaml.safe_load）
- 環境変数による上書き（BENCH_*）
- 型チェック・組み合わせ検証（ConfigError）
- エンドポイント解決（TCP / IPC / inproc）
"""

import os
import logging
from dataclasses import dataclass, fields, replace
from typing import Dict, Mapping, Optional

import yaml

from .endpoint import (
    DEFAULT_TCP_PORT,
    Endpoint,
    InprocEndpoint,
    IpcEndpoint,
    TcpEndpoint,
    parse_endpoint,
)

logger = logging.getLogger(__name__)

# Environment variable -> (field, converter)
ENV_OVERRIDES = {
    'BENCH_ENDPOINT': ('endpoint_address', str),
    'BENCH_HOST': ('host', str),
    'BENCH_PORT': ('port', int),
    'BENCH_NUM': ('num', int),
    'BENCH_LENGTH': ('length', int),
    'BENCH_TIMEOUT_MS': ('receive_timeout_ms', int),
    'BENCH_LOG_LEVEL': ('log_level', str),
}


class ConfigError(ValueError):
    """Invalid or inconsistent configuration (reported as usage error)"""


@dataclass(frozen=True)
class BenchConfig:
    # ===== トランスポート選択 =====
    use_ipc: bool = False
    use_inproc: bool = False
    host: str = "localhost"
    port: int = 0                     # 0 -> DEFAULT_TCP_PORT
    ipc_path: str = "/tmp/zmq_socket"
    inproc_name: str = "inproc_socket"
    endpoint_address: Optional[str] = None   # explicit address, replaces the flags above

    # ===== 実行モード =====
    run_server: bool = False
    run_client: bool = False
    one_shot: bool = False
    kill_server: bool = False

    # ===== 負荷設定 =====
    num: int = 1000                   # 往復回数
    length: int = 1000                # ペイロード要素数（float32）

    # ===== その他 =====
    receive_timeout_ms: Optional[int] = None
    io_threads: Optional[int] = None
    samples_csv: Optional[str] = None
    log_level: str = "INFO"

    def endpoint(self) -> Endpoint:
        """Resolve the transport settings into one Endpoint"""
        if self.endpoint_address:
            return parse_endpoint(self.endpoint_address)
        if self.use_ipc:
            return IpcEndpoint(self.ipc_path)
        if self.use_inproc:
            return InprocEndpoint(self.inproc_name)
        return TcpEndpoint(self.host, self.port or DEFAULT_TCP_PORT)

    def with_overrides(self, overrides: Mapping) -> "BenchConfig":
        """
        Copy with the non-None values of overrides applied

        Raises:
            ConfigError: unknown key or value of the wrong type
        """
        values = {k: v for k, v in overrides.items() if v is not None}
        _check_keys(values)
        for name, value in values.items():
            _check_type(name, value)
        return replace(self, **values)


# フィールド名 -> 期待する型（Optionalフィールドも中身の型で判定）
FIELD_TYPES = {
    'use_ipc': bool,
    'use_inproc': bool,
    'host': str,
    'port': int,
    'ipc_path': str,
    'inproc_name': str,
    'endpoint_address': str,
    'run_server': bool,
    'run_client': bool,
    'one_shot': bool,
    'kill_server': bool,
    'num': int,
    'length': int,
    'receive_timeout_ms': int,
    'io_threads': int,
    'samples_csv': str,
    'log_level': str,
}


def validate(config: BenchConfig) -> BenchConfig:
    """
    Reject flag combinations that cannot run

    Raises:
        ConfigError: describing the first problem found
    """
    if config.use_inproc and config.use_ipc:
        raise ConfigError("choose at most one of --ipc and --inproc")
    if config.endpoint_address and (config.use_inproc or config.use_ipc):
        raise ConfigError("--endpoint cannot be combined with --ipc or --inproc")

    try:
        endpoint = config.endpoint()
    except ValueError as e:
        raise ConfigError(str(e)) from None

    # inproc は同一プロセス内でしか到達できない
    if isinstance(endpoint, InprocEndpoint) and (config.run_server or config.run_client):
        raise ConfigError("inproc mode cannot be combined with --server or --client")
    if config.num < 1:
        raise ConfigError(f"num must be >= 1 (got {config.num})")
    if config.length < 1:
        raise ConfigError(f"length must be >= 1 (got {config.length})")
    if not 0 <= config.port <= 65535:
        raise ConfigError(f"port out of range: {config.port}")
    if config.receive_timeout_ms is not None and config.receive_timeout_ms < 0:
        raise ConfigError(f"receive timeout must be >= 0 ms (got {config.receive_timeout_ms})")
    if config.io_threads is not None and config.io_threads < 1:
        raise ConfigError(f"io_threads must be >= 1 (got {config.io_threads})")
    return config


def load_config(config_file: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None) -> BenchConfig:
    """
    Build a BenchConfig from an optional YAML file and the environment

    Args:
        config_file: YAML file with a "bench" section (None -> skip)
        environ: environment mapping (None -> os.environ)

    Returns:
        BenchConfig (not yet validated)
    """
    config = BenchConfig()

    if config_file:
        with open(config_file, 'r') as f:
            data = yaml.safe_load(f) or {}
        section = data.get('bench', {}) if isinstance(data, dict) else None
        if not isinstance(section, dict):
            raise ConfigError(f"{config_file}: 'bench' must be a mapping")
        try:
            config = config.with_overrides(section)
        except ConfigError as e:
            raise ConfigError(f"{config_file}: {e}") from None
        logger.debug(f"Loaded configuration from {config_file}")

    if environ is None:
        environ = os.environ

    env_values: Dict = {}
    for var, (field_name, convert) in ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            env_values[field_name] = convert(raw)
        except ValueError:
            raise ConfigError(f"{var}={raw!r} is not a valid {convert.__name__}") from None

    return config.with_overrides(env_values)


def _check_keys(values: Mapping):
    known = {f.name for f in fields(BenchConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")


def _check_type(name: str, value):
    expected = FIELD_TYPES[name]
    # bool は int のサブクラスなので明示的に除外
    if expected is int and isinstance(value, bool):
        ok = False
    else:
        ok = isinstance(value, expected)
    if not ok:
        raise ConfigError(f"'{name}' must be {expected.__name__}, got {type(value).__name__} {value!r}")
