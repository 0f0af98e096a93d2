from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


_TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")


@dataclass(frozen=True)
class Settings:
    # Node layout
    node_home: str = os.getenv("SCB_NODE_HOME", "/home/ec2-user")
    service_user: str | None = os.getenv("SCB_SERVICE_USER", "ec2-user") or None

    # Primary search service
    service_pattern: str = os.getenv("SCB_SERVICE_PATTERN", "bin/elasticsearch")
    internal_port: int = _env_int("SCB_INTERNAL_PORT", 19200)
    stop_timeout_s: float = _env_float("SCB_STOP_TIMEOUT_S", 30.0)

    # Capture sidecar
    sidecar_pattern: str = os.getenv("SCB_SIDECAR_PATTERN", "trafficCaptureProxyServer")
    listen_port: int = _env_int("SCB_LISTEN_PORT", 9200)
    grace_period_s: float = _env_float("SCB_GRACE_PERIOD_S", 5.0)
    log_tail_lines: int = _env_int("SCB_LOG_TAIL_LINES", 50)
    msk_auth: bool = _env_bool("SCB_MSK_AUTH", True)

    # Rendering
    template_dir: str = os.getenv("SCB_TEMPLATE_DIR", _TEMPLATE_DIR)
    max_heap_gb: int = _env_int("SCB_MAX_HEAP_GB", 32)

    # Logging
    log_level: str = os.getenv("SCB_LOG_LEVEL", "INFO")

    @property
    def service_dir(self) -> str:
        return os.path.join(self.node_home, "elasticsearch")

    @property
    def config_path(self) -> str:
        return os.path.join(self.service_dir, "config", "elasticsearch.yml")

    @property
    def java_home(self) -> str:
        return os.path.join(self.service_dir, "jdk")

    @property
    def sidecar_dir(self) -> str:
        return os.path.join(self.node_home, "capture-proxy", "trafficCaptureProxyServer", "bin")


settings = Settings()
