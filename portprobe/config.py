# portprobe/config.py
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .models import ConfigurationError, PortRange, PortSpec, ScanConfig, build_config

load_dotenv()

# named port scopes: a quick scan covers the well-known ports, a wide one
# everything below the dynamic/private range
SCOPES: Dict[str, PortRange] = {
    "quick": PortRange(low=1, high=1024),
    "wide": PortRange(low=1, high=49152),
}

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:5173"]
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _cap(value: Optional[int]) -> Optional[int]:
    # 0 means "no cap"
    return value or None


def resolve_scope(name: str) -> PortRange:
    try:
        return SCOPES[name.strip().lower()]
    except KeyError:
        raise ConfigurationError(
            f"unknown scope {name!r}, expected one of: {', '.join(sorted(SCOPES))}"
        ) from None


@dataclass(frozen=True)
class Settings:
    timeout_ms: int = 500
    max_concurrent_hosts: Optional[int] = 16
    max_concurrent_ports_per_host: Optional[int] = 512
    default_scope: str = "quick"
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("PORTPROBE_CORS_ORIGINS")
        settings = cls(
            timeout_ms=_env_int("PORTPROBE_TIMEOUT_MS", 500, minimum=1),
            max_concurrent_hosts=_cap(_env_int("PORTPROBE_MAX_HOSTS", 16)),
            max_concurrent_ports_per_host=_cap(_env_int("PORTPROBE_MAX_PORTS", 512)),
            default_scope=os.getenv("PORTPROBE_SCOPE", "quick"),
            log_level=os.getenv("PORTPROBE_LOG_LEVEL", "INFO").upper(),
            api_host=os.getenv("PORTPROBE_HOST", "0.0.0.0"),
            api_port=_env_int("PORTPROBE_PORT", 8000, minimum=1),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()]
            if origins
            else list(DEFAULT_CORS_ORIGINS),
        )
        resolve_scope(settings.default_scope)
        return settings

    def scan_config(
        self,
        port_range: Optional[PortSpec] = None,
        timeout_ms: Optional[int] = None,
        max_concurrent_hosts: Optional[int] = None,
        max_concurrent_ports_per_host: Optional[int] = None,
    ) -> ScanConfig:
        """Build a ScanConfig, filling anything not given from these settings."""
        if port_range is None:
            port_range = resolve_scope(self.default_scope)
        if timeout_ms is None:
            timeout_ms = self.timeout_ms
        if max_concurrent_hosts is None:
            max_concurrent_hosts = self.max_concurrent_hosts
        if max_concurrent_ports_per_host is None:
            max_concurrent_ports_per_host = self.max_concurrent_ports_per_host
        return build_config(
            port_range=port_range,
            per_connect_timeout=timeout_ms / 1000.0,
            max_concurrent_hosts=_cap(max_concurrent_hosts),
            max_concurrent_ports_per_host=_cap(max_concurrent_ports_per_host),
        )


def configure_logging(level: str = "INFO") -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ConfigurationError(f"unknown log level {level!r}")
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger("portprobe").setLevel(numeric)
