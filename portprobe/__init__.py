"""Concurrent TCP reachability prober."""

from .models import (
    ConfigurationError,
    HostResult,
    PortRange,
    ProbeOutcome,
    Protocol,
    ScanCancelled,
    ScanConfig,
    ScanReport,
    build_config,
)
from .scanner import probe, scan_fleet, scan_host

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "HostResult",
    "PortRange",
    "ProbeOutcome",
    "Protocol",
    "ScanCancelled",
    "ScanConfig",
    "ScanReport",
    "build_config",
    "probe",
    "scan_fleet",
    "scan_host",
]
