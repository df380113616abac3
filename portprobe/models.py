# portprobe/models.py
import json
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MIN_PORT = 1
MAX_PORT = 65535


class ConfigurationError(ValueError):
    """Raised before any scanning starts when targets or options are invalid."""


class ScanCancelled(Exception):
    """Raised when a scan's cancellation token is set before it finishes."""


class Protocol(str, Enum):
    TCP = "tcp"


class ProbeOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    port: int = Field(ge=MIN_PORT, le=MAX_PORT)
    is_open: bool


class PortRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    low: int = Field(MIN_PORT, ge=MIN_PORT, le=MAX_PORT)
    high: int = Field(1024, ge=MIN_PORT, le=MAX_PORT)

    @model_validator(mode="after")
    def _check_order(self):
        if self.low > self.high:
            raise ValueError(f"port range {self.low}-{self.high} is reversed")
        return self

    def ports(self) -> List[int]:
        return list(range(self.low, self.high + 1))


PortSpec = Union[PortRange, FrozenSet[int]]


class ScanConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    protocol: Protocol = Protocol.TCP
    port_range: PortSpec = Field(default_factory=PortRange)
    per_connect_timeout: float = Field(0.5, gt=0)  # seconds
    max_concurrent_hosts: Optional[int] = Field(None, ge=1)
    max_concurrent_ports_per_host: Optional[int] = Field(None, ge=1)

    @field_validator("port_range")
    @classmethod
    def _check_port_set(cls, value):
        if isinstance(value, PortRange):
            return value
        if not value:
            raise ValueError("explicit port set is empty")
        bad = sorted(p for p in value if not MIN_PORT <= p <= MAX_PORT)
        if bad:
            raise ValueError(f"ports out of range: {bad[:5]}")
        return value

    def ports(self) -> List[int]:
        """Every port to probe, ascending, each exactly once."""
        if isinstance(self.port_range, PortRange):
            return self.port_range.ports()
        return sorted(self.port_range)


def build_config(**options) -> ScanConfig:
    """Build a ScanConfig, turning pydantic validation errors into ConfigurationError."""
    try:
        return ScanConfig(**options)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


class HostResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    target: str
    protocol: Protocol = Field(Protocol.TCP, alias="proto")
    open_ports: Tuple[int, ...] = Field(default_factory=tuple, alias="ports")


class ScanReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    results: Tuple[HostResult, ...] = Field(default_factory=tuple)

    def targets(self) -> List[str]:
        return [r.target for r in self.results]

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)


# ---- HTTP request / response bodies ----

class FleetScanRequest(BaseModel):
    targets: List[str] = Field(default_factory=list)
    ports: Optional[str] = None
    scope: Optional[str] = None
    per_connect_timeout_ms: Optional[int] = None
    max_concurrent_hosts: Optional[int] = None
    max_concurrent_ports_per_host: Optional[int] = None
    include_empty: bool = False


class ScanStatus(BaseModel):
    scan_id: str
    status: str


class ScanResult(BaseModel):
    scan_id: str
    status: str
    report: Optional[ScanReport] = None
    error: Optional[str] = None
