# portprobe/ports.py
from typing import List

from .models import MAX_PORT, MIN_PORT, ConfigurationError, PortRange, PortSpec


def parse_ports(spec: str) -> PortSpec:
    """
    Parses a port specification string.
    Supports:
    - Single ports: "80"
    - Ranges: "1-1024"
    - Comma-separated: "22,80,443"
    - Mixed: "1-1024,8080,9000-9005"

    A spec that covers one contiguous block comes back as a PortRange,
    anything else as a frozenset of ports.
    """
    spec = (spec or "").strip()
    if not spec:
        raise ConfigurationError("empty port spec")

    ports: List[int] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_s, end_s = part.split("-", 1)
            start = _to_port(start_s, part)
            end = _to_port(end_s, part)
            if start > end:
                raise ConfigurationError(f"invalid port range: {part}")
            ports.extend(range(start, end + 1))
        else:
            ports.append(_to_port(part, part))

    unique = sorted(set(ports))
    if not unique:
        raise ConfigurationError(f"no ports in spec {spec!r}")
    if unique[-1] - unique[0] + 1 == len(unique):
        return PortRange(low=unique[0], high=unique[-1])
    return frozenset(unique)


def _to_port(text: str, part: str) -> int:
    try:
        port = int(text.strip())
    except ValueError:
        raise ConfigurationError(f"invalid port spec: {part}") from None
    if port < MIN_PORT or port > MAX_PORT:
        raise ConfigurationError(f"invalid port: {port}")
    return port
