# portprobe/targets.py
import ipaddress
from typing import Iterable, List

from .models import ConfigurationError

MAX_NETWORK_ADDRESSES = 65536


def expand_targets(items: Iterable[str]) -> List[str]:
    """
    Supports:
      - Single IP: "172.20.0.10"
      - CIDR: "172.20.0.0/24"
      - Hostname: "webapp" (kept as-is, resolved when connecting)
    Duplicates are dropped, first occurrence wins.
    """
    expanded: List[str] = []
    for item in items:
        expanded.extend(_expand_one(item))
    if not expanded:
        raise ConfigurationError("no targets given")
    return list(dict.fromkeys(expanded))


def _expand_one(target: str) -> List[str]:
    target = target.strip()
    if not target:
        raise ConfigurationError("empty target")

    try:
        return [str(ipaddress.ip_address(target))]
    except ValueError:
        pass

    if "/" not in target:
        return [target]

    try:
        net = ipaddress.ip_network(target, strict=False)
    except ValueError as e:
        raise ConfigurationError(f"invalid network {target!r}: {e}") from e
    if net.num_addresses > MAX_NETWORK_ADDRESSES:
        raise ConfigurationError(
            f"network {target} has {net.num_addresses} addresses, limit is {MAX_NETWORK_ADDRESSES}"
        )
    # hosts() skips network + broadcast; /32 and /128 have no "hosts"
    hosts = [str(ip) for ip in net.hosts()]
    if not hosts:
        hosts = [str(net.network_address)]
    return hosts
