# portprobe/scan_core.py
import logging
from typing import List, Optional

from .config import Settings, resolve_scope
from .models import ConfigurationError, FleetScanRequest, ScanCancelled, ScanConfig
from .ports import parse_ports
from .scanner import Connector, scan_fleet
from .targets import expand_targets

logger = logging.getLogger(__name__)


def config_from_request(request: FleetScanRequest, settings: Settings) -> ScanConfig:
    """Turn an HTTP request body into a ScanConfig. Raises ConfigurationError."""
    if request.ports and request.scope:
        raise ConfigurationError("give either ports or scope, not both")
    port_range = None
    if request.ports:
        port_range = parse_ports(request.ports)
    elif request.scope:
        port_range = resolve_scope(request.scope)
    return settings.scan_config(
        port_range=port_range,
        timeout_ms=request.per_connect_timeout_ms,
        max_concurrent_hosts=request.max_concurrent_hosts,
        max_concurrent_ports_per_host=request.max_concurrent_ports_per_host,
    )


def prepare_scan(request: FleetScanRequest, settings: Settings):
    """Validate a request up front so nothing starts on bad input."""
    targets = expand_targets(request.targets)
    config = config_from_request(request, settings)
    return targets, config


async def run_fleet_scan(
    scan_id: str,
    targets: List[str],
    config: ScanConfig,
    store: dict,
    include_empty: bool = False,
    connector: Optional[Connector] = None,
) -> None:
    entry = store[scan_id]
    try:
        report = await scan_fleet(
            targets,
            config,
            include_empty=include_empty,
            cancel=entry["cancel"],
            connector=connector,
        )
    except ScanCancelled:
        logger.info("scan %s cancelled", scan_id)
        entry["status"] = "cancelled"
        return
    except Exception as e:
        logger.exception("scan %s failed: %s", scan_id, e)
        entry["status"] = "failed"
        entry["error"] = str(e)
        return

    entry["report"] = report
    entry["status"] = "done"
