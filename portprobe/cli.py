# portprobe/cli.py
import argparse
import asyncio
import logging
import sys

from .config import SCOPES, Settings, configure_logging, resolve_scope
from .models import ConfigurationError, ScanReport
from .ports import parse_ports
from .scanner import scan_fleet
from .targets import expand_targets

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="portprobe", description="Concurrent TCP reachability prober")
    p.add_argument("targets", nargs="+", help="IP, CIDR, or hostname (repeatable)")
    ports = p.add_mutually_exclusive_group()
    ports.add_argument("--ports", help="Port spec: 1-1024 or 22,80,443 or mixed")
    ports.add_argument("--scope", choices=sorted(SCOPES), help="Named port range")
    p.add_argument("--timeout", type=int, help="Per-connect timeout in ms (default: PORTPROBE_TIMEOUT_MS or 500)")
    p.add_argument("--max-hosts", type=int, help="Hosts scanned at once, 0 for no cap")
    p.add_argument("--max-ports", type=int, help="Probes in flight per host, 0 for no cap")
    p.add_argument("--include-empty", action="store_true", help="Also report hosts with no open ports")
    p.add_argument("--json", action="store_true", help="Print the report as JSON")
    p.add_argument("--log-level", help="Logging level (default: PORTPROBE_LOG_LEVEL or INFO)")
    return p


def format_report(report: ScanReport) -> str:
    if not report.results:
        return "No open ports found"
    lines = []
    for r in report.results:
        ports = ", ".join(str(p) for p in r.open_ports) or "none"
        lines.append(f"{r.target} ({r.protocol.value}): {ports}")
    return "\n".join(lines)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
        configure_logging(args.log_level or settings.log_level)
        targets = expand_targets(args.targets)
        if args.ports:
            port_range = parse_ports(args.ports)
        elif args.scope:
            port_range = resolve_scope(args.scope)
        else:
            port_range = None
        config = settings.scan_config(
            port_range=port_range,
            timeout_ms=args.timeout,
            max_concurrent_hosts=args.max_hosts,
            max_concurrent_ports_per_host=args.max_ports,
        )
    except ConfigurationError as e:
        print(f"portprobe: error: {e}", file=sys.stderr)
        return 2

    logger.info("Targets: %d | Ports: %d", len(targets), len(config.ports()))
    try:
        report = asyncio.run(scan_fleet(targets, config, include_empty=args.include_empty))
    except KeyboardInterrupt:
        print("portprobe: interrupted", file=sys.stderr)
        return 130

    if args.json:
        print(report.to_json(indent=2))
    else:
        print(format_report(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())
