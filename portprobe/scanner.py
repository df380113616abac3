# portprobe/scanner.py
"""
TCP reachability scanning.

Three nested levels, each owning its own join barrier:
 - probe()      one connection attempt to (host, port), bounded by a timeout
 - scan_host()  one probe per port against a single host
 - scan_fleet() one host scan per target, assembled into a ScanReport

Refused, unreachable, timed out and any other connection error all count as
closed. Only reachability is reported, never the cause.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

from .models import (
    MAX_PORT,
    MIN_PORT,
    ConfigurationError,
    HostResult,
    ProbeOutcome,
    Protocol,
    ScanCancelled,
    ScanConfig,
    ScanReport,
)

logger = logging.getLogger(__name__)

# connector(host, port) -> (reader, writer); asyncio.open_connection by default
Connector = Callable[[str, int], Awaitable[Tuple[object, object]]]


def _check_cancel(cancel: Optional[asyncio.Event]):
    if cancel is not None and cancel.is_set():
        raise ScanCancelled("scan cancelled")


async def _unless_cancelled(attempt: Awaitable, cancel: asyncio.Event):
    """Await ``attempt``, abandoning it as soon as ``cancel`` is set."""
    attempt_task = asyncio.ensure_future(attempt)
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({attempt_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        attempt_task.cancel()
        raise
    finally:
        cancel_task.cancel()

    if not attempt_task.done():
        attempt_task.cancel()
        await asyncio.gather(attempt_task, return_exceptions=True)
        raise ScanCancelled("scan cancelled")
    return attempt_task.result()


async def _close(writer) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except (OSError, asyncio.TimeoutError):
        # peer reset while closing; the port was still reachable
        pass


async def probe(
    protocol: Protocol,
    address: str,
    port: int,
    timeout: float,
    *,
    cancel: Optional[asyncio.Event] = None,
    connector: Optional[Connector] = None,
) -> ProbeOutcome:
    try:
        Protocol(protocol)
    except ValueError:
        raise ConfigurationError(f"unsupported protocol: {protocol}") from None
    if not MIN_PORT <= port <= MAX_PORT:
        raise ConfigurationError(f"invalid port: {port}")
    _check_cancel(cancel)
    connect = connector or asyncio.open_connection
    attempt = asyncio.wait_for(connect(address, port), timeout=timeout)

    try:
        if cancel is None:
            _, writer = await attempt
        else:
            _, writer = await _unless_cancelled(attempt, cancel)
    except asyncio.TimeoutError:
        logger.debug("%s:%d timed out after %.3fs", address, port, timeout)
        return ProbeOutcome(port=port, is_open=False)
    except (OSError, UnicodeError) as e:
        # refused, unreachable, name resolution failure
        logger.debug("%s:%d closed: %s", address, port, e)
        return ProbeOutcome(port=port, is_open=False)

    await _close(writer)
    return ProbeOutcome(port=port, is_open=True)


async def scan_host(
    target: str,
    protocol: Protocol,
    ports: Iterable[int],
    timeout: float,
    port_concurrency: Optional[int] = None,
    *,
    cancel: Optional[asyncio.Event] = None,
    connector: Optional[Connector] = None,
) -> HostResult:
    """Probe every port of one host and return the open ones, ascending.

    At most ``port_concurrency`` probes are in flight; None launches them all.
    Returns only once every probe is done.
    """
    port_list = sorted(set(ports))
    bad = [p for p in port_list if not MIN_PORT <= p <= MAX_PORT]
    if bad:
        raise ConfigurationError(f"ports out of range: {bad[:5]}")
    if port_concurrency is not None and port_concurrency < 0:
        raise ConfigurationError(f"port concurrency must be >= 0, got {port_concurrency}")
    semaphore = asyncio.Semaphore(port_concurrency) if port_concurrency else None

    async def run_probe(port: int) -> ProbeOutcome:
        if semaphore is None:
            return await probe(protocol, target, port, timeout, cancel=cancel, connector=connector)
        async with semaphore:
            return await probe(protocol, target, port, timeout, cancel=cancel, connector=connector)

    outcomes = await _join([run_probe(p) for p in port_list])
    _check_cancel(cancel)

    # single collector: workers only hand back outcomes
    open_ports = tuple(sorted(o.port for o in outcomes if o.is_open))
    logger.info("%s: %d/%d ports open", target, len(open_ports), len(port_list))
    return HostResult(target=target, protocol=protocol, open_ports=open_ports)


async def scan_fleet(
    targets: Sequence[str],
    config: ScanConfig,
    *,
    include_empty: bool = False,
    cancel: Optional[asyncio.Event] = None,
    connector: Optional[Connector] = None,
) -> ScanReport:
    """Scan every target with ``config`` and return the aggregate report.

    Hosts without open ports are left out of the report unless
    ``include_empty`` is set. Results follow the order of ``targets``.
    """
    target_list = _validate_targets(targets)
    if not isinstance(config, ScanConfig):
        raise ConfigurationError(f"expected ScanConfig, got {type(config).__name__}")
    _check_cancel(cancel)

    ports = config.ports()
    limit = config.max_concurrent_hosts
    semaphore = asyncio.Semaphore(limit) if limit else None
    logger.info(
        "scanning %d host(s) x %d port(s) over %s (timeout %.3fs)",
        len(target_list), len(ports), config.protocol.value, config.per_connect_timeout,
    )

    async def run_host(target: str) -> HostResult:
        if semaphore is None:
            return await _scan_target(target)
        async with semaphore:
            return await _scan_target(target)

    async def _scan_target(target: str) -> HostResult:
        _check_cancel(cancel)
        return await scan_host(
            target,
            config.protocol,
            ports,
            config.per_connect_timeout,
            config.max_concurrent_ports_per_host,
            cancel=cancel,
            connector=connector,
        )

    host_results = await _join([run_host(t) for t in target_list])
    _check_cancel(cancel)

    kept = tuple(r for r in host_results if include_empty or r.open_ports)
    logger.info("scan finished: %d of %d host(s) reported", len(kept), len(target_list))
    return ScanReport(results=kept)


async def _join(coros: List[Awaitable]) -> list:
    """Run ``coros`` as tasks of this call and wait for all of them.

    If one fails (or the caller is cancelled) the remaining tasks are
    cancelled and awaited before the error propagates.
    """
    tasks = [asyncio.ensure_future(c) for c in coros]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _validate_targets(targets: Sequence[str]) -> List[str]:
    if isinstance(targets, str):
        raise ConfigurationError("targets must be a sequence of host strings, not a string")
    target_list = [t.strip() for t in targets if isinstance(t, str)]
    if len(target_list) != len(targets):
        raise ConfigurationError("every target must be a string")
    if not target_list:
        raise ConfigurationError("target list is empty")
    if any(not t for t in target_list):
        raise ConfigurationError("blank target in target list")
    # a host listed twice is still scanned once
    return list(dict.fromkeys(target_list))
