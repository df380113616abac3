import asyncio

import pytest


class FakeWriter:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True

    async def wait_closed(self):
        pass


class FakeNetwork:
    """Deterministic stand-in for asyncio.open_connection.

    ``open_ports`` maps host -> ports that accept; everything else is refused.
    ``delays`` maps (host, port) or host -> seconds to wait before answering.
    """

    def __init__(self, open_ports=None, delays=None, step=0.0):
        self.open_ports = {h: set(p) for h, p in (open_ports or {}).items()}
        self.delays = delays or {}
        self.step = step
        self.calls = []
        self.writers = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.active_hosts = {}
        self.peak_hosts = 0

    def _delay(self, host, port):
        if (host, port) in self.delays:
            return self.delays[(host, port)]
        return self.delays.get(host, self.step)

    async def __call__(self, host, port):
        self.calls.append((host, port))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        self.active_hosts[host] = self.active_hosts.get(host, 0) + 1
        self.peak_hosts = max(self.peak_hosts, sum(1 for n in self.active_hosts.values() if n))
        try:
            delay = self._delay(host, port)
            if delay:
                await asyncio.sleep(delay)
            if port in self.open_ports.get(host, ()):
                writer = FakeWriter()
                self.writers.append(writer)
                return None, writer
            raise ConnectionRefusedError(f"{host}:{port} refused")
        finally:
            self.in_flight -= 1
            self.active_hosts[host] -= 1


@pytest.fixture
def fake_network():
    return FakeNetwork
