"""
Gateway Poll Scheduler
──────────────────────
One poll cycle visits every configured device in list order:

    read_device() ──▶ relay.send() ──▶ next device

Devices are awaited strictly one after another, and any failure is
contained to its own device. The next cycle starts poll_interval_ms after
the previous one *finished* (fixed delay), so slow devices stretch the
cadence. Clearing `running` only prevents the next cycle; a cycle already
in flight completes.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .console import stdin_lines
from .modbus_client import DEFAULT_TIMEOUT_S, read_device
from .operator_cli import OperatorCLI
from .relay import NetworkRelay, RelayError
from .stats import GatewayStats

log = logging.getLogger("gateway")


@dataclass
class GatewayRuntimeFlags:
    running: bool = False
    network_enabled: bool = True
    api_key: str = ""
    poll_interval_ms: int = 3000


class PollScheduler:
    def __init__(self, devices, flags: GatewayRuntimeFlags, stats, relay,
                 reader=read_device, read_timeout: float = DEFAULT_TIMEOUT_S):
        self.devices = tuple(devices)
        self._flags = flags
        self._stats = stats
        self._relay = relay
        self._reader = reader
        self._read_timeout = read_timeout
        self._task: Optional[asyncio.Task] = None
        self.cycles = 0

    # ── Loop control ──────────────────────────────────────────────────────────
    def ensure_running(self) -> asyncio.Task:
        """Start the poll loop unless a previous loop task is still alive."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(
                self.run(), name="poll-scheduler",
            )
        return self._task

    async def shutdown(self):
        self._flags.running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def run(self):
        while self._flags.running:
            await self.run_cycle()
            if not self._flags.running:
                break
            await asyncio.sleep(self._flags.poll_interval_ms / 1000)
        log.info("Poll loop stopped after %d cycles", self.cycles)

    # ── One cycle ─────────────────────────────────────────────────────────────
    async def run_cycle(self):
        for device in self.devices:
            try:
                await self.poll_device(device)
            except RelayError as e:
                # Already counted by the relay
                log.error("[GATEWAY] %s: %s", device.name, e)
            except Exception as e:
                self._stats.record_error(str(e))
                log.exception("[GATEWAY] %s: unexpected error", device.name)
        self.cycles += 1

    async def poll_device(self, device):
        result = await self._reader(device, timeout=self._read_timeout)
        if not result.success:
            self._stats.record_error(f"{result.device}: {result.error}")
            log.warning("[MODBUS] Error reading %s: %s", result.device, result.error)
            return

        record = result.record
        await self._relay.send(record)
        tags = record.tags
        log.info("%s [%s] %d pieces | %.1f°C | %d%% health → ingest OK",
                 "RUN " if tags.production_status else "STOP",
                 device.brand or device.name, tags.total_pieces,
                 tags.mold_temperature, tags.health_score)


async def run_gateway(cfg: dict, devices, simulate_latency=None):
    """Build the gateway from config and drive it from the operator console."""
    gw = cfg["gateway"]
    flags = GatewayRuntimeFlags(
        api_key=gw["api_key"],
        poll_interval_ms=int(gw["poll_interval_ms"]),
    )
    stats = GatewayStats()
    latency = gw["latency"]
    if simulate_latency is None:
        simulate_latency = bool(latency["enabled"])
    relay = NetworkRelay(
        gw["endpoint"], flags, stats,
        timeout=gw["http_timeout_ms"] / 1000,
        latency_ms=(latency["min_ms"], latency["max_ms"]),
        simulate_latency=simulate_latency,
    )
    scheduler = PollScheduler(devices, flags, stats, relay,
                              read_timeout=gw["read_timeout_ms"] / 1000)
    cli = OperatorCLI(flags, stats, scheduler, relay)

    log.info("Gateway ready: %d devices, endpoint %s", len(devices), gw["endpoint"])
    if flags.api_key:
        log.info("API key loaded from configuration")
    cli.cmd_help()
    try:
        async for line in stdin_lines(prompt="\nGW> "):
            if not await cli.handle(line):
                break
    finally:
        await scheduler.shutdown()
        await relay.aclose()
