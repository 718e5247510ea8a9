"""
Simulated PLC process
─────────────────────
Runs on one event loop:
  - the Modbus TCP responder
  - the 1 s machine tick
  - a periodic one-line status log
  - the device command console on stdin
"""
import asyncio
import logging

from .console import DeviceConsole, stdin_lines
from .machine import MachineSimulator
from .modbus_server import ModbusTCPServer, RegisterStore

log = logging.getLogger("plc")


class PLCSimulator:
    def __init__(self, profile, host="0.0.0.0", port=None,
                 tick_s=1.0, status_interval_s=2.0):
        self.profile = profile
        self.store = RegisterStore()
        self.machine = MachineSimulator(profile, self.store)
        self.console = DeviceConsole(self.machine)
        self.server = ModbusTCPServer(
            self.store, host=host,
            port=profile.port if port is None else port,
            unit_id=profile.unit_id,
        )
        self._tick_s = tick_s
        self._status_interval_s = status_interval_s

    async def tick_loop(self):
        while True:
            await asyncio.sleep(self._tick_s)
            self.machine.tick()

    async def status_loop(self):
        while True:
            await asyncio.sleep(self._status_interval_s)
            log.info("%s", self.console.status_line())

    async def console_loop(self):
        try:
            async for line in stdin_lines():
                self.console.handle(line)
        except (OSError, ValueError) as e:
            log.warning("Console disabled, stdin not readable: %s", e)
        log.debug("Console input closed")

    async def run(self):
        log.info("=" * 60)
        log.info("  PLC %s - Modbus TCP simulator", self.profile.name)
        log.info("  Port: %d | Unit ID: %d", self.server.port, self.server.unit_id)
        log.info("  Commands: stop | resume | %s | Enter=status",
                 self.profile.fault_command.name)
        log.info("=" * 60)

        try:
            await self.server.start()
        except OSError as e:
            # Keep simulating and accepting console input without a listener
            log.error("Modbus server could not bind port %d: %s", self.server.port, e)

        tick = asyncio.create_task(self.tick_loop(), name="tick")
        tasks = [tick, asyncio.create_task(self.console_loop(), name="console")]
        if self._status_interval_s > 0:
            tasks.append(asyncio.create_task(self.status_loop(), name="status"))
        try:
            # Runs for the process lifetime
            await tick
        finally:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self.server.stop()
