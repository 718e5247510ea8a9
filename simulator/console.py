"""
Device Command Console
──────────────────────
Single-line, case-insensitive operator commands for one simulated PLC.

  stop   | p     → STOPPED
  resume | r     → RUNNING (temperature back to nominal, fault cleared)
  <fault> | alias → FAULTED (overheat on Siemens, commfail on Delta)
  anything else  → status snapshot, no state change
"""
import asyncio
import logging
import sys

from .machine import MachineMode

log = logging.getLogger("console")

_MODE_LABEL = {
    MachineMode.RUNNING: "PRODUCING",
    MachineMode.STOPPED: "STOPPED",
    MachineMode.FAULTED: "FAULTED",
}


class DeviceConsole:
    def __init__(self, simulator, out=print):
        self._sim = simulator
        self._out = out
        fault = simulator.profile.fault_command
        self._commands = {}
        for names, handler in (
            (("stop", "p"), self._stop),
            (("resume", "r"), self._resume),
            ((fault.name,) + tuple(fault.aliases), self._fault),
        ):
            for n in names:
                self._commands[n] = handler

    def handle(self, line: str):
        cmd = line.strip().lower()
        handler = self._commands.get(cmd)
        if handler is None:
            self._out(self.render_status())
            return
        handler()

    # ── Commands ──────────────────────────────────────────────────────────────
    def _stop(self):
        self._sim.stop()
        self._out("Machine STOPPED")

    def _resume(self):
        self._sim.resume()
        self._out("Machine RESUMED production")

    def _fault(self):
        cmd = self._sim.profile.fault_command
        self._sim.inject_fault(cmd)
        self._out(cmd.message)

    # ── Rendering ─────────────────────────────────────────────────────────────
    def render_status(self) -> str:
        p, s = self._sim.profile, self._sim.state
        fault = p.fault_command
        title = f"PLC {p.brand.upper()} {p.model} - SIMULATOR"
        temp = f"{s.temperature:.1f}°C"
        energy = f"{s.energy:.2f} kWh"
        health = f"{s.health:.0f}%"
        lines = [
            "",
            "┌─────────────────────────────────────────────────────┐",
            f"│  {title:<51}│",
            "├─────────────────────────────────────────────────────┤",
            f"│  Status:      {_MODE_LABEL[s.mode]:<38}│",
            f"│  Pieces:      {s.total_pieces:<38}│",
            f"│  Temperature: {temp:<38}│",
            f"│  Energy:      {energy:<38}│",
            f"│  Health:      {health:<38}│",
            "├─────────────────────────────────────────────────────┤",
            f"│  Commands: stop  resume  {fault.name:<27}│",
            "└─────────────────────────────────────────────────────┘",
        ]
        return "\n".join(lines)

    def status_line(self) -> str:
        p, s = self._sim.profile, self._sim.state
        if s.mode is MachineMode.RUNNING:
            return (f"{p.brand}: {s.total_pieces} pieces | "
                    f"{s.temperature:.1f}°C | {s.health:.0f}% health")
        if s.comm_fault:
            return f"{p.brand}: COMMUNICATION FAILURE"
        return f"{p.brand}: {_MODE_LABEL[s.mode]} | {s.temperature:.1f}°C"


async def stdin_lines(prompt: str = ""):
    """Yield lines typed on stdin without blocking the event loop."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), sys.stdin,
    )
    while True:
        if prompt:
            sys.stdout.write(prompt)
            sys.stdout.flush()
        line = await reader.readline()
        if not line:
            return
        yield line.decode(errors="replace")
