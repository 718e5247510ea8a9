"""
Machine-State Simulation
────────────────────────
Owns the physical state of one simulated moulder and advances it once per
tick. The register map is a projection re-encoded from this state on every
tick; registers are never edited directly.

State machine (driven by the device console):
  RUNNING ──stop──▶ STOPPED ──resume──▶ RUNNING
     │                                     ▲
     └──fault cmd──▶ FAULTED ──resume──────┘
"""
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .register_map import encode_state

log = logging.getLogger("machine")


class MachineMode(Enum):
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    FAULTED = "FAULTED"


@dataclass
class MachineState:
    running: bool
    total_pieces: int
    energy: float
    temperature: float
    health: float
    fault: Optional[str] = None     # None | overheat | comm_failure

    @property
    def comm_fault(self) -> bool:
        return self.fault == "comm_failure"

    @property
    def mode(self) -> MachineMode:
        if self.fault:
            return MachineMode.FAULTED
        return MachineMode.RUNNING if self.running else MachineMode.STOPPED

    @classmethod
    def initial(cls, profile) -> "MachineState":
        return cls(
            running=True,
            total_pieces=0,
            energy=0.0,
            temperature=profile.nominal_temperature,
            health=profile.initial_health,
        )


class MachineSimulator:
    """Advances a MachineState and re-encodes the register store every tick."""

    def __init__(self, profile, store, state: Optional[MachineState] = None):
        self.profile = profile
        self.state = state or MachineState.initial(profile)
        self._store = store
        self.ticks = 0
        # Nominal values, no jitter, until the first tick
        self._store.load(encode_state(self.state, profile, jitter=False))

    # ── Tick ──────────────────────────────────────────────────────────────────
    def tick(self):
        p, s = self.profile, self.state
        if s.running and not s.fault:
            s.total_pieces += random.randint(*p.pieces_per_tick)
            s.energy += random.uniform(*p.energy_per_tick)
            s.temperature += (random.random() - 0.5) * p.temperature_step
            s.temperature = max(p.temperature_min, min(p.temperature_max, s.temperature))
            s.health += (random.random() - 0.5) * p.health_step
            s.health = max(p.health_min, min(100.0, s.health))
        else:
            s.temperature = max(p.ambient_temperature, s.temperature - p.cooling_step)

        self._store.load(encode_state(s, p))
        self.ticks += 1

    # ── Console transitions ───────────────────────────────────────────────────
    def stop(self):
        self.state.running = False
        log.info("%s stopped", self.profile.name)

    def resume(self):
        s = self.state
        s.running = True
        s.fault = None
        s.temperature = self.profile.nominal_temperature
        log.info("%s resumed production", self.profile.name)

    def inject_fault(self, command=None):
        cmd = command or self.profile.fault_command
        s = self.state
        s.running = False
        s.fault = cmd.fault
        if cmd.temperature is not None:
            s.temperature = cmd.temperature
        if cmd.health is not None:
            s.health = cmd.health
        log.warning("%s fault injected: %s", self.profile.name, cmd.fault)
