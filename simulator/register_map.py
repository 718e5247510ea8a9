"""
Modbus Holding Register Map
───────────────────────────
All addresses are 0-indexed (pymodbus style).
Documentation addresses = index + 40001.

uint32   → 2 consecutive registers (LOW word first, then HIGH word)
x10/x100 → 1 register, fixed-point scaled uint16
bool     → 1 register (0 or 1)

Every address outside the map reads as 0.
"""
import random

from .telemetry import TelemetryTags

# ── Register indices ──────────────────────────────────────────────────────────
R_STATUS            = 0   # 40001 — bool    production running
R_MOLD_TEMP_X10     = 1   # 40002 — uint16  °C × 10
R_PRESSURE_X10      = 2   # 40003 — uint16  bar × 10
R_CYCLE_TIME_X10    = 3   # 40004 — uint16  s × 10
R_PIECES_LO         = 4   # 40005 — uint32  piece counter, low word
R_PIECES_HI         = 5   # 40006 — uint32  piece counter, high word
R_ENERGY_X100       = 6   # 40007 — uint16  kWh × 100
R_HEALTH            = 7   # 40008 — uint16  0–100
R_TEMP_ALARM        = 8   # 40009 — bool
R_DOWNTIME_COST     = 9   # 40010 — uint16  currency / hour

TOTAL_REGISTERS = 10
BLOCK_START = 0
BLOCK_COUNT = TOTAL_REGISTERS


# ── Pack/unpack helpers ───────────────────────────────────────────────────────
def pack_uint32(value: int):
    """Return (high_word, low_word) for a uint32. Values past 2^32 wrap."""
    v = int(value) & 0xFFFFFFFF
    return (v >> 16) & 0xFFFF, v & 0xFFFF

def unpack_uint32(high: int, low: int) -> int:
    return low + (high << 16)

def bool_reg(value: bool) -> int:
    return 1 if value else 0

def _jitter(nominal: int, width: int, enabled: bool) -> int:
    if not enabled:
        return nominal
    return nominal + round((random.random() - 0.5) * width)


# ── Encode / decode ───────────────────────────────────────────────────────────
def encode_state(state, profile, jitter: bool = True) -> dict:
    """Project a MachineState onto the register layout.

    Pressure and cycle time are cosmetic: nominal profile values plus
    independent jitter, not derived from the machine state.
    """
    high, low = pack_uint32(state.total_pieces)
    return {
        R_STATUS:        bool_reg(state.running),
        R_MOLD_TEMP_X10: round(state.temperature * 10),
        R_PRESSURE_X10:  _jitter(profile.pressure_x10, profile.pressure_jitter, jitter),
        R_CYCLE_TIME_X10: _jitter(profile.cycle_time_x10, profile.cycle_time_jitter, jitter),
        R_PIECES_LO:     low,
        R_PIECES_HI:     high,
        R_ENERGY_X100:   round(state.energy * 100),
        R_HEALTH:        round(state.health),
        R_TEMP_ALARM:    bool_reg(state.temperature > profile.alarm_threshold),
        R_DOWNTIME_COST: profile.downtime_cost,
    }

def decode_registers(regs) -> TelemetryTags:
    """Inverse of encode_state for a block read starting at address 0."""
    def r(i): return regs[i] if i < len(regs) else 0

    return TelemetryTags(
        production_status=r(R_STATUS) == 1,
        mold_temperature=r(R_MOLD_TEMP_X10) / 10,
        injection_pressure=r(R_PRESSURE_X10) / 10,
        cycle_time=r(R_CYCLE_TIME_X10) / 10,
        total_pieces=unpack_uint32(r(R_PIECES_HI), r(R_PIECES_LO)),
        energy_kwh=r(R_ENERGY_X100) / 100,
        health_score=r(R_HEALTH),
        temperature_alarm=r(R_TEMP_ALARM) == 1,
        downtime_cost_per_hour=r(R_DOWNTIME_COST),
    )
