"""
Device Profiles — Siemens S7-1200 and Delta DVP-28SV injection moulders
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FaultCommand:
    name: str
    aliases: tuple
    fault: str                  # overheat | comm_failure
    temperature: Optional[float] = None   # forced temperature, None = unchanged
    health: Optional[float] = None        # forced health score, None = unchanged
    message: str = ""


@dataclass(frozen=True)
class DeviceProfile:
    key: str
    brand: str
    model: str
    port: int
    unit_id: int

    # Temperature (°C)
    nominal_temperature: float
    temperature_min: float
    temperature_max: float
    temperature_step: float     # width of the uniform per-tick delta
    ambient_temperature: float  # floor while stopped
    cooling_step: float         # decay per tick while stopped
    alarm_threshold: float

    # Production
    pieces_per_tick: tuple      # inclusive integer range
    energy_per_tick: tuple      # kWh range

    # Health
    initial_health: float
    health_step: float
    health_min: float

    # Cosmetic registers (×10, with jitter width)
    pressure_x10: int
    pressure_jitter: int
    cycle_time_x10: int
    cycle_time_jitter: int

    downtime_cost: int
    fault_command: FaultCommand

    @property
    def name(self) -> str:
        return f"{self.brand} {self.model}"


OVERHEAT = FaultCommand(
    name="overheat", aliases=("s",), fault="overheat",
    temperature=95.0, health=60.0,
    message="OVERHEAT! Machine stopped automatically",
)

COMM_FAILURE = FaultCommand(
    name="commfail", aliases=("c",), fault="comm_failure",
    message="COMMUNICATION FAILURE! Machine offline",
)


PROFILES: dict[str, DeviceProfile] = {
    "siemens": DeviceProfile(
        key="siemens", brand="Siemens", model="S7-1200",
        port=502, unit_id=1,
        nominal_temperature=65.0, temperature_min=55.0, temperature_max=90.0,
        temperature_step=2.0, ambient_temperature=40.0, cooling_step=0.5,
        alarm_threshold=85.0,
        pieces_per_tick=(1, 3), energy_per_tick=(0.8, 1.0),
        initial_health=95.0, health_step=0.5, health_min=60.0,
        pressure_x10=1200, pressure_jitter=100,
        cycle_time_x10=450, cycle_time_jitter=50,
        downtime_cost=850,
        fault_command=OVERHEAT,
    ),
    "delta": DeviceProfile(
        key="delta", brand="Delta", model="DVP-28SV",
        port=503, unit_id=2,
        nominal_temperature=58.0, temperature_min=50.0, temperature_max=85.0,
        temperature_step=1.5, ambient_temperature=35.0, cooling_step=0.3,
        alarm_threshold=80.0,
        pieces_per_tick=(1, 2), energy_per_tick=(0.6, 0.8),
        initial_health=92.0, health_step=0.3, health_min=70.0,
        pressure_x10=1150, pressure_jitter=80,
        cycle_time_x10=480, cycle_time_jitter=40,
        downtime_cost=650,
        fault_command=COMM_FAILURE,
    ),
}


def get_profile(key: str) -> DeviceProfile:
    try:
        return PROFILES[key.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown device profile {key!r} (choose from {', '.join(PROFILES)})"
        ) from None
