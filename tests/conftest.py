import pytest

from simulator.telemetry import TelemetryRecord, TelemetryTags


@pytest.fixture
def record():
    return TelemetryRecord(
        device_id="INJETORA_SIEMENS_01",
        brand="Siemens",
        protocol="Modbus TCP",
        tags=TelemetryTags(
            production_status=True,
            mold_temperature=65.0,
            injection_pressure=120.0,
            cycle_time=45.0,
            total_pieces=70000,
            energy_kwh=12.5,
            health_score=95,
            temperature_alarm=False,
            downtime_cost_per_hour=850,
        ),
    )
