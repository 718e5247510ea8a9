"""Decoded telemetry snapshot, keyed by the ingestion API's tag names."""
import json
from dataclasses import dataclass

# Python field → tag name expected by the ingestion endpoint
TAG_NAMES = {
    "production_status":      "Status_Producao",
    "mold_temperature":       "Temperatura_Molde",
    "injection_pressure":     "Pressao_Injecao",
    "cycle_time":             "Tempo_Ciclo",
    "total_pieces":           "Total_Pecas",
    "energy_kwh":             "Consumo_Energia_kWh",
    "health_score":           "Health_Score",
    "temperature_alarm":      "Alarme_Temperatura",
    "downtime_cost_per_hour": "Custo_Hora_Parada",
}


@dataclass(frozen=True)
class TelemetryTags:
    production_status: bool
    mold_temperature: float
    injection_pressure: float
    cycle_time: float
    total_pieces: int
    energy_kwh: float
    health_score: int
    temperature_alarm: bool
    downtime_cost_per_hour: int

    def as_dict(self) -> dict:
        return {tag: getattr(self, field) for field, tag in TAG_NAMES.items()}


@dataclass(frozen=True)
class TelemetryRecord:
    device_id: str
    brand: str
    protocol: str
    tags: TelemetryTags

    def as_dict(self) -> dict:
        return {
            "device_id": self.device_id,
            "brand":     self.brand,
            "protocol":  self.protocol,
            "tags":      self.tags.as_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), separators=(",", ":"))
