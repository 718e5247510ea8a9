"""Load and expose configuration from config.yaml."""
import copy
import os
from dataclasses import dataclass

import yaml

_DEFAULT = {
    "plc": {
        "host": "0.0.0.0",
        "tick_s": 1.0,
        "status_interval_s": 2.0,
    },
    "gateway": {
        "endpoint": "http://localhost:8080/api/ingest",
        "api_key": "",
        "poll_interval_ms": 3000,
        "read_timeout_ms": 2000,
        "http_timeout_ms": 10000,
        "latency": {"enabled": True, "min_ms": 100, "max_ms": 500},
        "devices": [
            {
                "name": "INJETORA_SIEMENS_01", "brand": "Siemens", "model": "S7-1200",
                "host": "localhost", "port": 502, "unit_id": 1,
            },
            {
                "name": "INJETORA_DELTA_01", "brand": "Delta", "model": "DVP-28SV",
                "host": "localhost", "port": 503, "unit_id": 2,
            },
        ],
    },
    "logging": {"level": "INFO"},
}

ENV_ENDPOINT = "GATEWAY_ENDPOINT"
ENV_API_KEY = "GATEWAY_API_KEY"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class DeviceConfig:
    name: str
    host: str
    port: int
    unit_id: int = 1
    brand: str = ""
    model: str = ""
    protocol: str = "Modbus TCP"

    @property
    def label(self) -> str:
        return f"{self.brand} {self.model}".strip() or self.name

    @classmethod
    def from_dict(cls, raw: dict) -> "DeviceConfig":
        missing = [k for k in ("name", "port") if k not in raw]
        if missing:
            raise ConfigError(f"device entry {raw!r} is missing {', '.join(missing)}")
        return cls(
            name=str(raw["name"]),
            host=str(raw.get("host", "localhost")),
            port=int(raw["port"]),
            unit_id=int(raw.get("unit_id", 1)),
            brand=str(raw.get("brand", "")),
            model=str(raw.get("model", "")),
            protocol=str(raw.get("protocol", "Modbus TCP")),
        )


def _deep_merge(base, override):
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result

def load_config(path: str = "config.yaml", environ=None) -> dict:
    env = os.environ if environ is None else environ
    cfg = copy.deepcopy(_DEFAULT)
    if path and os.path.exists(path):
        with open(path) as f:
            user = yaml.safe_load(f) or {}
        if not isinstance(user, dict):
            raise ConfigError(f"{path}: top level must be a mapping")
        cfg = _deep_merge(cfg, user)

    if env.get(ENV_ENDPOINT):
        cfg["gateway"]["endpoint"] = env[ENV_ENDPOINT]
    if env.get(ENV_API_KEY):
        cfg["gateway"]["api_key"] = env[ENV_API_KEY]
    return cfg

def load_devices(cfg: dict) -> tuple:
    """Parse gateway.devices into immutable DeviceConfig entries, in list order."""
    raw = cfg["gateway"].get("devices") or []
    if not isinstance(raw, list):
        raise ConfigError("gateway.devices must be a list")
    return tuple(DeviceConfig.from_dict(d) for d in raw)
