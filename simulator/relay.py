"""
Network Relay — gateway → cloud ingestion over HTTP
────────────────────────────────────────────────────
Emulates the gateway's cellular uplink: an operator-controlled outage
switch, a random per-message latency, then one JSON POST per telemetry
record. No retry here; the next poll cycle is the retry.
"""
import asyncio
import json
import logging
import random
from typing import Optional

import httpx

log = logging.getLogger("relay")

DEFAULT_TIMEOUT_S = 10.0


class RelayError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkDisabledError(RelayError):
    def __init__(self):
        super().__init__("network disabled (simulated outage)")


class NetworkRelay:
    def __init__(self, endpoint: str, flags, stats,
                 timeout: float = DEFAULT_TIMEOUT_S,
                 latency_ms=(100, 500), simulate_latency: bool = True,
                 transport=None):
        self.endpoint = endpoint
        self.latency_ms = tuple(latency_ms)
        self.simulate_latency = simulate_latency
        self._flags = flags
        self._stats = stats
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self):
        await self._client.aclose()

    def build_payload(self, record) -> dict:
        payload = {"api_key": self._flags.api_key}
        payload.update(record.as_dict())
        return payload

    async def send(self, record) -> int:
        """POST one record. Returns the telemetry byte count on HTTP 200.

        Every failure is counted in the stats and then re-raised as RelayError.
        """
        self._stats.record_attempt()
        try:
            return await self._send(record)
        except RelayError as e:
            self._stats.record_error(str(e))
            raise
        except httpx.HTTPError as e:
            err = RelayError(f"{type(e).__name__}: {e}")
            self._stats.record_error(str(err))
            raise err from e

    async def _send(self, record) -> int:
        if not self._flags.network_enabled:
            raise NetworkDisabledError()

        if self.simulate_latency:
            lo, hi = self.latency_ms
            await asyncio.sleep(random.uniform(lo, hi) / 1000)

        body = json.dumps(self.build_payload(record)).encode("utf-8")
        resp = await self._client.post(
            self.endpoint, content=body,
            headers={"Content-Type": "application/json"},
        )
        if resp.status_code != 200:
            raise RelayError(f"HTTP {resp.status_code} from {self.endpoint}",
                             status_code=resp.status_code)

        # Counted without the credential: the telemetry itself, compact JSON
        nbytes = len(record.to_json().encode("utf-8"))
        self._stats.record_success(nbytes)
        return nbytes
