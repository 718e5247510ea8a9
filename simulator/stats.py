"""Cumulative gateway counters. Reset only by a process restart."""
import time
from dataclasses import dataclass
from typing import Optional


@dataclass
class GatewayStats:
    messages_total: int = 0
    messages_success: int = 0
    messages_error: int = 0
    bytes_transmitted: int = 0
    last_error: Optional[str] = None
    start_time: Optional[float] = None

    def mark_started(self, now: Optional[float] = None):
        if self.start_time is None:
            self.start_time = time.time() if now is None else now

    def record_attempt(self):
        self.messages_total += 1

    def record_success(self, nbytes: int):
        self.messages_success += 1
        self.bytes_transmitted += nbytes

    def record_error(self, message: str):
        self.messages_error += 1
        self.last_error = message

    def uptime_s(self, now: Optional[float] = None) -> int:
        if self.start_time is None:
            return 0
        now = time.time() if now is None else now
        return max(0, int(now - self.start_time))

    def uptime_text(self, now: Optional[float] = None) -> str:
        up = self.uptime_s(now)
        return f"{up // 3600}h {(up % 3600) // 60}m {up % 60}s"
