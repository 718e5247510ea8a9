"""
Operator CLI for the gateway
────────────────────────────
Commands are read one line at a time from stdin and handled between the
scheduler's suspension points, so no locking is needed around the runtime
flags or the stats.
"""
import logging

log = logging.getLogger("operator_cli")

KEY_VISIBLE_CHARS = 12

HELP_TEXT = """
┌─────────────────────────────────────────────────────────────────────┐
│                   PLC TELEMETRY GATEWAY SIMULATOR                   │
├─────────────────────────────────────────────────────────────────────┤
│  Commands:                                                          │
│                                                                     │
│  start    - Start polling devices and relaying telemetry           │
│  stop     - Stop after the current poll cycle                      │
│  status   - Show statistics                                        │
│  network  - Toggle a simulated network outage                      │
│  config   - Show current configuration                             │
│  api KEY  - Set the ingestion API key                              │
│  help     - Show this help                                         │
│  exit     - Quit                                                   │
│                                                                     │
└─────────────────────────────────────────────────────────────────────┘"""


def mask_key(key: str) -> str:
    if not key:
        return "NOT CONFIGURED"
    if len(key) <= KEY_VISIBLE_CHARS:
        return key[:4] + "..."
    return key[:KEY_VISIBLE_CHARS] + "..."


class OperatorCLI:
    def __init__(self, flags, stats, scheduler, relay, out=print):
        self._flags = flags
        self._stats = stats
        self._scheduler = scheduler
        self._relay = relay
        self._out = out
        self._commands = {
            "start":   self.cmd_start,
            "stop":    self.cmd_stop,
            "status":  self.cmd_status,
            "network": self.cmd_network,
            "config":  self.cmd_config,
            "api":     self.cmd_api,
            "help":    self.cmd_help,
        }

    async def handle(self, line: str) -> bool:
        """Run one command line. Returns False once the operator asked to exit."""
        parts = line.strip().split()
        if not parts:
            return True
        cmd, args = parts[0].lower(), parts[1:]

        if cmd in ("exit", "quit"):
            self._out("Shutting down gateway...")
            await self._scheduler.shutdown()
            return False

        handler = self._commands.get(cmd)
        if handler is None:
            self._out(f"Unknown command: {cmd}. Type 'help' for the command list.")
            return True
        handler(args)
        return True

    # ── Commands ──────────────────────────────────────────────────────────────
    def cmd_start(self, args=()):
        if not self._flags.api_key:
            self._out("Configure the API key first: api <KEY>")
            return False
        if self._flags.running:
            self._out("Gateway is already running")
            return False
        self._flags.running = True
        self._stats.mark_started()
        log.info("Gateway started: polling %d devices every %d ms",
                 len(self._scheduler.devices), self._flags.poll_interval_ms)
        self._out("Gateway STARTED - polling devices and relaying telemetry")
        self._scheduler.ensure_running()
        return True

    def cmd_stop(self, args=()):
        self._flags.running = False
        self._out("Gateway STOPPED")

    def cmd_network(self, args=()):
        self._flags.network_enabled = not self._flags.network_enabled
        if self._flags.network_enabled:
            log.info("Network restored")
            self._out("Network RESTORED")
        else:
            log.warning("Network outage simulated")
            self._out("Network DOWN (simulated outage)")

    def cmd_api(self, args=()):
        if not args:
            self._out("Usage: api <KEY>")
            return
        self._flags.api_key = " ".join(args).strip().upper()
        self._out(f"API key set: {mask_key(self._flags.api_key)}")

    def cmd_help(self, args=()):
        self._out(HELP_TEXT)

    def cmd_status(self, args=()):
        self._out(self.render_status())

    def cmd_config(self, args=()):
        self._out(self.render_config())

    # ── Rendering ─────────────────────────────────────────────────────────────
    def render_status(self) -> str:
        f, s = self._flags, self._stats
        rows = [
            ("State",          "ACTIVE" if f.running else "STOPPED"),
            ("Network",        "OK" if f.network_enabled else "SIMULATED OUTAGE"),
            ("Uptime",         s.uptime_text()),
            None,
            ("Messages total", s.messages_total),
            ("Success",        s.messages_success),
            ("Errors",         s.messages_error),
            ("Bytes TX",       f"{s.bytes_transmitted / 1024:.2f} KB"),
            None,
            ("Last error",     s.last_error or "None"),
        ]
        return _box("GATEWAY STATUS", rows)

    def render_config(self) -> str:
        f, relay = self._flags, self._relay
        if relay.simulate_latency:
            latency = f"{relay.latency_ms[0]}-{relay.latency_ms[1]}ms"
        else:
            latency = "disabled"
        rows = [
            ("Endpoint", relay.endpoint),
            ("API key",  mask_key(f.api_key)),
            ("Interval", f"{f.poll_interval_ms}ms"),
            ("Latency",  latency),
            None,
        ]
        for i, d in enumerate(self._scheduler.devices, 1):
            rows.append((f"{i}.", f"{d.name} ({d.label}) → {d.host}:{d.port} unit {d.unit_id}"))
        return _box("CONFIGURATION", rows)


def _box(title: str, rows) -> str:
    width = 69
    out = [
        "",
        "┌" + "─" * width + "┐",
        f"│  {title:<{width - 2}}│",
        "├" + "─" * width + "┤",
    ]
    for row in rows:
        if row is None:
            out.append("├" + "─" * width + "┤")
            continue
        label, value = row
        out.append(f"│  {label:<16}{value}")
    out.append("└" + "─" * width + "┘")
    return "\n".join(out)
