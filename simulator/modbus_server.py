"""
Pure-Python Modbus TCP Server (FC03 — Read Holding Registers)
─────────────────────────────────────────────────────────────
Implements just enough of the Modbus TCP spec for the gateway (or any
Modbus TCP client) to poll holding registers. Runs on asyncio, one
coroutine per connected client.

Supported function codes:
  FC03  Read Holding Registers

Everything else, writes included, gets an ILLEGAL FUNCTION exception.

Modbus TCP frame:
  [Transaction ID 2B] [Protocol ID 2B = 0x0000] [Length 2B]
  [Unit ID 1B] [Function Code 1B] [Data NB]
"""
import asyncio
import logging
import struct

log = logging.getLogger("modbus_server")

FC_READ_HOLDING = 0x03
MAX_READ_QTY = 125

EXC_ILLEGAL_FUNCTION = 0x01
EXC_ILLEGAL_DATA_VALUE = 0x03

BROADCAST_UNITS = (0, 255)


class RegisterStore:
    """Sparse address → uint16 map. Undefined addresses read as 0."""

    def __init__(self, values=None):
        self._regs = {}
        if values:
            self.load(values)

    def load(self, values):
        """Replace the whole map with a freshly encoded projection."""
        self._regs = {int(a): int(v) & 0xFFFF for a, v in values.items()}

    def read(self, address: int) -> int:
        return self._regs.get(address, 0)

    def read_block(self, start: int, count: int) -> list:
        return [self._regs.get(start + i, 0) for i in range(count)]


class ModbusTCPServer:
    """Modbus TCP responder backed by a RegisterStore."""

    def __init__(self, store: RegisterStore, host="0.0.0.0", port=502, unit_id=1):
        self._store = store
        self._host = host
        self._port = port
        self._unit_id = unit_id
        self._server = None

    # ── Public API ────────────────────────────────────────────────────────────
    async def start(self):
        try:
            self._server = await asyncio.start_server(
                self._handle_client, self._host, self._port,
            )
        except PermissionError:
            # Ports below 1024 require root; fall back to e.g. 502 → 5020
            fallback = self._port * 10
            log.warning("Port %d requires root — binding port %d instead",
                        self._port, fallback)
            self._port = fallback
            self._server = await asyncio.start_server(
                self._handle_client, self._host, self._port,
            )
        # Port 0 binds an ephemeral port; report the real one
        self._port = self._server.sockets[0].getsockname()[1]
        log.info("Modbus TCP server listening on %s:%d (unit %d)",
                 self._host, self._port, self._unit_id)

    async def stop(self):
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    @property
    def port(self) -> int:
        return self._port

    @property
    def unit_id(self) -> int:
        return self._unit_id

    # ── Internal ──────────────────────────────────────────────────────────────
    async def _handle_client(self, reader, writer):
        addr = writer.get_extra_info("peername")
        log.debug("Modbus client connected: %s", addr)
        try:
            while True:
                try:
                    header = await reader.readexactly(7)
                except asyncio.IncompleteReadError:
                    break

                trans_id, proto_id, length, unit_id = struct.unpack(">HHHB", header)
                if length < 2:
                    log.warning("Malformed MBAP header from %s, closing", addr)
                    break
                # Length counts the unit id byte already read
                pdu = await reader.readexactly(length - 1)

                if unit_id != self._unit_id and unit_id not in BROADCAST_UNITS:
                    log.debug("Ignoring request for unit %d", unit_id)
                    continue

                response_pdu = self.process(pdu[0], pdu[1:])
                resp_len = len(response_pdu) + 1  # +1 for unit_id byte per Modbus TCP spec
                mbap = struct.pack(">HHHB", trans_id, proto_id, resp_len, unit_id)
                writer.write(mbap + response_pdu)
                await writer.drain()
        except (ConnectionError, asyncio.IncompleteReadError, OSError) as e:
            log.warning("Modbus client %s dropped: %s", addr, e)
        finally:
            writer.close()
            log.debug("Modbus client disconnected: %s", addr)

    def process(self, fc: int, data: bytes) -> bytes:
        if fc == FC_READ_HOLDING:
            return self._fc03(data)
        return bytes([fc | 0x80, EXC_ILLEGAL_FUNCTION])

    def _fc03(self, data: bytes) -> bytes:
        if len(data) < 4:
            return bytes([FC_READ_HOLDING | 0x80, EXC_ILLEGAL_DATA_VALUE])
        start_addr, qty = struct.unpack(">HH", data[:4])
        if not 1 <= qty <= MAX_READ_QTY:
            return bytes([FC_READ_HOLDING | 0x80, EXC_ILLEGAL_DATA_VALUE])
        values = self._store.read_block(start_addr, qty)
        packed = struct.pack(f">{qty}H", *values)
        return bytes([FC_READ_HOLDING, qty * 2]) + packed
