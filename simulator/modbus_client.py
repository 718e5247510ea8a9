"""
Device Reader — Modbus TCP client side of the gateway
──────────────────────────────────────────────────────
One fresh connection per poll: connect, FC03 block read of the fixed
10-register window, close. Failures never escape read_device(); they come
back as a ReadResult with success=False.
"""
import asyncio
import itertools
import logging
import struct
from dataclasses import dataclass
from typing import Optional

from .register_map import BLOCK_COUNT, BLOCK_START, decode_registers
from .telemetry import TelemetryRecord

log = logging.getLogger("modbus_client")

FC_READ_HOLDING = 0x03
DEFAULT_TIMEOUT_S = 2.0

_trans_ids = itertools.count(1)


class ModbusError(Exception):
    pass


@dataclass(frozen=True)
class ReadResult:
    device: str
    success: bool
    record: Optional[TelemetryRecord] = None
    error: Optional[str] = None


def build_read_request(trans_id: int, unit_id: int, start: int, count: int) -> bytes:
    # MBAP + PDU
    return struct.pack(">HHHBBHH", trans_id & 0xFFFF, 0, 6,
                       unit_id, FC_READ_HOLDING, start, count)

def parse_read_response(trans_id: int, header: bytes, body: bytes, count: int) -> list:
    """Validate an FC03 response and return its register values."""
    r_trans, proto, _length, _unit = struct.unpack(">HHHB", header)
    if r_trans != trans_id & 0xFFFF or proto != 0:
        raise ModbusError(f"mismatched response (transaction {r_trans}, protocol {proto})")
    if not body:
        raise ModbusError("empty response")
    fc = body[0]
    if fc & 0x80:
        code = body[1] if len(body) > 1 else 0
        raise ModbusError(f"exception response fc=0x{fc & 0x7F:02X} code={code}")
    if fc != FC_READ_HOLDING:
        raise ModbusError(f"unexpected function code 0x{fc:02X}")
    if len(body) < 2:
        raise ModbusError("short response")
    byte_count = body[1]
    if byte_count != count * 2 or len(body) < 2 + byte_count:
        raise ModbusError(f"expected {count} registers, got {byte_count // 2}")
    return list(struct.unpack(f">{count}H", body[2:2 + byte_count]))


async def _exchange(reader, writer, unit_id, start, count) -> list:
    trans_id = next(_trans_ids)
    writer.write(build_read_request(trans_id, unit_id, start, count))
    await writer.drain()

    header = await reader.readexactly(7)
    length = struct.unpack(">H", header[4:6])[0]
    body = await reader.readexactly(max(length - 1, 0))
    return parse_read_response(trans_id, header, body, count)


async def read_holding_registers(host, port, start, count, unit_id=1,
                                 timeout=DEFAULT_TIMEOUT_S) -> list:
    reader, writer = await asyncio.wait_for(
        asyncio.open_connection(host, port), timeout,
    )
    try:
        # One deadline covers the whole request/response exchange
        return await asyncio.wait_for(
            _exchange(reader, writer, unit_id, start, count), timeout,
        )
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass


async def read_device(device, timeout=DEFAULT_TIMEOUT_S) -> ReadResult:
    """Poll one device and decode its registers into a TelemetryRecord."""
    try:
        regs = await read_holding_registers(
            device.host, device.port, BLOCK_START, BLOCK_COUNT,
            unit_id=device.unit_id, timeout=timeout,
        )
    except asyncio.TimeoutError:
        return ReadResult(device.name, False,
                          error=f"timed out after {timeout * 1000:.0f}ms")
    except (OSError, ModbusError, asyncio.IncompleteReadError) as e:
        return ReadResult(device.name, False, error=str(e) or type(e).__name__)

    record = TelemetryRecord(
        device_id=device.name,
        brand=device.brand,
        protocol=device.protocol,
        tags=decode_registers(regs),
    )
    log.debug("%s registers %s", device.name, regs)
    return ReadResult(device.name, True, record=record)
