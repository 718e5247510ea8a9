"""Modbus TCP responder and device reader over loopback sockets."""
import asyncio
import socket
import struct

import pytest

from simulator.config import DeviceConfig
from simulator.modbus_client import (
    ModbusError, build_read_request, parse_read_response,
    read_device, read_holding_registers,
)
from simulator.modbus_server import ModbusTCPServer, RegisterStore

SCENARIO_A = {0: 1, 1: 650, 2: 1200, 3: 450, 4: 0, 5: 0, 6: 0, 7: 95, 8: 0, 9: 850}


async def _serve(values, unit_id=1):
    server = ModbusTCPServer(RegisterStore(values), host="127.0.0.1", port=0,
                             unit_id=unit_id)
    await server.start()
    return server


def _free_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _device(port, unit_id=1, name="PLC_TEST"):
    return DeviceConfig(name=name, host="127.0.0.1", port=port, unit_id=unit_id,
                        brand="Siemens", model="S7-1200")


@pytest.mark.asyncio
async def test_block_read_returns_exactly_count_values():
    server = await _serve({0: 7, 2: 9})
    try:
        regs = await read_holding_registers("127.0.0.1", server.port, 0, 6)
        assert regs == [7, 0, 9, 0, 0, 0]
        regs = await read_holding_registers("127.0.0.1", server.port, 500, 3)
        assert regs == [0, 0, 0]
    finally:
        await server.stop()


@pytest.mark.asyncio
async def test_read_device_decodes_telemetry():
    values = {**SCENARIO_A, 1: 712, 4: 4464, 5: 1, 6: 12345}
    server = await _serve(values)
    try:
        result = await read_device(_device(server.port))
    finally:
        await server.stop()

    assert result.success
    rec = result.record
    assert rec.device_id == "PLC_TEST"
    assert rec.brand == "Siemens"
    assert rec.protocol == "Modbus TCP"
    assert rec.tags.as_dict() == {
        "Status_Producao": True,
        "Temperatura_Molde": 71.2,
        "Pressao_Injecao": 120.0,
        "Tempo_Ciclo": 45.0,
        "Total_Pecas": 70000,
        "Consumo_Energia_kWh": 123.45,
        "Health_Score": 95,
        "Alarme_Temperatura": False,
        "Custo_Hora_Parada": 850,
    }


@pytest.mark.asyncio
async def test_read_device_reports_refused_connection():
    result = await read_device(_device(_free_port()), timeout=0.5)
    assert not result.success
    assert result.device == "PLC_TEST"
    assert result.record is None
    assert result.error


@pytest.mark.asyncio
async def test_read_device_times_out_on_wrong_unit():
    server = await _serve(SCENARIO_A, unit_id=2)
    try:
        result = await read_device(_device(server.port, unit_id=7), timeout=0.2)
    finally:
        await server.stop()
    assert not result.success
    assert "timed out" in result.error


@pytest.mark.asyncio
async def test_unit_zero_is_answered_by_any_station():
    server = await _serve(SCENARIO_A, unit_id=2)
    try:
        regs = await read_holding_registers("127.0.0.1", server.port, 0, 10, unit_id=0)
    finally:
        await server.stop()
    assert regs == [SCENARIO_A[i] for i in range(10)]


@pytest.mark.asyncio
async def test_several_requests_on_one_connection():
    server = await _serve(SCENARIO_A)
    try:
        reader, writer = await asyncio.open_connection("127.0.0.1", server.port)
        for tid in (1, 2):
            writer.write(build_read_request(tid, 1, 7, 1))
            await writer.drain()
            header = await reader.readexactly(7)
            body = await reader.readexactly(struct.unpack(">H", header[4:6])[0] - 1)
            assert parse_read_response(tid, header, body, 1) == [95]
        writer.close()
    finally:
        await server.stop()


def test_writes_are_rejected_as_illegal_function():
    server = ModbusTCPServer(RegisterStore(SCENARIO_A))
    assert server.process(0x06, struct.pack(">HH", 0, 5)) == bytes([0x86, 0x01])
    assert server.process(0x10, b"") == bytes([0x90, 0x01])


def test_oversized_read_is_illegal_data_value():
    server = ModbusTCPServer(RegisterStore())
    assert server.process(0x03, struct.pack(">HH", 0, 0)) == bytes([0x83, 0x03])
    assert server.process(0x03, struct.pack(">HH", 0, 126)) == bytes([0x83, 0x03])


def test_exception_response_raises_modbus_error():
    header = struct.pack(">HHHB", 5, 0, 3, 1)
    with pytest.raises(ModbusError, match="code=2"):
        parse_read_response(5, header, bytes([0x83, 0x02]), 10)


def test_mismatched_transaction_raises_modbus_error():
    header = struct.pack(">HHHB", 9, 0, 5, 1)
    with pytest.raises(ModbusError, match="mismatched"):
        parse_read_response(5, header, bytes([0x03, 0x02, 0x00, 0x01]), 1)


@pytest.mark.asyncio
async def test_gateway_reads_simulated_plc_after_ticks():
    from simulator.plc import PLCSimulator
    from simulator.profiles import PROFILES

    plc = PLCSimulator(PROFILES["delta"], host="127.0.0.1", port=0)
    await plc.server.start()
    try:
        for _ in range(5):
            plc.machine.tick()
        result = await read_device(_device(plc.server.port, unit_id=2, name="DELTA"))
    finally:
        await plc.server.stop()

    assert result.success
    tags = result.record.tags
    assert tags.production_status is True
    assert tags.total_pieces == plc.machine.state.total_pieces
    assert 50.0 <= tags.mold_temperature <= 85.0
    assert tags.downtime_cost_per_hour == 650


async def _scripted_server(*steps):
    """Accept one request, then replay (delay_s, bytes) steps back to the client."""
    async def handle(reader, writer):
        request = await reader.readexactly(12)
        trans_id = request[:2]
        for delay, chunk in steps:
            await asyncio.sleep(delay)
            writer.write(chunk.replace(b"TT", trans_id, 1))
            await writer.drain()
        try:
            await reader.read()
        finally:
            writer.close()

    return await asyncio.start_server(handle, "127.0.0.1", 0)


@pytest.mark.asyncio
async def test_truncated_fc03_body_is_a_failed_read():
    # MBAP says 2 bytes follow: unit id and the function code, no byte count
    frame = b"TT" + struct.pack(">HHB", 0, 2, 1) + b"\x03"
    server = await _scripted_server((0, frame))
    port = server.sockets[0].getsockname()[1]
    try:
        result = await read_device(_device(port), timeout=1.0)
    finally:
        server.close()
        await server.wait_closed()
    assert not result.success
    assert "short response" in result.error


def test_truncated_fc03_body_raises_modbus_error():
    header = struct.pack(">HHHB", 5, 0, 2, 1)
    with pytest.raises(ModbusError, match="short response"):
        parse_read_response(5, header, b"\x03", 10)


@pytest.mark.asyncio
async def test_timeout_bounds_the_whole_exchange():
    values = [SCENARIO_A[i] for i in range(10)]
    header = b"TT" + struct.pack(">HHB", 0, 23, 1)
    body = bytes([0x03, 20]) + struct.pack(">10H", *values)
    # Each stage alone fits in the timeout, together they do not
    server = await _scripted_server((0.3, header), (0.3, body))
    port = server.sockets[0].getsockname()[1]
    loop = asyncio.get_running_loop()
    try:
        started = loop.time()
        result = await read_device(_device(port), timeout=0.4)
        elapsed = loop.time() - started
    finally:
        server.close()
        await server.wait_closed()
    assert not result.success
    assert "timed out" in result.error
    assert elapsed < 0.55
