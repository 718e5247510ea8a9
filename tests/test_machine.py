"""Machine tick behaviour and the device command console."""
import asyncio

import pytest

from simulator.console import DeviceConsole
from simulator.machine import MachineMode, MachineSimulator
from simulator.modbus_server import RegisterStore
from simulator.plc import PLCSimulator
from simulator.profiles import PROFILES, get_profile


@pytest.fixture
def siemens():
    store = RegisterStore()
    return MachineSimulator(PROFILES["siemens"], store), store


@pytest.fixture
def delta():
    store = RegisterStore()
    return MachineSimulator(PROFILES["delta"], store), store


def _console(sim):
    lines = []
    return DeviceConsole(sim, out=lines.append), lines


def test_initial_registers_are_nominal(siemens):
    _sim, store = siemens
    assert store.read_block(0, 10) == [1, 650, 1200, 450, 0, 0, 0, 95, 0, 850]


def test_one_tick_while_running(siemens):
    sim, store = siemens
    sim.tick()
    assert store.read(0) == 1
    assert 550 <= store.read(1) <= 900
    assert 1 <= sim.state.total_pieces <= 3
    assert 0.8 <= sim.state.energy <= 1.0


@pytest.mark.parametrize("key", ["siemens", "delta"])
def test_temperature_stays_in_range(key):
    profile = PROFILES[key]
    sim = MachineSimulator(profile, RegisterStore())
    for _ in range(2000):
        sim.tick()
        assert profile.temperature_min <= sim.state.temperature <= profile.temperature_max
        assert profile.health_min <= sim.state.health <= 100.0


def test_stopped_machine_cools_to_ambient(siemens):
    sim, store = siemens
    sim.stop()
    pieces = sim.state.total_pieces
    sim.tick()
    assert sim.state.temperature == pytest.approx(64.5)
    for _ in range(200):
        sim.tick()
    assert sim.state.temperature == 40.0
    assert sim.state.total_pieces == pieces
    assert store.read(0) == 0


def test_stop_twice_is_idempotent(siemens):
    sim, _store = siemens
    console, _ = _console(sim)
    console.handle("stop")
    snapshot = (sim.state.total_pieces, sim.state.energy, sim.ticks)
    console.handle("STOP")
    assert sim.state.running is False
    assert sim.state.mode is MachineMode.STOPPED
    assert (sim.state.total_pieces, sim.state.energy, sim.ticks) == snapshot


def test_resume_restores_nominal_temperature(siemens):
    sim, _store = siemens
    console, _ = _console(sim)
    console.handle("s")
    assert sim.state.mode is MachineMode.FAULTED
    console.handle("resume")
    assert sim.state.mode is MachineMode.RUNNING
    assert sim.state.temperature == 65.0
    assert sim.state.fault is None


def test_overheat_halts_and_raises_alarm(siemens):
    sim, store = siemens
    console, lines = _console(sim)
    console.handle("overheat")
    assert sim.state.running is False
    assert sim.state.temperature == 95.0
    assert sim.state.health == 60.0
    sim.tick()
    assert store.read(8) == 1
    assert store.read(0) == 0
    assert "OVERHEAT" in lines[-1]


def test_comm_failure_sets_flag_and_halts_production(delta):
    sim, _store = delta
    console, _ = _console(sim)
    console.handle("C")
    assert sim.state.comm_fault is True
    pieces = sim.state.total_pieces
    sim.tick()
    assert sim.state.total_pieces == pieces
    assert "COMMUNICATION FAILURE" in console.status_line()


def test_fault_vocabulary_is_per_profile(delta):
    sim, _store = delta
    console, lines = _console(sim)
    console.handle("overheat")
    assert sim.state.mode is MachineMode.RUNNING
    assert "Pieces:" in lines[-1]


def test_unknown_input_prints_snapshot_without_state_change(siemens):
    sim, _store = siemens
    console, lines = _console(sim)
    before = (sim.state.running, sim.state.temperature, sim.state.fault)
    console.handle("")
    console.handle("what")
    assert (sim.state.running, sim.state.temperature, sim.state.fault) == before
    assert len(lines) == 2
    assert "SIEMENS S7-1200" in lines[0]


def test_get_profile_rejects_unknown_brand():
    assert get_profile("Delta").port == 503
    with pytest.raises(ValueError, match="Unknown device profile"):
        get_profile("omron")


@pytest.mark.asyncio
async def test_tick_loop_advances_once_per_interval():
    plc = PLCSimulator(PROFILES["siemens"], host="127.0.0.1", port=0, tick_s=0.02)
    loop = asyncio.get_running_loop()
    ticked = []
    tick = plc.machine.tick

    def timed_tick():
        ticked.append(loop.time())
        tick()

    plc.machine.tick = timed_tick
    task = asyncio.create_task(plc.tick_loop())
    await asyncio.sleep(0.15)
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    assert 3 <= len(ticked) <= 8
    assert plc.machine.ticks == len(ticked)
    for prev, nxt in zip(ticked, ticked[1:]):
        assert nxt - prev >= 0.018
