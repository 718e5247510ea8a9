#!/usr/bin/env python3
"""
Quick Modbus register reader — connect to a running PLC simulator and dump its registers.
Usage:  python read_registers.py [--host 127.0.0.1] [--port 502] [--unit 1]
"""
import argparse
import asyncio
import sys

from simulator.modbus_client import read_holding_registers
from simulator.register_map import BLOCK_COUNT, BLOCK_START, decode_registers


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=502)
    p.add_argument("--unit", type=int, default=1)
    args = p.parse_args()

    try:
        regs = asyncio.run(read_holding_registers(
            args.host, args.port, BLOCK_START, BLOCK_COUNT, unit_id=args.unit,
        ))
    except Exception as e:
        print(f"Could not read {args.host}:{args.port} — {e}")
        print("Try --port 5020 if the simulator is not running as root.")
        sys.exit(1)

    t = decode_registers(regs)
    print("\n╔═══ PLC — Register Snapshot ═════════════════════════════════╗")
    print(f"  Raw              : {list(regs)}")
    print(f"")
    print(f"  Producing        : {t.production_status}")
    print(f"  Mold Temperature : {t.mold_temperature:.1f} °C")
    print(f"  Injection Press. : {t.injection_pressure:.1f} bar")
    print(f"  Cycle Time       : {t.cycle_time:.1f} s")
    print(f"  Total Pieces     : {t.total_pieces}")
    print(f"  Energy           : {t.energy_kwh:.2f} kWh")
    print(f"  Health Score     : {t.health_score}%")
    print(f"  Temp. Alarm      : {t.temperature_alarm}")
    print(f"  Downtime Cost/h  : {t.downtime_cost_per_hour}")
    print("╚══════════════════════════════════════════════════════════════╝\n")


if __name__ == "__main__":
    main()
