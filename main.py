#!/usr/bin/env python3
"""
PLC Telemetry Gateway Simulator — Entry Point

Usage:
    python main.py plc --profile siemens          # Siemens S7-1200 on port 502
    python main.py plc --profile delta --port 5030
    python main.py gateway                        # uses config.yaml in current dir
    python main.py gateway --config my.yaml --interval 5000
    python main.py --loglevel DEBUG gateway --no-latency
"""
import argparse
import asyncio
import logging
import sys

def setup_logging(level: str = "INFO"):
    fmt = "%(asctime)s  %(levelname)-8s  %(name)-20s  %(message)s"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PLC telemetry gateway simulator")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    parser.add_argument("--loglevel", default=None, help="DEBUG/INFO/WARNING")
    sub = parser.add_subparsers(dest="command", required=True)

    plc = sub.add_parser("plc", help="Run one simulated PLC")
    plc.add_argument("--profile", default="siemens", help="siemens | delta")
    plc.add_argument("--host", help="Override listen address")
    plc.add_argument("--port", type=int, help="Override Modbus TCP port")

    gw = sub.add_parser("gateway", help="Run the polling gateway")
    gw.add_argument("--interval", type=int, help="Override poll interval (ms)")
    gw.add_argument("--endpoint", help="Override ingestion endpoint URL")
    gw.add_argument("--api-key", help="Ingestion API key")
    gw.add_argument("--no-latency", action="store_true",
                    help="Disable simulated uplink latency")
    return parser

def main(argv=None):
    args = build_parser().parse_args(argv)

    from simulator.config import ConfigError, load_config, load_devices
    try:
        cfg = load_config(args.config)
    except (ConfigError, OSError) as e:
        print(f"Could not load {args.config}: {e}", file=sys.stderr)
        return 2

    if args.loglevel:
        cfg["logging"]["level"] = args.loglevel
    setup_logging(cfg["logging"]["level"])
    log = logging.getLogger("main")

    try:
        if args.command == "plc":
            from simulator.plc import PLCSimulator
            from simulator.profiles import get_profile

            profile = get_profile(args.profile)
            plc_cfg = cfg["plc"]
            sim = PLCSimulator(
                profile,
                host=args.host or plc_cfg["host"],
                port=args.port,
                tick_s=float(plc_cfg["tick_s"]),
                status_interval_s=float(plc_cfg["status_interval_s"]),
            )
            asyncio.run(sim.run())
        else:
            from simulator.gateway import run_gateway

            gw = cfg["gateway"]
            if args.interval:
                gw["poll_interval_ms"] = args.interval
            if args.endpoint:
                gw["endpoint"] = args.endpoint
            if args.api_key:
                gw["api_key"] = args.api_key
            devices = load_devices(cfg)
            asyncio.run(run_gateway(cfg, devices,
                                    simulate_latency=False if args.no_latency else None))
    except (ConfigError, ValueError) as e:
        log.error("%s", e)
        return 2
    except KeyboardInterrupt:
        log.info("Interrupted by user — shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
