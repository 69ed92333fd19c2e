"""Command line entry point: ``apgeist provision`` and ``apgeist serve``."""
from __future__ import annotations

import argparse
import signal
import sys
from typing import List, Optional

from pydantic import ValidationError

from .config import settings
from .models.ap import APConfig
from .services.orchestrator import ProvisioningOrchestrator
from .services.troubleshooting import render_summary
from .utils.logs import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="apgeist", description="Turn a WiFi radio into an access point")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("provision", help="configure and start the access point")
    p.add_argument("--ssid", default=settings.ap_ssid)
    p.add_argument("--passphrase", default=settings.ap_passphrase)
    p.add_argument("--ap-ip", default=settings.ap_ip)
    p.add_argument("--dhcp-start", default=settings.dhcp_start)
    p.add_argument("--dhcp-end", default=settings.dhcp_end)
    p.add_argument("--channel", type=int, default=settings.channel)
    p.add_argument("--country", default=settings.country_code)
    p.add_argument("--no-rollback", action="store_true", help="keep written files when a stage fails")

    s = sub.add_parser("serve", help="run the HTTP API")
    s.add_argument("--host", default=settings.host)
    s.add_argument("--port", type=int, default=settings.port)
    return parser


def _raise_interrupt(signum, frame) -> None:
    raise KeyboardInterrupt()


def provision(args: argparse.Namespace, orchestrator: Optional[ProvisioningOrchestrator] = None) -> int:
    try:
        ap = APConfig(
            ssid=args.ssid,
            passphrase=args.passphrase,
            ap_ip=args.ap_ip,
            dhcp_start=args.dhcp_start,
            dhcp_end=args.dhcp_end,
            channel=args.channel,
            country_code=args.country,
        )
    except ValidationError as exc:
        print(f"invalid configuration:\n{exc}", file=sys.stderr)
        return 2

    if orchestrator is None:
        cfg = settings.model_copy(update={"rollback_on_failure": False}) if args.no_rollback else settings
        orchestrator = ProvisioningOrchestrator(cfg)
    previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        report = orchestrator.run(ap)
    finally:
        signal.signal(signal.SIGTERM, previous)

    for stage in report.stages:
        line = f"{stage.status.value:>9}  {stage.name}"
        if stage.message:
            line += f": {stage.message}"
        print(line)
    if report.success:
        print("\nAccess Point setup completed successfully!")
        if report.interface:
            print(render_summary(ap.with_interface(report.interface)))
    else:
        print(f"\nSetup failed: {report.error}", file=sys.stderr)
    if report.troubleshooting:
        print("\n" + report.troubleshooting)
    return 0 if report.success else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.log_level, settings.log_file)
    if args.command == "serve":
        import uvicorn

        uvicorn.run("apgeist.main:app", host=args.host, port=args.port)
        return 0
    return provision(args)


if __name__ == "__main__":
    sys.exit(main())
