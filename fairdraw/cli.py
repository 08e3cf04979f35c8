from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from . import workflows
from .config import Settings, get_settings
from .db.utils import dt_iso
from .errors import FairDrawError

log = logging.getLogger("fairdraw")


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    if verbose:
        level = "DEBUG"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _store(args: argparse.Namespace, settings: Settings):
    return workflows.build_store(
        database_url=args.db_url or settings.db_url, create_tables=args.create_tables
    )


def iso_datetime(value: str) -> datetime:
    """argparse type for ISO 8601 timestamps; a trailing ``Z`` means UTC."""
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO 8601 datetime: {value!r}") from None


def _parse_when(args: argparse.Namespace) -> datetime:
    if args.at is not None:
        return args.at
    return datetime.now(timezone.utc) + timedelta(minutes=args.in_minutes)


def cmd_publish(args: argparse.Namespace, settings: Settings) -> int:
    commitment = workflows.publish_seed_commitment(
        _store(args, settings), args.raffle_id, _parse_when(args), settings=settings
    )
    print(json.dumps(commitment.to_public_dict(), indent=2))
    return 0


def cmd_draw(args: argparse.Namespace, settings: Settings) -> int:
    result = workflows.run_draw(
        _store(args, settings), args.raffle_id, args.tickets, args.participants
    )
    print(
        json.dumps(
            {
                "drawId": result.draw_id,
                "raffleId": result.raffle_id,
                "winningTicketNumber": result.winning_ticket_number,
                "method": result.method.value,
                "finalHash": result.final_hash,
                "computedAt": dt_iso(result.computed_at),
            },
            indent=2,
        )
    )
    return 0


def cmd_verify(args: argparse.Namespace, settings: Settings) -> int:
    verified, view = workflows.verify_draw(
        _store(args, settings), args.raffle_id, args.audit_id, verifier="cli"
    )
    if verified:
        print(f"VERIFIED   : draw {view['id']} ticket {view['winningTicketNumber']}")
        print(f"Seed hash  : {view['seedHash']}")
        return 0
    print(f"FAILED     : draw {view['id']} could not be reproduced")
    return 1


def cmd_report(args: argparse.Namespace, settings: Settings) -> int:
    exported = workflows.export_audit_log(_store(args, settings), args.raffle_id)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(exported)
        log.info("Wrote compliance report for %s to %s", args.raffle_id, args.out)
    else:
        print(exported)
    return 0


def cmd_audits(args: argparse.Namespace, settings: Settings) -> int:
    audits = workflows.list_public_audits(_store(args, settings), args.raffle_id)
    print(json.dumps(audits, indent=2))
    return 0


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from .api import create_app

    app = create_app(store=_store(args, settings), settings=settings)
    uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="fairdraw",
        description="Provably-fair raffle draws: commit, draw, verify and report.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--db-url", default=None, help="Override DB_URL.")
    p.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before running (development databases only).",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    pub = sub.add_parser("publish", help="Publish a seed commitment for a raffle.")
    pub.add_argument("raffle_id")
    when = pub.add_mutually_exclusive_group()
    when.add_argument(
        "--at",
        type=iso_datetime,
        default=None,
        help="Draw time, ISO 8601 (naive means UTC).",
    )
    when.add_argument(
        "--in-minutes", type=float, default=60.0, help="Draw this many minutes from now."
    )
    pub.set_defaults(func=cmd_publish)

    d = sub.add_parser("draw", help="Conduct the draw of a raffle.")
    d.add_argument("raffle_id")
    d.add_argument("--tickets", required=True, type=int, help="Total tickets sold.")
    d.add_argument("--participants", required=True, type=int, help="Distinct participants.")
    d.set_defaults(func=cmd_draw)

    v = sub.add_parser("verify", help="Re-verify a logged draw.")
    v.add_argument("raffle_id")
    v.add_argument("audit_id")
    v.set_defaults(func=cmd_verify)

    r = sub.add_parser("report", help="Export the compliance report of a raffle.")
    r.add_argument("raffle_id")
    r.add_argument("--out", default=None, help="Write JSON here instead of stdout.")
    r.set_defaults(func=cmd_report)

    a = sub.add_parser("audits", help="List public audit entries.")
    a.add_argument("--raffle-id", default=None)
    a.set_defaults(func=cmd_audits)

    s = sub.add_parser("serve", help="Serve the HTTP API with uvicorn.")
    s.add_argument("--host", default="127.0.0.1")
    s.add_argument("--port", type=int, default=8000)
    s.set_defaults(func=cmd_serve)

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, args.verbose)
    try:
        return args.func(args, settings)
    except FairDrawError as exc:
        log.error("%s: %s", type(exc).__name__, exc.detail)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
