from __future__ import annotations

import argparse
import json
import sys

import requests

from irr import db
from irr.credentials import ensure_env_file
from irr.docker_ops import DriverError
from irr.health import survey, survey_checks
from irr.reconciler import DeployError, build_reconciler
from irr.settings import settings
from irr.status import Healthy, format_status, status_to_dict


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _remote(args: argparse.Namespace) -> int:
    base = args.api.rstrip("/")
    auth = (args.user, args.password) if args.password else None

    if args.cmd == "status":
        r = requests.get(f"{base}/status", timeout=30)
        body = r.json()
        _print(body)
        return 0 if r.ok and body.get("state") == "healthy" else 1

    if args.cmd == "deploy":
        # Deploys block until readiness, so the timeout has to cover both stage budgets.
        r = requests.post(f"{base}/deploy", json={"force": args.force}, auth=auth, timeout=args.timeout)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "destroy":
        payload = {"remove_network": args.remove_network}
        r = requests.post(f"{base}/destroy", json=payload, auth=auth, timeout=args.timeout)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "report":
        r = requests.get(f"{base}/report", timeout=60)
        body = r.json()
        _print(body)
        return 0 if r.ok and body.get("rating") == "operational" else 1

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    return 2


def _local(args: argparse.Namespace) -> int:
    if args.cmd == "events":
        _print(db.latest_events(args.limit))
        return 0

    try:
        rec = build_reconciler(settings)
    except ValueError as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return 1

    if args.cmd == "status":
        st = rec.compute_status()
        if args.json:
            _print(status_to_dict(st))
        else:
            print(format_status(st, rec.required))
        return 0 if isinstance(st, Healthy) else 1

    if args.cmd == "deploy":
        try:
            if ensure_env_file(settings.env_file, settings.env_example):
                print(f"Created {settings.env_file} from {settings.env_example}. Review the credentials in it.")
        except FileNotFoundError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        try:
            outcome = rec.reconcile(force=args.force)
        except DriverError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            if e.stderr:
                print(e.stderr, file=sys.stderr)
            return 1
        except DeployError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            if e.status is not None:
                print(format_status(e.status, rec.required), file=sys.stderr)
            return 1
        if not outcome.deployed:
            print("Infrastructure already healthy, skipping deploy (use --force to redeploy).")
        print(format_status(outcome.final, rec.required))
        return 0

    if args.cmd == "destroy":
        try:
            rec.destroy(remove_network=args.remove_network)
        except DriverError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        print("Infrastructure destroyed.")
        return 0

    if args.cmd == "report":
        report = survey(survey_checks(settings, sorted(rec.required), rec.health))
        if args.json:
            _print(report.to_dict())
        else:
            for name, (ok, msg) in sorted(report.results.items()):
                print(f"  [{'OK' if ok else 'FAIL'}] {name}: {msg}")
            print(f"Result: {report.rating} ({report.passed}/{report.total})")
        return 0 if report.rating == "operational" else 1

    return 2


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Infrastructure Readiness Reconciler CLI")
    p.add_argument("--api", default=None, help="Talk to a running IRR API instead of docker directly")
    p.add_argument("--user", default=settings.api_user, help="API user (with --api)")
    p.add_argument("--password", default=settings.api_password, help="API password (with --api)")
    p.add_argument("--timeout", type=float, default=900, help="HTTP timeout for deploy/destroy (with --api)")
    p.add_argument("--json", action="store_true", help="Print JSON instead of a status block")
    sub = p.add_subparsers(dest="cmd", required=True)

    # Also accepted after the subcommand; SUPPRESS keeps the global value when absent.
    s_st = sub.add_parser("status", help="Show infrastructure status")
    s_st.add_argument("--json", action="store_true", default=argparse.SUPPRESS, help="Print JSON")

    s_dep = sub.add_parser("deploy", help="Deploy unless already healthy")
    s_dep.add_argument("--force", action="store_true", help="Redeploy even when healthy")

    s_des = sub.add_parser("destroy", help="Take the infrastructure down")
    s_des.add_argument("--remove-network", action="store_true", help="Also remove the shared network")

    s_rep = sub.add_parser("report", help="Run every check and rate the stack")
    s_rep.add_argument("--json", action="store_true", default=argparse.SUPPRESS, help="Print JSON")

    s_ev = sub.add_parser("events", help="Show recent events")
    s_ev.add_argument("--limit", type=int, default=20)

    args = p.parse_args(argv)

    if args.api:
        return _remote(args)
    return _local(args)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
