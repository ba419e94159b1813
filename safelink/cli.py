"""
Command line front end.

    safelink scan example.com [--external] [--no-gate] [--save]
    safelink history [--limit 5] [--viewer ID]
    safelink community [--search text] [--limit 20] [--viewer ID]
"""

import argparse
import json
import sys
from typing import List, Optional

from safelink import community, db
from safelink.app.scanner import InvalidURLError, UnreachableDomainError, scan
from safelink.app.threat_intel import can_run_check, run_external_check
from safelink.state import ResultUpdated, ScanCompleted, SessionState, reduce


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def cmd_scan(args) -> int:
    gate = (lambda host: True) if args.no_gate else None
    try:
        result = scan(args.url, gate=gate, auto_external=not args.no_external)
    except (InvalidURLError, UnreachableDomainError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    state = reduce(SessionState(), ScanCompleted(result))
    if args.external and can_run_check(state.current):
        state = reduce(state, ResultUpdated(run_external_check(state.current)))

    if args.save:
        db.init_db()
        community.record_scan(state.current)
    _print(state.current.to_dict())
    return 0


def cmd_history(args) -> int:
    db.init_db()
    rows = community.load_history(args.viewer, limit=args.limit)
    _print([r.to_dict() for r in rows])
    return 0


def cmd_community(args) -> int:
    db.init_db()
    rows = community.load_community(args.viewer, search=args.search, limit=args.limit)
    _print([r.to_dict() for r in rows])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="safelink", description="Explainable link safety checks")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("scan", help="score a URL")
    p.add_argument("url")
    p.add_argument("--external", action="store_true", help="run the external reputation check")
    p.add_argument("--no-external", action="store_true", help="skip the automatic external check")
    p.add_argument("--no-gate", action="store_true", help="skip the domain reachability check")
    p.add_argument("--save", action="store_true", help="store the result in history")
    p.set_defaults(func=cmd_scan)

    p = sub.add_parser("history", help="ranked recent checks")
    p.add_argument("--limit", type=int, default=None)
    p.add_argument("--viewer", default=None)
    p.set_defaults(func=cmd_history)

    p = sub.add_parser("community", help="community view")
    p.add_argument("--search", default="")
    p.add_argument("--limit", type=int, default=None)
    p.add_argument("--viewer", default=None)
    p.set_defaults(func=cmd_community)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
