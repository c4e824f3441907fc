"""
cli.py
------
Command-line front end for the budget tracker.  Each subcommand maps onto
one chat command and prints the same reply text the bot would send.

Usage:

    python cli.py budget October 01-10-2024 31-10-2024 900
    python cli.py log Coffee 4.5 --category drinks
    python cli.py log Rent 1200 --fixed
    python cli.py show
    python cli.py serve
"""

import argparse
from typing import List, Optional

import commands
from database import SessionLocal, init_db
from settings import API_HOST, API_PORT, setup_logging


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Piggy Bank budget tracker")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database tables")

    budget = sub.add_parser("budget", help="Set the active budget (replaces any existing one)")
    budget.add_argument("name")
    budget.add_argument("start", help="DD-MM-YYYY")
    budget.add_argument("end", help="DD-MM-YYYY")
    budget.add_argument("amount")

    sub.add_parser("clear", help="Remove the active budget")
    sub.add_parser("resync", help="Recompute budget totals from the ledger")
    sub.add_parser("show", help="Show today's status")

    report = sub.add_parser("report", help="List recent transactions")
    report.add_argument("-n", type=int, default=10, help="Number of transactions")
    report.add_argument("--period", default=None, help="Month bucket, e.g. 2024-03")

    log = sub.add_parser("log", help="Log a transaction for today")
    log.add_argument("item")
    log.add_argument("amount")
    log.add_argument("--category", default=None)
    log.add_argument("--fixed", action="store_true", help="Non-discretionary spend")

    serve = sub.add_parser("serve", help="Run the dashboard API")
    serve.add_argument("--host", default=API_HOST)
    serve.add_argument("--port", type=int, default=API_PORT)

    return parser.parse_args(argv)


def run(args: argparse.Namespace, db) -> str:
    if args.command == "budget":
        return commands.set_budget(db, args.name, args.start, args.end, args.amount)
    if args.command == "clear":
        return commands.clear_budget(db)
    if args.command == "resync":
        return commands.resync(db)
    if args.command == "show":
        return commands.show_status(db)
    if args.command == "report":
        return commands.recent_transactions(db, args.n, args.period)
    if args.command == "log":
        txn_type = "Fixed" if args.fixed else None
        return commands.log_transaction(db, args.item, args.amount, args.category, txn_type)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging()
    init_db()

    if args.command == "init-db":
        print("Database initialized.")
        return
    if args.command == "serve":
        import uvicorn

        uvicorn.run("api_server:app", host=args.host, port=args.port)
        return

    db = SessionLocal()
    try:
        print(run(args, db))
    finally:
        db.close()


if __name__ == "__main__":
    main()
