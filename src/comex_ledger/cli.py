"""Command line access to the dashboard, lifecycle actions and reports."""

import argparse
import asyncio
import sys
from datetime import date
from decimal import Decimal
from typing import Any

import structlog

from comex_ledger.actions import ActionExecutor, Notification
from comex_ledger.config import configure_logging, get_settings
from comex_ledger.dashboard import DashboardAggregator
from comex_ledger.errors import ComexError, NotFoundError, ValidationError
from comex_ledger.models import ProcessStatus, Report
from comex_ledger.reference import classify_reference, format_reference
from comex_ledger.reports import ReportBuilder
from comex_ledger.services import Services, build_services
from comex_ledger.store import StoreClient

logger = structlog.get_logger(__name__)

REPORT_KINDS = (
    "client-balance",
    "client-statement",
    "process-balance",
    "transactions",
    "unbilled",
)


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


def _print_report(report: Report) -> None:
    print(f"\n{report.title}")
    print("=" * len(report.title))
    print(" | ".join(report.columns))
    for row in report.rows:
        print(" | ".join(_money(v) if isinstance(v, Decimal) else str(v) for v in row))
    for name, value in report.totals.items():
        print(f"Total {name}: {_money(value)}")


def _print_notification(notification: Notification) -> None:
    print(f"[{notification.level.value}] {notification.message}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="comex-ledger",
        description="COMEX Ledger bookkeeping tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s dashboard
  %(prog)s lookup 0058.039.1209.25
  %(prog)s finalize <process-id> --notes "Docs sent"
  %(prog)s reconcile --fix
  %(prog)s report transactions --from 2026-01-01
  %(prog)s report client-statement --client 0058
        """,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("dashboard", help="Show process counts and totals")

    top = commands.add_parser("top-clients", help="Rank clients by derived balance")
    top.add_argument("--limit", type=int, default=None)

    trend = commands.add_parser("trend", help="Monthly deposits and expenses")
    trend.add_argument("--months", type=int, default=None)

    lookup = commands.add_parser("lookup", help="Resolve the client of a process reference")
    lookup.add_argument("reference")

    fmt = commands.add_parser("format-reference", help="Format raw digits as a reference")
    fmt.add_argument("raw")

    for name, help_text in (("finalize", "Finalize an open process"), ("bill", "Bill a finalized process")):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("process_id")
        sub.add_argument("--notes", default=None)

    reconcile = commands.add_parser("reconcile", help="Compare balances with history")
    reconcile.add_argument("--fix", action="store_true", help="Write derived balances back")

    report = commands.add_parser("report", help="Print a management report")
    report.add_argument("kind", choices=REPORT_KINDS)
    report.add_argument("--client", dest="client_code", default=None, help="Client code for statements")
    report.add_argument("--status", choices=[s.value for s in ProcessStatus], default=None)
    report.add_argument("--from", dest="start_date", type=date.fromisoformat, default=None)
    report.add_argument("--to", dest="end_date", type=date.fromisoformat, default=None)

    return parser


async def _run_command(args: argparse.Namespace, services: Services) -> int:
    settings = get_settings()
    dashboard = DashboardAggregator(services.store, services.processes)

    if args.command == "dashboard":
        metrics = await dashboard.get_metrics()
        print(f"Open processes:             {metrics.open_processes}")
        print(f"Finalized processes:        {metrics.finalized_processes}")
        print(f"Finalized, not billed yet:  {metrics.finalized_without_billing}")
        print(f"Active clients:             {metrics.active_clients}")
        print(f"Total deposits:             {_money(metrics.total_deposits)}")
        print(f"Total expenses:             {_money(metrics.total_expenses)}")
        return 0

    if args.command == "top-clients":
        ranking = await dashboard.top_clients_by_balance(args.limit or settings.dashboard_top_clients)
        for position, entry in enumerate(ranking, start=1):
            flag = "" if entry.drift == 0 else f"  (stored {_money(entry.client.balance)})"
            print(
                f"{position:>2}. {entry.client.code} {entry.client.name}: "
                f"{_money(entry.derived_balance)}{flag}"
            )
        return 0

    if args.command == "trend":
        months = args.months or settings.dashboard_trend_months
        for bucket in await dashboard.monthly_trend(months):
            print(
                f"{bucket.label}: deposits {_money(bucket.deposits)}, "
                f"expenses {_money(bucket.expenses)}"
            )
        return 0

    if args.command == "lookup":
        lookup = await classify_reference(services.store, args.reference)
        if lookup.client:
            print(f"{lookup.client.code} {lookup.client.name}")
            return 0
        if lookup.offer_client_creation:
            print(f"Client code {lookup.code} is not registered")
        else:
            print(f"Malformed reference: {args.reference}")
        return 1

    executor = ActionExecutor(services, notifier=_print_notification)
    outcome: dict[str, Any]

    if args.command in ("finalize", "bill"):
        outcome = await executor.execute(
            f"{args.command}_process",
            {"process_id": args.process_id, "notes": args.notes},
        )
        return 0 if outcome["success"] else 1

    if args.command == "reconcile":
        outcome = await executor.execute("reconcile_balances", {"fix": args.fix})
        if not outcome["success"]:
            return 1
        drifts = outcome["result"]
        for drift in drifts:
            state = "repaired" if drift.repaired else "drift"
            print(
                f"{drift.code}: stored {_money(drift.stored)}, "
                f"derived {_money(drift.derived)} [{state}]"
            )
        if not drifts:
            print("All balances match their history")
        return 0

    if args.command == "report":
        builder = ReportBuilder(services)
        if args.kind == "client-balance":
            report = await builder.client_balance_report()
        elif args.kind == "client-statement":
            if not args.client_code:
                raise ValidationError("--client is required for client statements")
            client = await services.clients.find_by_code(args.client_code)
            if client is None:
                raise NotFoundError(f"Client code {args.client_code} is not registered")
            report = await builder.client_statement_report(
                client.id, args.start_date, args.end_date
            )
        elif args.kind == "process-balance":
            status = ProcessStatus(args.status) if args.status else None
            report = await builder.process_balance_report(status)
        elif args.kind == "transactions":
            report = await builder.transactions_report(args.start_date, args.end_date)
        else:
            report = await builder.unbilled_report()
        _print_report(report)
        return 0

    raise ValueError(f"Unhandled command: {args.command}")


async def main(argv: list[str] | None = None) -> int:
    """Parse arguments and run one command against the entity store."""
    args = build_parser().parse_args(argv)

    if args.command == "format-reference":
        print(format_reference(args.raw))
        return 0

    configure_logging()
    logger.info("command_started", command=args.command)

    try:
        async with StoreClient() as store:
            return await _run_command(args, build_services(store))
    except ComexError as e:
        logger.error("command_failed", command=args.command, error=e.message)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
