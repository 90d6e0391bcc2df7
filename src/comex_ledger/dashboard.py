"""Read-only dashboard figures computed straight from the store."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import structlog

from comex_ledger.errors import ValidationError
from comex_ledger.ledger import compute_derived_balances
from comex_ledger.models import Client, Process, ProcessStatus, parse_date, to_decimal
from comex_ledger.services.processes import ProcessService
from comex_ledger.store.query import EntityStore

logger = structlog.get_logger(__name__)

# Fixed English abbreviations keep labels independent of the process locale
MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

DEFAULT_TOP_CLIENTS = 10
DEFAULT_TREND_MONTHS = 6


@dataclass
class DashboardMetrics:
    open_processes: int
    finalized_processes: int
    finalized_without_billing: int
    active_clients: int
    total_deposits: Decimal
    total_expenses: Decimal


@dataclass
class ClientBalance:
    """A client next to the balance recomputed from its history."""

    client: Client
    derived_balance: Decimal

    @property
    def drift(self) -> Decimal:
        """Stored minus derived; zero when the ledger is consistent."""
        return self.client.balance - self.derived_balance


@dataclass
class MonthlyTrend:
    year: int
    month: int
    deposits: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")

    @property
    def label(self) -> str:
        return month_label(self.year, self.month)

    @property
    def net(self) -> Decimal:
        return self.deposits - self.expenses


def month_label(year: int, month: int) -> str:
    """Short month plus two-digit year, e.g. ``Oct 26``."""
    return f"{MONTH_ABBREVIATIONS[month - 1]} {year % 100:02d}"


def trailing_months(today: date, months: int) -> list[tuple[int, int]]:
    """The ``months`` calendar months ending with today's, oldest first."""
    result = []
    year, month = today.year, today.month
    for _ in range(months):
        result.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(result))


class DashboardAggregator:
    """Counts and sums for the dashboard; no materialized counters."""

    def __init__(self, store: EntityStore, processes: ProcessService | None = None):
        self.store = store
        self.processes = processes or ProcessService(store)

    async def _count_processes(self, status: ProcessStatus, unbilled: bool = False) -> int:
        query = self.store.table("processes").count().eq("status", status.value)
        if unbilled:
            query = query.is_("billed_at", None)
        return await query.execute()

    async def _sum_amounts(self, table: str) -> Decimal:
        rows = await self.store.table(table).select("amount").execute()
        return sum((to_decimal(row["amount"]) for row in rows), Decimal("0"))

    async def get_metrics(self) -> DashboardMetrics:
        metrics = DashboardMetrics(
            open_processes=await self._count_processes(ProcessStatus.OPEN),
            finalized_processes=await self._count_processes(ProcessStatus.FINALIZED),
            finalized_without_billing=await self._count_processes(
                ProcessStatus.FINALIZED, unbilled=True
            ),
            active_clients=await self.store.table("clients").count().eq("active", True).execute(),
            total_deposits=await self._sum_amounts("deposits"),
            total_expenses=await self._sum_amounts("expenses"),
        )
        logger.debug("dashboard_metrics", **{k: str(v) for k, v in vars(metrics).items()})
        return metrics

    async def top_clients_by_balance(self, limit: int = DEFAULT_TOP_CLIENTS) -> list[ClientBalance]:
        """Active clients ranked by balance recomputed from deposits and expenses.

        This deliberately ignores ``Client.balance`` so the two figures can be
        compared.
        """
        client_rows = await self.store.table("clients").select("*").eq("active", True).execute()
        deposits = await self.store.table("deposits").select("client_id, amount").execute()
        expenses = await (
            self.store.table("expenses").select("amount, process:processes(client_id)").execute()
        )
        derived = compute_derived_balances(deposits, expenses)

        ranking = [
            ClientBalance(client=client, derived_balance=derived.get(client.id, Decimal("0")))
            for client in (Client.from_row(row) for row in client_rows)
        ]
        ranking.sort(key=lambda entry: entry.derived_balance, reverse=True)
        return ranking[:limit]

    async def monthly_trend(
        self, months: int = DEFAULT_TREND_MONTHS, today: date | None = None
    ) -> list[MonthlyTrend]:
        """Deposit and expense sums per calendar month over a trailing window."""
        if months < 1:
            raise ValidationError("Trend window must cover at least one month")
        today = today or date.today()
        window = trailing_months(today, months)
        buckets = {key: MonthlyTrend(year=key[0], month=key[1]) for key in window}
        start = date(window[0][0], window[0][1], 1)

        deposits = await self.store.table("deposits").select("date, amount").gte("date", start).execute()
        expenses = await self.store.table("expenses").select("date, amount").gte("date", start).execute()

        for row in deposits:
            day = parse_date(row["date"])
            bucket = buckets.get((day.year, day.month))
            if bucket is not None:
                bucket.deposits += to_decimal(row["amount"])
        for row in expenses:
            day = parse_date(row["date"])
            bucket = buckets.get((day.year, day.month))
            if bucket is not None:
                bucket.expenses += to_decimal(row["amount"])

        return [buckets[key] for key in window]

    async def finalized_without_billing(self) -> list[Process]:
        return await self.processes.list_finalized_without_billing()
