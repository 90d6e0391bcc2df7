"""Tests for dashboard metrics, balance ranking and the monthly trend."""

import random
from datetime import date
from decimal import Decimal

import pytest

from comex_ledger.dashboard import DashboardAggregator, month_label, trailing_months
from comex_ledger.errors import ValidationError
from fakes import (
    make_bank_account,
    make_category,
    make_client,
    make_deposit,
    make_expense,
    make_process,
)


@pytest.fixture
def dashboard(services):
    return DashboardAggregator(services.store, services.processes)


class TestMonthHelpers:
    def test_month_label(self):
        assert month_label(2026, 10) == "Oct 26"
        assert month_label(2009, 1) == "Jan 09"

    def test_trailing_months_wraps_the_year(self):
        assert trailing_months(date(2026, 2, 10), 4) == [
            (2025, 11),
            (2025, 12),
            (2026, 1),
            (2026, 2),
        ]


class TestMetrics:
    @pytest.mark.asyncio
    async def test_counts_and_sums(self, services, dashboard):
        client = await make_client(services)
        await make_client(services, code="0100", name="Dormant", active=False)
        account = await make_bank_account(services)
        category = await make_category(services)
        open_process = await make_process(services, client, reference="0058.001.0001.01")
        waiting = await make_process(services, client, reference="0058.002.0002.02")
        billed = await make_process(services, client, reference="0058.003.0003.03")
        for process in (waiting, billed):
            await services.processes.finalize_process(process.id)
        await services.processes.bill_process(billed.id)
        await make_deposit(services, client, account, "1000.00")
        await make_deposit(services, client, account, "250.50")
        await make_expense(services, open_process, category, account, "300.25")

        metrics = await dashboard.get_metrics()

        assert metrics.open_processes == 1
        # Billed processes leave the finalized count
        assert metrics.finalized_processes == 1
        assert metrics.finalized_without_billing == 1
        assert metrics.active_clients == 1
        assert metrics.total_deposits == Decimal("1250.50")
        assert metrics.total_expenses == Decimal("300.25")

    @pytest.mark.asyncio
    async def test_empty_store(self, dashboard):
        metrics = await dashboard.get_metrics()

        assert metrics.open_processes == 0
        assert metrics.total_deposits == Decimal("0")

    @pytest.mark.asyncio
    async def test_finalized_without_billing_list(self, services, dashboard):
        client = await make_client(services)
        process = await make_process(services, client)
        await services.processes.finalize_process(process.id)

        waiting = await dashboard.finalized_without_billing()

        assert [p.id for p in waiting] == [process.id]


class TestTopClients:
    @pytest.mark.asyncio
    async def test_ranks_by_derived_balance(self, services, dashboard, store):
        account = await make_bank_account(services)
        category = await make_category(services)
        rich = await make_client(services, code="0001", name="Rich")
        poor = await make_client(services, code="0002", name="Poor")
        await make_client(services, code="0003", name="Gone", active=False)
        await make_deposit(services, rich, account, "5000.00")
        await make_deposit(services, poor, account, "100.00")
        process = await make_process(services, poor)
        await make_expense(services, process, category, account, "400.00")
        # Stored balance drifted; the ranking must not use it
        store.rows("clients")[0]["balance"] = "1.00"

        ranking = await dashboard.top_clients_by_balance()

        assert [entry.client.code for entry in ranking] == ["0001", "0002"]
        assert ranking[0].derived_balance == Decimal("5000.00")
        assert ranking[0].drift == Decimal("-4999.00")
        assert ranking[1].derived_balance == Decimal("-300.00")
        assert ranking[1].drift == Decimal("0")

    @pytest.mark.asyncio
    async def test_limits_to_ten_by_default(self, services, dashboard):
        account = await make_bank_account(services)
        for i in range(12):
            client = await make_client(services, code=f"{i:04d}", name=f"Client {i}")
            await make_deposit(services, client, account, f"{i + 1}.00")

        ranking = await dashboard.top_clients_by_balance()

        assert len(ranking) == 10
        assert ranking[0].client.code == "0011"
        assert ranking[-1].client.code == "0002"

    @pytest.mark.asyncio
    async def test_client_without_history_ranks_at_zero(self, services, dashboard):
        await make_client(services)

        ranking = await dashboard.top_clients_by_balance()

        assert ranking[0].derived_balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_randomized_history_matches_stored_balances(self, services, dashboard):
        """Every booking path keeps stored and derived balances equal."""
        rng = random.Random(20261017)
        account = await make_bank_account(services)
        category = await make_category(services)
        clients = [
            await make_client(services, code=f"{i:04d}", name=f"Client {i}") for i in range(1, 5)
        ]
        processes = [
            await make_process(services, client, reference=f"{client.code}.000.0000.{n:02d}")
            for client in clients
            for n in range(2)
        ]
        deposits, expenses = [], []

        for _ in range(60):
            roll = rng.random()
            amount = f"{rng.randint(1, 500000) / 100:.2f}"
            if roll < 0.35:
                deposits.append(
                    await make_deposit(services, rng.choice(clients), account, amount)
                )
            elif roll < 0.7:
                expenses.append(
                    await make_expense(services, rng.choice(processes), category, account, amount)
                )
            elif roll < 0.8 and deposits:
                deposit = deposits.pop(rng.randrange(len(deposits)))
                await services.deposits.delete_deposit(deposit.id)
            elif roll < 0.9 and expenses:
                expense = expenses.pop(rng.randrange(len(expenses)))
                await services.expenses.delete_expense(expense.id)
            elif expenses:
                expense = rng.choice(expenses)
                await services.expenses.update_expense(
                    expense.id, amount=amount, process_id=rng.choice(processes).id
                )

        ranking = await dashboard.top_clients_by_balance(limit=len(clients))

        assert len(ranking) == len(clients)
        for entry in ranking:
            assert entry.drift == 0, entry.client.code
        assert await services.ledger.reconcile() == []


class TestMonthlyTrend:
    @pytest.mark.asyncio
    async def test_six_month_window(self, services, dashboard):
        client = await make_client(services)
        account = await make_bank_account(services)
        category = await make_category(services)
        process = await make_process(services, client)
        await make_deposit(services, client, account, "100.00", date(2026, 10, 3))
        await make_deposit(services, client, account, "50.00", date(2026, 10, 20))
        await make_deposit(services, client, account, "70.00", date(2026, 5, 1))
        # Outside the window
        await make_deposit(services, client, account, "999.00", date(2026, 4, 30))
        await make_expense(services, process, category, account, "30.00", date(2026, 7, 15))

        trend = await dashboard.monthly_trend(today=date(2026, 10, 17))

        assert [bucket.label for bucket in trend] == [
            "May 26",
            "Jun 26",
            "Jul 26",
            "Aug 26",
            "Sep 26",
            "Oct 26",
        ]
        assert trend[0].deposits == Decimal("70.00")
        assert trend[2].expenses == Decimal("30.00")
        assert trend[3].deposits == Decimal("0")
        assert trend[-1].deposits == Decimal("150.00")
        assert trend[-1].net == Decimal("150.00")

    @pytest.mark.asyncio
    async def test_window_crossing_new_year(self, dashboard):
        trend = await dashboard.monthly_trend(3, today=date(2027, 1, 5))

        assert [bucket.label for bucket in trend] == ["Nov 26", "Dec 26", "Jan 27"]

    @pytest.mark.asyncio
    async def test_rejects_empty_window(self, dashboard):
        with pytest.raises(ValidationError):
            await dashboard.monthly_trend(0)
