"""Tests for deposits and their effect on client balances."""

from datetime import date
from decimal import Decimal

import pytest

from comex_ledger.errors import NotFoundError, StoreError, ValidationError
from comex_ledger.models import DepositInput
from fakes import make_bank_account, make_client, make_deposit


async def _balance(services, client) -> Decimal:
    return (await services.clients.get_client(client.id)).balance


class TestCreateDeposit:
    @pytest.mark.asyncio
    async def test_credits_the_client(self, services):
        client = await make_client(services)
        account = await make_bank_account(services)

        deposit = await make_deposit(services, client, account, "15000.00")

        assert deposit.amount == Decimal("15000.00")
        assert deposit.date == date(2026, 10, 1)
        assert await _balance(services, client) == Decimal("15000.00")

    @pytest.mark.asyncio
    async def test_amount_is_sent_as_string(self, services, store):
        client = await make_client(services)
        account = await make_bank_account(services)

        await make_deposit(services, client, account, "0.10")

        assert store.rows("deposits")[0]["amount"] == "0.10"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    async def test_rejects_non_positive_amount(self, services, store, amount):
        client = await make_client(services)
        account = await make_bank_account(services)

        with pytest.raises(ValidationError):
            await make_deposit(services, client, account, amount)

        assert store.rows("deposits") == []
        assert await _balance(services, client) == Decimal("0")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity"])
    async def test_rejects_non_finite_amount(self, services, store, amount):
        client = await make_client(services)
        account = await make_bank_account(services)

        with pytest.raises(ValidationError, match="Invalid amount"):
            await make_deposit(services, client, account, amount)

        assert store.rows("deposits") == []
        assert await _balance(services, client) == Decimal("0")

    @pytest.mark.asyncio
    async def test_requires_bank_account(self, services):
        client = await make_client(services)

        with pytest.raises(ValidationError, match="bank_account_id"):
            await services.deposits.create_deposit(
                DepositInput(
                    client_id=client.id,
                    bank_account_id="",
                    amount=Decimal("10"),
                    date=date(2026, 10, 1),
                )
            )

    @pytest.mark.asyncio
    async def test_ledger_failure_propagates_after_insert(self, services, store):
        client = await make_client(services)
        account = await make_bank_account(services)
        store.fail_next("clients", "PATCH", StoreError("connection reset"))

        with pytest.raises(StoreError):
            await make_deposit(services, client, account, "100.00")

        # The deposit stays; reconcile finds the gap
        assert len(store.rows("deposits")) == 1
        drifts = await services.ledger.reconcile(fix=True)
        assert drifts[0].derived == Decimal("100.00")
        assert await _balance(services, client) == Decimal("100.00")


class TestUpdateDeposit:
    @pytest.mark.asyncio
    async def test_amount_change_books_the_difference(self, services):
        client = await make_client(services)
        account = await make_bank_account(services)
        deposit = await make_deposit(services, client, account, "1000.00")

        updated = await services.deposits.update_deposit(deposit.id, amount=Decimal("750.00"))

        assert updated.amount == Decimal("750.00")
        assert await _balance(services, client) == Decimal("750.00")

    @pytest.mark.asyncio
    async def test_nan_amount_leaves_deposit_and_balance(self, services, store):
        client = await make_client(services)
        account = await make_bank_account(services)
        deposit = await make_deposit(services, client, account, "1000.00")

        with pytest.raises(ValidationError, match="Invalid amount"):
            await services.deposits.update_deposit(deposit.id, amount="NaN")

        assert store.rows("deposits")[0]["amount"] == "1000.00"
        assert await _balance(services, client) == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_client_change_moves_the_amount(self, services):
        first = await make_client(services, code="0001", name="First")
        second = await make_client(services, code="0002", name="Second")
        account = await make_bank_account(services)
        deposit = await make_deposit(services, first, account, "300.00")

        await services.deposits.update_deposit(deposit.id, client_id=second.id)

        assert await _balance(services, first) == Decimal("0.00")
        assert await _balance(services, second) == Decimal("300.00")

    @pytest.mark.asyncio
    async def test_description_change_leaves_balance(self, services, store):
        client = await make_client(services)
        account = await make_bank_account(services)
        deposit = await make_deposit(services, client, account, "10.00")
        patches_before = sum(1 for q in store.queries if q.table == "clients" and q.method == "PATCH")

        await services.deposits.update_deposit(deposit.id, description="Wire 123")

        patches_after = sum(1 for q in store.queries if q.table == "clients" and q.method == "PATCH")
        assert patches_after == patches_before

    @pytest.mark.asyncio
    async def test_rejects_unknown_fields(self, services):
        with pytest.raises(ValidationError, match="Unknown deposit fields"):
            await services.deposits.update_deposit("any", balance="1")


class TestDeleteDeposit:
    @pytest.mark.asyncio
    async def test_debits_the_client(self, services, store):
        client = await make_client(services)
        account = await make_bank_account(services)
        deposit = await make_deposit(services, client, account, "15000.00")

        await services.deposits.delete_deposit(deposit.id)

        assert store.rows("deposits") == []
        assert await _balance(services, client) == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_missing_deposit(self, services):
        with pytest.raises(NotFoundError, match="Deposit gone not found"):
            await services.deposits.delete_deposit("gone")


class TestQueries:
    @pytest.mark.asyncio
    async def test_search_and_totals(self, services):
        client = await make_client(services)
        account = await make_bank_account(services)
        await make_deposit(services, client, account, "100.00", date(2026, 9, 1))
        await make_deposit(services, client, account, "200.00", date(2026, 10, 5))

        october = await services.deposits.search_deposits(start_date=date(2026, 10, 1))
        everything = await services.deposits.list_deposits()

        assert [d.amount for d in october] == [Decimal("200.00")]
        assert [d.date for d in everything] == [date(2026, 10, 5), date(2026, 9, 1)]
        assert everything[0].client.code == "0058"
        assert everything[0].bank_account.name == "Main account"
        assert await services.deposits.total_deposits(client_id=client.id) == Decimal("300.00")
