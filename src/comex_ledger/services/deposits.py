"""Client deposits. Every write is mirrored on the client balance."""

from datetime import date
from decimal import Decimal
from typing import Any

import structlog

from comex_ledger.errors import ValidationError
from comex_ledger.ledger import BalanceLedger
from comex_ledger.models import Deposit, DepositInput, ensure_positive_amount, to_decimal
from comex_ledger.services.base import EntityService
from comex_ledger.store.query import EntityStore

logger = structlog.get_logger(__name__)

DEPOSIT_WITH_RELATIONS = "*, client:clients(*), bank_account:bank_accounts(*)"

EDITABLE_COLUMNS = frozenset({"client_id", "bank_account_id", "amount", "date", "description"})


class DepositService(EntityService):
    table = "deposits"
    label = "Deposit"

    def __init__(self, store: EntityStore, ledger: BalanceLedger):
        super().__init__(store)
        self.ledger = ledger

    async def list_deposits(self) -> list[Deposit]:
        rows = await (
            self._query().select(DEPOSIT_WITH_RELATIONS).order("date", ascending=False).execute()
        )
        return [Deposit.from_row(row) for row in rows]

    async def get_deposit(self, deposit_id: str) -> Deposit:
        return Deposit.from_row(await self._get_row(deposit_id, DEPOSIT_WITH_RELATIONS))

    async def search_deposits(
        self,
        client_id: str | None = None,
        bank_account_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Deposit]:
        query = self._query().select(DEPOSIT_WITH_RELATIONS)
        if client_id:
            query = query.eq("client_id", client_id)
        if bank_account_id:
            query = query.eq("bank_account_id", bank_account_id)
        if start_date:
            query = query.gte("date", start_date)
        if end_date:
            query = query.lte("date", end_date)
        rows = await query.order("date", ascending=False).execute()
        return [Deposit.from_row(row) for row in rows]

    async def total_deposits(
        self,
        client_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Decimal:
        query = self._query().select("amount")
        if client_id:
            query = query.eq("client_id", client_id)
        if start_date:
            query = query.gte("date", start_date)
        if end_date:
            query = query.lte("date", end_date)
        rows = await query.execute()
        return sum((to_decimal(row["amount"]) for row in rows), Decimal("0"))

    async def create_deposit(self, data: DepositInput) -> Deposit:
        """Record a deposit and credit the client."""
        data.validate()
        row = await self._query().insert(data.to_payload()).single().execute()
        deposit = Deposit.from_row(row)
        logger.info(
            "deposit_created",
            deposit_id=deposit.id,
            client_id=deposit.client_id,
            amount=str(deposit.amount),
        )

        await self.ledger.credit(
            deposit.client_id, deposit.amount, source="deposit", source_id=deposit.id
        )
        return deposit

    async def update_deposit(self, deposit_id: str, **changes: Any) -> Deposit:
        """Edit a deposit; amount or client changes are re-booked on the ledger."""
        unknown = set(changes) - EDITABLE_COLUMNS
        if unknown:
            raise ValidationError(
                "Unknown deposit fields", details={"fields": sorted(unknown)}
            )

        payload = dict(changes)
        if "amount" in payload:
            payload["amount"] = str(ensure_positive_amount(payload["amount"]))
        if isinstance(payload.get("date"), date):
            payload["date"] = payload["date"].isoformat()

        old = Deposit.from_row(await self._get_row(deposit_id))
        new = Deposit.from_row(await self._update_row(deposit_id, payload))
        logger.info("deposit_updated", deposit_id=deposit_id, fields=sorted(changes))

        if new.client_id == old.client_id:
            delta = new.amount - old.amount
            if delta:
                await self.ledger.book(new.client_id, delta, "deposit", deposit_id)
        else:
            await self.ledger.debit(old.client_id, old.amount, source="deposit", source_id=deposit_id)
            await self.ledger.credit(new.client_id, new.amount, source="deposit", source_id=deposit_id)
        return new

    async def delete_deposit(self, deposit_id: str) -> None:
        """Remove a deposit and take its amount back off the client."""
        deposit = Deposit.from_row(await self._get_row(deposit_id))
        await self._delete_row(deposit_id)
        await self.ledger.debit(
            deposit.client_id, deposit.amount, source="deposit", source_id=deposit_id
        )
