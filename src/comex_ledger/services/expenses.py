"""Expenses charged against processes, debited from the process owner."""

from datetime import date
from decimal import Decimal
from typing import Any

import structlog

from comex_ledger.errors import ValidationError
from comex_ledger.ledger import BalanceLedger
from comex_ledger.models import Expense, ExpenseInput, ensure_positive_amount, to_decimal
from comex_ledger.services.base import EntityService
from comex_ledger.store.query import EntityStore

logger = structlog.get_logger(__name__)

EXPENSE_WITH_RELATIONS = (
    "*, process:processes(*, client:clients(*), importer:importers(*)), "
    "category:expense_categories(*), bank_account:bank_accounts(*)"
)
EXPENSE_WITH_PROCESS = (
    "*, process:processes(*), category:expense_categories(*), bank_account:bank_accounts(*)"
)

EDITABLE_COLUMNS = frozenset(
    {"process_id", "category_id", "bank_account_id", "amount", "date", "description"}
)


class ExpenseService(EntityService):
    table = "expenses"
    label = "Expense"

    def __init__(self, store: EntityStore, ledger: BalanceLedger):
        super().__init__(store)
        self.ledger = ledger

    async def list_expenses(self) -> list[Expense]:
        rows = await (
            self._query().select(EXPENSE_WITH_RELATIONS).order("date", ascending=False).execute()
        )
        return [Expense.from_row(row) for row in rows]

    async def get_expense(self, expense_id: str) -> Expense:
        return Expense.from_row(await self._get_row(expense_id, EXPENSE_WITH_RELATIONS))

    async def list_by_process(self, process_id: str) -> list[Expense]:
        rows = await (
            self._query()
            .select(EXPENSE_WITH_PROCESS)
            .eq("process_id", process_id)
            .order("date", ascending=False)
            .execute()
        )
        return [Expense.from_row(row) for row in rows]

    async def search_expenses(
        self,
        process_id: str | None = None,
        client_id: str | None = None,
        category_id: str | None = None,
        bank_account_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Expense]:
        query = self._query().select(EXPENSE_WITH_RELATIONS)
        if process_id:
            query = query.eq("process_id", process_id)
        if client_id:
            process_ids = await self._process_ids_of(client_id)
            if not process_ids:
                return []
            query = query.in_("process_id", process_ids)
        if category_id:
            query = query.eq("category_id", category_id)
        if bank_account_id:
            query = query.eq("bank_account_id", bank_account_id)
        if start_date:
            query = query.gte("date", start_date)
        if end_date:
            query = query.lte("date", end_date)
        rows = await query.order("date", ascending=False).execute()
        return [Expense.from_row(row) for row in rows]

    async def _process_ids_of(self, client_id: str) -> list[str]:
        # Expenses carry no client column; ownership goes through the process
        rows = await self.store.table("processes").select("id").eq("client_id", client_id).execute()
        return [row["id"] for row in rows]

    async def total_expenses(
        self,
        process_id: str | None = None,
        category_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Decimal:
        query = self._query().select("amount")
        if process_id:
            query = query.eq("process_id", process_id)
        if category_id:
            query = query.eq("category_id", category_id)
        if start_date:
            query = query.gte("date", start_date)
        if end_date:
            query = query.lte("date", end_date)
        rows = await query.execute()
        return sum((to_decimal(row["amount"]) for row in rows), Decimal("0"))

    async def create_expense(self, data: ExpenseInput) -> Expense:
        """Record an expense and debit the client owning the process."""
        data.validate()
        owner_id = await self.ledger.owner_of_process(data.process_id)

        row = await self._query().insert(data.to_payload()).single().execute()
        expense = Expense.from_row(row)
        logger.info(
            "expense_created",
            expense_id=expense.id,
            process_id=expense.process_id,
            client_id=owner_id,
            amount=str(expense.amount),
        )

        await self.ledger.debit(owner_id, expense.amount, source="expense", source_id=expense.id)
        return expense

    async def update_expense(self, expense_id: str, **changes: Any) -> Expense:
        """Edit an expense; amount or process changes are re-booked on the ledger."""
        unknown = set(changes) - EDITABLE_COLUMNS
        if unknown:
            raise ValidationError(
                "Unknown expense fields", details={"fields": sorted(unknown)}
            )

        payload = dict(changes)
        if "amount" in payload:
            payload["amount"] = str(ensure_positive_amount(payload["amount"]))
        if isinstance(payload.get("date"), date):
            payload["date"] = payload["date"].isoformat()

        old = Expense.from_row(await self._get_row(expense_id))
        old_owner = await self.ledger.owner_of_process(old.process_id)
        new_owner = old_owner
        if "process_id" in payload and payload["process_id"] != old.process_id:
            new_owner = await self.ledger.owner_of_process(payload["process_id"])

        new = Expense.from_row(await self._update_row(expense_id, payload))
        logger.info("expense_updated", expense_id=expense_id, fields=sorted(changes))

        if new_owner == old_owner:
            delta = old.amount - new.amount
            if delta:
                await self.ledger.book(new_owner, delta, "expense", expense_id)
        else:
            await self.ledger.credit(old_owner, old.amount, source="expense", source_id=expense_id)
            await self.ledger.debit(new_owner, new.amount, source="expense", source_id=expense_id)
        return new

    async def delete_expense(self, expense_id: str) -> None:
        """Remove an expense and give its amount back to the process owner."""
        expense = Expense.from_row(await self._get_row(expense_id))
        owner_id = await self.ledger.owner_of_process(expense.process_id)
        await self._delete_row(expense_id)
        await self.ledger.credit(owner_id, expense.amount, source="expense", source_id=expense_id)
