"""Deposits and expenses merged into one chronological feed."""

from datetime import date

from comex_ledger.models import Transaction, TransactionType
from comex_ledger.services.deposits import DepositService
from comex_ledger.services.expenses import ExpenseService


def merge_transactions(transactions: list[Transaction]) -> list[Transaction]:
    """Newest first; same-day entries fall back to creation time."""
    return sorted(
        transactions,
        key=lambda t: (t.date, t.created_at.timestamp() if t.created_at else 0.0),
        reverse=True,
    )


class TransactionFeed:
    def __init__(self, deposits: DepositService, expenses: ExpenseService):
        self.deposits = deposits
        self.expenses = expenses

    async def list_transactions(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        kind: TransactionType | None = None,
        client_id: str | None = None,
    ) -> list[Transaction]:
        items: list[Transaction] = []
        if kind in (None, TransactionType.DEPOSIT):
            deposits = await self.deposits.search_deposits(
                client_id=client_id, start_date=start_date, end_date=end_date
            )
            items.extend(Transaction.from_deposit(d) for d in deposits)
        if kind in (None, TransactionType.EXPENSE):
            expenses = await self.expenses.search_expenses(
                client_id=client_id, start_date=start_date, end_date=end_date
            )
            items.extend(Transaction.from_expense(e) for e in expenses)
        return merge_transactions(items)
