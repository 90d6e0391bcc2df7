"""Management reports as plain rows and totals.

Turning a ``Report`` into a spreadsheet or PDF is left to whatever sink the
caller plugs in.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal

from comex_ledger.models import ProcessStatus, Report, TransactionType
from comex_ledger.services import Services
from comex_ledger.transactions import TransactionFeed

STATUS_LABELS = {
    ProcessStatus.OPEN: "Open",
    ProcessStatus.FINALIZED: "Finalized",
    ProcessStatus.BILLED: "Billed",
}


def _day(value) -> str:
    return value.date().isoformat() if value else "-"


class ReportBuilder:
    def __init__(self, services: Services):
        self.services = services
        self.feed = TransactionFeed(services.deposits, services.expenses)

    async def client_balance_report(self) -> Report:
        clients = await self.services.clients.list_clients()
        report = Report(
            title="Client balances",
            columns=["Code", "Name", "Tax ID", "Balance", "Status"],
        )
        total = Decimal("0")
        for client in clients:
            report.rows.append(
                [
                    client.code,
                    client.name,
                    client.tax_id or "-",
                    client.balance,
                    "Active" if client.active else "Inactive",
                ]
            )
            total += client.balance
        report.totals["balance"] = total
        return report

    async def process_balance_report(self, status: ProcessStatus | None = None) -> Report:
        processes = await self.services.processes.search_processes(status=status)
        expenses = await self.services.expenses.search_expenses()
        spent: dict[str, Decimal] = defaultdict(Decimal)
        for expense in expenses:
            spent[expense.process_id] += expense.amount

        report = Report(
            title="Process expenses",
            columns=[
                "Reference",
                "Client",
                "Client code",
                "Status",
                "Expenses",
                "Created",
                "Finalized",
                "Billed",
            ],
        )
        total = Decimal("0")
        for process in processes:
            amount = spent.get(process.id, Decimal("0"))
            report.rows.append(
                [
                    process.reference,
                    process.client.name if process.client else "-",
                    process.client.code if process.client else "-",
                    STATUS_LABELS[process.status],
                    amount,
                    _day(process.created_at),
                    _day(process.finalized_at),
                    _day(process.billed_at),
                ]
            )
            total += amount
        report.totals["expenses"] = total
        return report

    async def transactions_report(
        self, start_date: date | None = None, end_date: date | None = None
    ) -> Report:
        transactions = await self.feed.list_transactions(start_date=start_date, end_date=end_date)
        report = Report(
            title="Transactions",
            columns=["Date", "Type", "Client / Process", "Category", "Bank account", "Description", "Amount"],
        )
        deposits = Decimal("0")
        expenses = Decimal("0")
        for t in transactions:
            if t.type == TransactionType.DEPOSIT:
                party = f"{t.client.code} - {t.client.name}" if t.client else "-"
                deposits += t.amount
            else:
                party = t.process.reference if t.process else "-"
                if t.client:
                    party = f"{party} - {t.client.name}"
                expenses += t.amount
            report.rows.append(
                [
                    t.date.isoformat(),
                    "Deposit" if t.type == TransactionType.DEPOSIT else "Expense",
                    party,
                    t.category.name if t.category else "-",
                    t.bank_account.name if t.bank_account else "-",
                    t.description or "-",
                    t.signed_amount,
                ]
            )
        report.totals.update(deposits=deposits, expenses=expenses, net=deposits - expenses)
        return report

    async def client_statement_report(
        self,
        client_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Report:
        """Deposits and expenses of one client, with the balance they add up to."""
        client = await self.services.clients.get_client(client_id)
        transactions = await self.feed.list_transactions(
            start_date=start_date, end_date=end_date, client_id=client_id
        )
        report = Report(
            title=f"Statement - {client.code} {client.name}",
            columns=["Date", "Type", "Process", "Category", "Bank account", "Description", "Amount"],
        )
        deposits = Decimal("0")
        expenses = Decimal("0")
        for t in transactions:
            if t.type == TransactionType.DEPOSIT:
                deposits += t.amount
            else:
                expenses += t.amount
            report.rows.append(
                [
                    t.date.isoformat(),
                    "Deposit" if t.type == TransactionType.DEPOSIT else "Expense",
                    t.process.reference if t.process else "-",
                    t.category.name if t.category else "-",
                    t.bank_account.name if t.bank_account else "-",
                    t.description or "-",
                    t.signed_amount,
                ]
            )
        report.totals.update(
            deposits=deposits,
            expenses=expenses,
            net=deposits - expenses,
            balance=client.balance,
        )
        return report

    async def unbilled_report(self) -> Report:
        processes = await self.services.processes.list_finalized_without_billing()
        report = Report(
            title="Finalized processes awaiting billing",
            columns=["Reference", "Client", "Importer", "Finalized", "Notes"],
        )
        for process in processes:
            report.rows.append(
                [
                    process.reference,
                    process.client.name if process.client else "-",
                    process.importer.name if process.importer else "-",
                    _day(process.finalized_at),
                    process.billing_notes or "-",
                ]
            )
        return report
