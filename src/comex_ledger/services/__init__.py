"""Domain services, one per entity, sharing a single balance ledger."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from comex_ledger.ledger import BalanceLedger
from comex_ledger.services.clients import ClientService
from comex_ledger.services.deposits import DepositService
from comex_ledger.services.expenses import ExpenseService
from comex_ledger.services.lookups import (
    BankAccountService,
    ExpenseCategoryService,
    ImporterService,
)
from comex_ledger.services.processes import ProcessService
from comex_ledger.store.query import EntityStore


@dataclass
class Services:
    """Every service bound to one store."""

    store: EntityStore
    ledger: BalanceLedger
    clients: ClientService
    processes: ProcessService
    deposits: DepositService
    expenses: ExpenseService
    bank_accounts: BankAccountService
    expense_categories: ExpenseCategoryService
    importers: ImporterService


def build_services(
    store: EntityStore, clock: Callable[[], datetime] | None = None
) -> Services:
    """Wire the services over ``store``."""
    ledger = BalanceLedger(store)
    processes = ProcessService(store, clock=clock) if clock else ProcessService(store)
    return Services(
        store=store,
        ledger=ledger,
        clients=ClientService(store),
        processes=processes,
        deposits=DepositService(store, ledger),
        expenses=ExpenseService(store, ledger),
        bank_accounts=BankAccountService(store),
        expense_categories=ExpenseCategoryService(store),
        importers=ImporterService(store),
    )


__all__ = [
    "Services",
    "build_services",
    "BankAccountService",
    "ClientService",
    "DepositService",
    "ExpenseCategoryService",
    "ExpenseService",
    "ImporterService",
    "ProcessService",
]
