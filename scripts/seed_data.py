#!/usr/bin/env python3
"""Seed a COMEX Ledger store with demo data.

This script creates:
1. Bank accounts, expense categories and importers
2. Demo clients (each starting at a zero balance)
3. One process per client with a deposit and a couple of expenses

Every write goes through the services, so balances stay in step with the
deposits and expenses created here.

Usage:
    export SUPABASE_URL=http://localhost:54321 SUPABASE_KEY=...
    python scripts/seed_data.py
"""

import asyncio
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from comex_ledger.config import configure_logging
from comex_ledger.errors import ComexError
from comex_ledger.models import (
    BankAccountInput,
    ClientInput,
    DepositInput,
    ExpenseCategoryInput,
    ExpenseInput,
    ImporterInput,
    ProcessInput,
)
from comex_ledger.services import Services, build_services
from comex_ledger.store import StoreClient

# ============================================================================
# DEMO DATA
# ============================================================================

BANK_ACCOUNTS = [
    {"name": "Operating account", "bank": "Banco do Brasil", "agency": "1234-5", "account": "98765-0"},
    {"name": "Customs payments", "bank": "Itau", "agency": "0410", "account": "11223-4"},
]

EXPENSE_CATEGORIES = [
    {"name": "Import duties", "description": "II, IPI, PIS and COFINS on import"},
    {"name": "Freight", "description": "International and domestic freight"},
    {"name": "Port storage", "description": "Terminal storage and handling"},
    {"name": "Customs broker", "description": "Brokerage and dispatch fees"},
]

IMPORTERS = [
    {"name": "Pacific Components Ltd", "tax_id": None},
    {"name": "Rhein Maschinenbau GmbH", "tax_id": None},
]

CLIENTS = [
    {"code": "0058", "name": "Acme Trading", "tax_id": "12.345.678/0001-90"},
    {"code": "0100", "name": "Blue Harbor Imports", "tax_id": "98.765.432/0001-10"},
    {"code": "0217", "name": "Cerrado Agro", "tax_id": "45.678.901/0001-23"},
]

# Per client: (deposit, [expense amounts by category index])
MOVEMENTS = {
    "0058": (Decimal("15000.00"), [(0, Decimal("3450.00")), (1, Decimal("1200.00"))]),
    "0100": (Decimal("8000.00"), [(2, Decimal("640.00"))]),
    "0217": (Decimal("22500.00"), [(0, Decimal("9800.00")), (3, Decimal("950.00"))]),
}


async def create_lookups(services: Services) -> tuple[list, list, list]:
    """Create bank accounts, categories and importers, reusing existing ones."""
    accounts = await services.bank_accounts.list_all()
    if not accounts:
        for data in BANK_ACCOUNTS:
            accounts.append(await services.bank_accounts.create(BankAccountInput(**data)))
            print(f"    ✓ Bank account: {data['name']}")
    else:
        print(f"    ℹ {len(accounts)} bank account(s) exist")

    categories = await services.expense_categories.list_all()
    if not categories:
        for data in EXPENSE_CATEGORIES:
            categories.append(
                await services.expense_categories.create(ExpenseCategoryInput(**data))
            )
            print(f"    ✓ Category: {data['name']}")
    else:
        print(f"    ℹ {len(categories)} categor(ies) exist")

    importers = await services.importers.list_all()
    if not importers:
        for data in IMPORTERS:
            importers.append(await services.importers.create(ImporterInput(**data)))
            print(f"    ✓ Importer: {data['name']}")
    else:
        print(f"    ℹ {len(importers)} importer(s) exist")

    return accounts, categories, importers


async def seed_client(
    services: Services, data: dict, accounts: list, categories: list, importers: list
) -> None:
    """Create one client with a process, a deposit and its expenses."""
    if await services.clients.find_by_code(data["code"]):
        print(f"    ℹ Client exists: {data['code']} {data['name']}")
        return

    client = await services.clients.create_client(ClientInput(**data))
    print(f"    ✓ Client: {client.code} {client.name}")

    reference = f"{client.code}.{date.today():%m}0.{date.today():%Y}.01"
    try:
        process = await services.processes.create_process(
            ProcessInput(reference=reference, client_id=client.id, importer_id=importers[0].id)
        )
    except ComexError as e:
        print(f"    ✗ Process failed: {reference} - {e.message}")
        return
    print(f"      ✓ Process: {process.reference}")

    deposit_amount, expense_plan = MOVEMENTS[client.code]
    start = date.today() - timedelta(days=45)
    await services.deposits.create_deposit(
        DepositInput(
            client_id=client.id,
            bank_account_id=accounts[0].id,
            amount=deposit_amount,
            date=start,
            description="Advance for import costs",
        )
    )
    print(f"      ✓ Deposit: {deposit_amount:,.2f}")

    for offset, (category_index, amount) in enumerate(expense_plan, start=1):
        await services.expenses.create_expense(
            ExpenseInput(
                process_id=process.id,
                category_id=categories[category_index].id,
                bank_account_id=accounts[-1].id,
                amount=amount,
                date=start + timedelta(days=10 * offset),
            )
        )
        print(f"      ✓ Expense: {categories[category_index].name} {amount:,.2f}")


async def main() -> None:
    """Main entry point."""
    configure_logging(level="WARNING")

    print("=" * 60)
    print("COMEX Ledger - Demo Data Seeding")
    print("=" * 60)

    async with StoreClient() as store:
        print(f"\nStore URL: {store.base_url}")
        services = build_services(store)

        print("\n  [Lookups]")
        accounts, categories, importers = await create_lookups(services)

        print("\n  [Clients]")
        for data in CLIENTS:
            await seed_client(services, data, accounts, categories, importers)

        print("\n  [Reconcile]")
        drifts = await services.ledger.reconcile()
        if drifts:
            print(f"    ✗ {len(drifts)} client balance(s) out of step, run 'comex-ledger reconcile --fix'")
        else:
            print("    ✓ Balances match deposits and expenses")

    print("\n" + "=" * 60)
    print("SEEDING COMPLETE!")
    print("=" * 60)
    print("\nTry:")
    print("  comex-ledger dashboard")
    print("  comex-ledger report client-balance")


if __name__ == "__main__":
    asyncio.run(main())
