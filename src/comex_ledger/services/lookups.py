"""Bank accounts, expense categories and importers."""

from comex_ledger.models import (
    BankAccount,
    BankAccountInput,
    ExpenseCategory,
    ExpenseCategoryInput,
    Importer,
    ImporterInput,
)
from comex_ledger.services.base import LookupService


class BankAccountService(LookupService[BankAccount, BankAccountInput]):
    table = "bank_accounts"
    label = "Bank account"
    model = BankAccount


class ExpenseCategoryService(LookupService[ExpenseCategory, ExpenseCategoryInput]):
    table = "expense_categories"
    label = "Expense category"
    model = ExpenseCategory


class ImporterService(LookupService[Importer, ImporterInput]):
    table = "importers"
    label = "Importer"
    model = Importer
    column_names = {"tax_id": "cnpj"}
