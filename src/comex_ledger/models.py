"""Entity records and form inputs.

Records are built from store rows (``from_row``); inputs validate themselves
and render the insert payload (``to_payload``). Amounts travel as strings so
the store's numeric columns never see a float.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from comex_ledger.errors import ValidationError

CLIENT_CODE_LENGTH = 4


class ProcessStatus(str, Enum):
    """Lifecycle of an import process: open -> finalized -> billed."""

    OPEN = "open"
    FINALIZED = "finalized"
    BILLED = "billed"


class TransactionType(str, Enum):
    """Kinds of money movement shown in the unified ledger view."""

    DEPOSIT = "deposit"
    EXPENSE = "expense"


# === Parsing helpers ===


def to_decimal(value: Any) -> Decimal:
    """Coerce a store or user value into a Decimal."""
    if value is None or value == "":
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"Invalid amount: {value!r}") from e
    # NaN and Infinity would poison every balance they touch
    if not result.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}", details={"amount": str(value)})
    return result


def parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def ensure_positive_amount(amount: Any) -> Decimal:
    """Return ``amount`` as a Decimal, rejecting zero and negatives."""
    value = to_decimal(amount)
    if value <= 0:
        raise ValidationError(
            "Amount must be greater than zero", details={"amount": str(value)}
        )
    return value


def validate_client_code(code: Any) -> str:
    """Return the stripped client code, rejecting anything but four ASCII digits.

    The code is the first group of every process reference.
    """
    text = str(code or "").strip()
    if len(text) != CLIENT_CODE_LENGTH or not all(ch in "0123456789" for ch in text):
        raise ValidationError(
            f"Client code must be exactly {CLIENT_CODE_LENGTH} digits",
            details={"code": code},
        )
    return text


def _require(value: Any, field_name: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field_name} is required", details={"field": field_name})


# === Records ===


@dataclass
class Client:
    """A trading client holding a running deposit balance."""

    id: str
    code: str
    name: str
    balance: Decimal = Decimal("0")
    tax_id: str | None = None
    email: str | None = None
    phone: str | None = None
    active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Client":
        return cls(
            id=str(row["id"]),
            code=row["code"],
            name=row["name"],
            balance=to_decimal(row.get("balance")),
            tax_id=row.get("cnpj"),
            email=row.get("email"),
            phone=row.get("phone"),
            active=bool(row.get("active", True)),
            created_at=parse_datetime(row.get("created_at")),
            updated_at=parse_datetime(row.get("updated_at")),
        )


@dataclass
class Importer:
    id: str
    name: str
    tax_id: str | None = None
    active: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Importer":
        return cls(
            id=str(row["id"]),
            name=row["name"],
            tax_id=row.get("cnpj"),
            active=bool(row.get("active", True)),
            created_at=parse_datetime(row.get("created_at")),
        )


@dataclass
class BankAccount:
    id: str
    name: str
    bank: str | None = None
    agency: str | None = None
    account: str | None = None
    active: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "BankAccount":
        return cls(
            id=str(row["id"]),
            name=row["name"],
            bank=row.get("bank"),
            agency=row.get("agency"),
            account=row.get("account"),
            active=bool(row.get("active", True)),
            created_at=parse_datetime(row.get("created_at")),
        )


@dataclass
class ExpenseCategory:
    id: str
    name: str
    description: str | None = None
    active: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ExpenseCategory":
        return cls(
            id=str(row["id"]),
            name=row["name"],
            description=row.get("description"),
            active=bool(row.get("active", True)),
            created_at=parse_datetime(row.get("created_at")),
        )


@dataclass
class Process:
    """An import process identified by its structured reference."""

    id: str
    reference: str
    client_id: str
    status: ProcessStatus = ProcessStatus.OPEN
    importer_id: str | None = None
    finalized_at: datetime | None = None
    billed_at: datetime | None = None
    billing_notes: str | None = None
    created_at: datetime | None = None
    client: Client | None = None
    importer: Importer | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Process":
        client = row.get("client")
        importer = row.get("importer")
        return cls(
            id=str(row["id"]),
            reference=row["reference"],
            client_id=str(row["client_id"]),
            status=ProcessStatus(row.get("status") or ProcessStatus.OPEN.value),
            importer_id=row.get("importer_id"),
            finalized_at=parse_datetime(row.get("finalized_at")),
            billed_at=parse_datetime(row.get("billed_at")),
            billing_notes=row.get("billing_notes"),
            created_at=parse_datetime(row.get("created_at")),
            client=Client.from_row(client) if isinstance(client, dict) else None,
            importer=Importer.from_row(importer) if isinstance(importer, dict) else None,
        )


@dataclass
class Deposit:
    """Money received from a client into one of the bank accounts."""

    id: str
    client_id: str
    bank_account_id: str
    amount: Decimal
    date: date
    description: str | None = None
    created_at: datetime | None = None
    client: Client | None = None
    bank_account: BankAccount | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Deposit":
        client = row.get("client")
        bank_account = row.get("bank_account")
        return cls(
            id=str(row["id"]),
            client_id=str(row["client_id"]),
            bank_account_id=str(row["bank_account_id"]),
            amount=to_decimal(row["amount"]),
            date=parse_date(row["date"]),
            description=row.get("description"),
            created_at=parse_datetime(row.get("created_at")),
            client=Client.from_row(client) if isinstance(client, dict) else None,
            bank_account=(
                BankAccount.from_row(bank_account) if isinstance(bank_account, dict) else None
            ),
        )


@dataclass
class Expense:
    """Money paid on behalf of a client, charged against one process."""

    id: str
    process_id: str
    category_id: str
    bank_account_id: str
    amount: Decimal
    date: date
    description: str | None = None
    created_at: datetime | None = None
    process: Process | None = None
    category: ExpenseCategory | None = None
    bank_account: BankAccount | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Expense":
        process = row.get("process")
        category = row.get("category")
        bank_account = row.get("bank_account")
        return cls(
            id=str(row["id"]),
            process_id=str(row["process_id"]),
            category_id=str(row["category_id"]),
            bank_account_id=str(row["bank_account_id"]),
            amount=to_decimal(row["amount"]),
            date=parse_date(row["date"]),
            description=row.get("description"),
            created_at=parse_datetime(row.get("created_at")),
            process=Process.from_row(process) if isinstance(process, dict) else None,
            category=ExpenseCategory.from_row(category) if isinstance(category, dict) else None,
            bank_account=(
                BankAccount.from_row(bank_account) if isinstance(bank_account, dict) else None
            ),
        )


@dataclass
class Transaction:
    """Deposit or expense unified for chronological display. Not persisted."""

    id: str
    type: TransactionType
    amount: Decimal
    date: date
    description: str | None = None
    client: Client | None = None
    process: Process | None = None
    category: ExpenseCategory | None = None
    bank_account: BankAccount | None = None
    created_at: datetime | None = None

    @classmethod
    def from_deposit(cls, deposit: Deposit) -> "Transaction":
        return cls(
            id=deposit.id,
            type=TransactionType.DEPOSIT,
            amount=deposit.amount,
            date=deposit.date,
            description=deposit.description,
            client=deposit.client,
            bank_account=deposit.bank_account,
            created_at=deposit.created_at,
        )

    @classmethod
    def from_expense(cls, expense: Expense) -> "Transaction":
        return cls(
            id=expense.id,
            type=TransactionType.EXPENSE,
            amount=expense.amount,
            date=expense.date,
            description=expense.description,
            client=expense.process.client if expense.process else None,
            process=expense.process,
            category=expense.category,
            bank_account=expense.bank_account,
            created_at=expense.created_at,
        )

    @property
    def signed_amount(self) -> Decimal:
        """Effect on the client balance."""
        return self.amount if self.type == TransactionType.DEPOSIT else -self.amount


# === Inputs ===


@dataclass
class ClientInput:
    code: str
    name: str
    tax_id: str | None = None
    email: str | None = None
    phone: str | None = None
    active: bool = True

    def validate(self) -> None:
        _require(self.code, "code")
        _require(self.name, "name")
        validate_client_code(self.code)

    def to_payload(self) -> dict[str, Any]:
        # New clients always start with nothing on deposit
        return {
            "code": self.code.strip(),
            "name": self.name.strip(),
            "cnpj": self.tax_id,
            "email": self.email,
            "phone": self.phone,
            "active": self.active,
            "balance": "0.00",
        }


@dataclass
class ProcessInput:
    reference: str
    client_id: str
    importer_id: str | None = None
    billing_notes: str | None = None

    def validate(self) -> None:
        _require(self.reference, "reference")
        _require(self.client_id, "client_id")

    def to_payload(self) -> dict[str, Any]:
        return {
            "reference": self.reference,
            "client_id": self.client_id,
            "importer_id": self.importer_id,
            "billing_notes": self.billing_notes,
            "status": ProcessStatus.OPEN.value,
        }


@dataclass
class DepositInput:
    client_id: str
    bank_account_id: str
    amount: Decimal
    date: date
    description: str | None = None

    def validate(self) -> None:
        _require(self.client_id, "client_id")
        _require(self.bank_account_id, "bank_account_id")
        _require(self.date, "date")
        self.amount = ensure_positive_amount(self.amount)

    def to_payload(self) -> dict[str, Any]:
        return {
            "client_id": self.client_id,
            "bank_account_id": self.bank_account_id,
            "amount": str(self.amount),
            "date": self.date.isoformat(),
            "description": self.description,
        }


@dataclass
class ExpenseInput:
    process_id: str
    category_id: str
    bank_account_id: str
    amount: Decimal
    date: date
    description: str | None = None

    def validate(self) -> None:
        _require(self.process_id, "process_id")
        _require(self.category_id, "category_id")
        _require(self.bank_account_id, "bank_account_id")
        _require(self.date, "date")
        self.amount = ensure_positive_amount(self.amount)

    def to_payload(self) -> dict[str, Any]:
        return {
            "process_id": self.process_id,
            "category_id": self.category_id,
            "bank_account_id": self.bank_account_id,
            "amount": str(self.amount),
            "date": self.date.isoformat(),
            "description": self.description,
        }


@dataclass
class BankAccountInput:
    name: str
    bank: str | None = None
    agency: str | None = None
    account: str | None = None
    active: bool = True

    def validate(self) -> None:
        _require(self.name, "name")

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name.strip(),
            "bank": self.bank,
            "agency": self.agency,
            "account": self.account,
            "active": self.active,
        }


@dataclass
class ExpenseCategoryInput:
    name: str
    description: str | None = None
    active: bool = True

    def validate(self) -> None:
        _require(self.name, "name")

    def to_payload(self) -> dict[str, Any]:
        return {"name": self.name.strip(), "description": self.description, "active": self.active}


@dataclass
class ImporterInput:
    name: str
    tax_id: str | None = None
    active: bool = True

    def validate(self) -> None:
        _require(self.name, "name")

    def to_payload(self) -> dict[str, Any]:
        return {"name": self.name.strip(), "cnpj": self.tax_id, "active": self.active}


@dataclass
class BalanceDrift:
    """Difference between a stored balance and the one derived from history."""

    client_id: str
    code: str
    stored: Decimal
    derived: Decimal
    repaired: bool = False

    @property
    def difference(self) -> Decimal:
        return self.stored - self.derived


@dataclass
class Report:
    """Rows and totals ready for an external spreadsheet/PDF sink."""

    title: str
    columns: list[str]
    rows: list[list[Any]] = field(default_factory=list)
    totals: dict[str, Decimal] = field(default_factory=dict)
