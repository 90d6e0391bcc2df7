"""Action executor bridging a presentation layer to the domain services.

The presentation layer names an action and passes its arguments; the executor
runs the matching service call and reports the outcome as a notification.
Notifications go to whatever ``notifier`` the caller injects (a toast queue,
a terminal, a test list), so the services themselves stay free of UI
concerns.
"""

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

import structlog

from comex_ledger.errors import ComexError, ValidationError
from comex_ledger.models import (
    BankAccountInput,
    ClientInput,
    DepositInput,
    ExpenseCategoryInput,
    ExpenseInput,
    ImporterInput,
    ProcessInput,
)
from comex_ledger.reference import classify_reference
from comex_ledger.services import Services

logger = structlog.get_logger(__name__)


class ActionExecutionError(ComexError):
    """Unknown action or bad arguments."""

    def __init__(self, action: str, message: str, details: Any = None):
        super().__init__(f"Action '{action}' failed: {message}", details=details)
        self.action = action


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass
class Notification:
    """A transient, dismissible message for the user."""

    level: NotificationLevel
    message: str
    action: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "action": self.action,
            "timestamp": self.timestamp.isoformat(),
        }


Notifier = Callable[[Notification], None]

SUCCESS_MESSAGES = {
    "create_client": "Client created",
    "update_client": "Client updated",
    "delete_client": "Client deleted",
    "create_process": "Process created",
    "update_process": "Process updated",
    "delete_process": "Process deleted",
    "finalize_process": "Process finalized",
    "bill_process": "Process billed",
    "create_deposit": "Deposit recorded",
    "delete_deposit": "Deposit deleted",
    "create_expense": "Expense recorded",
    "delete_expense": "Expense deleted",
    "create_bank_account": "Bank account created",
    "create_expense_category": "Expense category created",
    "create_importer": "Importer created",
    "reconcile_balances": "Balances reconciled",
}


def _as_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value!r}", details={"date": value}) from e


class ActionExecutor:
    """Executes named actions against the services."""

    def __init__(self, services: Services, notifier: Notifier | None = None):
        self.services = services
        self._notifier = notifier
        self._handlers: dict[str, Any] = {
            # Clients
            "create_client": self._create_client,
            "update_client": self._update_client,
            "delete_client": self._delete_client,
            # Processes
            "check_reference": self._check_reference,
            "create_process": self._create_process,
            "update_process": self._update_process,
            "delete_process": self._delete_process,
            "finalize_process": self._finalize_process,
            "bill_process": self._bill_process,
            # Money
            "create_deposit": self._create_deposit,
            "delete_deposit": self._delete_deposit,
            "create_expense": self._create_expense,
            "delete_expense": self._delete_expense,
            # Lookups
            "create_bank_account": self._create_bank_account,
            "create_expense_category": self._create_expense_category,
            "create_importer": self._create_importer,
            # Maintenance
            "reconcile_balances": self._reconcile_balances,
        }

    @property
    def actions(self) -> list[str]:
        return sorted(self._handlers)

    def _notify(self, level: NotificationLevel, message: str, action: str) -> None:
        if self._notifier is not None:
            self._notifier(Notification(level=level, message=message, action=action))

    async def execute(self, action: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run an action and return ``{"success": ..., "result" | "error": ...}``."""
        handler = self._handlers.get(action)
        if not handler:
            raise ActionExecutionError(action, f"Unknown action: {action}")

        arguments = arguments or {}
        logger.info("executing_action", action=action, args=arguments)

        try:
            inspect.signature(handler).bind(**arguments)
        except TypeError as e:
            raise ActionExecutionError(action, str(e), details={"arguments": sorted(arguments)}) from e

        try:
            result = await handler(**arguments)
        except ComexError as e:
            logger.warning(
                "action_failed",
                action=action,
                error_type=type(e).__name__,
                status=e.status_code,
                details=e.details,
            )
            self._notify(NotificationLevel.ERROR, e.message, action)
            return {
                "success": False,
                "error": e.message,
                "error_type": type(e).__name__,
                "details": e.details,
            }

        logger.info("action_executed", action=action, success=True)
        message = SUCCESS_MESSAGES.get(action)
        if message:
            self._notify(NotificationLevel.SUCCESS, message, action)
        return {"success": True, "result": result}

    # === Client Handlers ===

    async def _create_client(self, **data: Any) -> Any:
        return await self.services.clients.create_client(ClientInput(**data))

    async def _update_client(self, client_id: str, **changes: Any) -> Any:
        return await self.services.clients.update_client(client_id, **changes)

    async def _delete_client(self, client_id: str) -> None:
        await self.services.clients.delete_client(client_id)

    # === Process Handlers ===

    async def _check_reference(self, reference: str) -> Any:
        lookup = await classify_reference(self.services.store, reference)
        if lookup.offer_client_creation:
            self._notify(
                NotificationLevel.INFO,
                f"Client {lookup.code} is not registered yet",
                "check_reference",
            )
        return lookup

    async def _create_process(self, **data: Any) -> Any:
        return await self.services.processes.create_process(ProcessInput(**data))

    async def _update_process(self, process_id: str, **changes: Any) -> Any:
        return await self.services.processes.update_process(process_id, **changes)

    async def _delete_process(self, process_id: str) -> None:
        await self.services.processes.delete_process(process_id)

    async def _finalize_process(self, process_id: str, notes: str | None = None) -> Any:
        return await self.services.processes.finalize_process(process_id, notes)

    async def _bill_process(self, process_id: str, notes: str | None = None) -> Any:
        return await self.services.processes.bill_process(process_id, notes)

    # === Money Handlers ===

    async def _create_deposit(
        self,
        client_id: str,
        bank_account_id: str,
        amount: Decimal | str,
        date: date | str,
        description: str | None = None,
    ) -> Any:
        return await self.services.deposits.create_deposit(
            DepositInput(
                client_id=client_id,
                bank_account_id=bank_account_id,
                amount=amount,
                date=_as_date(date),
                description=description,
            )
        )

    async def _delete_deposit(self, deposit_id: str) -> None:
        await self.services.deposits.delete_deposit(deposit_id)

    async def _create_expense(
        self,
        process_id: str,
        category_id: str,
        bank_account_id: str,
        amount: Decimal | str,
        date: date | str,
        description: str | None = None,
    ) -> Any:
        return await self.services.expenses.create_expense(
            ExpenseInput(
                process_id=process_id,
                category_id=category_id,
                bank_account_id=bank_account_id,
                amount=amount,
                date=_as_date(date),
                description=description,
            )
        )

    async def _delete_expense(self, expense_id: str) -> None:
        await self.services.expenses.delete_expense(expense_id)

    # === Lookup Handlers ===

    async def _create_bank_account(self, **data: Any) -> Any:
        return await self.services.bank_accounts.create(BankAccountInput(**data))

    async def _create_expense_category(self, **data: Any) -> Any:
        return await self.services.expense_categories.create(ExpenseCategoryInput(**data))

    async def _create_importer(self, **data: Any) -> Any:
        return await self.services.importers.create(ImporterInput(**data))

    # === Maintenance ===

    async def _reconcile_balances(self, fix: bool = False) -> Any:
        return await self.services.ledger.reconcile(fix=fix)
