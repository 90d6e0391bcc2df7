"""Client balance ledger.

``Client.balance`` is a running total kept in step with deposits and expenses:
deposits credit the client, expenses debit the client owning the process. The
deposit/expense services are the only callers; nothing else writes the
balance.

Each booking is a read-modify-write on the client row, issued after the
deposit/expense write as a separate store call. Concurrent bookings on one
client are last-write-wins, and a failure between the two calls leaves the
balance out of step with history. Such failures are logged as
``ledger_out_of_sync``; ``reconcile(fix=True)`` rebuilds balances from the
deposit and expense tables.
"""

from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

import structlog

from comex_ledger.errors import ComexError, NotFoundError
from comex_ledger.models import BalanceDrift, Client, ensure_positive_amount, to_decimal
from comex_ledger.store.query import EntityStore

logger = structlog.get_logger(__name__)


def compute_derived_balances(
    deposit_rows: Iterable[dict[str, Any]],
    expense_rows: Iterable[dict[str, Any]],
) -> dict[str, Decimal]:
    """Sum deposits minus process expenses per client id.

    ``expense_rows`` carry the owning client through the embedded process
    (``{"amount": ..., "process": {"client_id": ...}}``). Expenses whose
    process is gone are ignored.
    """
    balances: dict[str, Decimal] = defaultdict(Decimal)
    for row in deposit_rows:
        balances[str(row["client_id"])] += to_decimal(row["amount"])
    for row in expense_rows:
        process = row.get("process") or {}
        client_id = process.get("client_id")
        if client_id is None:
            continue
        balances[str(client_id)] -= to_decimal(row["amount"])
    return dict(balances)


class BalanceLedger:
    """Maintains the denormalized ``balance`` column of ``clients``."""

    def __init__(self, store: EntityStore):
        self.store = store

    async def _get_client(self, client_id: str) -> Client:
        try:
            row = await self.store.table("clients").select("*").eq("id", client_id).single().execute()
        except NotFoundError as e:
            raise NotFoundError(
                f"Client {client_id} not found",
                status_code=e.status_code,
                code=e.code,
                details={"client_id": client_id},
            ) from e
        return Client.from_row(row)

    async def _write_balance(self, client_id: str, balance: Decimal) -> Client:
        try:
            row = await (
                self.store.table("clients")
                .update({"balance": str(balance)})
                .eq("id", client_id)
                .single()
                .execute()
            )
        except NotFoundError as e:
            raise NotFoundError(
                f"Client {client_id} not found",
                status_code=e.status_code,
                code=e.code,
                details={"client_id": client_id},
            ) from e
        return Client.from_row(row)

    async def apply_delta(self, client_id: str, signed_amount: Decimal) -> Client:
        """Add ``signed_amount`` to the client's balance and return the client."""
        delta = to_decimal(signed_amount)
        client = await self._get_client(client_id)
        new_balance = client.balance + delta
        updated = await self._write_balance(client_id, new_balance)

        logger.info(
            "balance_updated",
            client_id=client_id,
            code=client.code,
            old_balance=str(client.balance),
            new_balance=str(updated.balance),
            delta=str(delta),
        )
        return updated

    async def book(
        self,
        client_id: str,
        delta: Decimal,
        source: str | None = None,
        source_id: str | None = None,
    ) -> Client:
        """Apply a delta on behalf of a deposit or expense write.

        A failure is logged against ``source`` before it propagates, since the
        originating write has already been stored by then.
        """
        try:
            return await self.apply_delta(client_id, delta)
        except ComexError as e:
            if source is not None:
                logger.error(
                    "ledger_out_of_sync",
                    source=source,
                    source_id=source_id,
                    client_id=client_id,
                    delta=str(delta),
                    error=str(e),
                )
            raise

    async def credit(
        self,
        client_id: str,
        amount: Decimal,
        *,
        source: str | None = None,
        source_id: str | None = None,
    ) -> Client:
        """Increase the balance by a positive ``amount``."""
        value = ensure_positive_amount(amount)
        return await self.book(client_id, value, source, source_id)

    async def debit(
        self,
        client_id: str,
        amount: Decimal,
        *,
        source: str | None = None,
        source_id: str | None = None,
    ) -> Client:
        """Decrease the balance by a positive ``amount``."""
        value = ensure_positive_amount(amount)
        return await self.book(client_id, -value, source, source_id)

    async def owner_of_process(self, process_id: str) -> str:
        """Return the id of the client owning a process."""
        try:
            row = await (
                self.store.table("processes")
                .select("client_id")
                .eq("id", process_id)
                .single()
                .execute()
            )
        except NotFoundError as e:
            raise NotFoundError(
                f"Process {process_id} not found",
                status_code=e.status_code,
                code=e.code,
                details={"process_id": process_id},
            ) from e
        return str(row["client_id"])

    # === Projection ===

    async def derived_balances(self) -> dict[str, Decimal]:
        """Recompute every client's balance from deposits and expenses."""
        deposits = await self.store.table("deposits").select("client_id, amount").execute()
        expenses = await (
            self.store.table("expenses").select("amount, process:processes(client_id)").execute()
        )
        return compute_derived_balances(deposits, expenses)

    async def reconcile(
        self, client_id: str | None = None, *, fix: bool = False
    ) -> list[BalanceDrift]:
        """Compare stored balances with history and optionally repair them."""
        query = self.store.table("clients").select("*").order("code")
        if client_id is not None:
            query = query.eq("id", client_id)
        clients = [Client.from_row(row) for row in await query.execute()]
        derived = await self.derived_balances()

        drifts: list[BalanceDrift] = []
        for client in clients:
            expected = derived.get(client.id, Decimal("0"))
            if client.balance == expected:
                continue
            drift = BalanceDrift(
                client_id=client.id,
                code=client.code,
                stored=client.balance,
                derived=expected,
            )
            logger.warning(
                "balance_drift",
                client_id=client.id,
                code=client.code,
                stored=str(client.balance),
                derived=str(expected),
            )
            if fix:
                await self._write_balance(client.id, expected)
                drift.repaired = True
                logger.info("balance_repaired", client_id=client.id, balance=str(expected))
            drifts.append(drift)

        logger.info("reconcile_completed", clients=len(clients), drifts=len(drifts), fix=fix)
        return drifts
