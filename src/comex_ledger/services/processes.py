"""Import processes and their open -> finalized -> billed lifecycle."""

from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any

import structlog

from comex_ledger.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from comex_ledger.models import Client, Process, ProcessInput, ProcessStatus
from comex_ledger.reference import REFERENCE_TEMPLATE, extract_client_code, validate_reference
from comex_ledger.services.base import EntityService
from comex_ledger.store.query import EntityStore

logger = structlog.get_logger(__name__)

PROCESS_WITH_RELATIONS = "*, client:clients(*), importer:importers(*)"

DUPLICATE_REFERENCE_MESSAGE = "A process with this reference already exists"
INVALID_REFERENCE_MESSAGE = f"Invalid reference format. Use {REFERENCE_TEMPLATE}"

# Lifecycle columns only the transition methods may write
LIFECYCLE_COLUMNS = frozenset({"status", "finalized_at", "billed_at"})
EDITABLE_COLUMNS = frozenset({"reference", "client_id", "importer_id", "billing_notes"})


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ProcessService(EntityService):
    """CRUD, search and status transitions over ``processes``."""

    table = "processes"
    label = "Process"

    def __init__(self, store: EntityStore, clock: Callable[[], datetime] = _utcnow):
        super().__init__(store)
        self._clock = clock

    async def list_processes(self) -> list[Process]:
        rows = await (
            self._query().select(PROCESS_WITH_RELATIONS).order("created_at", ascending=False).execute()
        )
        return [Process.from_row(row) for row in rows]

    async def get_process(self, process_id: str) -> Process:
        return Process.from_row(await self._get_row(process_id, PROCESS_WITH_RELATIONS))

    async def search_processes(
        self,
        client_id: str | None = None,
        importer_id: str | None = None,
        status: ProcessStatus | str | None = None,
        reference: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Process]:
        """Filter processes; ``reference`` matches anywhere, case-insensitively."""
        query = self._query().select(PROCESS_WITH_RELATIONS)
        if client_id:
            query = query.eq("client_id", client_id)
        if importer_id:
            query = query.eq("importer_id", importer_id)
        if status:
            query = query.eq("status", ProcessStatus(status).value)
        if reference:
            query = query.ilike("reference", f"%{reference}%")
        if start_date:
            query = query.gte("created_at", start_date)
        if end_date:
            query = query.lte("created_at", end_date)
        rows = await query.order("created_at", ascending=False).execute()
        return [Process.from_row(row) for row in rows]

    async def list_finalized_without_billing(self) -> list[Process]:
        """Finalized work that has not been invoiced yet."""
        rows = await (
            self._query()
            .select(PROCESS_WITH_RELATIONS)
            .eq("status", ProcessStatus.FINALIZED.value)
            .is_("billed_at", None)
            .order("finalized_at", ascending=False)
            .execute()
        )
        return [Process.from_row(row) for row in rows]

    async def create_process(self, data: ProcessInput) -> Process:
        data.validate()
        if not validate_reference(data.reference):
            raise ValidationError(INVALID_REFERENCE_MESSAGE, details={"reference": data.reference})

        await self._check_reference_owner(data.reference, data.client_id)

        try:
            row = await self._query().insert(data.to_payload()).single().execute()
        except ConflictError as e:
            raise ConflictError(
                DUPLICATE_REFERENCE_MESSAGE,
                status_code=e.status_code,
                code=e.code,
                details={"reference": data.reference},
            ) from e

        process = Process.from_row(row)
        logger.info("process_created", process_id=process.id, reference=process.reference)
        return process

    async def update_process(self, process_id: str, **changes: Any) -> Process:
        lifecycle = LIFECYCLE_COLUMNS.intersection(changes)
        if lifecycle:
            raise ValidationError(
                "Process status changes only through finalize and bill",
                details={"fields": sorted(lifecycle)},
            )

        unknown = set(changes) - EDITABLE_COLUMNS
        if unknown:
            raise ValidationError(
                "Unknown process fields", details={"fields": sorted(unknown)}
            )

        reference = changes.get("reference")
        if "reference" in changes and not validate_reference(reference):
            raise ValidationError(INVALID_REFERENCE_MESSAGE, details={"reference": reference})

        if "reference" in changes or "client_id" in changes:
            current = Process.from_row(await self._get_row(process_id))
            client_id = changes.get("client_id", current.client_id)
            if client_id != current.client_id:
                await self._check_owner_change(process_id, client_id)
            await self._check_reference_owner(
                changes.get("reference", current.reference), client_id
            )

        try:
            row = await self._update_row(process_id, changes)
        except ConflictError as e:
            raise ConflictError(
                DUPLICATE_REFERENCE_MESSAGE,
                status_code=e.status_code,
                code=e.code,
                details={"reference": reference},
            ) from e

        logger.info("process_updated", process_id=process_id, fields=sorted(changes))
        return Process.from_row(row)

    async def delete_process(self, process_id: str) -> None:
        charged = await (
            self.store.table("expenses").select("id").eq("process_id", process_id).limit(1).execute()
        )
        if charged:
            raise ValidationError(
                "Delete the expenses of this process first",
                details={"process_id": process_id},
            )
        await self._delete_row(process_id)

    # === Lifecycle ===

    async def finalize_process(self, process_id: str, notes: str | None = None) -> Process:
        """Move an open process to finalized and stamp ``finalized_at``."""
        process = Process.from_row(await self._get_row(process_id))
        if process.status != ProcessStatus.OPEN:
            raise InvalidTransitionError(
                process_id, process.status.value, ProcessStatus.FINALIZED.value
            )

        payload: dict[str, Any] = {
            "status": ProcessStatus.FINALIZED.value,
            "finalized_at": self._clock().isoformat(),
        }
        if notes is not None:
            payload["billing_notes"] = notes

        updated = Process.from_row(await self._update_row(process_id, payload))
        logger.info("process_finalized", process_id=process_id, reference=updated.reference)
        return updated

    async def bill_process(self, process_id: str, notes: str | None = None) -> Process:
        """Move a finalized, not yet billed process to billed and stamp ``billed_at``."""
        process = Process.from_row(await self._get_row(process_id))
        if process.status != ProcessStatus.FINALIZED or process.billed_at is not None:
            raise InvalidTransitionError(
                process_id, process.status.value, ProcessStatus.BILLED.value
            )

        payload: dict[str, Any] = {
            "status": ProcessStatus.BILLED.value,
            "billed_at": self._clock().isoformat(),
        }
        if notes is not None:
            payload["billing_notes"] = notes

        updated = Process.from_row(await self._update_row(process_id, payload))
        logger.info("process_billed", process_id=process_id, reference=updated.reference)
        return updated

    async def _check_owner_change(self, process_id: str, client_id: str) -> None:
        """Expenses already booked against the old owner pin the process to it."""
        charged = await (
            self.store.table("expenses").select("id").eq("process_id", process_id).limit(1).execute()
        )
        if charged:
            raise ValidationError(
                "Cannot move a process with expenses to another client",
                details={"process_id": process_id, "client_id": client_id},
            )

    async def _check_reference_owner(self, reference: str, client_id: str) -> None:
        """Warn when the reference's client code is not the owner's code."""
        rows = await self.store.table("clients").select("*").eq("id", client_id).limit(1).execute()
        if not rows:
            raise NotFoundError(
                f"Client {client_id} not found", details={"client_id": client_id}
            )
        owner = Client.from_row(rows[0])
        code = extract_client_code(reference)
        if owner.code != code:
            logger.warning(
                "reference_client_mismatch",
                reference=reference,
                reference_code=code,
                client_code=owner.code,
            )
