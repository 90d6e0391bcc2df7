"""Shared plumbing for entity services."""

from typing import Any, ClassVar, Generic, Protocol, TypeVar

import structlog

from comex_ledger.errors import NotFoundError, ValidationError
from comex_ledger.store.query import EntityStore

logger = structlog.get_logger(__name__)


class _Record(Protocol):
    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Any: ...


class _Input(Protocol):
    def validate(self) -> None: ...

    def to_payload(self) -> dict[str, Any]: ...


RecordT = TypeVar("RecordT", bound=_Record)
InputT = TypeVar("InputT", bound=_Input)


class EntityService:
    """Base for services bound to one relation of the entity store."""

    table: ClassVar[str]
    label: ClassVar[str]
    # Python attribute name -> store column name, where they differ
    column_names: ClassVar[dict[str, str]] = {}

    def __init__(self, store: EntityStore):
        self.store = store

    def _query(self):
        return self.store.table(self.table)

    def _to_columns(self, changes: dict[str, Any]) -> dict[str, Any]:
        return {self.column_names.get(key, key): value for key, value in changes.items()}

    async def _get_row(self, entity_id: str, columns: str = "*") -> dict[str, Any]:
        """Fetch one row by id or raise NotFoundError naming the entity."""
        try:
            return await self._query().select(columns).eq("id", entity_id).single().execute()
        except NotFoundError as e:
            raise NotFoundError(
                f"{self.label} {entity_id} not found",
                status_code=e.status_code,
                code=e.code,
                details={"id": entity_id},
            ) from e

    async def _update_row(self, entity_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            return await self._query().update(payload).eq("id", entity_id).single().execute()
        except NotFoundError as e:
            raise NotFoundError(
                f"{self.label} {entity_id} not found",
                status_code=e.status_code,
                code=e.code,
                details={"id": entity_id},
            ) from e

    async def _delete_row(self, entity_id: str) -> None:
        await self._query().delete().eq("id", entity_id).execute()
        logger.info("entity_deleted", table=self.table, id=entity_id)


class LookupService(EntityService, Generic[RecordT, InputT]):
    """CRUD for simple name + active-flag reference entities."""

    model: ClassVar[type]

    async def list_all(self, active_only: bool = False) -> list[RecordT]:
        query = self._query().select("*")
        if active_only:
            query = query.eq("active", True)
        rows = await query.order("name").execute()
        return [self.model.from_row(row) for row in rows]

    async def get(self, entity_id: str) -> RecordT:
        return self.model.from_row(await self._get_row(entity_id))

    async def create(self, data: InputT) -> RecordT:
        data.validate()
        row = await self._query().insert(data.to_payload()).single().execute()
        logger.info("entity_created", table=self.table, id=row.get("id"))
        return self.model.from_row(row)

    async def update(self, entity_id: str, **changes: Any) -> RecordT:
        if "name" in changes and not str(changes["name"] or "").strip():
            raise ValidationError("name is required", details={"field": "name"})
        row = await self._update_row(entity_id, self._to_columns(changes))
        return self.model.from_row(row)

    async def delete(self, entity_id: str) -> None:
        await self._delete_row(entity_id)
