"""Client registry."""

from typing import Any

import structlog

from comex_ledger.errors import ConflictError, NotFoundError, ValidationError
from comex_ledger.models import Client, ClientInput, validate_client_code
from comex_ledger.services.base import EntityService

logger = structlog.get_logger(__name__)

# Written only by the ledger
PROTECTED_COLUMNS = frozenset({"balance"})


class ClientService(EntityService):
    """CRUD over ``clients``. The balance column is off limits here."""

    table = "clients"
    label = "Client"
    column_names = {"tax_id": "cnpj"}

    async def list_clients(self, active_only: bool = False) -> list[Client]:
        query = self._query().select("*")
        if active_only:
            query = query.eq("active", True)
        rows = await query.order("code").execute()
        return [Client.from_row(row) for row in rows]

    async def get_client(self, client_id: str) -> Client:
        return Client.from_row(await self._get_row(client_id))

    async def find_by_code(self, code: str) -> Client | None:
        """Return the client registered under ``code``, if any."""
        try:
            row = await self._query().select("*").eq("code", code).single().execute()
        except NotFoundError:
            return None
        return Client.from_row(row)

    async def code_exists(self, code: str, exclude_id: str | None = None) -> bool:
        query = self._query().select("id").eq("code", code)
        if exclude_id:
            query = query.neq("id", exclude_id)
        rows = await query.execute()
        return len(rows) > 0

    async def create_client(self, data: ClientInput) -> Client:
        data.validate()
        code = data.code.strip()
        if await self.code_exists(code):
            raise ValidationError(
                f"Client code {code} is already registered", details={"code": code}
            )

        try:
            row = await self._query().insert(data.to_payload()).single().execute()
        except ConflictError as e:
            raise ConflictError(
                f"Client code {code} is already registered",
                status_code=e.status_code,
                code=e.code,
                details=e.details,
            ) from e

        client = Client.from_row(row)
        logger.info("client_created", client_id=client.id, code=client.code)
        return client

    async def update_client(self, client_id: str, **changes: Any) -> Client:
        protected = PROTECTED_COLUMNS.intersection(changes)
        if protected:
            raise ValidationError(
                "Client balance changes only through deposits and expenses",
                details={"fields": sorted(protected)},
            )

        if "code" in changes:
            code = validate_client_code(changes["code"])
            if await self.code_exists(code, exclude_id=client_id):
                raise ValidationError(
                    f"Client code {code} is already registered", details={"code": code}
                )
            changes["code"] = code

        if "name" in changes and not str(changes["name"] or "").strip():
            raise ValidationError("name is required", details={"field": "name"})

        try:
            row = await self._update_row(client_id, self._to_columns(changes))
        except ConflictError as e:
            raise ConflictError(
                "Client code is already registered",
                status_code=e.status_code,
                code=e.code,
                details=e.details,
            ) from e

        logger.info("client_updated", client_id=client_id, fields=sorted(changes))
        return Client.from_row(row)

    async def delete_client(self, client_id: str) -> None:
        await self._delete_row(client_id)
