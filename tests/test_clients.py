"""Tests for the client registry."""

from decimal import Decimal

import pytest

from comex_ledger.errors import ConflictError, NotFoundError, ValidationError
from comex_ledger.models import Client, ClientInput
from fakes import make_client


class TestClientRecord:
    def test_from_row(self, mock_client_row):
        client = Client.from_row(mock_client_row)

        assert client.code == "0058"
        assert client.tax_id == "12.345.678/0001-90"
        assert client.balance == Decimal("15000.00")
        assert client.created_at.year == 2026

    def test_payload_starts_at_zero(self):
        payload = ClientInput(code="0058", name=" Acme ", tax_id="1").to_payload()

        assert payload["balance"] == "0.00"
        assert payload["name"] == "Acme"
        assert payload["cnpj"] == "1"


class TestCreateClient:
    @pytest.mark.asyncio
    async def test_new_client_has_zero_balance(self, services):
        client = await make_client(services)

        assert client.balance == Decimal("0")
        assert client.active is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["058", "00580", ""])
    async def test_code_must_have_four_digits(self, services, code):
        with pytest.raises(ValidationError):
            await services.clients.create_client(ClientInput(code=code, name="Acme"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["AB12", "00 1", "００５８"])
    async def test_code_must_be_ascii_digits(self, services, store, code):
        with pytest.raises(ValidationError, match="4 digits"):
            await services.clients.create_client(ClientInput(code=code, name="Acme"))

        assert store.rows("clients") == []

    @pytest.mark.asyncio
    async def test_requires_name(self, services):
        with pytest.raises(ValidationError, match="name is required"):
            await services.clients.create_client(ClientInput(code="0058", name="  "))

    @pytest.mark.asyncio
    async def test_duplicate_code(self, services):
        await make_client(services, code="0058")

        with pytest.raises(ValidationError, match="already registered"):
            await make_client(services, code="0058", name="Copycat")

    @pytest.mark.asyncio
    async def test_duplicate_code_race_maps_to_conflict(self, services):
        # The pre-check passes; the store's unique index still says no
        await make_client(services, code="0058")

        async def no_duplicates(code, exclude_id=None):
            return False

        services.clients.code_exists = no_duplicates

        with pytest.raises(ConflictError, match="already registered"):
            await make_client(services, code="0058", name="Racer")


class TestUpdateClient:
    @pytest.mark.asyncio
    async def test_balance_is_protected(self, services):
        client = await make_client(services)

        with pytest.raises(ValidationError, match="deposits and expenses"):
            await services.clients.update_client(client.id, balance="999")

    @pytest.mark.asyncio
    async def test_update_fields(self, services):
        client = await make_client(services)

        updated = await services.clients.update_client(
            client.id, name="Acme Imports", tax_id="99", active=False
        )

        assert updated.name == "Acme Imports"
        assert updated.tax_id == "99"
        assert updated.active is False
        assert await services.clients.list_clients(active_only=True) == []

    @pytest.mark.asyncio
    async def test_code_taken_by_another_client(self, services):
        await make_client(services, code="0001", name="First")
        second = await make_client(services, code="0002", name="Second")

        with pytest.raises(ValidationError, match="already registered"):
            await services.clients.update_client(second.id, code="0001")

    @pytest.mark.asyncio
    async def test_letters_in_code_are_rejected(self, services):
        client = await make_client(services, code="0001")

        with pytest.raises(ValidationError, match="4 digits"):
            await services.clients.update_client(client.id, code="AB12")

        assert (await services.clients.get_client(client.id)).code == "0001"

    @pytest.mark.asyncio
    async def test_keeping_own_code_is_fine(self, services):
        client = await make_client(services, code="0001")

        updated = await services.clients.update_client(client.id, code="0001", name="Renamed")

        assert updated.name == "Renamed"


class TestLookup:
    @pytest.mark.asyncio
    async def test_find_by_code(self, services):
        client = await make_client(services, code="0058")

        assert (await services.clients.find_by_code("0058")).id == client.id
        assert await services.clients.find_by_code("9999") is None

    @pytest.mark.asyncio
    async def test_list_is_ordered_by_code(self, services):
        await make_client(services, code="0200", name="B")
        await make_client(services, code="0100", name="A")

        clients = await services.clients.list_clients()

        assert [c.code for c in clients] == ["0100", "0200"]

    @pytest.mark.asyncio
    async def test_get_and_delete(self, services):
        client = await make_client(services)

        await services.clients.delete_client(client.id)

        with pytest.raises(NotFoundError, match=f"Client {client.id} not found"):
            await services.clients.get_client(client.id)
