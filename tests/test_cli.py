"""Tests for the command line entry point."""

from unittest.mock import patch

import pytest

from comex_ledger import cli
from fakes import FakeStore


class _StoreContext:
    """Async context manager handing out a prepared FakeStore."""

    def __init__(self, store):
        self.store = store

    async def __aenter__(self):
        return self.store

    async def __aexit__(self, *exc):
        return None


@pytest.mark.asyncio
async def test_format_reference_needs_no_store(capsys):
    with patch.object(cli, "StoreClient") as store_client:
        code = await cli.main(["format-reference", "0058039120925"])

    assert code == 0
    assert capsys.readouterr().out.strip() == "0058.039.1209.25"
    store_client.assert_not_called()


@pytest.mark.asyncio
async def test_lookup_reports_unregistered_code(capsys):
    store = FakeStore()
    with patch.object(cli, "StoreClient", return_value=_StoreContext(store)):
        code = await cli.main(["lookup", "0100.039.1209.25"])

    assert code == 1
    assert "0100 is not registered" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_bill_open_process_fails(capsys):
    store = FakeStore()
    client = store.seed("clients", code="0058", name="Acme", balance="0.00", active=True)
    process = store.seed("processes", reference="0058.039.1209.25", client_id=client["id"], status="open")

    with patch.object(cli, "StoreClient", return_value=_StoreContext(store)):
        code = await cli.main(["bill", process["id"]])

    assert code == 1
    assert "Cannot move process" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_dashboard_prints_metrics(capsys):
    store = FakeStore()
    store.seed("clients", code="0058", name="Acme", balance="0.00", active=True)

    with patch.object(cli, "StoreClient", return_value=_StoreContext(store)):
        code = await cli.main(["dashboard"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Active clients:             1" in out


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


@pytest.mark.asyncio
async def test_client_statement_report(capsys):
    store = FakeStore()
    client = store.seed("clients", code="0058", name="Acme", balance="1000.00", active=True)
    account = store.seed("bank_accounts", name="Main account", active=True)
    store.seed(
        "deposits",
        client_id=client["id"],
        bank_account_id=account["id"],
        amount="1000.00",
        date="2026-10-01",
    )

    with patch.object(cli, "StoreClient", return_value=_StoreContext(store)):
        code = await cli.main(["report", "client-statement", "--client", "0058"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Statement - 0058 Acme" in out
    assert "Total balance: 1,000.00" in out


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("argv", "message"),
    [
        (["report", "client-statement"], "--client is required"),
        (["report", "client-statement", "--client", "0100"], "0100 is not registered"),
    ],
)
async def test_client_statement_needs_a_known_client(capsys, argv, message):
    store = FakeStore()

    with patch.object(cli, "StoreClient", return_value=_StoreContext(store)):
        code = await cli.main(argv)

    assert code == 1
    assert message in capsys.readouterr().err
