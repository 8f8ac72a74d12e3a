"""Tests for single-statement execution and connection lifecycle."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from redshift_data_sql.config import RedshiftDataConfig
from redshift_data_sql.db.connection import Connection, connect
from redshift_data_sql.db.result import RedshiftDataRows, Result
from redshift_data_sql.errors import (
    ConnectionClosedError,
    InvalidDSNError,
    NotSupportedError,
    StatementCancelledError,
    StatementError,
    StatementFailedError,
)
from tests.conftest import FakeRedshiftDataClient, failed, finished, running


@pytest.mark.asyncio
async def test_execute_returns_affected_rows(conn, fake_client):
    fake_client.script(finished(rows=3))
    result = await conn.execute("DELETE FROM t WHERE a = 1")
    assert isinstance(result, Result)
    assert result.rowcount == 3
    assert result.lastrowid is None


@pytest.mark.asyncio
async def test_execute_rewrites_and_binds_positional(conn, fake_client):
    await conn.execute("UPDATE t SET a = ? WHERE b = '?' AND c = ?", (10, "x"))
    call = fake_client.calls_to("execute_statement")[0]
    assert call["Sql"] == "UPDATE t SET a = :1 WHERE b = '?' AND c = :2"
    assert call["Parameters"] == [{"name": "1", "value": "10"}, {"name": "2", "value": "x"}]


@pytest.mark.asyncio
async def test_execute_binds_named(conn, fake_client):
    await conn.execute("UPDATE t SET a = :a WHERE id = :id", {"a": 1, "id": "k"})
    call = fake_client.calls_to("execute_statement")[0]
    assert call["Sql"] == "UPDATE t SET a = :a WHERE id = :id"
    assert call["Parameters"] == [{"name": "a", "value": "1"}, {"name": "id", "value": "k"}]


@pytest.mark.asyncio
async def test_execute_without_args_leaves_sql_alone(conn, fake_client):
    await conn.execute("SELECT '?' AS q, $1")
    call = fake_client.calls_to("execute_statement")[0]
    assert call["Sql"] == "SELECT '?' AS q, $1"
    assert "Parameters" not in call


@pytest.mark.asyncio
async def test_execute_with_result_set_closes_rows(conn, fake_client):
    fake_client.script(finished(rows=5, has_result_set=True))
    with patch.object(RedshiftDataRows, "close", new_callable=AsyncMock) as close:
        result = await conn.execute("SELECT * FROM t")
    assert result.rowcount == 5
    close.assert_awaited_once()
    assert "get_statement_result" not in fake_client.names()


@pytest.mark.asyncio
async def test_execute_propagates_remote_error(conn, fake_client):
    fake_client.script(running(), failed("permission denied for relation t"))
    with pytest.raises(StatementFailedError, match="permission denied"):
        await conn.execute("DELETE FROM t")


@pytest.mark.asyncio
async def test_query_returns_rows(conn, fake_client):
    fake_client.script(finished(rows=2, has_result_set=True))
    fake_client.pages["stmt-1"] = [
        {
            "ColumnMetadata": [{"name": "id"}, {"name": "name"}],
            "Records": [
                [{"longValue": 1}, {"stringValue": "a"}],
                [{"longValue": 2}, {"isNull": True}],
            ],
        }
    ]
    rows = await conn.query("SELECT id, name FROM t WHERE id > ?", [0])
    assert rows.rowcount == 2
    fetched = await rows.fetchall()
    assert [(r["id"], r["name"]) for r in fetched] == [(1, "a"), (2, None)]
    assert rows.description == ["id", "name"]
    assert fake_client.calls_to("execute_statement")[0]["Sql"] == (
        "SELECT id, name FROM t WHERE id > :1"
    )


@pytest.mark.asyncio
async def test_query_without_result_set_returns_empty_cursor(conn, fake_client):
    fake_client.script(finished(rows=5))
    rows = await conn.query("DELETE FROM t")
    assert rows.rowcount == 5
    assert await rows.fetchone() is None
    assert "get_statement_result" not in fake_client.names()


def test_prepare_always_rejected(fake_client, config):
    conn = Connection(fake_client, config)
    for sql in ("SELECT 1", "", "INSERT INTO t VALUES (?)"):
        with pytest.raises(NotSupportedError, match="prepared statement"):
            conn.prepare(sql)
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_close_is_idempotent(conn):
    await conn.close()
    await conn.close()
    assert conn.closed


@pytest.mark.asyncio
async def test_closed_connection_rejects_operations(conn, fake_client):
    await conn.close()
    with pytest.raises(ConnectionClosedError):
        await conn.execute("SELECT 1")
    with pytest.raises(ConnectionClosedError):
        await conn.query("SELECT 1")
    with pytest.raises(ConnectionClosedError):
        await conn.begin()
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_close_during_wait_cancels_statement(fake_client, config):
    config.polling = 10.0
    conn = Connection(fake_client, config)
    fake_client.script(running())
    task = asyncio.create_task(conn.execute("VACUUM"))
    await asyncio.sleep(0.01)
    await conn.close()
    with pytest.raises(StatementCancelledError) as exc:
        await task
    assert exc.value.statement_id == "stmt-1"


@pytest.mark.asyncio
async def test_cancel_statement_is_explicit(conn, fake_client):
    assert await conn.cancel_statement("stmt-9") is True
    assert fake_client.calls_to("cancel_statement") == [{"Id": "stmt-9"}]


@pytest.mark.asyncio
async def test_cancel_statement_error_is_wrapped(conn, fake_client):
    with patch.object(fake_client, "cancel_statement", side_effect=RuntimeError("gone")):
        with pytest.raises(StatementError, match="gone") as exc:
            await conn.cancel_statement("stmt-9")
    assert exc.value.phase == "cancel"


@pytest.mark.asyncio
async def test_async_context_manager_closes(fake_client, config):
    async with Connection(fake_client, config) as conn:
        await conn.execute("SELECT 1")
    assert conn.closed


@pytest.mark.asyncio
async def test_connect_uses_injected_factory(config):
    client = FakeRedshiftDataClient()
    factory = MagicMock(return_value=client)
    conn = await connect(config, client_factory=factory)
    try:
        factory.assert_called_once_with(config)
        await conn.execute("SELECT 1")
        assert client.names()[0] == "execute_statement"
    finally:
        await conn.close()


@pytest.mark.asyncio
async def test_connect_parses_dsn_string():
    seen: list[RedshiftDataConfig] = []

    def factory(cfg):
        seen.append(cfg)
        return FakeRedshiftDataClient()

    conn = await connect("admin@cluster(main)/dev?polling=5ms", client_factory=factory)
    assert seen[0].cluster_identifier == "main"
    assert seen[0].db_user == "admin"
    assert seen[0].polling == pytest.approx(0.005)
    assert conn.config is seen[0]
    await conn.close()


@pytest.mark.asyncio
async def test_connect_reads_dsn_from_env():
    factory = MagicMock(return_value=FakeRedshiftDataClient())
    with patch.dict("os.environ", {"REDSHIFT_DATA_DSN": "workgroup(analytics)/prod"}):
        conn = await connect(client_factory=factory)
    assert conn.config.workgroup_name == "analytics"
    assert conn.config.database == "prod"
    await conn.close()


@pytest.mark.asyncio
async def test_connect_without_dsn_fails():
    with patch.dict("os.environ", {}, clear=True):
        with pytest.raises(InvalidDSNError, match="empty"):
            await connect(client_factory=MagicMock())


@pytest.mark.asyncio
async def test_connect_defaults_to_boto3_factory(config):
    with patch("redshift_data_sql.db.connection.create_client") as mock_create:
        mock_create.return_value = FakeRedshiftDataClient()
        conn = await connect(config)
    mock_create.assert_called_once_with(config)
    await conn.close()
