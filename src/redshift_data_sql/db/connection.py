"""Connections to Redshift through the Data API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from types import TracebackType
from typing import TYPE_CHECKING, Any, NoReturn

from redshift_data_sql.config import RedshiftDataConfig, get_dsn, parse_dsn
from redshift_data_sql.db.client import create_client
from redshift_data_sql.db.placeholders import arguments_from, bind_parameters, rewrite_query
from redshift_data_sql.db.result import DelayedResult, RedshiftDataRows, Result
from redshift_data_sql.db.transaction import StatementBatch, Transaction
from redshift_data_sql.db.waiter import StatementWaiter
from redshift_data_sql.errors import (
    ConnectionClosedError,
    InTransactionError,
    NotInTransactionError,
    NotSupportedError,
    StatementError,
)
from redshift_data_sql.models.transaction import IsolationLevel, TxOptions

if TYPE_CHECKING:
    from redshift_data_sql.db.backend import ClientFactory, RedshiftDataClient
    from redshift_data_sql.models.statement import Argument

logger = logging.getLogger(__name__)

Params = Sequence[Any] | Mapping[str, Any]


class Connection:
    """One logical Data API session.

    Not safe for concurrent use: callers must serialize access, one
    in-flight operation at a time. Closing from another task while a
    statement is being awaited ends that wait with
    ``StatementCancelledError``.
    """

    def __init__(self, client: RedshiftDataClient, config: RedshiftDataConfig) -> None:
        """Initialize with a Data API client and the session configuration."""
        self._client = client
        self._config = config
        self._closed = asyncio.Event()
        self._waiter = StatementWaiter(client, config, self._closed)
        self._transaction: Transaction | None = None
        self._batch: StatementBatch | None = None

    @property
    def config(self) -> RedshiftDataConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None

    def _check_open(self) -> None:
        if self._closed.is_set():
            raise ConnectionClosedError("connection is closed")

    def prepare(self, sql: str) -> NoReturn:
        """Always fails: the Data API has no separate prepare step."""
        raise NotSupportedError("prepared statement not supported")

    async def begin(self, options: TxOptions | None = None) -> Transaction:
        """Open a deferred transaction."""
        self._check_open()
        options = options or TxOptions()
        if self._transaction is not None:
            raise InTransactionError("already in transaction")
        if options.isolation is not IsolationLevel.DEFAULT:
            raise NotSupportedError(f"isolation level {options.isolation} not supported")
        self._batch = StatementBatch(options)
        self._transaction = Transaction(self)
        logger.debug("transaction begin (read_only=%s)", options.read_only)
        return self._transaction

    async def execute(self, sql: str, params: Params = ()) -> Result | DelayedResult:
        """Execute a statement and return its affected row count.

        Inside a transaction the statement is only buffered and a
        ``DelayedResult`` is returned; it is filled in on commit.
        """
        self._check_open()
        if self._batch is not None:
            if params:
                raise NotSupportedError("exec with args in transaction not supported")
            if self._batch.options.read_only:
                raise NotSupportedError("exec in read only transaction not supported")
            return self._batch.add(sql)
        return await self._execute(sql, arguments_from(params))

    async def _execute(self, sql: str, args: list[Argument]) -> Result:
        rows, desc = await self._waiter.execute(
            rewrite_query(sql, len(args)), bind_parameters(args)
        )
        if rows is not None:
            await rows.close()
        return Result(desc.result_rows)

    async def query(self, sql: str, params: Params = ()) -> RedshiftDataRows:
        """Execute a statement and return a cursor over its rows."""
        self._check_open()
        if self._transaction is not None:
            raise InTransactionError("query in transaction")
        args = arguments_from(params)
        rows, desc = await self._waiter.execute(
            rewrite_query(sql, len(args)), bind_parameters(args)
        )
        if rows is None:
            return RedshiftDataRows(None, None, rowcount=desc.result_rows)
        return rows

    async def cancel_statement(self, statement_id: str) -> bool:
        """Ask the service to cancel a statement that is still running.

        Local waits never do this on their own; use the ``statement_id`` of a
        ``StatementCancelledError`` to stop the remote side explicitly.
        """
        try:
            output = await self._client.cancel_statement(Id=statement_id)
        except Exception as exc:
            raise StatementError(
                f"cancel statement error: {exc}", statement_id=statement_id, phase="cancel"
            ) from exc
        return bool(output.get("Status", False))

    def _current_batch(self, tx: Transaction) -> StatementBatch:
        self._check_open()
        if self._transaction is not tx or self._batch is None:
            raise NotInTransactionError("not in transaction")
        return self._batch

    def _end_transaction(self) -> None:
        if self._batch is not None:
            self._batch.abandon()
        self._batch = None
        self._transaction = None

    async def _rollback(self, tx: Transaction) -> None:
        self._current_batch(tx)
        self._end_transaction()

    async def _commit(self, tx: Transaction) -> None:
        batch = self._current_batch(tx)
        batch.check()
        statements = list(batch.statements)
        count = len(statements)
        try:
            if count == 1:
                try:
                    result = await self._execute(statements[0], [])
                except StatementError as exc:
                    raise type(exc)(
                        f"commit error: {exc}", statement_id=exc.statement_id, phase="commit"
                    ) from exc
                batch.resolve_one(result)
            elif count > 1:
                try:
                    desc = await self._waiter.batch_execute(statements)
                except StatementError as exc:
                    raise type(exc)(
                        f"commit error: {exc}",
                        statement_id=exc.statement_id,
                        phase="commit-batch",
                    ) from exc
                batch.resolve_batch(desc.sub_statements)
        finally:
            self._end_transaction()
        logger.debug("transaction committed (%d statements)", count)

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._end_transaction()

    async def __aenter__(self) -> Connection:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


async def connect(
    config: RedshiftDataConfig | str | None = None,
    *,
    client_factory: ClientFactory | None = None,
) -> Connection:
    """Open a connection.

    ``config`` may be a ``RedshiftDataConfig`` or a DSN string; when omitted
    the DSN is read from REDSHIFT_DATA_DSN. ``client_factory`` builds the
    Data API client from the config and defaults to a boto3 client.
    """
    if config is None:
        config = get_dsn()
    if isinstance(config, str):
        config = parse_dsn(config)
    factory = client_factory or create_client
    client = factory(config)
    logger.debug("connection opened: %s", config)
    return Connection(client, config)
