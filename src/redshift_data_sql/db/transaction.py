"""Deferred transaction state.

Redshift Data API calls are independent requests, so a transaction cannot
stay open across them. Instead, statements executed inside a transaction
are buffered and sent at commit: one statement as a plain execute, more as
a single BatchExecuteStatement (which the service runs in one transaction).
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import TYPE_CHECKING

from redshift_data_sql.db.result import DelayedResult, Result
from redshift_data_sql.errors import BatchResultMismatchError, InvariantViolation

if TYPE_CHECKING:
    from redshift_data_sql.db.connection import Connection
    from redshift_data_sql.models.statement import SubStatement
    from redshift_data_sql.models.transaction import TxOptions

logger = logging.getLogger(__name__)


class StatementBatch:
    """Statements buffered by an open transaction, with their delayed results."""

    def __init__(self, options: TxOptions) -> None:
        """Initialize an empty batch for a transaction opened with ``options``."""
        self.options = options
        self.statements: list[str] = []
        self.results: list[DelayedResult] = []

    def __len__(self) -> int:
        return len(self.statements)

    def add(self, sql: str) -> DelayedResult:
        """Buffer ``sql`` and return the result that commit will fill in."""
        result = DelayedResult(sql)
        self.statements.append(sql)
        self.results.append(result)
        logger.debug("delayed result[%d] created for %r", len(self.results) - 1, sql)
        return result

    def check(self) -> None:
        """Raise ``InvariantViolation`` if statements and results are misaligned."""
        if len(self.statements) != len(self.results):
            raise InvariantViolation(
                "unexpected length of statements and delayed results: "
                f"{len(self.statements)} != {len(self.results)}"
            )

    def resolve_one(self, result: Result) -> None:
        """Fill the only delayed result after a single-statement commit."""
        self.results[0]._resolve(result)

    def resolve_batch(self, sub_statements: list[SubStatement]) -> None:
        """Fill every delayed result from a batch description, in order.

        Nothing is resolved unless the description covers every statement.
        """
        if len(sub_statements) < len(self.statements):
            raise BatchResultMismatchError(
                f"sub statement not found: {len(sub_statements)}"
                f" (batch described {len(sub_statements)} of {len(self.statements)} statements)"
            )
        for result, sub in zip(self.results, sub_statements, strict=False):
            result._resolve(Result(sub.result_rows))

    def abandon(self) -> None:
        """Mark all unresolved results as abandoned.

        The buffer itself is left intact for a commit that is still awaiting
        the service; resolving an abandoned result raises ``InvariantViolation``.
        """
        for result in self.results:
            result._abandon()


class Transaction:
    """Handle returned by ``Connection.begin``.

    Usable as an async context manager: commits on a clean exit, rolls
    back when the block raises.
    """

    def __init__(self, conn: Connection) -> None:
        """Initialize bound to the connection that opened it."""
        self._conn = conn

    @property
    def connection(self) -> Connection:
        return self._conn

    async def commit(self) -> None:
        """Send buffered statements and resolve their delayed results."""
        logger.debug("tx commit called")
        await self._conn._commit(self)

    async def rollback(self) -> None:
        """Discard buffered statements. Nothing is sent to the service."""
        logger.debug("tx rollback called")
        await self._conn._rollback(self)

    async def __aenter__(self) -> Transaction:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            await self.commit()
        elif self._conn._transaction is self:
            await self.rollback()
