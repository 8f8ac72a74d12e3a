"""Submit-and-poll protocol for Data API statements.

The Data API returns a statement id immediately; the statement then runs
remotely and its status has to be polled until it is FINISHED, FAILED or
ABORTED. ``StatementWaiter`` turns that into a single awaitable call.

The wait gives up early when the configured deadline passes or the owning
connection is closed. In both cases the remote statement is left running:
cancelling it is an explicit operation (``Connection.cancel_statement``).
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from redshift_data_sql.db.result import RedshiftDataRows
from redshift_data_sql.errors import (
    StatementAbortedError,
    StatementCancelledError,
    StatementFailedError,
    StatementStatusError,
    StatementSubmitError,
    StatementWaitError,
)
from redshift_data_sql.models.statement import StatementDescription, StatementStatus

if TYPE_CHECKING:
    from redshift_data_sql.config import RedshiftDataConfig
    from redshift_data_sql.db.backend import RedshiftDataClient

logger = logging.getLogger(__name__)


class StatementWaiter:
    """Submits statements and blocks the calling task until they finish."""

    def __init__(
        self,
        client: RedshiftDataClient,
        config: RedshiftDataConfig,
        closed: asyncio.Event,
    ) -> None:
        """Initialize with the client, timing config and the connection's close signal."""
        self._client = client
        self._config = config
        self._closed = closed

    async def execute(
        self, sql: str, parameters: list[dict[str, str]] | None = None
    ) -> tuple[RedshiftDataRows | None, StatementDescription]:
        """Run one statement to completion.

        Returns a row cursor when the statement produced a result set, else
        None, together with the final description.
        """
        kwargs: dict[str, Any] = {"Sql": sql, **self._config.session_params()}
        if parameters:
            kwargs["Parameters"] = parameters
        logger.debug("execute statement: %s", sql)
        try:
            output = await self._client.execute_statement(**kwargs)
        except Exception as exc:
            raise StatementSubmitError(f"execute statement error: {exc}") from exc

        desc = await self._wait_finished(output["Id"])
        if not desc.has_result_set:
            return None, desc
        logger.debug("[%s] query has result set: result_rows=%d", desc.id, desc.result_rows)
        return RedshiftDataRows(self._client, desc.id, rowcount=desc.result_rows), desc

    async def batch_execute(self, sqls: list[str]) -> StatementDescription:
        """Run several statements as one remote batch.

        The returned description enumerates one sub-statement per input, in order.
        """
        kwargs: dict[str, Any] = {"Sqls": list(sqls), **self._config.session_params()}
        logger.debug("batch execute statement: %d statements", len(sqls))
        try:
            output = await self._client.batch_execute_statement(**kwargs)
        except Exception as exc:
            raise StatementSubmitError(f"batch execute statement error: {exc}") from exc
        return await self._wait_finished(output["Id"])

    async def _wait_finished(self, statement_id: str) -> StatementDescription:
        started = time.monotonic()
        logger.debug("[%s] submitted", statement_id)
        desc = await self.wait(statement_id)
        if desc.status is StatementStatus.ABORTED:
            raise StatementAbortedError(
                f"query aborted: {desc.error_message}", statement_id=statement_id
            )
        if desc.status is StatementStatus.FAILED:
            raise StatementFailedError(
                f"query failed: {desc.error_message}", statement_id=statement_id
            )
        if desc.status is not StatementStatus.FINISHED:
            raise StatementStatusError(
                f"query status is not finished: {desc.status}", statement_id=statement_id
            )
        logger.debug(
            "[%s] success query: elapsed_time=%.3fs", statement_id, time.monotonic() - started
        )
        return desc

    async def wait(self, statement_id: str) -> StatementDescription:
        """Poll until the statement reaches a terminal status.

        Raises ``StatementCancelledError`` if the deadline passes or the
        connection closes first.
        """
        try:
            async with asyncio.timeout(self._config.timeout):
                return await self._poll(statement_id)
        except TimeoutError:
            logger.warning(
                "[%s] wait exceeded %.3fs; remote statement may still be running",
                statement_id,
                self._config.timeout,
            )
            raise StatementCancelledError(
                f"statement {statement_id} timed out after {self._config.timeout}s",
                statement_id=statement_id,
            ) from None

    async def _poll(self, statement_id: str) -> StatementDescription:
        while True:
            await self._sleep_unless_closed(statement_id)
            try:
                raw = await self._client.describe_statement(Id=statement_id)
            except Exception as exc:
                raise StatementWaitError(
                    f"describe statement error: {exc}", statement_id=statement_id
                ) from exc
            # close() may have run while describe was in flight
            if self._closed.is_set():
                raise self._closed_error(statement_id)
            try:
                desc = StatementDescription.model_validate(raw)
            except ValidationError as exc:
                raise StatementWaitError(
                    f"unexpected describe statement response: {exc}", statement_id=statement_id
                ) from exc
            if desc.status.is_terminal:
                return desc
            logger.debug("[%s] status=%s", statement_id, desc.status)

    async def _sleep_unless_closed(self, statement_id: str) -> None:
        """Sleep one polling interval, waking early if the connection closes."""
        if not self._closed.is_set():
            try:
                await asyncio.wait_for(self._closed.wait(), timeout=self._config.polling)
            except TimeoutError:
                return
        raise self._closed_error(statement_id)

    def _closed_error(self, statement_id: str) -> StatementCancelledError:
        logger.warning(
            "[%s] connection closed while waiting; remote statement may still be running",
            statement_id,
        )
        return StatementCancelledError(
            f"connection closed while waiting for statement {statement_id}",
            statement_id=statement_id,
        )
