"""Execution results: row counts, delayed transaction results and row cursors."""

from __future__ import annotations

import base64
import logging
from collections import deque
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from redshift_data_sql.errors import InvariantViolation, ResultNotReadyError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from redshift_data_sql.db.backend import RedshiftDataClient, Row

logger = logging.getLogger(__name__)


class Result:
    """Outcome of a statement that returns no rows."""

    def __init__(self, rowcount: int) -> None:
        """Initialize with the affected row count reported by the service."""
        self._rowcount = rowcount

    @property
    def rowcount(self) -> int:
        """Number of rows affected, or -1 when the service does not say."""
        return self._rowcount

    @property
    def lastrowid(self) -> None:
        """The Data API never reports generated keys."""
        return None

    def __repr__(self) -> str:
        return f"Result(rowcount={self._rowcount})"


class DelayedState(StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"


class DelayedResult:
    """Row count of a statement buffered in a transaction.

    Handed to the caller when the statement is buffered and filled in when
    the transaction commits. Reading ``rowcount`` before then raises
    ``ResultNotReadyError``; after a rollback or failed commit the result is
    ``ABANDONED`` and stays unreadable.
    """

    def __init__(self, sql: str) -> None:
        """Initialize for the buffered statement text."""
        self.sql = sql
        self._state = DelayedState.PENDING
        self._result: Result | None = None

    @property
    def state(self) -> DelayedState:
        return self._state

    @property
    def resolved(self) -> bool:
        return self._state is DelayedState.RESOLVED

    @property
    def rowcount(self) -> int:
        """Affected row count once the transaction has committed."""
        if self._result is None:
            raise ResultNotReadyError(f"result is {self._state}: transaction not committed")
        return self._result.rowcount

    @property
    def lastrowid(self) -> None:
        return None

    def _resolve(self, result: Result) -> None:
        if self._state is not DelayedState.PENDING:
            raise InvariantViolation(f"delayed result resolved while {self._state}")
        self._result = result
        self._state = DelayedState.RESOLVED

    def _abandon(self) -> None:
        if self._state is DelayedState.PENDING:
            self._state = DelayedState.ABANDONED

    def __repr__(self) -> str:
        if self._result is None:
            return f"DelayedResult({self._state})"
        return f"DelayedResult(rowcount={self._result.rowcount})"


def _decode_field(field: dict[str, Any]) -> Any:
    """Convert a Data API ``Field`` union into a Python value."""
    if field.get("isNull"):
        return None
    if "booleanValue" in field:
        return field["booleanValue"]
    if "longValue" in field:
        return field["longValue"]
    if "doubleValue" in field:
        return field["doubleValue"]
    if "stringValue" in field:
        return field["stringValue"]
    if "blobValue" in field:
        blob = field["blobValue"]
        # boto3 hands back bytes; raw JSON responses carry base64 text
        return blob if isinstance(blob, bytes) else base64.b64decode(blob)
    if "arrayValue" in field:
        return _decode_array(field["arrayValue"])
    return None


def _decode_array(array: dict[str, Any]) -> list[Any]:
    for key in ("booleanValues", "longValues", "doubleValues", "stringValues"):
        if key in array:
            return list(array[key])
    if "arrayValues" in array:
        return [_decode_array(a) for a in array["arrayValues"]]
    return []


class RedshiftDataRow:
    """A single record with named and positional access."""

    def __init__(self, columns: list[str], values: list[Any]) -> None:
        """Initialize with column names and decoded values."""
        self._columns = columns
        self._values = values

    def __getitem__(self, key: str | int) -> Any:
        """Get a column value by name or position."""
        if isinstance(key, int):
            return self._values[key]
        try:
            return self._values[self._columns.index(key)]
        except ValueError:
            raise KeyError(key) from None

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def keys(self) -> list[str]:
        """Return column names."""
        return list(self._columns)

    def __repr__(self) -> str:
        return f"RedshiftDataRow({dict(zip(self._columns, self._values, strict=False))!r})"


class RedshiftDataRows:
    """Cursor over a finished statement's result set.

    Pages are pulled lazily with GetStatementResult as rows are consumed.
    A cursor built without a statement id is empty; ``Connection.query``
    uses that for statements that produce no result set.
    """

    def __init__(
        self,
        client: RedshiftDataClient | None,
        statement_id: str | None,
        rowcount: int = -1,
    ) -> None:
        """Initialize for ``statement_id`` with the row count from DescribeStatement."""
        self._client = client
        self._statement_id = statement_id
        self._rowcount = rowcount
        self._columns: list[str] | None = None
        self._buffer: deque[RedshiftDataRow] = deque()
        self._next_token: str | None = None
        self._exhausted = client is None or statement_id is None
        self._closed = False

    @property
    def statement_id(self) -> str | None:
        return self._statement_id

    @property
    def rowcount(self) -> int:
        """Total rows in the result set (or affected rows for no-result statements)."""
        return self._rowcount

    @property
    def description(self) -> list[str] | None:
        """Column names, available once the first page is fetched."""
        return self._columns

    async def _fetch_page(self) -> None:
        if self._client is None:
            self._exhausted = True
            return
        kwargs: dict[str, Any] = {"Id": self._statement_id}
        if self._next_token:
            kwargs["NextToken"] = self._next_token
        page = await self._client.get_statement_result(**kwargs)
        if self._columns is None:
            self._columns = [
                col.get("label") or col.get("name", "") for col in page.get("ColumnMetadata", [])
            ]
        records = page.get("Records", [])
        self._buffer.extend(
            RedshiftDataRow(self._columns, [_decode_field(f) for f in record])
            for record in records
        )
        self._next_token = page.get("NextToken")
        self._exhausted = not self._next_token
        logger.debug(
            "[%s] fetched %d records (more=%s)", self._statement_id, len(records), not self._exhausted
        )

    async def fetchone(self) -> Row | None:
        """Fetch the next row, or None if exhausted."""
        while not self._buffer and not self._exhausted and not self._closed:
            await self._fetch_page()
        if not self._buffer:
            return None
        return self._buffer.popleft()

    async def fetchmany(self, size: int) -> list[Row]:
        """Fetch up to ``size`` rows."""
        rows: list[Row] = []
        while len(rows) < size:
            row = await self.fetchone()
            if row is None:
                break
            rows.append(row)
        return rows

    async def fetchall(self) -> list[Row]:
        """Fetch all remaining rows."""
        while not self._exhausted and not self._closed:
            await self._fetch_page()
        remaining: list[Row] = list(self._buffer)
        self._buffer.clear()
        return remaining

    def __aiter__(self) -> AsyncIterator[Row]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Row]:
        while (row := await self.fetchone()) is not None:
            yield row

    async def close(self) -> None:
        """Stop fetching; buffered rows are dropped."""
        self._closed = True
        self._buffer.clear()
