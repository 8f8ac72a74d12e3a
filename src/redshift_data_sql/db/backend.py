"""Protocols at the driver's seams.

``Row`` and ``Cursor`` describe what callers get back from a query.
``RedshiftDataClient`` is the remote collaborator: an async view of the
boto3 ``redshift-data`` client taking boto3 keyword arguments and returning
boto3 response dicts. Tests substitute a scripted fake.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from redshift_data_sql.config import RedshiftDataConfig


@runtime_checkable
class Row(Protocol):
    """A result row supporting both named and positional access."""

    def __getitem__(self, key: str | int) -> Any:
        """Get a column value by name or position."""
        ...

    def keys(self) -> Any:
        """Return column names."""
        ...


@runtime_checkable
class Cursor(Protocol):
    """Async row cursor returned by ``Connection.query``."""

    @property
    def rowcount(self) -> int:
        """Number of rows in the result set, or affected by the statement."""
        ...

    async def fetchone(self) -> Row | None:
        """Fetch the next row, or None if exhausted."""
        ...

    async def fetchall(self) -> list[Row]:
        """Fetch all remaining rows."""
        ...


@runtime_checkable
class RedshiftDataClient(Protocol):
    """Async Redshift Data API client."""

    async def execute_statement(self, **kwargs: Any) -> dict[str, Any]:
        """Submit one statement. Response carries ``Id``."""
        ...

    async def batch_execute_statement(self, **kwargs: Any) -> dict[str, Any]:
        """Submit several statements to run as one transaction."""
        ...

    async def describe_statement(self, **kwargs: Any) -> dict[str, Any]:
        """Return status, row counts and sub-statements for ``Id``."""
        ...

    async def cancel_statement(self, **kwargs: Any) -> dict[str, Any]:
        """Ask the service to cancel a running statement."""
        ...

    async def get_statement_result(self, **kwargs: Any) -> dict[str, Any]:
        """Fetch one page of result records."""
        ...


ClientFactory = Callable[["RedshiftDataConfig"], RedshiftDataClient]
