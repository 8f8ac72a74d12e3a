"""Shared test fixtures."""

from typing import Any

import pytest
import pytest_asyncio

from redshift_data_sql.config import RedshiftDataConfig
from redshift_data_sql.db.connection import Connection


def finished(rows: int = 0, *, has_result_set: bool = False, **extra: Any) -> dict[str, Any]:
    return {"Status": "FINISHED", "HasResultSet": has_result_set, "ResultRows": rows, **extra}


def running(status: str = "STARTED") -> dict[str, Any]:
    return {"Status": status, "HasResultSet": False, "ResultRows": -1}


def failed(message: str) -> dict[str, Any]:
    return {"Status": "FAILED", "Error": message, "HasResultSet": False, "ResultRows": -1}


def aborted(message: str) -> dict[str, Any]:
    return {"Status": "ABORTED", "Error": message, "HasResultSet": False, "ResultRows": -1}


def sub_statements(*rows: int) -> list[dict[str, Any]]:
    return [
        {"Id": f"sub-{i}", "Status": "FINISHED", "ResultRows": n, "HasResultSet": False}
        for i, n in enumerate(rows, start=1)
    ]


class FakeRedshiftDataClient:
    """Scripted in-memory Data API.

    Each submitted statement consumes the next script queued with
    ``script()``; describe calls walk through that script and then keep
    returning its last entry. Unscripted statements finish immediately.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.pages: dict[str, list[dict[str, Any]]] = {}
        self.submit_error: Exception | None = None
        self.describe_error: Exception | None = None
        self._scripts: list[list[dict[str, Any]]] = []
        self._describes: dict[str, list[dict[str, Any]]] = {}
        self._next_id = 0

    def script(self, *responses: dict[str, Any]) -> None:
        """Queue describe responses for the next submitted statement."""
        self._scripts.append(list(responses))

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for n, kwargs in self.calls if n == name]

    def _submit(self) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self._next_id += 1
        statement_id = f"stmt-{self._next_id}"
        script = self._scripts.pop(0) if self._scripts else [finished()]
        self._describes[statement_id] = [{"Id": statement_id, **r} for r in script]
        return statement_id

    async def execute_statement(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("execute_statement", kwargs))
        return {"Id": self._submit()}

    async def batch_execute_statement(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("batch_execute_statement", kwargs))
        return {"Id": self._submit()}

    async def describe_statement(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("describe_statement", kwargs))
        if self.describe_error is not None:
            raise self.describe_error
        seq = self._describes[kwargs["Id"]]
        return seq.pop(0) if len(seq) > 1 else seq[0]

    async def cancel_statement(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("cancel_statement", kwargs))
        return {"Status": True}

    async def get_statement_result(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("get_statement_result", kwargs))
        pages = self.pages[kwargs["Id"]]
        token = kwargs.get("NextToken")
        return pages[int(token) if token else 0]


@pytest.fixture
def config():
    """Workgroup config with a fast polling interval."""
    return RedshiftDataConfig(workgroup_name="wg", database="dev", polling=0.001, timeout=5.0)


@pytest.fixture
def fake_client():
    """Scripted fake Data API client."""
    return FakeRedshiftDataClient()


@pytest_asyncio.fixture
async def conn(fake_client, config):
    """Connection backed by the fake client."""
    connection = Connection(fake_client, config)
    yield connection
    await connection.close()
