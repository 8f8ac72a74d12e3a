"""Statement models mirroring the Redshift Data API payloads."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StatementStatus(StrEnum):
    """Status values reported by DescribeStatement."""

    SUBMITTED = "SUBMITTED"
    PICKED = "PICKED"
    STARTED = "STARTED"
    FINISHED = "FINISHED"
    ABORTED = "ABORTED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        """Whether polling can stop at this status."""
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset(
    {StatementStatus.FINISHED, StatementStatus.ABORTED, StatementStatus.FAILED}
)


class SubStatement(BaseModel):
    """One statement of a batch, as enumerated by DescribeStatement."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="Id")
    status: StatementStatus | None = Field(default=None, alias="Status")
    has_result_set: bool = Field(default=False, alias="HasResultSet")
    result_rows: int = Field(default=-1, alias="ResultRows")
    error: str | None = Field(default=None, alias="Error")
    query_string: str | None = Field(default=None, alias="QueryString")


class StatementDescription(BaseModel):
    """Parsed DescribeStatement response."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="Id")
    status: StatementStatus = Field(alias="Status")
    has_result_set: bool = Field(default=False, alias="HasResultSet")
    result_rows: int = Field(default=-1, alias="ResultRows")
    error: str | None = Field(default=None, alias="Error")
    query_string: str | None = Field(default=None, alias="QueryString")
    sub_statements: list[SubStatement] = Field(default_factory=list, alias="SubStatements")

    @property
    def error_message(self) -> str:
        return self.error or ""


class Argument(BaseModel):
    """A single bound argument: optional name, 1-based ordinal, raw value."""

    name: str = ""
    ordinal: int = Field(ge=1)
    value: Any = None
