"""Transaction option models."""

from enum import StrEnum

from pydantic import BaseModel


class IsolationLevel(StrEnum):
    """Isolation levels a caller may request. Only DEFAULT is supported."""

    DEFAULT = "default"
    READ_UNCOMMITTED = "read_uncommitted"
    READ_COMMITTED = "read_committed"
    WRITE_COMMITTED = "write_committed"
    REPEATABLE_READ = "repeatable_read"
    SNAPSHOT = "snapshot"
    SERIALIZABLE = "serializable"
    LINEARIZABLE = "linearizable"


class TxOptions(BaseModel):
    """Options passed to ``Connection.begin``."""

    isolation: IsolationLevel = IsolationLevel.DEFAULT
    read_only: bool = False
