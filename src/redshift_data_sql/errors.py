"""Exception hierarchy for the Redshift Data API driver.

Everything a caller is expected to handle derives from ``RedshiftDataError``.
``InvariantViolation`` does not: it signals a defect in the
driver itself and should never be caught by application code.
"""

from __future__ import annotations


class RedshiftDataError(Exception):
    """Base class for all caller-facing driver errors."""


class NotSupportedError(RedshiftDataError):
    """The requested capability does not exist in the Data API execution model."""


class TransactionStateError(RedshiftDataError):
    """Operation is invalid for the connection's current transaction state."""


class InTransactionError(TransactionStateError):
    """Operation is invalid while a transaction is open."""


class NotInTransactionError(TransactionStateError):
    """Operation requires an open transaction."""


class ConnectionClosedError(RedshiftDataError):
    """Operation attempted on a closed connection."""


class StatementError(RedshiftDataError):
    """A statement could not be executed remotely.

    ``phase`` names where it went wrong (``submit``, ``wait``, ``commit``,
    ``commit-batch``) and ``statement_id`` is the Data API id when one was
    assigned.
    """

    phase = "execute"

    def __init__(
        self, message: str, *, statement_id: str | None = None, phase: str | None = None
    ) -> None:
        self.statement_id = statement_id
        if phase is not None:
            self.phase = phase
        super().__init__(message)


class StatementSubmitError(StatementError):
    """The Data API rejected the submit call."""

    phase = "submit"


class StatementWaitError(StatementError):
    """Polling the statement status failed."""

    phase = "wait"


class StatementFailedError(StatementError):
    """Statement reached FAILED; message is the remote diagnostic."""

    phase = "wait"


class StatementAbortedError(StatementError):
    """Statement reached ABORTED; message is the remote diagnostic."""

    phase = "wait"


class StatementStatusError(StatementError):
    """Wait loop returned a status that is not FINISHED, FAILED or ABORTED."""

    phase = "wait"


class StatementCancelledError(StatementError):
    """Local wait ended early because of the deadline or a closed connection.

    The remote statement is not cancelled and may still be running.
    """

    phase = "wait"


class BatchResultMismatchError(RedshiftDataError, IndexError):
    """Batch response enumerated fewer sub-statements than were submitted."""


class ResultNotReadyError(RedshiftDataError):
    """Delayed result read before its transaction committed."""


class InvalidDSNError(RedshiftDataError, ValueError):
    """Connection string could not be parsed."""


class InvariantViolation(RuntimeError):  # noqa: N818
    """Internal bookkeeping was corrupted. Indicates a driver bug."""
