"""Redshift Data API connections, transactions and results."""

from redshift_data_sql.db.backend import ClientFactory, Cursor, RedshiftDataClient, Row
from redshift_data_sql.db.client import Boto3RedshiftDataClient, create_client
from redshift_data_sql.db.connection import Connection, connect
from redshift_data_sql.db.result import DelayedResult, RedshiftDataRow, RedshiftDataRows, Result
from redshift_data_sql.db.transaction import Transaction

__all__ = [
    "Boto3RedshiftDataClient",
    "ClientFactory",
    "Connection",
    "Cursor",
    "DelayedResult",
    "RedshiftDataClient",
    "RedshiftDataRow",
    "RedshiftDataRows",
    "Result",
    "Row",
    "Transaction",
    "connect",
    "create_client",
]
