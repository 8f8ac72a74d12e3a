"""boto3-backed Redshift Data API client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import boto3

from redshift_data_sql.config import RedshiftDataConfig, get_region

logger = logging.getLogger(__name__)


class Boto3RedshiftDataClient:
    """Async adapter over a synchronous boto3 ``redshift-data`` client.

    Each call runs in a worker thread so the event loop keeps servicing
    the wait loop's close signal and deadline while a request is in flight.
    """

    def __init__(self, client: Any) -> None:
        """Initialize with a boto3 client."""
        self._client = client

    async def execute_statement(self, **kwargs: Any) -> dict[str, Any]:
        return await asyncio.to_thread(self._client.execute_statement, **kwargs)

    async def batch_execute_statement(self, **kwargs: Any) -> dict[str, Any]:
        return await asyncio.to_thread(self._client.batch_execute_statement, **kwargs)

    async def describe_statement(self, **kwargs: Any) -> dict[str, Any]:
        return await asyncio.to_thread(self._client.describe_statement, **kwargs)

    async def cancel_statement(self, **kwargs: Any) -> dict[str, Any]:
        return await asyncio.to_thread(self._client.cancel_statement, **kwargs)

    async def get_statement_result(self, **kwargs: Any) -> dict[str, Any]:
        return await asyncio.to_thread(self._client.get_statement_result, **kwargs)


def create_client(config: RedshiftDataConfig) -> Boto3RedshiftDataClient:
    """Default client factory: a boto3 session client for ``redshift-data``.

    Region comes from the config, then REDSHIFT_DATA_REGION / AWS_REGION,
    then boto3's own resolution chain.
    """
    region = config.region or get_region()
    session = boto3.Session(region_name=region)
    logger.info("Creating redshift-data client (region=%s)", session.region_name)
    return Boto3RedshiftDataClient(session.client("redshift-data"))
