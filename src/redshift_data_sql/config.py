"""Connection configuration: environment variables and DSN parsing.

Supported DSN forms::

    arn:aws:secretsmanager:<region>:<account>:secret:<name>?timeout=30s
    <db_user>@cluster(<cluster_identifier>)/<database>?polling=500ms
    workgroup(<workgroup_name>)/<database>?region=us-east-1
"""

from __future__ import annotations

import os
import re
from typing import Any
from urllib.parse import parse_qsl, unquote, urlencode, urlsplit

from pydantic import BaseModel, Field

from redshift_data_sql.errors import InvalidDSNError

DEFAULT_TIMEOUT = 15 * 60.0
DEFAULT_POLLING = 0.01

_DURATION_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def get_dsn() -> str:
    """Return the default connection string from REDSHIFT_DATA_DSN."""
    return os.environ.get("REDSHIFT_DATA_DSN", "")


def get_timeout() -> float:
    """Return the statement deadline in seconds from REDSHIFT_DATA_TIMEOUT."""
    return _env_duration("REDSHIFT_DATA_TIMEOUT", DEFAULT_TIMEOUT)


def get_polling() -> float:
    """Return the status polling interval in seconds from REDSHIFT_DATA_POLLING."""
    return _env_duration("REDSHIFT_DATA_POLLING", DEFAULT_POLLING)


def _env_duration(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return _positive_duration(name, raw) if raw else default


def get_region() -> str | None:
    """Return the AWS region from REDSHIFT_DATA_REGION, falling back to AWS_REGION."""
    return os.environ.get("REDSHIFT_DATA_REGION") or os.environ.get("AWS_REGION")


def parse_duration(value: str) -> float:
    """Parse a duration like ``"1h30m"``, ``"500ms"`` or ``"2.5s"`` into seconds.

    A bare number is taken as seconds.
    """
    value = value.strip()
    if not value:
        raise ValueError("empty duration")
    try:
        return float(value)
    except ValueError:
        pass
    total = 0.0
    pos = 0
    for match in _DURATION_RE.finditer(value):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(value):
        raise ValueError(f"invalid duration {value!r}")
    return total


def format_duration(seconds: float) -> str:
    """Render seconds in the compact form accepted by ``parse_duration``."""
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{int(hours)}h")
    if minutes:
        parts.append(f"{int(minutes)}m")
    if secs or not parts:
        parts.append(f"{secs:g}s")
    return "".join(parts)


class RedshiftDataConfig(BaseModel):
    """Session target and timing for a Data API connection."""

    cluster_identifier: str | None = None
    database: str | None = None
    db_user: str | None = None
    workgroup_name: str | None = None
    secrets_arn: str | None = None
    region: str | None = None
    timeout: float = Field(default_factory=get_timeout, gt=0)
    polling: float = Field(default_factory=get_polling, gt=0)
    params: dict[str, str] = Field(default_factory=dict)

    def session_params(self) -> dict[str, Any]:
        """Session-target kwargs for ExecuteStatement / BatchExecuteStatement."""
        fields = {
            "ClusterIdentifier": self.cluster_identifier,
            "Database": self.database,
            "DbUser": self.db_user,
            "SecretArn": self.secrets_arn,
            "WorkgroupName": self.workgroup_name,
        }
        return {k: v for k, v in fields.items() if v is not None}

    def base_string(self) -> str:
        """DSN without query parameters, or "" if the target is incomplete."""
        if self.secrets_arn is not None:
            return self.secrets_arn
        host = ""
        if self.cluster_identifier is not None and self.db_user is not None:
            host = f"{self.db_user}@cluster({self.cluster_identifier})"
        if self.workgroup_name is not None:
            host = f"workgroup({self.workgroup_name})"
        if not host or self.database is None:
            return ""
        return f"{host}/{self.database}"

    def set_params(self, params: dict[str, str]) -> None:
        """Apply DSN query parameters. Unknown keys are kept in ``params``."""
        params = dict(params)
        if "timeout" in params:
            self.timeout = _positive_duration("timeout", params.pop("timeout"))
        if "polling" in params:
            self.polling = _positive_duration("polling", params.pop("polling"))
        if "region" in params:
            self.region = params.pop("region")
        self.params = params

    def with_region(self, region: str) -> RedshiftDataConfig:
        """Return a copy targeting ``region``."""
        return self.model_copy(update={"region": region})

    def __str__(self) -> str:
        base = self.base_string()
        if not base:
            return ""
        query = {}
        if self.timeout != DEFAULT_TIMEOUT:
            query["timeout"] = format_duration(self.timeout)
        if self.polling != DEFAULT_POLLING:
            query["polling"] = format_duration(self.polling)
        if self.region is not None:
            query["region"] = self.region
        if query:
            return f"{base}?{urlencode(query)}"
        return base


def _positive_duration(key: str, raw: str) -> float:
    try:
        seconds = parse_duration(raw)
    except ValueError as exc:
        raise InvalidDSNError(f"error parsing {key}: {exc}") from exc
    if seconds <= 0:
        raise InvalidDSNError(f"error parsing {key}: must be positive, got {raw!r}")
    return seconds


def _strip_wrapper(host: str, prefix: str) -> str | None:
    if host.startswith(prefix) and host.endswith(")"):
        return host[len(prefix) : -1] or None
    return None


def parse_dsn(dsn: str) -> RedshiftDataConfig:
    """Parse a connection string into a ``RedshiftDataConfig``."""
    if not dsn:
        raise InvalidDSNError("dsn is empty")

    if dsn.startswith("arn:"):
        arn, _, query = dsn.partition("?")
        cfg = RedshiftDataConfig(secrets_arn=arn)
        if query:
            cfg.set_params(dict(parse_qsl(query, keep_blank_values=True)))
        return cfg

    parts = urlsplit("redshift-data://" + dsn)
    database = unquote(parts.path.lstrip("/")) or None
    if database is None:
        raise InvalidDSNError("dsn is invalid: database is missing")

    cfg = RedshiftDataConfig(database=database)
    cfg.set_params(dict(parse_qsl(parts.query, keep_blank_values=True)))

    user, _, host = parts.netloc.rpartition("@")
    if cluster := _strip_wrapper(host, "cluster("):
        cfg.cluster_identifier = cluster
        cfg.db_user = unquote(user) or None
        return cfg
    if workgroup := _strip_wrapper(host, "workgroup("):
        cfg.workgroup_name = workgroup
        return cfg

    raise InvalidDSNError(
        "dsn is invalid: workgroup(name)/database or username@cluster(name)/database"
        " or secrets_arn"
    )
