"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class DashboardError(Exception):
    """Base class for failures reported to API callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict[str, Any]:
        return {"error": self.message}


class ConfigurationError(DashboardError):
    """Required connection parameters are absent."""

    status_code = 500

    def __init__(self, missing: Sequence[str]) -> None:
        super().__init__("Database configuration error")
        self.missing = list(missing)

    def to_detail(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "details": f"Missing environment variables: {', '.join(self.missing)}",
            "missing_vars": self.missing,
        }


class DatabaseConnectionError(DashboardError):
    """The relational source could not be reached or rejected the login."""

    status_code = 503

    def __init__(
        self,
        reason: str,
        host: Optional[str],
        port: int,
        database: Optional[str],
        user: Optional[str],
    ) -> None:
        super().__init__("Database connection failed")
        self.reason = reason
        self.connection_info = {
            "host": host,
            "port": port,
            "database": database,
            "user": user,
        }

    def to_detail(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "details": self.reason,
            "connection_info": dict(self.connection_info),
        }


class ValidationError(DashboardError):
    """The request was rejected before any query was issued."""

    status_code = 400

    def __init__(self, message: str, allowed_tables: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.allowed_tables = list(allowed_tables)

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"error": self.message}
        if self.allowed_tables:
            detail["allowedTables"] = self.allowed_tables
        return detail


class QueryError(DashboardError):
    """A well-formed statement failed at the source."""

    status_code = 500

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        query: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.query = query

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"error": self.message, "retryable": True}
        if self.reason:
            detail["details"] = self.reason
        if self.query:
            detail["query"] = self.query
        return detail


class SchemaIntrospectionError(QueryError):
    """The column list of a whitelisted table could not be read."""


class DeadlineExceeded(QueryError):
    """The request deadline expired while the source was still working."""

    status_code = 504
