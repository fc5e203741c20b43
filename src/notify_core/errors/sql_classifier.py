"""
SQL error classification for the notification store.

Maps SQLAlchemy / DBAPI exceptions onto the PersistenceError hierarchy:

- IntegrityError (duplicate key, NOT NULL)      -> ConstraintViolation
- OperationalError, InterfaceError, pool errors -> ConnectivityError
- DataError, ProgrammingError, other statements -> QueryError
- ValueError from the driver (unbindable values) -> QueryError
"""

from typing import Optional

from sqlalchemy import exc as sa_exc

from notify_core.errors.exceptions import (
    ConnectivityError,
    ConstraintViolation,
    PersistenceError,
    QueryError,
    classify_exception,
)
from notify_core.types import ErrorCategory

_CONNECTIVITY_TYPES = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
)

_QUERY_TYPES = (
    sa_exc.DataError,
    sa_exc.ProgrammingError,
    sa_exc.NotSupportedError,
    sa_exc.StatementError,
    # psycopg2 raises a bare ValueError for values it cannot bind, e.g. NUL bytes
    ValueError,
)


def classify_sql_error(
    error: Exception,
    operation: str,
    context: Optional[dict] = None,
) -> PersistenceError:
    """
    Classify a store failure into a PersistenceError subclass.

    Args:
        error: Exception raised by SQLAlchemy or the DBAPI driver
        operation: Short name of the failed operation (e.g. "save")
        context: Additional context for the error

    Returns:
        ConstraintViolation, ConnectivityError or QueryError
    """
    if isinstance(error, PersistenceError):
        return error

    ctx = {"operation": operation, "error_type": type(error).__name__}
    if context:
        ctx.update(context)

    # IntegrityError is also a StatementError, so it is checked first.
    if isinstance(error, sa_exc.IntegrityError):
        return ConstraintViolation(f"{operation} rejected by constraint", cause=error, context=ctx)

    if isinstance(error, sa_exc.DBAPIError) and error.connection_invalidated:
        return ConnectivityError(f"{operation} lost its connection", cause=error, context=ctx)

    if isinstance(error, _CONNECTIVITY_TYPES):
        return ConnectivityError(f"{operation} could not reach the store", cause=error, context=ctx)

    if isinstance(error, _QUERY_TYPES):
        return QueryError(f"{operation} rejected by the store", cause=error, context=ctx)

    if classify_exception(error) == ErrorCategory.TRANSIENT:
        return ConnectivityError(f"{operation} could not reach the store", cause=error, context=ctx)

    return QueryError(f"{operation} failed", cause=error, context=ctx)


__all__ = ["classify_sql_error"]
