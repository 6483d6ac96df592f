from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from functools import wraps
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.constants import DEFAULT_READ_RETRY_ATTEMPTS
from ..core.exceptions import ConflictError, DomainError, InternalError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

# Lock contention between concurrent writers: the client may retry.
_CONTENTION_ERRNOS = {errorcode.ER_LOCK_DEADLOCK, errorcode.ER_LOCK_WAIT_TIMEOUT}


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def db_transaction(
    conn_factory: DatabaseConnection,
    *,
    isolation_level: str = "READ COMMITTED",
    conflict_message: str = "Conflicting change, please retry",
    dictionary: bool = True,
):
    """Run one unit of work in an explicit transaction.

    Invariant-enforcing writes go through here: callers lock rows with
    ``SELECT ... FOR UPDATE`` and rely on the unique indexes in schema.sql.
    A duplicate key or lock contention surfaces as ConflictError, any other
    connector failure as InternalError. Domain errors roll back and propagate.
    """

    conn = conn_factory.connect()
    try:
        conn.start_transaction(isolation_level=isolation_level)
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except DomainError:
        conn.rollback()
        raise
    except mysql.connector.Error as exc:
        conn.rollback()
        if exc.errno == errorcode.ER_DUP_ENTRY or exc.errno in _CONTENTION_ERRNOS:
            logger.warning("Transaction conflict (errno=%s): %s", exc.errno, exc)
            raise ConflictError(conflict_message) from exc
        logger.error("Transaction failed (errno=%s): %s", exc.errno, exc)
        raise InternalError("Database write failed") from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def retry_reads(method):
    """Retry an idempotent repository read on transient connection errors.

    The wrapped method must belong to a repository holding ``_conn_factory``.
    Never use this on writes.
    """

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        attempts = getattr(self._conn_factory, "read_retry_attempts", DEFAULT_READ_RETRY_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            try:
                return method(self, *args, **kwargs)
            except (mysql.connector.OperationalError, mysql.connector.InterfaceError) as exc:
                if attempt >= attempts:
                    logger.error("Read %s failed after %d attempts: %s", method.__name__, attempt, exc)
                    raise InternalError("Database read failed") from exc
                logger.warning("Read %s failed (attempt %d/%d), retrying: %s", method.__name__, attempt, attempts, exc)
                time.sleep(0.05 * 2 ** (attempt - 1))

    return wrapper


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def in_clause(values) -> str:
    """Placeholder list for ``IN (...)`` with one ``%s`` per value."""
    return ", ".join(["%s"] * len(values))
