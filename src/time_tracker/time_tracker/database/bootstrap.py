from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

import mysql.connector

logger = logging.getLogger(__name__)

_QUOTES = ("'", '"', "`")


@dataclass(frozen=True)
class DBTarget:
    host: str
    port: int
    user: str
    password: str
    database: str


def _as_target(db_config: dict) -> DBTarget:
    return DBTarget(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "time_tracker")),
    )


def _connect(target: DBTarget, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _drop_database_statements(sql: str) -> str:
    # The target database comes from DB_CONFIG, not from the script.
    return re.sub(r"(?im)^\s*(CREATE\s+DATABASE|USE)\b[^;]*;", "", sql)


def iter_sql_statements(sql: str) -> Iterator[str]:
    """Split a schema script on top-level ``;``.

    ``--`` and ``#`` comments run to the end of the line and are dropped,
    but only outside string and identifier literals.
    """
    stmt: list[str] = []
    quote: Optional[str] = None
    i, n = 0, len(sql)

    while i < n:
        ch = sql[i]
        if quote:
            stmt.append(ch)
            if ch == "\\" and i + 1 < n:
                stmt.append(sql[i + 1])
                i += 1
            elif ch == quote:
                quote = None
        elif ch in _QUOTES:
            quote = ch
            stmt.append(ch)
        elif ch == "#" or sql.startswith("--", i):
            eol = sql.find("\n", i)
            i = n if eol == -1 else eol
            continue
        elif ch == ";":
            text = "".join(stmt).strip()
            if text:
                yield text
            stmt = []
        else:
            stmt.append(ch)
        i += 1

    text = "".join(stmt).strip()
    if text:
        yield text


def ensure_database_exists(db_config: dict) -> None:
    target = _as_target(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        logger.debug("Database %s is present on %s:%s", target.database, target.host, target.port)
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: Union[str, Path]) -> int:
    """Create the database if needed and run every statement of ``schema_path``.

    Returns the number of statements executed. The script must be idempotent.
    """
    ensure_database_exists(db_config)
    sql = _drop_database_statements(Path(schema_path).read_text(encoding="utf-8"))
    statements = list(iter_sql_statements(sql))

    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        for stmt in statements:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()
    logger.info("Applied %d schema statements from %s", len(statements), schema_path)
    return len(statements)


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
