from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import mysql.connector

from ..core.constants import DEFAULT_READ_RETRY_ATTEMPTS


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    read_retry_attempts: int = DEFAULT_READ_RETRY_ATTEMPTS


class DatabaseConnection:
    """Singleton-like DB connection factory.

    Note: We create short-lived connections per operation; every unit of work
    opens, commits (or rolls back) and closes its own connection.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = DatabaseConnection(config)
        return cls._instance

    @property
    def read_retry_attempts(self) -> int:
        return max(1, int(self._config.read_retry_attempts))

    def connect(self):
        return mysql.connector.connect(
            host=self._config.host,
            port=int(self._config.port),
            user=self._config.user,
            password=self._config.password,
            database=self._config.database,
            autocommit=False,
        )
