import json
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from aiosqlite import Connection as SQLiteConnection, Error as SQLiteError, connect
from opentelemetry.instrumentation.sqlite3 import SQLite3Instrumentor

from dont_forget.helpers.config_models.flags import SqliteModel
from dont_forget.helpers.logging import logger
from dont_forget.models.error import PersistenceError
from dont_forget.models.readiness import ReadinessEnum
from dont_forget.persistence.iflags import IFlagStore

# Instrument sqlite
SQLite3Instrumentor().instrument()


class SqliteFlagStore(IFlagStore):
    """
    Flags stored in a SQLite table, one row per user flag, the value as a JSON document.

    Merge and delete are read-modify-write, run in a single immediate transaction.
    """

    _config: SqliteModel
    _first_run_done: bool

    def __init__(self, config: SqliteModel):
        logger.info(
            "Using SQLite flags at %s with table %s", config.full_path(), config.table
        )
        self._config = config
        self._first_run_done = False

    async def readiness(self) -> ReadinessEnum:
        """
        Check the readiness of the SQLite database.

        This checks if the database is reachable and can be queried.
        """
        try:
            async with self._use_db() as db:
                await db.execute("SELECT 1")
            return ReadinessEnum.OK
        except Exception:
            logger.exception("Unknown error while checking SQLite readiness")
        return ReadinessEnum.FAIL

    async def get(
        self,
        user_id: str,
        namespace: str,
        key: str,
    ) -> dict[str, Any] | None:
        """
        Get a flag.

        If the flag does not exist, return `None`. Raises `PersistenceError` if the database cannot be read.
        """
        logger.debug("Loading flag %s/%s for %s", namespace, key, user_id)
        try:
            async with self._use_db() as db:
                return await self._read(db, user_id, namespace, key)
        except SQLiteError as e:
            logger.exception("Error getting flag")
            raise PersistenceError(
                f"Failed to read flag {namespace}/{key} of {user_id}"
            ) from e

    async def replace(
        self,
        user_id: str,
        namespace: str,
        key: str,
        value: dict[str, Any],
    ) -> bool:
        logger.debug("Replacing flag %s/%s for %s", namespace, key, user_id)
        try:
            async with self._use_db() as db:
                await self._write(db, user_id, namespace, key, value)
                await db.commit()
        except SQLiteError:
            logger.exception("Error replacing flag")
            return False
        return True

    async def merge(
        self,
        user_id: str,
        namespace: str,
        key: str,
        value: dict[str, Any],
    ) -> bool:
        logger.debug("Merging flag %s/%s for %s", namespace, key, user_id)
        try:
            async with self._use_db() as db:
                # Lock the database for writes until commit
                await db.execute("BEGIN IMMEDIATE")
                flag = await self._read(db, user_id, namespace, key) or {}
                flag.update(value)
                await self._write(db, user_id, namespace, key, flag)
                await db.commit()
        except SQLiteError:
            logger.exception("Error merging flag")
            return False
        return True

    async def delete(
        self,
        user_id: str,
        namespace: str,
        key: str,
        sub_key: str,
    ) -> bool:
        logger.debug(
            "Deleting key %s from flag %s/%s for %s", sub_key, namespace, key, user_id
        )
        try:
            async with self._use_db() as db:
                # Lock the database for writes until commit
                await db.execute("BEGIN IMMEDIATE")
                flag = await self._read(db, user_id, namespace, key)
                if flag is None or sub_key not in flag:
                    await db.rollback()
                    return True
                flag.pop(sub_key)
                await self._write(db, user_id, namespace, key, flag)
                await db.commit()
        except SQLiteError:
            logger.exception("Error deleting flag key")
            return False
        return True

    async def _read(
        self,
        db: SQLiteConnection,
        user_id: str,
        namespace: str,
        key: str,
    ) -> dict[str, Any] | None:
        cursor = await db.execute(
            f"SELECT data FROM {self._config.table} WHERE user_id = ? AND namespace = ? AND key = ?",
            (
                user_id,  # user_id
                namespace,  # namespace
                key,  # key
            ),
        )
        row = await cursor.fetchone()
        if not row:
            return None
        try:
            res = json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning("Flag %s/%s for %s is not valid JSON", namespace, key, user_id)
            return None
        if not isinstance(res, dict):
            logger.warning("Flag %s/%s for %s is not a mapping", namespace, key, user_id)
            return None
        return res

    async def _write(
        self,
        db: SQLiteConnection,
        user_id: str,
        namespace: str,
        key: str,
        value: dict[str, Any],
    ) -> None:
        await db.execute(
            f"INSERT OR REPLACE INTO {self._config.table} VALUES (?, ?, ?, ?)",
            (
                user_id,  # user_id
                namespace,  # namespace
                key,  # key
                json.dumps(value),  # data
            ),
        )

    async def _init_db(self, db: SQLiteConnection) -> None:
        """
        Initialize the database.
        """
        logger.debug("First run, init SQLite flags table")
        await db.execute(
            f"CREATE TABLE IF NOT EXISTS {self._config.table} (user_id VARCHAR(64), namespace VARCHAR(64), key VARCHAR(64), data TEXT, PRIMARY KEY (user_id, namespace, key))"
        )
        # Write changes to disk
        await db.commit()

    @asynccontextmanager
    async def _use_db(self) -> AsyncGenerator[SQLiteConnection]:
        """
        Generate the SQLite client and close it after use.

        Table is created on the first connection of this instance, concurrent first connections all run the idempotent creation.
        """
        # Create folder
        db_folder = os.path.dirname(self._config.full_path())
        if db_folder:
            os.makedirs(name=db_folder, exist_ok=True)

        # Connect to DB
        async with connect(
            database=self._config.full_path(),
            isolation_level=None,  # Transactions are managed explicitly
        ) as db:
            if not self._first_run_done:
                await self._init_db(db)
                self._first_run_done = True
            yield db
