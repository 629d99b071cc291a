"""SQLite connection for the alert store.

One aiosqlite connection per process. File databases run in WAL mode with a
busy timeout so the scheduled check and a poll loop can share the file. The
schema is brought up to date from ``migrations/NNN_*.sql`` on every connect.
"""

import datetime
import logging
from pathlib import Path
from types import TracebackType
from typing import NamedTuple

import aiosqlite

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"
DEFAULT_BUSY_TIMEOUT_MS = 5000
_IN_MEMORY = ":memory:"


class Migration(NamedTuple):
    version: int
    path: Path

    def sql(self) -> str:
        return self.path.read_text(encoding="utf-8")


def discover_migrations(directory: Path = MIGRATIONS_DIR) -> list[Migration]:
    """Migration files in version order. The version is the numeric filename prefix."""
    return sorted(
        Migration(int(path.name.split("_", 1)[0]), path) for path in directory.glob("*.sql")
    )


class Database:
    """Owns the alert store connection.

    Usage::

        async with Database("data/alerts.db") as db:
            repo = AlertRepository(db)
    """

    def __init__(
        self,
        db_path: str = "data/alerts.db",
        *,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        migrations_dir: Path = MIGRATIONS_DIR,
    ) -> None:
        self._db_path = db_path
        self._busy_timeout_ms = busy_timeout_ms
        self._migrations_dir = migrations_dir
        self._connection: aiosqlite.Connection | None = None

    @property
    def is_file(self) -> bool:
        return self._db_path != _IN_MEMORY

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            msg = "Alert store is not connected; call connect() or use 'async with'."
            raise RuntimeError(msg)
        return self._connection

    async def connect(self) -> None:
        """Open the file (creating its directory), set pragmas and migrate."""
        if self._connection is not None:
            return
        if self.is_file:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(self._db_path)
        try:
            for pragma in self._pragmas():
                await conn.execute(pragma)
            version = await self._migrate(conn)
        except BaseException:
            await conn.close()
            raise
        self._connection = conn
        logger.info("Alert store open at %s (schema v%d)", self._db_path, version)

    async def close(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        logger.info("Alert store closed: %s", self._db_path)

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def schema_version(self) -> int:
        """Highest migration applied, 0 for an empty store."""
        cursor = await self.connection.execute(
            "SELECT COALESCE(MAX(version), 0) FROM schema_version"
        )
        row = await cursor.fetchone()
        return int(row[0]) if row is not None else 0

    def _pragmas(self) -> list[str]:
        pragmas = [
            f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}",
            "PRAGMA foreign_keys=ON",
        ]
        if self.is_file:
            pragmas.insert(0, "PRAGMA journal_mode=WAL")
        return pragmas

    async def _migrate(self, conn: aiosqlite.Connection) -> int:
        await conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version "
            "(version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
        )
        await conn.commit()

        cursor = await conn.execute("SELECT version FROM schema_version")
        applied = {row[0] for row in await cursor.fetchall()}
        pending = [m for m in discover_migrations(self._migrations_dir) if m.version not in applied]

        for migration in pending:
            logger.info("Applying schema migration %03d (%s)", migration.version, migration.path.name)
            # executescript() commits as it goes; the version row is written
            # last, so a migration that fails halfway reruns on next connect.
            await conn.executescript(migration.sql())
            await conn.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (migration.version, datetime.datetime.now(datetime.UTC).isoformat()),
            )
            await conn.commit()

        return max(applied | {m.version for m in pending}, default=0)
