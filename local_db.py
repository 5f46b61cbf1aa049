#!/usr/bin/env python3
"""
Local SQLite Cache Database
===========================

Owns the single SQLite connection used by the recipe and category stores.

Features:
- Idempotent schema creation (safe to open an existing cache)
- Schema version tracking in sync_metadata
- Nested transactions (outer BEGIN/COMMIT, inner SAVEPOINTs)
- Key/value sync metadata (last sync timestamps)

The handle is created and closed by the process entry point and passed to the
stores explicitly:

    db = LocalDatabase(DATABASE_PATH)
    try:
        recipes = RecipeStore(db)
        ...
    finally:
        db.close()
"""

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional

from tools.logging_utils import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

# categories.parent_uid deliberately has no FOREIGN KEY: the remote category
# feed may be cyclic or reference missing parents, and upserts must accept a
# temporarily dangling parent.
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS recipes (
    uid TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    ingredients TEXT,
    directions TEXT,
    description TEXT,
    notes TEXT,
    nutritional_info TEXT,
    servings TEXT,
    prep_time TEXT,
    cook_time TEXT,
    total_time TEXT,
    difficulty TEXT,
    rating INTEGER DEFAULT 0,
    source TEXT,
    source_url TEXT,
    image_url TEXT,
    photo BLOB,
    photo_large BLOB,
    in_trash INTEGER DEFAULT 0,  -- soft delete flag
    on_favorites INTEGER DEFAULT 0,
    on_grocery_list INTEGER DEFAULT 0,
    scale TEXT,
    hash TEXT,
    photo_hash TEXT,
    created TEXT,
    updated TEXT
);

CREATE TABLE IF NOT EXISTS categories (
    uid TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    order_flag INTEGER,
    parent_uid TEXT,
    created TEXT,
    updated TEXT
);

CREATE TABLE IF NOT EXISTS recipe_categories (
    recipe_uid TEXT NOT NULL,
    category_uid TEXT NOT NULL,
    PRIMARY KEY (recipe_uid, category_uid),
    FOREIGN KEY (recipe_uid) REFERENCES recipes(uid) ON DELETE CASCADE,
    FOREIGN KEY (category_uid) REFERENCES categories(uid) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS sync_metadata (
    key TEXT PRIMARY KEY,
    value TEXT,
    last_sync TEXT
);

CREATE INDEX IF NOT EXISTS idx_recipes_name ON recipes(name COLLATE NOCASE);
CREATE INDEX IF NOT EXISTS idx_recipes_rating ON recipes(rating DESC);
CREATE INDEX IF NOT EXISTS idx_recipes_in_trash ON recipes(in_trash);
CREATE INDEX IF NOT EXISTS idx_recipes_favorites ON recipes(on_favorites);
CREATE INDEX IF NOT EXISTS idx_categories_name ON categories(name COLLATE NOCASE);
CREATE INDEX IF NOT EXISTS idx_categories_parent ON categories(parent_uid);
CREATE INDEX IF NOT EXISTS idx_recipe_categories_category ON recipe_categories(category_uid);
"""


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LocalStoreError(Exception):
    """Base exception for local cache errors."""


class DuplicateKeyError(LocalStoreError):
    """Raised by create() when the uid is already stored. Use upsert() instead."""

    def __init__(self, table: str, uid: str):
        self.table = table
        self.uid = uid
        super().__init__(f"[{table}] uid already exists: {uid}")


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string (the format of created/updated)."""
    return datetime.now(timezone.utc).isoformat()


class LocalDatabase:
    """
    SQLite handle for the recipe cache.
    """

    DEFAULT_BUSY_TIMEOUT_MS = 30000

    def __init__(self, db_path: str = ":memory:", busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS):
        """
        Open (and if needed create) the cache database.

        Args:
            db_path: SQLite file path, or ":memory:" for a throwaway cache
            busy_timeout_ms: How long to wait on a locked database
        """
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(self.db_path, timeout=max(1.0, busy_timeout_ms / 1000))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        if self.db_path != ":memory:":
            self.conn.execute("PRAGMA journal_mode = WAL")

        self._init_schema()
        logger.debug(f"LocalDatabase opened: {self.db_path}")

    def _init_schema(self) -> None:
        """Create tables and record the schema version."""
        self.conn.executescript(SCHEMA_SQL)

        current = self.get_metadata("schema_version")
        current_version = int(current) if current else 0
        if current_version < SCHEMA_VERSION:
            logger.info(f"💾 Cache schema migrated from version {current_version} to {SCHEMA_VERSION}")
            self.set_metadata("schema_version", str(SCHEMA_VERSION))

    @property
    def closed(self) -> bool:
        return self.conn is None

    def close(self) -> None:
        """Close the connection. Safe to call twice."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            logger.debug(f"LocalDatabase closed: {self.db_path}")

    def __enter__(self) -> "LocalDatabase":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block atomically.

        The outermost block issues BEGIN/COMMIT; nested blocks use a SAVEPOINT
        so an inner failure only rolls back the inner work.
        """
        conn = self.conn
        if conn.in_transaction:
            savepoint = f"sp_{uuid.uuid4().hex}"
            conn.execute(f"SAVEPOINT {savepoint}")
            try:
                yield conn
                conn.execute(f"RELEASE SAVEPOINT {savepoint}")
            except BaseException:
                conn.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
                conn.execute(f"RELEASE SAVEPOINT {savepoint}")
                raise
            return

        conn.execute("BEGIN")
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise

    def load_keep_set(self, name: str, uids: Iterable[str]) -> str:
        """
        Fill a temp table with uids and return its name.

        Used by delete_outstanding() so keep sets are not limited by SQLite's
        bound-parameter maximum. Must be called inside a transaction.
        """
        table = f"temp.keep_{name}"
        self.conn.execute(f"CREATE TEMP TABLE IF NOT EXISTS keep_{name} (uid TEXT PRIMARY KEY)")
        self.conn.execute(f"DELETE FROM {table}")
        self.conn.executemany(
            f"INSERT OR IGNORE INTO {table} (uid) VALUES (?)",
            ((uid,) for uid in uids),
        )
        return table

    # -------------------------------------------------------------------------
    # Sync metadata
    # -------------------------------------------------------------------------

    def get_metadata(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM sync_metadata WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def get_last_sync(self, key: str) -> Optional[str]:
        """When the metadata key was last written (ISO string), or None."""
        row = self.conn.execute("SELECT last_sync FROM sync_metadata WHERE key = ?", (key,)).fetchone()
        return row["last_sync"] if row else None

    def set_metadata(self, key: str, value: str) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO sync_metadata (key, value, last_sync) VALUES (?, ?, ?)",
                (key, value, utc_now()),
            )
