#!/usr/bin/env python3
"""
Recipe Store
============

Keyed access to the `recipes` table and the recipe <-> category association.

All writes run inside LocalDatabase.transaction(), so each call is atomic and
can be composed into a larger transaction by the caller (the sync service
wraps upsert + link_categories per recipe).

Usage:
    from local_db import LocalDatabase
    from recipe_store import RecipeStore

    store = RecipeStore(LocalDatabase("data/recipes.db"))
    store.upsert(recipe)
    store.link_categories(recipe.uid, ["cat-1", "cat-2"])
    store.delete_outstanding({"uid-a", "uid-b"})
"""

import sqlite3
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from local_db import DuplicateKeyError, LocalDatabase, LocalStoreError, utc_now
from models import RECIPE_BOOL_FIELDS, RECIPE_FIELDS, Recipe
from tools.logging_utils import get_logger

logger = get_logger(__name__)

_INSERT_SQL = "INSERT INTO recipes ({columns}) VALUES ({placeholders})".format(
    columns=", ".join(RECIPE_FIELDS),
    placeholders=", ".join(f":{name}" for name in RECIPE_FIELDS),
)
_UPDATE_SQL = "UPDATE recipes SET {assignments} WHERE uid = :uid".format(
    assignments=", ".join(f"{name} = :{name}" for name in RECIPE_FIELDS if name != "uid"),
)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class RecipeStore:
    """
    Recipe repository over a LocalDatabase handle.
    """

    TABLE = "recipes"

    def __init__(self, db: LocalDatabase):
        self.db = db

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_recipe(row: sqlite3.Row) -> Recipe:
        data = dict(row)
        for name in RECIPE_BOOL_FIELDS:
            data[name] = bool(data[name])
        data["rating"] = data["rating"] or 0
        return Recipe(**data)

    @staticmethod
    def _to_params(values: Union[Recipe, Mapping[str, Any]]) -> Dict[str, Any]:
        """Convert a Recipe (or full field dict) to SQLite parameters."""
        data = values.to_dict() if isinstance(values, Recipe) else dict(values)
        params = {name: data.get(name) for name in RECIPE_FIELDS}
        for name in RECIPE_BOOL_FIELDS:
            params[name] = 1 if params[name] else 0
        params["rating"] = params["rating"] or 0
        return params

    def _rows(self, sql: str, params: Iterable[Any] = ()) -> List[Recipe]:
        return [self._row_to_recipe(row) for row in self.db.conn.execute(sql, tuple(params))]

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_all(self, include_trashed: bool = False) -> List[Recipe]:
        """All recipes ordered by name (case-insensitive); trashed rows only on request."""
        if include_trashed:
            return self._rows("SELECT * FROM recipes ORDER BY name COLLATE NOCASE")
        return self._rows("SELECT * FROM recipes WHERE in_trash = 0 ORDER BY name COLLATE NOCASE")

    def get_by_uid(self, uid: str) -> Optional[Recipe]:
        row = self.db.conn.execute("SELECT * FROM recipes WHERE uid = ?", (uid,)).fetchone()
        return self._row_to_recipe(row) if row else None

    def exists(self, uid: str) -> bool:
        row = self.db.conn.execute("SELECT 1 FROM recipes WHERE uid = ? LIMIT 1", (uid,)).fetchone()
        return row is not None

    def search_by_name(self, query: str, include_trashed: bool = False) -> List[Recipe]:
        """Case-insensitive substring match on the recipe name."""
        pattern = f"%{_escape_like(query)}%"
        sql = "SELECT * FROM recipes WHERE name LIKE ? ESCAPE '\\' COLLATE NOCASE"
        if not include_trashed:
            sql += " AND in_trash = 0"
        return self._rows(sql + " ORDER BY name COLLATE NOCASE", (pattern,))

    def get_favorites(self) -> List[Recipe]:
        return self._rows(
            "SELECT * FROM recipes WHERE on_favorites = 1 AND in_trash = 0 ORDER BY name COLLATE NOCASE"
        )

    def get_by_rating(self, min_rating: int, include_trashed: bool = False) -> List[Recipe]:
        sql = "SELECT * FROM recipes WHERE rating >= ?"
        if not include_trashed:
            sql += " AND in_trash = 0"
        return self._rows(sql + " ORDER BY rating DESC, name COLLATE NOCASE", (min_rating,))

    def get_by_category(self, category_uid: str) -> List[Recipe]:
        """Non-trashed recipes linked to a category."""
        return self._rows(
            """
            SELECT r.* FROM recipes r
            JOIN recipe_categories rc ON r.uid = rc.recipe_uid
            WHERE rc.category_uid = ? AND r.in_trash = 0
            ORDER BY r.name COLLATE NOCASE
            """,
            (category_uid,),
        )

    def get_category_uids(self, recipe_uid: str) -> List[str]:
        rows = self.db.conn.execute(
            "SELECT category_uid FROM recipe_categories WHERE recipe_uid = ? ORDER BY category_uid",
            (recipe_uid,),
        )
        return [row["category_uid"] for row in rows]

    def count(self, include_trashed: bool = False) -> int:
        sql = "SELECT COUNT(*) FROM recipes"
        if not include_trashed:
            sql += " WHERE in_trash = 0"
        return self.db.conn.execute(sql).fetchone()[0]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, recipe: Recipe) -> Recipe:
        """
        Insert a new recipe.

        Raises:
            DuplicateKeyError: If the uid is already stored (callers wanting
                idempotence should use upsert())
        """
        now = utc_now()
        params = self._to_params(recipe)
        params["created"] = params["created"] or now
        params["updated"] = params["updated"] or now

        with self.db.transaction() as conn:
            if self.exists(recipe.uid):
                raise DuplicateKeyError(self.TABLE, recipe.uid)
            conn.execute(_INSERT_SQL, params)

        logger.debug(f"💾 Created recipe {recipe.uid}")
        return self.get_by_uid(recipe.uid)

    def update(self, uid: str, fields: Mapping[str, Any]) -> Optional[Recipe]:
        """
        Merge the supplied fields over the stored recipe.

        Args:
            uid: Recipe to update
            fields: Column values to overwrite; columns not present are kept

        Returns:
            The updated recipe, or None if the uid is unknown

        Raises:
            ValueError: On field names that are not recipe columns
        """
        unknown = set(fields) - set(RECIPE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown recipe fields: {sorted(unknown)}")

        with self.db.transaction() as conn:
            existing = self.get_by_uid(uid)
            if existing is None:
                return None

            merged = existing.to_dict()
            merged.update(fields)
            merged["uid"] = uid
            if merged.get("created") is None:
                merged["created"] = existing.created
            merged["updated"] = utc_now()
            conn.execute(_UPDATE_SQL, self._to_params(merged))

        return self.get_by_uid(uid)

    def upsert(self, recipe: Recipe) -> Recipe:
        """
        Insert or fully overwrite a recipe.

        Repeated calls with the same recipe converge to the same stored row
        (only `updated` moves).
        """
        with self.db.transaction():
            if self.exists(recipe.uid):
                return self.update(recipe.uid, recipe.to_dict())
            return self.create(recipe)

    def link_categories(self, recipe_uid: str, category_uids: Iterable[str]) -> None:
        """
        Replace the recipe's category links with exactly `category_uids`.

        An empty list clears every link.

        Raises:
            LocalStoreError: If the recipe or one of the categories is not stored
        """
        unique_uids = list(dict.fromkeys(category_uids))

        with self.db.transaction() as conn:
            if not self.exists(recipe_uid):
                raise LocalStoreError(f"[{self.TABLE}] cannot link unknown recipe: {recipe_uid}")
            conn.execute("DELETE FROM recipe_categories WHERE recipe_uid = ?", (recipe_uid,))
            try:
                conn.executemany(
                    "INSERT INTO recipe_categories (recipe_uid, category_uid) VALUES (?, ?)",
                    [(recipe_uid, category_uid) for category_uid in unique_uids],
                )
            except sqlite3.IntegrityError as e:
                raise LocalStoreError(
                    f"[{self.TABLE}] recipe {recipe_uid} references unknown categories: {unique_uids}"
                ) from e

    def delete_outstanding(self, keep_uids: Iterable[str]) -> bool:
        """
        Hard-delete every recipe whose uid is not in keep_uids.

        An empty keep set deletes all recipes. Links of deleted recipes are
        removed by the ON DELETE CASCADE constraint.

        Returns:
            True if at least one recipe was removed
        """
        with self.db.transaction() as conn:
            keep_table = self.db.load_keep_set(self.TABLE, keep_uids)
            cursor = conn.execute(f"DELETE FROM recipes WHERE uid NOT IN (SELECT uid FROM {keep_table})")
            removed = cursor.rowcount

        if removed:
            logger.info(f"🗑️ Removed {removed} recipes no longer present remotely")
        return removed > 0

    def hard_delete(self, uid: str) -> bool:
        """Permanently delete one recipe (and its links)."""
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM recipes WHERE uid = ?", (uid,))
        return cursor.rowcount > 0

    def soft_delete(self, uid: str) -> bool:
        """Move a recipe to the trash (in_trash = 1)."""
        return self._set_flag(uid, "in_trash", True)

    def restore(self, uid: str) -> bool:
        """Take a recipe out of the trash."""
        return self._set_flag(uid, "in_trash", False)

    def toggle_favorite(self, uid: str) -> bool:
        with self.db.transaction():
            recipe = self.get_by_uid(uid)
            if recipe is None:
                return False
            return self._set_flag(uid, "on_favorites", not recipe.on_favorites)

    def _set_flag(self, uid: str, column: str, value: bool) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE recipes SET {column} = ?, updated = ? WHERE uid = ?",
                (1 if value else 0, utc_now(), uid),
            )
        return cursor.rowcount > 0
