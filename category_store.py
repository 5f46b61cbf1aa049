"""
Category Store
==============

Keyed access to the `categories` table.

Categories form a forest through parent_uid. The remote feed is not trusted to
be well formed, so parent references may be dangling or cyclic; nothing here
assumes otherwise.
"""

import sqlite3
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from local_db import DuplicateKeyError, LocalDatabase, utc_now
from models import CATEGORY_FIELDS, Category
from tools.logging_utils import get_logger

logger = get_logger(__name__)

_INSERT_SQL = "INSERT INTO categories ({columns}) VALUES ({placeholders})".format(
    columns=", ".join(CATEGORY_FIELDS),
    placeholders=", ".join(f":{name}" for name in CATEGORY_FIELDS),
)
_UPDATE_SQL = "UPDATE categories SET {assignments} WHERE uid = :uid".format(
    assignments=", ".join(f"{name} = :{name}" for name in CATEGORY_FIELDS if name != "uid"),
)

_ORDER_BY = "ORDER BY order_flag, name COLLATE NOCASE"


class CategoryStore:
    """
    Category repository over a LocalDatabase handle.
    """

    TABLE = "categories"

    def __init__(self, db: LocalDatabase):
        self.db = db

    @staticmethod
    def _row_to_category(row: sqlite3.Row) -> Category:
        return Category(**dict(row))

    @staticmethod
    def _to_params(values: Union[Category, Mapping[str, Any]]) -> Dict[str, Any]:
        data = values.to_dict() if isinstance(values, Category) else dict(values)
        params = {name: data.get(name) for name in CATEGORY_FIELDS}
        # "" from the remote feed means "no parent"
        params["parent_uid"] = params["parent_uid"] or None
        return params

    def _rows(self, sql: str, params: Iterable[Any] = ()) -> List[Category]:
        return [self._row_to_category(row) for row in self.db.conn.execute(sql, tuple(params))]

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_all(self) -> List[Category]:
        """All categories in sibling order, then name (case-insensitive)."""
        return self._rows(f"SELECT * FROM categories {_ORDER_BY}")

    def get_by_uid(self, uid: str) -> Optional[Category]:
        row = self.db.conn.execute("SELECT * FROM categories WHERE uid = ?", (uid,)).fetchone()
        return self._row_to_category(row) if row else None

    def exists(self, uid: str) -> bool:
        row = self.db.conn.execute("SELECT 1 FROM categories WHERE uid = ? LIMIT 1", (uid,)).fetchone()
        return row is not None

    def count(self) -> int:
        return self.db.conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0]

    def get_by_recipe(self, recipe_uid: str) -> List[Category]:
        return self._rows(
            """
            SELECT c.* FROM categories c
            JOIN recipe_categories rc ON c.uid = rc.category_uid
            WHERE rc.recipe_uid = ?
            ORDER BY c.order_flag, c.name COLLATE NOCASE
            """,
            (recipe_uid,),
        )

    def get_recipe_count(self, category_uid: str) -> int:
        """Number of non-trashed recipes linked to the category."""
        row = self.db.conn.execute(
            """
            SELECT COUNT(*) FROM recipe_categories rc
            JOIN recipes r ON rc.recipe_uid = r.uid
            WHERE rc.category_uid = ? AND r.in_trash = 0
            """,
            (category_uid,),
        ).fetchone()
        return row[0]

    def get_tree(self) -> List[Category]:
        """
        Categories flattened depth-first: each parent followed by its subtree.

        Categories whose parent is not stored are treated as roots. Members of
        a parent cycle are unreachable from any root and are appended at the
        end in get_all() order.
        """
        categories = self.get_all()
        by_uid = {category.uid: category for category in categories}
        children: Dict[str, List[Category]] = {}
        roots: List[Category] = []

        for category in categories:
            if category.parent_uid and category.parent_uid in by_uid:
                children.setdefault(category.parent_uid, []).append(category)
            else:
                roots.append(category)

        flattened: List[Category] = []
        visited = set()
        stack = list(reversed(roots))
        while stack:
            category = stack.pop()
            if category.uid in visited:
                continue
            visited.add(category.uid)
            flattened.append(category)
            stack.extend(reversed(children.get(category.uid, [])))

        flattened.extend(c for c in categories if c.uid not in visited)
        return flattened

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, category: Category) -> Category:
        """
        Insert a new category.

        Raises:
            DuplicateKeyError: If the uid is already stored
        """
        now = utc_now()
        params = self._to_params(category)
        params["created"] = params["created"] or now
        params["updated"] = params["updated"] or now

        with self.db.transaction() as conn:
            if self.exists(category.uid):
                raise DuplicateKeyError(self.TABLE, category.uid)
            conn.execute(_INSERT_SQL, params)

        return self.get_by_uid(category.uid)

    def update(self, uid: str, fields: Mapping[str, Any]) -> Optional[Category]:
        """Merge supplied fields over the stored category; None if uid unknown."""
        unknown = set(fields) - set(CATEGORY_FIELDS)
        if unknown:
            raise ValueError(f"Unknown category fields: {sorted(unknown)}")

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

    def upsert(self, category: Category) -> Category:
        """Insert or fully overwrite a category. A dangling parent_uid is accepted."""
        with self.db.transaction():
            if self.exists(category.uid):
                return self.update(category.uid, category.to_dict())
            return self.create(category)

    def delete_outstanding(self, keep_uids: Iterable[str]) -> bool:
        """
        Hard-delete every category whose uid is not in keep_uids.

        In one transaction: first every parent reference pointing outside the
        keep set is cleared (a single UPDATE), then the categories outside the
        keep set are deleted. An empty keep set deletes all categories.

        Returns:
            True if at least one category was removed
        """
        with self.db.transaction() as conn:
            keep_table = self.db.load_keep_set(self.TABLE, keep_uids)
            orphaned = conn.execute(
                f"""
                UPDATE categories SET parent_uid = NULL, updated = ?
                WHERE parent_uid IS NOT NULL
                  AND parent_uid NOT IN (SELECT uid FROM {keep_table})
                """,
                (utc_now(),),
            ).rowcount
            removed = conn.execute(
                f"DELETE FROM categories WHERE uid NOT IN (SELECT uid FROM {keep_table})"
            ).rowcount

        if removed:
            logger.info(f"🗑️ Removed {removed} categories no longer present remotely ({orphaned} re-parented to root)")
        return removed > 0

    def hard_delete(self, uid: str) -> bool:
        """
        Permanently delete one category.

        Children of the deleted category become roots.
        """
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE categories SET parent_uid = NULL, updated = ? WHERE parent_uid = ?",
                (utc_now(), uid),
            )
            cursor = conn.execute("DELETE FROM categories WHERE uid = ?", (uid,))
        return cursor.rowcount > 0
