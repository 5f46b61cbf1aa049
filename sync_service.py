#!/usr/bin/env python3
"""
Paprika Sync Service
====================

Reconciles the local recipe cache with the remote Paprika account.

Two passes, categories first so recipes can be linked to them:

1. Category pass: list -> dependency order -> upsert each -> delete the rest
2. Recipe pass:   list -> delete the rest -> per recipe: pace, fetch detail,
                  upsert + link categories (one transaction)

A failure to list is fatal for the pass (SyncAbortedError). In the recipe pass
a failure on one recipe is recorded in the status and the loop moves on.

Usage:
    from sync_service import SyncService

    service = SyncService(client, RecipeStore(db), CategoryStore(db))
    status = service.sync_all(on_progress=print)
    print(f"{status.synced}/{status.total} synced, {status.failed} failed")
"""

import json
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from category_store import CategoryStore
from config import SYNC_CONFIG
from local_db import utc_now
from models import RECIPE_FIELDS, Category, CategoryCounts, Recipe, SyncError, SyncStatus
from paprika_client import PaprikaClientError
from recipe_store import RecipeStore
from tools.logging_utils import get_logger, log_with_emoji
from tools.pacing import pacer_from_config
from utils.category_order import sort_categories_by_dependency

logger = get_logger(__name__)

ProgressCallback = Callable[[SyncStatus], None]
StopCheck = Callable[[], bool]

LAST_CATEGORY_SYNC_KEY = "last_category_sync"
LAST_RECIPE_SYNC_KEY = "last_recipe_sync"

# Binary columns are local-only; the sync API carries photo file names instead.
_LOCAL_ONLY_FIELDS = ("photo", "photo_large")


# =============================================================================
# EXCEPTIONS
# =============================================================================

class SyncAbortedError(Exception):
    """A sync pass could not start (the remote list call failed)."""


class RecipeNotFoundError(LookupError):
    """The recipe is not in the local cache."""

    def __init__(self, uid: str):
        self.uid = uid
        super().__init__(f"Recipe {uid} not found in local cache")


# =============================================================================
# REMOTE INTERFACE
# =============================================================================

class RemoteRecipeService(Protocol):
    """What SyncService needs from the remote side (PaprikaClient implements it)."""

    def list_categories(self) -> List[Dict[str, Any]]: ...

    def list_recipes(self) -> List[Dict[str, Any]]: ...

    def get_recipe_detail(self, uid: str) -> Dict[str, Any]: ...

    def create_recipe(self, data: Dict[str, Any]) -> Any: ...

    def update_recipe(self, uid: str, data: Dict[str, Any]) -> Any: ...

    def delete_recipe(self, uid: str) -> Any: ...


# =============================================================================
# MAPPING
# =============================================================================

def category_from_remote(item: Mapping[str, Any]) -> Category:
    return Category(
        uid=item["uid"],
        name=item.get("name") or "",
        order_flag=item.get("order_flag"),
        parent_uid=item.get("parent_uid") or None,
    )


def recipe_from_remote(item: Mapping[str, Any]) -> Recipe:
    """
    Map a remote recipe detail to a Recipe.

    Missing flags become False, a missing rating 0, and `updated` is stamped
    with the sync time. Photo blobs are not part of the sync payload and are
    left empty.

    Raises:
        ValueError: If the detail has no name
    """
    uid = item["uid"]
    if not item.get("name"):
        raise ValueError(f"Recipe {uid} has no name")

    values = {name: item.get(name) for name in RECIPE_FIELDS if name not in _LOCAL_ONLY_FIELDS}
    values.update(
        uid=uid,
        rating=item.get("rating") or 0,
        in_trash=bool(item.get("in_trash")),
        on_favorites=bool(item.get("on_favorites")),
        on_grocery_list=bool(item.get("on_grocery_list")),
        updated=utc_now(),
    )
    return Recipe(**values)


def recipe_to_remote(recipe: Recipe, category_uids: List[str]) -> Dict[str, Any]:
    """Build the payload for create_recipe/update_recipe."""
    data = {name: value for name, value in recipe.to_dict().items() if name not in _LOCAL_ONLY_FIELDS}
    data["categories"] = list(category_uids)
    return data


def _emit(on_progress: Optional[ProgressCallback], status: SyncStatus) -> None:
    if on_progress is not None:
        on_progress(status.snapshot())


# =============================================================================
# SERVICE
# =============================================================================

class SyncService:
    """
    Sync orchestrator.

    Args:
        remote: RemoteRecipeService implementation (usually PaprikaClient)
        recipes: RecipeStore over the cache database
        categories: CategoryStore over the same database
        pacer: Object with wait(), called before every detail fetch
            (default: from the `sync` section of config.yaml)
    """

    def __init__(
        self,
        remote: RemoteRecipeService,
        recipes: RecipeStore,
        categories: CategoryStore,
        pacer=None,
    ):
        self.remote = remote
        self.recipes = recipes
        self.categories = categories
        self.pacer = pacer if pacer is not None else pacer_from_config(SYNC_CONFIG)
        self.db = recipes.db

    # -------------------------------------------------------------------------
    # Full passes
    # -------------------------------------------------------------------------

    def sync_categories(self, on_progress: Optional[ProgressCallback] = None) -> SyncStatus:
        """
        Mirror the remote category list into the cache.

        Store errors are not recoverable here: they propagate and end the pass.

        Raises:
            SyncAbortedError: If the category list cannot be fetched
        """
        logger.info("📂 Syncing categories...")
        status = SyncStatus()

        try:
            remote_categories = self.remote.list_categories()
        except Exception as e:
            logger.error(f"❌ Could not list categories: {e}")
            raise SyncAbortedError(f"Failed to sync categories: {e}") from e

        status.categories.total = len(remote_categories)
        _emit(on_progress, status)

        for item in sort_categories_by_dependency(remote_categories):
            self.categories.upsert(category_from_remote(item))
            status.categories.synced += 1
            _emit(on_progress, status)

        self.categories.delete_outstanding(item["uid"] for item in remote_categories)

        self.db.set_metadata(LAST_CATEGORY_SYNC_KEY, json.dumps({"total": status.categories.total}))
        log_with_emoji(logger, f"✅ Categories synced: {status.categories.synced}/{status.categories.total}")
        return status

    def sync_recipes(
        self,
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopCheck] = None,
    ) -> SyncStatus:
        """
        Mirror the remote recipe list into the cache.

        Args:
            on_progress: Called with a status snapshot after every change
            should_stop: Checked before each recipe; True ends the loop early

        Raises:
            SyncAbortedError: If the recipe list cannot be fetched
        """
        return self._sync_recipes(SyncStatus(), on_progress, should_stop)

    def sync_all(
        self,
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopCheck] = None,
    ) -> SyncStatus:
        """
        Categories, then recipes.

        Returns:
            The recipe pass status, carrying the category counts
        """
        category_status = self.sync_categories(on_progress)
        status = SyncStatus(categories=CategoryCounts(**vars(category_status.categories)))
        return self._sync_recipes(status, on_progress, should_stop)

    def _sync_recipes(
        self,
        status: SyncStatus,
        on_progress: Optional[ProgressCallback],
        should_stop: Optional[StopCheck],
    ) -> SyncStatus:
        logger.info("🍲 Syncing recipes...")

        try:
            index = self.remote.list_recipes()
        except Exception as e:
            logger.error(f"❌ Could not list recipes: {e}")
            raise SyncAbortedError(f"Failed to sync recipes: {e}") from e

        status.total = len(index)
        _emit(on_progress, status)

        # Drop recipes deleted remotely before spending time on details
        self.recipes.delete_outstanding(entry["uid"] for entry in index)

        stopped = False
        for entry in index:
            if should_stop is not None and should_stop():
                stopped = True
                logger.warning(f"🛑 Stop requested: {status.processed}/{status.total} recipes processed")
                break

            uid = entry["uid"]
            self.pacer.wait()
            try:
                self._fetch_and_store(uid)
                status.synced += 1
            except Exception as e:
                logger.warning(f"⚠️  Failed to sync recipe {uid}: {e}")
                status.failed += 1
                status.errors.append(SyncError(uid=uid, error=str(e)))
            _emit(on_progress, status)

        self.db.set_metadata(
            LAST_RECIPE_SYNC_KEY,
            json.dumps({
                "total": status.total,
                "synced": status.synced,
                "failed": status.failed,
                "stopped": stopped,
            }),
        )
        prefix = "✅" if not status.failed else "⚠️"
        log_with_emoji(logger, f"{prefix} Recipes synced: {status.synced}/{status.total} ({status.failed} failed)")
        return status

    def _fetch_and_store(self, uid: str) -> Recipe:
        detail = self.remote.get_recipe_detail(uid)
        recipe = recipe_from_remote(detail)
        with self.db.transaction():
            stored = self.recipes.upsert(recipe)
            self.recipes.link_categories(uid, detail.get("categories") or [])
        logger.debug(f"💾 Synced recipe {uid}: {recipe.name}")
        return stored

    # -------------------------------------------------------------------------
    # Single-recipe operations
    # -------------------------------------------------------------------------

    def sync_recipe(self, uid: str) -> Recipe:
        """Fetch one recipe and store it with its category links."""
        return self._fetch_and_store(uid)

    def push_recipe(self, uid: str) -> str:
        """
        Send a local recipe to the remote account.

        The remote copy is probed first: update if it answers, create if the
        probe fails.

        Returns:
            "updated" or "created"

        Raises:
            RecipeNotFoundError: If the recipe is not cached locally
        """
        recipe = self.recipes.get_by_uid(uid)
        if recipe is None:
            raise RecipeNotFoundError(uid)

        data = recipe_to_remote(recipe, self.recipes.get_category_uids(uid))

        try:
            self.remote.get_recipe_detail(uid)
        except PaprikaClientError as e:
            logger.debug(f"Remote probe for {uid} failed ({e}); creating")
            self.remote.create_recipe(data)
            logger.info(f"⬆️  Created remote recipe {uid}")
            return "created"

        self.remote.update_recipe(uid, data)
        logger.info(f"⬆️  Updated remote recipe {uid}")
        return "updated"

    def delete_recipe(self, uid: str) -> bool:
        """
        Delete a recipe remotely, then from the cache.

        Returns:
            True if a local row was removed
        """
        self.remote.delete_recipe(uid)
        removed = self.recipes.hard_delete(uid)
        logger.info(f"🗑️ Deleted recipe {uid} (local copy removed: {removed})")
        return removed
