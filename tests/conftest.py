"""
Pytest Configuration and Fixtures
=================================

Provides shared fixtures for the test suite:
- In-memory cache database and the two stores over it
- FakeRemote: in-process stand-in for the Paprika API
- SyncService wired to both, without pacing delays

SAFETY: Nothing here talks to the network or to data/. Runtime files (logs)
go to a throwaway directory.
"""

import os
import tempfile

# Must be set before config is imported anywhere
os.environ.setdefault("PAPRIKA_SYNC_DATA_DIR", tempfile.mkdtemp(prefix="paprika-sync-tests-"))

from typing import Any, Dict, List, Optional

import pytest

from category_store import CategoryStore
from local_db import LocalDatabase
from paprika_client import PaprikaAPIError
from recipe_store import RecipeStore
from sync_service import SyncService


# =============================================================================
# Fakes
# =============================================================================

def recipe_detail(uid: str, name: Optional[str] = None, categories: Optional[List[str]] = None, **extra) -> Dict[str, Any]:
    """A remote recipe detail as returned by /sync/recipe/{uid}."""
    detail = {
        "uid": uid,
        "name": name if name is not None else f"Recipe {uid}",
        "ingredients": "1 cup flour",
        "directions": "Mix.",
        "rating": 3,
        "hash": f"hash-{uid}",
        "created": "2024-01-01 10:00:00",
        "categories": categories or [],
    }
    detail.update(extra)
    return detail


class FakeRemote:
    """
    In-memory RemoteRecipeService.

    `recipes` maps uid -> detail dict; uids in `failures` raise the mapped
    exception from get_recipe_detail.
    """

    def __init__(self, categories: Optional[List[Dict[str, Any]]] = None, recipes: Optional[List[Dict[str, Any]]] = None):
        self.categories = list(categories or [])
        self.recipes = {r["uid"]: r for r in (recipes or [])}
        self.failures: Dict[str, Exception] = {}
        self.list_error: Optional[Exception] = None
        self.calls: List[tuple] = []

    def list_categories(self):
        self.calls.append(("list_categories",))
        if self.list_error:
            raise self.list_error
        return [dict(c) for c in self.categories]

    def list_recipes(self):
        self.calls.append(("list_recipes",))
        if self.list_error:
            raise self.list_error
        return [{"uid": uid, "hash": detail.get("hash")} for uid, detail in self.recipes.items()]

    def get_recipe_detail(self, uid):
        self.calls.append(("get_recipe_detail", uid))
        if uid in self.failures:
            raise self.failures[uid]
        if uid not in self.recipes:
            raise PaprikaAPIError("HTTP error: 404 Not Found", operation="GET", status_code=404)
        return dict(self.recipes[uid])

    def create_recipe(self, data):
        self.calls.append(("create_recipe", data["uid"]))
        self.recipes[data["uid"]] = dict(data)
        return data

    def update_recipe(self, uid, data):
        self.calls.append(("update_recipe", uid))
        self.recipes[uid] = dict(data)
        return data

    def delete_recipe(self, uid):
        self.calls.append(("delete_recipe", uid))
        self.recipes.pop(uid, None)
        return True


class RecordingPacer:
    """Pacer that never sleeps but records each wait() in the remote's call log."""

    def __init__(self, calls: Optional[List[tuple]] = None):
        self.calls = calls if calls is not None else []
        self.waits = 0

    def wait(self) -> float:
        self.waits += 1
        self.calls.append(("wait",))
        return 0.0


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def db():
    """Fresh in-memory cache database."""
    database = LocalDatabase(":memory:")
    yield database
    database.close()


@pytest.fixture
def recipe_store(db):
    return RecipeStore(db)


@pytest.fixture
def category_store(db):
    return CategoryStore(db)


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def pacer(remote):
    return RecordingPacer(remote.calls)


@pytest.fixture
def service(remote, recipe_store, category_store, pacer):
    return SyncService(remote, recipe_store, category_store, pacer=pacer)


# =============================================================================
# Test Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "readonly: marks test as read-only (no database writes)"
    )
