"""Tests for the recipe table and the recipe/category association."""
import pytest

from local_db import DuplicateKeyError, LocalStoreError
from models import Category, Recipe


@pytest.fixture
def categories(category_store):
    for uid in ("c1", "c2", "c3"):
        category_store.create(Category(uid=uid, name=uid.upper()))
    return category_store


def _recipe(uid, name=None, **fields):
    return Recipe(uid=uid, name=name or f"Recipe {uid}", **fields)


class TestCreateAndRead:

    def test_create_returns_stored_recipe_with_timestamps(self, recipe_store):
        stored = recipe_store.create(_recipe("r1", ingredients="eggs"))
        assert stored.uid == "r1"
        assert stored.ingredients == "eggs"
        assert stored.created is not None
        assert stored.updated is not None

    def test_create_keeps_supplied_created(self, recipe_store):
        stored = recipe_store.create(_recipe("r1", created="2020-01-01 00:00:00"))
        assert stored.created == "2020-01-01 00:00:00"

    def test_create_duplicate_raises(self, recipe_store):
        recipe_store.create(_recipe("r1"))
        with pytest.raises(DuplicateKeyError) as exc_info:
            recipe_store.create(_recipe("r1"))
        assert exc_info.value.uid == "r1"
        assert isinstance(exc_info.value, LocalStoreError)

    def test_booleans_round_trip_as_bool(self, recipe_store):
        recipe_store.create(_recipe("r1", on_favorites=True))
        stored = recipe_store.get_by_uid("r1")
        assert stored.on_favorites is True
        assert stored.in_trash is False
        assert stored.on_grocery_list is False

    def test_get_by_uid_unknown_is_none(self, recipe_store):
        assert recipe_store.get_by_uid("missing") is None

    def test_get_all_orders_by_name_case_insensitive(self, recipe_store):
        recipe_store.create(_recipe("r1", "banana bread"))
        recipe_store.create(_recipe("r2", "Apple pie"))
        recipe_store.create(_recipe("r3", "carrot cake"))
        assert [r.name for r in recipe_store.get_all()] == ["Apple pie", "banana bread", "carrot cake"]

    def test_get_all_excludes_trash_unless_requested(self, recipe_store):
        recipe_store.create(_recipe("r1"))
        recipe_store.create(_recipe("r2", in_trash=True))
        assert [r.uid for r in recipe_store.get_all()] == ["r1"]
        assert {r.uid for r in recipe_store.get_all(include_trashed=True)} == {"r1", "r2"}
        assert recipe_store.count() == 1
        assert recipe_store.count(include_trashed=True) == 2

    def test_search_by_name(self, recipe_store):
        recipe_store.create(_recipe("r1", "Chicken Soup"))
        recipe_store.create(_recipe("r2", "Beef stew"))
        recipe_store.create(_recipe("r3", "100% rye"))
        assert [r.uid for r in recipe_store.search_by_name("chicken")] == ["r1"]
        assert [r.uid for r in recipe_store.search_by_name("%")] == ["r3"]

    def test_favorites_and_rating(self, recipe_store):
        recipe_store.create(_recipe("r1", rating=5, on_favorites=True))
        recipe_store.create(_recipe("r2", rating=2))
        recipe_store.create(_recipe("r3", rating=4, in_trash=True, on_favorites=True))
        assert [r.uid for r in recipe_store.get_favorites()] == ["r1"]
        assert [r.uid for r in recipe_store.get_by_rating(4)] == ["r1"]


class TestUpdateAndUpsert:

    def test_update_merges_only_supplied_fields(self, recipe_store):
        recipe_store.create(_recipe("r1", ingredients="eggs", notes="keep me"))
        updated = recipe_store.update("r1", {"ingredients": "flour"})
        assert updated.ingredients == "flour"
        assert updated.notes == "keep me"

    def test_update_unknown_uid_returns_none(self, recipe_store):
        assert recipe_store.update("missing", {"name": "x"}) is None

    def test_update_unknown_field_raises(self, recipe_store):
        recipe_store.create(_recipe("r1"))
        with pytest.raises(ValueError):
            recipe_store.update("r1", {"colour": "red"})

    def test_update_refreshes_updated_stamp(self, recipe_store):
        recipe_store.create(_recipe("r1", updated="2000-01-01T00:00:00+00:00"))
        updated = recipe_store.update("r1", {"notes": "n"})
        assert updated.updated != "2000-01-01T00:00:00+00:00"

    def test_update_cannot_change_uid(self, recipe_store):
        recipe_store.create(_recipe("r1"))
        recipe_store.update("r1", {"uid": "r2"})
        assert recipe_store.get_by_uid("r1") is not None
        assert recipe_store.get_by_uid("r2") is None

    def test_upsert_inserts_then_overwrites(self, recipe_store):
        recipe_store.upsert(_recipe("r1", notes="old", ingredients="eggs"))
        recipe_store.upsert(_recipe("r1", "Renamed", ingredients="flour"))
        stored = recipe_store.get_by_uid("r1")
        assert stored.name == "Renamed"
        assert stored.ingredients == "flour"
        # Full overwrite: fields absent from the new entity are cleared
        assert stored.notes is None
        assert recipe_store.count() == 1

    def test_upsert_is_idempotent(self, recipe_store):
        recipe = _recipe("r1", ingredients="eggs", rating=4, created="2024-01-01")
        first = recipe_store.upsert(recipe).to_dict()
        second = recipe_store.upsert(recipe).to_dict()
        first.pop("updated")
        second.pop("updated")
        assert first == second

    def test_upsert_keeps_created_when_not_supplied(self, recipe_store):
        recipe_store.create(_recipe("r1", created="2020-05-05"))
        stored = recipe_store.upsert(_recipe("r1"))
        assert stored.created == "2020-05-05"


class TestFlags:

    def test_soft_delete_and_restore(self, recipe_store):
        recipe_store.create(_recipe("r1"))
        assert recipe_store.soft_delete("r1") is True
        assert recipe_store.get_by_uid("r1").in_trash is True
        assert recipe_store.restore("r1") is True
        assert recipe_store.get_by_uid("r1").in_trash is False

    def test_toggle_favorite(self, recipe_store):
        recipe_store.create(_recipe("r1"))
        assert recipe_store.toggle_favorite("r1") is True
        assert recipe_store.get_by_uid("r1").on_favorites is True
        recipe_store.toggle_favorite("r1")
        assert recipe_store.get_by_uid("r1").on_favorites is False

    def test_flag_operations_on_unknown_uid_return_false(self, recipe_store):
        assert recipe_store.restore("missing") is False
        assert recipe_store.soft_delete("missing") is False
        assert recipe_store.toggle_favorite("missing") is False
        assert recipe_store.hard_delete("missing") is False


class TestLinkCategories:

    def test_link_replaces_whole_set(self, recipe_store, categories):
        recipe_store.create(_recipe("r1"))
        recipe_store.link_categories("r1", ["c1", "c2"])
        recipe_store.link_categories("r1", ["c2", "c3"])
        assert recipe_store.get_category_uids("r1") == ["c2", "c3"]

    def test_empty_list_clears_links(self, recipe_store, categories):
        recipe_store.create(_recipe("r1"))
        recipe_store.link_categories("r1", ["c1"])
        recipe_store.link_categories("r1", [])
        assert recipe_store.get_category_uids("r1") == []

    def test_duplicates_are_collapsed(self, recipe_store, categories):
        recipe_store.create(_recipe("r1"))
        recipe_store.link_categories("r1", ["c1", "c1", "c2"])
        assert recipe_store.get_category_uids("r1") == ["c1", "c2"]

    def test_unknown_category_raises_and_keeps_old_links(self, recipe_store, categories):
        recipe_store.create(_recipe("r1"))
        recipe_store.link_categories("r1", ["c1"])
        with pytest.raises(LocalStoreError):
            recipe_store.link_categories("r1", ["c2", "nope"])
        assert recipe_store.get_category_uids("r1") == ["c1"]

    def test_unknown_recipe_raises(self, recipe_store, categories):
        with pytest.raises(LocalStoreError):
            recipe_store.link_categories("missing", ["c1"])

    def test_get_by_category_skips_trashed(self, recipe_store, categories):
        recipe_store.create(_recipe("r1"))
        recipe_store.create(_recipe("r2", in_trash=True))
        recipe_store.link_categories("r1", ["c1"])
        recipe_store.link_categories("r2", ["c1"])
        assert [r.uid for r in recipe_store.get_by_category("c1")] == ["r1"]


class TestDeleteOutstanding:

    def test_deletes_recipes_outside_keep_set(self, recipe_store):
        for uid in ("A", "B", "C"):
            recipe_store.create(_recipe(uid))
        assert recipe_store.delete_outstanding({"A", "C", "D"}) is True
        assert {r.uid for r in recipe_store.get_all()} == {"A", "C"}

    def test_nothing_to_delete_returns_false(self, recipe_store):
        recipe_store.create(_recipe("A"))
        assert recipe_store.delete_outstanding(["A"]) is False

    def test_empty_keep_set_deletes_everything(self, recipe_store):
        recipe_store.create(_recipe("A"))
        recipe_store.create(_recipe("B", in_trash=True))
        assert recipe_store.delete_outstanding([]) is True
        assert recipe_store.count(include_trashed=True) == 0

    def test_links_of_deleted_recipes_cascade(self, recipe_store, categories, db):
        recipe_store.create(_recipe("A"))
        recipe_store.link_categories("A", ["c1", "c2"])
        recipe_store.delete_outstanding([])
        remaining = db.conn.execute("SELECT COUNT(*) FROM recipe_categories").fetchone()[0]
        assert remaining == 0

    def test_keep_set_larger_than_parameter_limit(self, recipe_store):
        recipe_store.create(_recipe("keep-me"))
        recipe_store.create(_recipe("drop-me"))
        keep = {f"uid-{i}" for i in range(40000)} | {"keep-me"}
        assert recipe_store.delete_outstanding(keep) is True
        assert [r.uid for r in recipe_store.get_all()] == ["keep-me"]
