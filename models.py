"""
Domain records for the recipe cache.

Recipe and Category mirror the columns of the local SQLite tables; SyncStatus
is the transient result/progress record of a sync pass.
"""

import copy
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional


@dataclass
class Recipe:
    uid: str
    name: str
    ingredients: Optional[str] = None
    directions: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    nutritional_info: Optional[str] = None
    servings: Optional[str] = None
    prep_time: Optional[str] = None
    cook_time: Optional[str] = None
    total_time: Optional[str] = None
    difficulty: Optional[str] = None
    rating: int = 0
    source: Optional[str] = None
    source_url: Optional[str] = None
    image_url: Optional[str] = None
    photo: Optional[bytes] = None
    photo_large: Optional[bytes] = None
    in_trash: bool = False
    on_favorites: bool = False
    on_grocery_list: bool = False
    scale: Optional[str] = None
    hash: Optional[str] = None
    photo_hash: Optional[str] = None
    created: Optional[str] = None
    updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Category:
    uid: str
    name: str
    order_flag: Optional[int] = None
    parent_uid: Optional[str] = None
    created: Optional[str] = None
    updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


RECIPE_FIELDS = tuple(f.name for f in fields(Recipe))
CATEGORY_FIELDS = tuple(f.name for f in fields(Category))

RECIPE_BOOL_FIELDS = ("in_trash", "on_favorites", "on_grocery_list")


@dataclass
class SyncError:
    uid: str
    error: str


@dataclass
class CategoryCounts:
    total: int = 0
    synced: int = 0


@dataclass
class SyncStatus:
    """
    Progress/result record of one sync call.

    Never persisted. Callbacks receive snapshot() copies, so holding on to one
    never observes later progress.
    """
    total: int = 0
    synced: int = 0
    failed: int = 0
    errors: List[SyncError] = field(default_factory=list)
    categories: CategoryCounts = field(default_factory=CategoryCounts)

    @property
    def processed(self) -> int:
        return self.synced + self.failed

    def snapshot(self) -> "SyncStatus":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
