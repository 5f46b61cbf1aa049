"""
Parent-before-child ordering for category imports.

Usage:
    from utils.category_order import sort_categories_by_dependency

    ordered = sort_categories_by_dependency(remote_categories)
"""

import logging
from typing import Any, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _get(record: Any, name: str) -> Optional[str]:
    """Read uid/parent_uid from a dict-like or attribute record."""
    if isinstance(record, dict):
        value = record.get(name)
    else:
        value = getattr(record, name, None)
    return value or None


def sort_categories_by_dependency(categories: Sequence[T]) -> List[T]:
    """
    Reorder categories so every parent precedes its children.

    Frontier expansion: each round places (in input order) every remaining
    record whose parent_uid is empty or already placed. A round that places
    nothing means a cycle, a self-parent or a parent missing from the input;
    the remaining records are then appended as-is and parent-before-child is
    not guaranteed for them.

    Args:
        categories: Records with `uid` and `parent_uid` (dicts or objects)

    Returns:
        The same records, each exactly once
    """
    ordered: List[T] = []
    inserted = set()
    remaining = list(categories)

    while remaining:
        ready = []
        blocked = []
        for record in remaining:
            parent_uid = _get(record, "parent_uid")
            if parent_uid is None or parent_uid in inserted:
                ready.append(record)
            else:
                blocked.append(record)

        if not ready:
            logger.warning(
                f"⚠️ {len(blocked)} categories have cyclic or missing parents; "
                f"importing them in feed order: {[_get(r, 'uid') for r in blocked]}"
            )
            ordered.extend(blocked)
            break

        ordered.extend(ready)
        inserted.update(_get(record, "uid") for record in ready)
        remaining = blocked

    return ordered
