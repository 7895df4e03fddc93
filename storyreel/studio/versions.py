"""Helpers for lists where exactly one entry is active (images, video versions).

Activation always goes through :func:`activate_only`, which deactivates every
entry and activates the target in one pass.
"""
from typing import List, Optional, Protocol, Sequence, TypeVar


class Activatable(Protocol):
    id: str
    is_active: bool


T = TypeVar("T", bound=Activatable)


def activate_only(items: Sequence[Activatable], target_id: str) -> None:
    for item in items:
        item.is_active = item.id == target_id


def append_active(items: List[T], item: T) -> T:
    items.append(item)
    activate_only(items, item.id)
    return item


def find_active(items: Sequence[T]) -> Optional[T]:
    for item in items:
        if item.is_active:
            return item
    return None


def find_by_id(items: Sequence[T], item_id: str) -> Optional[T]:
    for item in items:
        if item.id == item_id:
            return item
    return None
