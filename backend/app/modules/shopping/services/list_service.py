"""State transitions for a store's single "current" shopping list.

The list is one row holding the whole item array. Adds lock the row and
append, so concurrent adds never lose items. Every other mutation reads the
array, applies a pure transition and writes the whole array back: two
concurrent rewrites computed from the same snapshot race, and the last write
wins for the entire array.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.errors import CapacityExceeded, NotFound, ValidationError
from app.modules.auth.deps import NowUtc
from app.modules.shopping.models import ShoppingList
from app.modules.shopping.services.learned_items_service import UpsertLearnedItem
from app.modules.shopping.validation import ValidateItemName

logger = logging.getLogger("shopping.items")

MAX_BATCH_SIZE = 100
MAX_LIST_ITEMS = 1000
CLEAR_MODES = {"checked", "all"}
UNSECTIONED_NAME = "Unsectioned"


@dataclass(frozen=True)
class NewItem:
    Name: str
    SectionId: str = ""


def _Timestamp(value: datetime) -> str:
    return value.isoformat()


# Pure transitions


def BuildNewItems(entries: list[NewItem], actor_id: int, now: datetime) -> list[dict]:
    if not entries:
        raise ValidationError("Missing name or items in request body")
    if len(entries) > MAX_BATCH_SIZE:
        raise CapacityExceeded(f"Maximum {MAX_BATCH_SIZE} items per request")
    names = [ValidateItemName(entry.Name) for entry in entries]
    return [
        {
            "id": str(uuid.uuid4()),
            "name": name,
            "sectionId": entry.SectionId or "",
            "checked": False,
            "addedBy": actor_id,
            "addedAt": _Timestamp(now),
        }
        for name, entry in zip(names, entries)
    ]


def ApplyItemChanges(item: dict, changes: dict, now: datetime) -> dict:
    updated = dict(item)
    if changes.get("checked") is not None:
        checked = bool(changes["checked"])
        if checked and not item.get("checked"):
            updated["checkedAt"] = _Timestamp(now)
        elif not checked:
            updated.pop("checkedAt", None)
        updated["checked"] = checked
    if changes.get("sectionId") is not None:
        # Trusted as given; not checked against the store's current sections.
        updated["sectionId"] = changes["sectionId"]
    if changes.get("name") is not None:
        updated["name"] = ValidateItemName(changes["name"])
    return updated


def ReplaceItem(items: list[dict], item_id: str, changes: dict, now: datetime) -> tuple[list[dict], dict]:
    for index, item in enumerate(items):
        if item.get("id") == item_id:
            updated = ApplyItemChanges(item, changes, now)
            return items[:index] + [updated] + items[index + 1:], updated
    raise NotFound("Item not found")


def RemoveItem(items: list[dict], item_id: str) -> list[dict]:
    remaining = [item for item in items if item.get("id") != item_id]
    if len(remaining) == len(items):
        raise NotFound("Item not found")
    return remaining


def ClearTransition(items: list[dict], mode: str) -> tuple[list[dict], int]:
    if mode not in CLEAR_MODES:
        raise ValidationError("Mode must be 'checked' or 'all'")
    if mode == "all":
        return [], len(items)
    remaining = [item for item in items if not item.get("checked")]
    return remaining, len(items) - len(remaining)


def UncheckTransition(items: list[dict]) -> list[dict]:
    unchecked = []
    for item in items:
        updated = {key: value for key, value in item.items() if key != "checkedAt"}
        updated["checked"] = False
        unchecked.append(updated)
    return unchecked


def SummarizeItems(items: list[dict]) -> dict:
    checked = sum(1 for item in items if item.get("checked"))
    return {
        "checkedCount": checked,
        "uncheckedCount": len(items) - checked,
        "totalCount": len(items),
    }


def GroupItemsBySection(items: list[dict], sections: list[dict]) -> list[dict]:
    """Group items under the store's sections, in section order.

    Items with no section, or one that no longer exists, are collected in a
    trailing "Unsectioned" group. Unchecked items sort before checked ones.
    """
    ordered_sections = sorted(sections or [], key=lambda section: section.get("order", 0))
    grouped: dict[str, list[dict]] = {section["id"]: [] for section in ordered_sections}
    unsectioned: list[dict] = []
    for item in items:
        bucket = grouped.get(item.get("sectionId") or "")
        if bucket is None:
            unsectioned.append(item)
        else:
            bucket.append(item)

    def _ByChecked(entries: list[dict]) -> list[dict]:
        return sorted(entries, key=lambda entry: bool(entry.get("checked")))

    groups = [
        {
            "sectionId": section["id"],
            "name": section.get("name"),
            "order": section.get("order", 0),
            "items": _ByChecked(grouped[section["id"]]),
        }
        for section in ordered_sections
    ]
    if unsectioned:
        groups.append(
            {
                "sectionId": "",
                "name": UNSECTIONED_NAME,
                "order": len(ordered_sections),
                "items": _ByChecked(unsectioned),
            }
        )
    return groups


# Persistence


def _LoadList(db: Session, store_id: str, for_update: bool = False) -> ShoppingList | None:
    query = db.query(ShoppingList).filter(ShoppingList.StoreId == store_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def ReadListSnapshot(db: Session, store_id: str) -> list[dict] | None:
    """Read half of the read-modify-write cycle. ``None`` when no list row exists."""
    record = _LoadList(db, store_id)
    if record is None:
        return None
    return [dict(item) for item in (record.Items or [])]


def WriteListItems(db: Session, store_id: str, items: list[dict]) -> None:
    """Write half: replaces the whole item array and stamps the list."""
    record = _LoadList(db, store_id)
    if record is None:
        raise NotFound("Shopping list not found")
    record.Items = list(items)
    record.UpdatedAt = NowUtc()
    db.add(record)
    db.commit()


def CreateEmptyList(db: Session, store_id: str, now: datetime | None = None) -> ShoppingList:
    now = now or NowUtc()
    record = ShoppingList(StoreId=store_id, Items=[], CreatedAt=now, UpdatedAt=now)
    db.add(record)
    return record


def ListItems(db: Session, store_id: str) -> list[dict]:
    # A store whose list row was never written reads as an empty list.
    return ReadListSnapshot(db, store_id) or []


def AddItems(db: Session, store_id: str, entries: list[NewItem], actor_id: int) -> list[dict]:
    now = NowUtc()
    new_items = BuildNewItems(entries, actor_id, now)

    record = _LoadList(db, store_id, for_update=True)
    current = list(record.Items or []) if record else []
    if len(current) + len(new_items) > MAX_LIST_ITEMS:
        db.rollback()
        logger.warning(
            "add rejected, list full store_id=%s current=%s adding=%s",
            store_id,
            len(current),
            len(new_items),
        )
        raise CapacityExceeded(
            f"Shopping list would exceed maximum size ({MAX_LIST_ITEMS} items). "
            f"Current: {len(current)}, adding: {len(new_items)}"
        )

    if record is None:
        record = CreateEmptyList(db, store_id, now)
    record.Items = current + new_items
    record.UpdatedAt = now
    db.add(record)

    for item in new_items:
        if item["sectionId"]:
            UpsertLearnedItem(db, store_id, item["name"], item["sectionId"], actor_id)

    db.commit()
    logger.info("items added store_id=%s count=%s actor_id=%s", store_id, len(new_items), actor_id)
    return [{"id": item["id"], "name": item["name"], "sectionId": item["sectionId"]} for item in new_items]


def UpdateItem(db: Session, store_id: str, item_id: str, changes: dict) -> dict:
    items = ReadListSnapshot(db, store_id)
    if items is None:
        raise NotFound("Shopping list not found")
    updated_items, updated = ReplaceItem(items, item_id, changes, NowUtc())
    WriteListItems(db, store_id, updated_items)
    logger.debug("item updated store_id=%s item_id=%s fields=%s", store_id, item_id, sorted(changes))
    return updated


def DeleteItem(db: Session, store_id: str, item_id: str) -> dict:
    items = ReadListSnapshot(db, store_id)
    if items is None:
        raise NotFound("Shopping list not found")
    WriteListItems(db, store_id, RemoveItem(items, item_id))
    logger.debug("item deleted store_id=%s item_id=%s", store_id, item_id)
    return {"deleted": True}


def ClearItems(db: Session, store_id: str, mode: str = "checked") -> dict:
    if mode not in CLEAR_MODES:
        raise ValidationError("Mode must be 'checked' or 'all'")
    items = ReadListSnapshot(db, store_id)
    if items is None:
        return {"cleared": 0, "remaining": 0}
    remaining, cleared = ClearTransition(items, mode)
    WriteListItems(db, store_id, remaining)
    logger.info("items cleared store_id=%s mode=%s cleared=%s", store_id, mode, cleared)
    return {"cleared": cleared, "remaining": len(remaining)}


def UncheckAll(db: Session, store_id: str) -> list[dict]:
    items = ReadListSnapshot(db, store_id)
    if items is None:
        return []
    unchecked = UncheckTransition(items)
    WriteListItems(db, store_id, unchecked)
    return unchecked
