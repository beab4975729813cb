import logging
import uuid

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import AlreadyShared, CapacityExceeded, DuplicateName, Forbidden, NotFound, ValidationError
from app.modules.auth.deps import NowUtc
from app.modules.auth.models import User
from app.modules.shopping.models import LearnedItem, ShoppingList, Store, StorePendingShare, StoreShare
from app.modules.shopping.services.list_service import CreateEmptyList
from app.modules.shopping.validation import NormalizeEmail, ValidateSectionName, ValidateStoreName

logger = logging.getLogger("shopping.stores")

MAX_STORES_PER_OWNER = 20
DEFAULT_SECTION_NAMES = [
    "Produce",
    "Dairy",
    "Meat & Seafood",
    "Bakery",
    "Pantry",
    "Frozen",
    "Snacks & Beverages",
    "Household",
]


def _NewId() -> str:
    return str(uuid.uuid4())


def RenumberSections(sections: list[dict]) -> list[dict]:
    return [{"id": section["id"], "name": section["name"], "order": index} for index, section in enumerate(sections)]


def BuildDefaultSections() -> list[dict]:
    return RenumberSections([{"id": _NewId(), "name": name} for name in DEFAULT_SECTION_NAMES])


# Lookups and access


def GetStore(db: Session, store_id: str) -> Store:
    store = db.query(Store).filter(Store.Id == store_id).first()
    if not store:
        raise NotFound("Store not found")
    return store


def GetSharedUserIds(db: Session, store_id: str) -> list[int]:
    rows = (
        db.query(StoreShare.UserId)
        .filter(StoreShare.StoreId == store_id)
        .order_by(StoreShare.CreatedAt.asc(), StoreShare.Id.asc())
        .all()
    )
    return [row.UserId for row in rows]


def GetPendingEmails(db: Session, store_id: str) -> list[str]:
    rows = (
        db.query(StorePendingShare.Email)
        .filter(StorePendingShare.StoreId == store_id)
        .order_by(StorePendingShare.CreatedAt.asc(), StorePendingShare.Id.asc())
        .all()
    )
    return [row.Email for row in rows]


def CanAccessStore(db: Session, user_id: int, store_id: str) -> bool:
    store = db.query(Store).filter(Store.Id == store_id).first()
    if not store:
        return False
    if store.OwnerUserId == user_id:
        return True
    return (
        db.query(StoreShare.Id)
        .filter(StoreShare.StoreId == store_id, StoreShare.UserId == user_id)
        .first()
        is not None
    )


def GetAccessibleStore(db: Session, user_id: int, store_id: str) -> Store:
    # Absent and not-shared stores answer the same way.
    if not CanAccessStore(db, user_id, store_id):
        raise NotFound("Store not found or access denied")
    return GetStore(db, store_id)


def GetOwnedStore(db: Session, user_id: int, store_id: str) -> Store:
    store = GetAccessibleStore(db, user_id, store_id)
    if store.OwnerUserId != user_id:
        raise Forbidden("Only the store owner can do that")
    return store


def ListUserStores(db: Session, user_id: int) -> list[dict]:
    owned = (
        db.query(Store)
        .filter(Store.OwnerUserId == user_id)
        .order_by(Store.CreatedAt.asc(), Store.Id.asc())
        .all()
    )
    shared = (
        db.query(Store)
        .join(StoreShare, StoreShare.StoreId == Store.Id)
        .filter(StoreShare.UserId == user_id, Store.OwnerUserId != user_id)
        .order_by(Store.CreatedAt.asc(), Store.Id.asc())
        .all()
    )
    results = []
    for store, is_owner in [(store, True) for store in owned] + [(store, False) for store in shared]:
        results.append(
            {
                "id": store.Id,
                "name": store.Name,
                "isOwner": is_owner,
                "sectionsCount": len(store.Sections or []),
            }
        )
    return results


def SerializeStore(db: Session, store: Store, user_id: int, include_sharing: bool = False) -> dict:
    data = {
        "id": store.Id,
        "name": store.Name,
        "isOwner": store.OwnerUserId == user_id,
        "sections": RenumberSections(store.Sections or []),
    }
    if store.Latitude is not None and store.Longitude is not None:
        data["location"] = {"latitude": store.Latitude, "longitude": store.Longitude}
    if include_sharing:
        data["sharedWith"] = GetSharedUserIds(db, store.Id)
        data["pendingShares"] = GetPendingEmails(db, store.Id)
    return data


# Store lifecycle


def _EnsureUniqueName(db: Session, owner_id: int, name: str, exclude_store_id: str | None = None) -> None:
    query = db.query(Store.Id).filter(
        Store.OwnerUserId == owner_id,
        func.lower(Store.Name) == name.lower(),
    )
    if exclude_store_id:
        query = query.filter(Store.Id != exclude_store_id)
    if query.first():
        raise DuplicateName("You already have a store with that name")


def CreateStore(
    db: Session,
    name: str,
    owner_id: int,
    location: dict | None = None,
) -> Store:
    normalized = ValidateStoreName(name)
    owned_count = db.query(func.count(Store.Id)).filter(Store.OwnerUserId == owner_id).scalar() or 0
    if owned_count >= MAX_STORES_PER_OWNER:
        raise CapacityExceeded(f"Maximum {MAX_STORES_PER_OWNER} stores per user")
    _EnsureUniqueName(db, owner_id, normalized)

    now = NowUtc()
    store = Store(
        Id=_NewId(),
        Name=normalized,
        OwnerUserId=owner_id,
        Sections=BuildDefaultSections(),
        Latitude=(location or {}).get("latitude"),
        Longitude=(location or {}).get("longitude"),
        CreatedAt=now,
        UpdatedAt=now,
    )
    db.add(store)
    db.flush()
    CreateEmptyList(db, store.Id, now)
    db.commit()
    db.refresh(store)
    logger.info("store created store_id=%s owner_id=%s", store.Id, owner_id)
    return store


def _Touch(db: Session, store: Store) -> Store:
    store.UpdatedAt = NowUtc()
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


def UpdateStoreName(db: Session, store: Store, name: str) -> Store:
    normalized = ValidateStoreName(name)
    _EnsureUniqueName(db, store.OwnerUserId, normalized, exclude_store_id=store.Id)
    store.Name = normalized
    return _Touch(db, store)


def UpdateSections(db: Session, store: Store, sections: list[dict]) -> list[dict]:
    """Replace the section list; ``order`` is re-derived from list position."""
    cleaned = []
    seen_ids = set()
    for section in sections:
        section_id = (section.get("id") or "").strip() or _NewId()
        if section_id in seen_ids:
            raise ValidationError("Section ids must be unique")
        seen_ids.add(section_id)
        cleaned.append({"id": section_id, "name": ValidateSectionName(section.get("name"))})
    store.Sections = RenumberSections(cleaned)
    _Touch(db, store)
    return store.Sections


def AddSection(db: Session, store: Store, name: str) -> list[dict]:
    current = RenumberSections(store.Sections or [])
    current.append({"id": _NewId(), "name": ValidateSectionName(name), "order": len(current)})
    store.Sections = current
    _Touch(db, store)
    return store.Sections


def RemoveSection(db: Session, store: Store, section_id: str) -> list[dict]:
    # Items already filed under the section keep their (now dangling) sectionId.
    remaining = [section for section in (store.Sections or []) if section["id"] != section_id]
    store.Sections = RenumberSections(remaining)
    _Touch(db, store)
    return store.Sections


def DeleteStore(db: Session, store: Store) -> None:
    store_id = store.Id
    db.query(LearnedItem).filter(LearnedItem.StoreId == store_id).delete(synchronize_session=False)
    db.query(ShoppingList).filter(ShoppingList.StoreId == store_id).delete(synchronize_session=False)
    db.query(StoreShare).filter(StoreShare.StoreId == store_id).delete(synchronize_session=False)
    db.query(StorePendingShare).filter(StorePendingShare.StoreId == store_id).delete(synchronize_session=False)
    db.delete(store)
    db.commit()
    logger.info("store deleted store_id=%s", store_id)


# Sharing


def ShareStore(db: Session, store: Store, email: str, actor_email: str | None) -> dict:
    normalized = NormalizeEmail(email)
    if actor_email and actor_email.strip().lower() == normalized:
        raise ValidationError("Cannot share with yourself")

    if (
        db.query(StorePendingShare.Id)
        .filter(StorePendingShare.StoreId == store.Id, StorePendingShare.Email == normalized)
        .first()
    ):
        raise AlreadyShared("Invite already sent to this email")

    target = db.query(User).filter(func.lower(User.Email) == normalized).first()
    if target:
        if target.Id == store.OwnerUserId:
            raise ValidationError("Cannot share with the store owner")
        already = (
            db.query(StoreShare.Id)
            .filter(StoreShare.StoreId == store.Id, StoreShare.UserId == target.Id)
            .first()
        )
        if already:
            raise AlreadyShared("Already shared with this user")
        db.add(StoreShare(StoreId=store.Id, UserId=target.Id, CreatedAt=NowUtc()))
        result = {"status": "shared", "userId": target.Id, "email": normalized}
    else:
        db.add(
            StorePendingShare(
                StoreId=store.Id,
                Email=normalized,
                InvitedByUserId=store.OwnerUserId,
                CreatedAt=NowUtc(),
            )
        )
        result = {"status": "pending", "email": normalized}

    store.UpdatedAt = NowUtc()
    db.add(store)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AlreadyShared("Already shared with this user") from exc
    logger.info("store shared store_id=%s status=%s", store.Id, result["status"])
    return result


def UnshareStore(db: Session, store: Store, user_id: int) -> None:
    removed = (
        db.query(StoreShare)
        .filter(StoreShare.StoreId == store.Id, StoreShare.UserId == user_id)
        .delete(synchronize_session=False)
    )
    if removed:
        store.UpdatedAt = NowUtc()
        db.add(store)
    db.commit()


def CancelPendingShare(db: Session, store: Store, email: str) -> None:
    normalized = (email or "").strip().lower()
    removed = (
        db.query(StorePendingShare)
        .filter(StorePendingShare.StoreId == store.Id, StorePendingShare.Email == normalized)
        .delete(synchronize_session=False)
    )
    if removed:
        store.UpdatedAt = NowUtc()
        db.add(store)
    db.commit()


def ConvertPendingShares(db: Session, email: str, user_id: int) -> list[str]:
    """Turn every pending invite for ``email`` into a share for ``user_id``.

    Safe to run more than once for the same user; returns the store ids that
    changed on this run.
    """
    normalized = (email or "").strip().lower()
    if not normalized:
        return []
    pending = db.query(StorePendingShare).filter(StorePendingShare.Email == normalized).all()
    converted = []
    now = NowUtc()
    for invite in pending:
        store = db.query(Store).filter(Store.Id == invite.StoreId).first()
        db.delete(invite)
        if not store or store.OwnerUserId == user_id:
            continue
        exists = (
            db.query(StoreShare.Id)
            .filter(StoreShare.StoreId == invite.StoreId, StoreShare.UserId == user_id)
            .first()
        )
        if not exists:
            db.add(StoreShare(StoreId=invite.StoreId, UserId=user_id, CreatedAt=now))
        store.UpdatedAt = now
        db.add(store)
        converted.append(invite.StoreId)
    db.commit()
    if converted:
        logger.info("pending shares converted user_id=%s stores=%s", user_id, len(converted))
    return converted
