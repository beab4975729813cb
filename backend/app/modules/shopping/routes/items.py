import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.errors import ApiSuccess
from app.modules.auth.api_keys import ApiUser
from app.modules.shopping.deps import DB_ERRORS, GetApiDb, HandleDbError, RequireApiUser
from app.modules.shopping.schemas import ItemsClear, ItemsCreate, ItemUpdate
from app.modules.shopping.services.learned_items_service import (
    FindExactMatch,
    ListLearnedItems,
    SuggestLearnedItems,
)
from app.modules.shopping.services.list_service import (
    AddItems,
    ClearItems,
    DeleteItem,
    GroupItemsBySection,
    ListItems,
    NewItem,
    SummarizeItems,
    UncheckAll,
    UpdateItem,
)
from app.modules.shopping.services.stores_service import GetAccessibleStore

router = APIRouter()
logger = logging.getLogger("shopping.items")


def _LearnedOut(item) -> dict:
    return {
        "id": item.Id,
        "name": item.Name,
        "sectionId": item.SectionId,
        "frequency": item.Frequency,
        "lastUsed": item.LastUsed.isoformat() if item.LastUsed else None,
    }


@router.get("/{store_id}/items")
def ListStoreItems(
    store_id: str,
    grouped: bool = False,
    db: Session = Depends(GetApiDb),
    user: ApiUser = Depends(RequireApiUser),
) -> dict:
    try:
        store = GetAccessibleStore(db, user.Id, store_id)
        items = ListItems(db, store_id)
        data = {"items": items, **SummarizeItems(items)}
        if grouped:
            data["sections"] = GroupItemsBySection(items, store.Sections or [])
        return ApiSuccess(data)
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.post("/{store_id}/items", status_code=status.HTTP_201_CREATED)
def AddStoreItems(
    store_id: str,
    payload: ItemsCreate,
    db: Session = Depends(GetApiDb),
    user: ApiUser = Depends(RequireApiUser),
) -> dict:
    entries = [NewItem(Name=entry.name, SectionId=entry.sectionId) for entry in payload.Entries()]
    try:
        GetAccessibleStore(db, user.Id, store_id)
        added = AddItems(db, store_id, entries, actor_id=user.Id)
        return ApiSuccess({"added": added})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.post("/{store_id}/items/clear")
def ClearStoreItems(
    store_id: str,
    payload: ItemsClear | None = None,
    db: Session = Depends(GetApiDb),
    user: ApiUser = Depends(RequireApiUser),
) -> dict:
    mode = payload.mode if payload else "checked"
    try:
        GetAccessibleStore(db, user.Id, store_id)
        return ApiSuccess(ClearItems(db, store_id, mode))
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.post("/{store_id}/items/uncheck")
def UncheckStoreItems(
    store_id: str,
    db: Session = Depends(GetApiDb),
    user: ApiUser = Depends(RequireApiUser),
) -> dict:
    try:
        GetAccessibleStore(db, user.Id, store_id)
        items = UncheckAll(db, store_id)
        return ApiSuccess({"unchecked": len(items), "items": items})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.patch("/{store_id}/items/{item_id}")
def UpdateStoreItem(
    store_id: str,
    item_id: str,
    payload: ItemUpdate,
    db: Session = Depends(GetApiDb),
    user: ApiUser = Depends(RequireApiUser),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    try:
        GetAccessibleStore(db, user.Id, store_id)
        return ApiSuccess({"item": UpdateItem(db, store_id, item_id, changes)})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.delete("/{store_id}/items/{item_id}")
def DeleteStoreItem(
    store_id: str,
    item_id: str,
    db: Session = Depends(GetApiDb),
    user: ApiUser = Depends(RequireApiUser),
) -> dict:
    try:
        GetAccessibleStore(db, user.Id, store_id)
        return ApiSuccess(DeleteItem(db, store_id, item_id))
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.get("/{store_id}/suggestions")
def SuggestStoreItems(
    store_id: str,
    q: str = "",
    db: Session = Depends(GetApiDb),
    user: ApiUser = Depends(RequireApiUser),
) -> dict:
    try:
        GetAccessibleStore(db, user.Id, store_id)
        suggestions = SuggestLearnedItems(ListLearnedItems(db, store_id), q)
    except DB_ERRORS as exc:
        HandleDbError(exc)
    exact = FindExactMatch(suggestions, q)
    return ApiSuccess(
        {
            "suggestions": [_LearnedOut(item) for item in suggestions],
            "exactMatchId": exact.Id if exact else None,
        }
    )
