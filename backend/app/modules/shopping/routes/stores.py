import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.errors import ApiSuccess
from app.modules.auth.api_keys import ApiUser
from app.modules.shopping.deps import DB_ERRORS, GetApiDb, HandleDbError, RequireApiUser
from app.modules.shopping.schemas import StoreCreate
from app.modules.shopping.services.stores_service import (
    CreateStore,
    GetAccessibleStore,
    ListUserStores,
    SerializeStore,
)

router = APIRouter()
logger = logging.getLogger("shopping.stores")


@router.get("")
def ListStores(
    db: Session = Depends(GetApiDb),
    user: ApiUser = Depends(RequireApiUser),
) -> dict:
    try:
        return ApiSuccess({"stores": ListUserStores(db, user.Id)})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.post("", status_code=status.HTTP_201_CREATED)
def CreateStoreEndpoint(
    payload: StoreCreate,
    db: Session = Depends(GetApiDb),
    user: ApiUser = Depends(RequireApiUser),
) -> dict:
    location = payload.location.model_dump() if payload.location else None
    try:
        store = CreateStore(db, payload.name, user.Id, location=location)
        return ApiSuccess({"store": SerializeStore(db, store, user.Id)})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.get("/{store_id}")
def GetStoreEndpoint(
    store_id: str,
    db: Session = Depends(GetApiDb),
    user: ApiUser = Depends(RequireApiUser),
) -> dict:
    try:
        store = GetAccessibleStore(db, user.Id, store_id)
        return ApiSuccess({"store": SerializeStore(db, store, user.Id)})
    except DB_ERRORS as exc:
        HandleDbError(exc)
