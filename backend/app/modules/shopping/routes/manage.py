"""Store management for signed-in users (session tokens, not API keys).

Renaming, section edits, unsharing and deletion are owner-only; any member
of a store may invite others.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.errors import ApiSuccess
from app.db import GetDb
from app.modules.auth.deps import RequireAuthenticated, UserContext
from app.modules.shopping.deps import DB_ERRORS, HandleDbError
from app.modules.shopping.schemas import SectionCreate, SectionsReplace, ShareCreate, StoreRename
from app.modules.shopping.services.stores_service import (
    AddSection,
    CancelPendingShare,
    DeleteStore,
    GetAccessibleStore,
    GetOwnedStore,
    RemoveSection,
    SerializeStore,
    ShareStore,
    UnshareStore,
    UpdateSections,
    UpdateStoreName,
)

router = APIRouter(prefix="/api/stores", tags=["stores"])
logger = logging.getLogger("shopping.manage")


@router.get("/{store_id}")
def GetStoreDetails(
    store_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    try:
        store = GetAccessibleStore(db, user.Id, store_id)
        return ApiSuccess({"store": SerializeStore(db, store, user.Id, include_sharing=True)})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.patch("/{store_id}")
def RenameStore(
    store_id: str,
    payload: StoreRename,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    try:
        store = UpdateStoreName(db, GetOwnedStore(db, user.Id, store_id), payload.name)
        return ApiSuccess({"store": SerializeStore(db, store, user.Id)})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.delete("/{store_id}")
def DeleteStoreEndpoint(
    store_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    try:
        DeleteStore(db, GetOwnedStore(db, user.Id, store_id))
        return ApiSuccess({"deleted": True})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.put("/{store_id}/sections")
def ReplaceSections(
    store_id: str,
    payload: SectionsReplace,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    sections = [section.model_dump() for section in payload.sections]
    try:
        store = GetOwnedStore(db, user.Id, store_id)
        return ApiSuccess({"sections": UpdateSections(db, store, sections)})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.post("/{store_id}/sections")
def CreateSection(
    store_id: str,
    payload: SectionCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    try:
        store = GetOwnedStore(db, user.Id, store_id)
        return ApiSuccess({"sections": AddSection(db, store, payload.name)})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.delete("/{store_id}/sections/{section_id}")
def DeleteSection(
    store_id: str,
    section_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    try:
        store = GetOwnedStore(db, user.Id, store_id)
        return ApiSuccess({"sections": RemoveSection(db, store, section_id)})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.post("/{store_id}/shares")
def ShareStoreEndpoint(
    store_id: str,
    payload: ShareCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    try:
        store = GetAccessibleStore(db, user.Id, store_id)
        return ApiSuccess(ShareStore(db, store, payload.email, actor_email=user.Email))
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.delete("/{store_id}/shares/{user_id}")
def UnshareStoreEndpoint(
    store_id: str,
    user_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    try:
        UnshareStore(db, GetOwnedStore(db, user.Id, store_id), user_id)
        return ApiSuccess({"removed": True})
    except DB_ERRORS as exc:
        HandleDbError(exc)


@router.delete("/{store_id}/pending-shares/{email}")
def CancelPendingShareEndpoint(
    store_id: str,
    email: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    try:
        CancelPendingShare(db, GetOwnedStore(db, user.Id, store_id), email)
        return ApiSuccess({"removed": True})
    except DB_ERRORS as exc:
        HandleDbError(exc)
