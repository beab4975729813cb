import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.errors import ApiSuccess
from app.db import GetDb
from app.modules.auth.api_keys import GenerateApiKey, GetApiKeyStatus, RevokeApiKey
from app.modules.auth.deps import RequireAuthenticated, UserContext

router = APIRouter(prefix="/api/user/apikey", tags=["api-keys"])
logger = logging.getLogger("auth.api_keys")


@router.get("")
def GetKeyStatus(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    return ApiSuccess(GetApiKeyStatus(db, user.Id))


@router.post("", status_code=status.HTTP_201_CREATED)
def CreateKey(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    raw_key = GenerateApiKey(db, user.Id)
    return ApiSuccess(
        {
            "apiKey": raw_key,
            "message": "Save this key securely. It will not be shown again.",
        }
    )


@router.delete("")
def DeleteKey(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> dict:
    RevokeApiKey(db, user.Id)
    return ApiSuccess({"revoked": True})
