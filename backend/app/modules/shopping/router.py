import logging

from fastapi import APIRouter

from app.modules.shopping.routes.items import router as items_router
from app.modules.shopping.routes.stores import router as stores_router

router = APIRouter(prefix="/api/v1", tags=["shopping"])
logger = logging.getLogger("shopping")


@router.get("/status")
async def shopping_status() -> dict:
    logger.debug("shopping status ok")
    return {"status": "ok", "module": "shopping"}


router.include_router(stores_router, prefix="/stores", tags=["shopping-stores"])
router.include_router(items_router, prefix="/stores", tags=["shopping-items"])
