import logging

from fastapi import APIRouter, Depends

from ..schemas import SweepOut
from ..services.expiry import expire_stale_requests
from .auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/requests/expire", response_model=SweepOut)
async def expire_requests(admin: dict = Depends(require_admin)) -> SweepOut:
    expired = await expire_stale_requests()
    logger.info("Manual request sweep by %s expired %d", admin.get("sub"), expired)
    return SweepOut(expired=expired)
