from fastapi import APIRouter, Depends
import logging

from shortlink.api.dependencies import get_url_service
from shortlink.schemas import PurgeResponse
from shortlink.services.shortener import URLService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])

@router.post("/purge-expired", response_model=PurgeResponse)
def purge_expired_endpoint(service: URLService = Depends(get_url_service)):
    codes = service.purge_expired()
    logger.info(f"Admin purge removed {len(codes)} expired links")
    return PurgeResponse(purged=len(codes), short_codes=codes)
