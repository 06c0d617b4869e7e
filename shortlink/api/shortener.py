from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import RedirectResponse
import logging

from shortlink.api.dependencies import get_url_service, request_deadline
from shortlink.schemas import AnalyticsResponse, ShortenRequest, ShortenResponse
from shortlink.services.shortener import URLService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")
redirect_router = APIRouter(tags=["redirect"])

@router.post("/urls", response_model=ShortenResponse, status_code=status.HTTP_201_CREATED)
def shorten_url_endpoint(
    url_request: ShortenRequest,
    request: Request,
    service: URLService = Depends(get_url_service),
    deadline: float = Depends(request_deadline),
):
    # Errors propagate to the ShortLinkError handler in main
    result = service.shorten(
        url_request.long_url,
        custom_alias=url_request.custom_alias,
        ttl_days=url_request.ttl_days,
        owner_id=request.headers.get("x-owner-id"),
        deadline=deadline,
    )
    logger.info(f"API success: Shortened {url_request.long_url[:50]}... to {result.short_code}")
    return ShortenResponse.model_validate(result)

@router.get("/analytics/{short_code}", response_model=AnalyticsResponse)
def get_analytics_endpoint(
    short_code: str,
    service: URLService = Depends(get_url_service),
    deadline: float = Depends(request_deadline),
):
    return AnalyticsResponse.model_validate(service.get_analytics(short_code, deadline=deadline))

@redirect_router.get("/{short_code}")
def redirect_to_url_endpoint(
    short_code: str,
    background_tasks: BackgroundTasks,
    service: URLService = Depends(get_url_service),
    deadline: float = Depends(request_deadline),
):
    """
    Access the shortened URL and get redirected to the original long URL.
    """
    # Click counters are bumped after the response goes out
    original_url = service.resolve(short_code, deadline=deadline, schedule=background_tasks.add_task)
    return RedirectResponse(url=original_url, status_code=status.HTTP_302_FOUND)
