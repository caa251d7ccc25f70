from fastapi import APIRouter, Depends, HTTPException, Request

from lumy.core.errors import Failure
from lumy.core.logging import log_debug, log_error, log_info, log_warning, safe_url_for_log
from lumy.core.state import get_info_service
from lumy.models.request import InfoRequest
from lumy.models.response import VideoInfo
from lumy.services.info import VideoInfoService

router = APIRouter()


@router.post("/info", response_model=VideoInfo)
async def get_video_info(
    request: Request,
    video_request: InfoRequest,
    service: VideoInfoService = Depends(get_info_service)
):
    """List the formats available for a URL"""
    url = video_request.url
    log_info(request, f"Fetching info for {safe_url_for_log(url) if isinstance(url, str) else url!r}")

    try:
        outcome = await service.fetch(url)
        if isinstance(outcome, Failure):
            log_warning(request, f"Info failed ({outcome.status}): {outcome.message}")
            raise HTTPException(status_code=outcome.status, detail=outcome.message)

        log_debug(
            request,
            f"{len(outcome.video_formats)} video / {len(outcome.audio_formats)} audio formats"
        )
        log_info(request, f"Info retrieved: {outcome.title}")
        return outcome
    except HTTPException:
        raise
    except Exception as e:
        log_error(request, f"Unexpected info error: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
