from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from lumy.core.errors import Failure
from lumy.core.logging import log_debug, log_error, log_info, log_warning, safe_url_for_log
from lumy.core.state import get_orchestrator
from lumy.models.request import VideoRequest
from lumy.services.orchestrator import DownloadOrchestrator
from lumy.utils.filename import content_disposition

router = APIRouter()


@router.post("/download")
async def download_video(
    request: Request,
    video_request: VideoRequest,
    orchestrator: DownloadOrchestrator = Depends(get_orchestrator)
):
    """Download one format, merging in audio when the format has none"""
    url = video_request.url
    log_info(
        request,
        f"Download requested: {safe_url_for_log(url) if isinstance(url, str) else url!r} "
        f"format={video_request.format_id!r}"
    )

    try:
        outcome = await orchestrator.run(video_request)
        if isinstance(outcome, Failure):
            log_warning(request, f"Download failed ({outcome.status}): {outcome.message}")
            raise HTTPException(status_code=outcome.status, detail=outcome.message)

        log_debug(request, f"Payload type: {outcome.mime_type}")
        log_info(request, f"Sending {outcome.filename} ({outcome.content_length / 1024 / 1024:.1f} MB)")
        return Response(
            content=outcome.body,
            media_type=outcome.mime_type,
            headers={
                'Content-Disposition': content_disposition(outcome.filename),
                'Content-Length': str(outcome.content_length),
                'X-Content-Type-Options': 'nosniff',
                'Cache-Control': 'no-cache',
            }
        )
    except HTTPException:
        raise
    except Exception as e:
        log_error(request, f"Unexpected download error: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
