from typing import Any, Union

from lumy.core.errors import ErrorKind, Failure
from lumy.core.validators import detect_platform
from lumy.models.response import VideoInfo
from lumy.services.format import parse_probe, select_formats
from lumy.services.pipeline import MediaPipeline

CLIENT_ERROR_MARKERS = ("Unsupported URL", "Invalid URL")


class VideoInfoService(MediaPipeline):
    """Format catalog for a URL"""

    async def fetch(self, url: Any) -> Union[VideoInfo, Failure]:
        failure = self._validate_url(url)
        if failure:
            return failure
        url = url.strip()

        # Only the configured cookie channels apply; /info takes no cookie fields
        credential = await self._resolve_credential()
        if isinstance(credential, Failure):
            return credential

        try:
            binaries = await self._ensure_binaries()
            if isinstance(binaries, Failure):
                return binaries

            info = await self._probe(self.client_factory(binaries, self.config), url, credential)
            if isinstance(info, Failure):
                return info
        finally:
            await credential.release()

        probe = parse_probe(info)
        selection = select_formats(probe.formats)
        return VideoInfo(
            title=probe.title,
            thumbnail=probe.thumbnail,
            duration=probe.duration,
            video_formats=selection.video_formats,
            audio_formats=selection.audio_formats,
            platform=detect_platform(url),
            url=url,
        )

    def _probe_failure(self, message: str) -> Failure:
        if any(marker in message for marker in CLIENT_ERROR_MARKERS):
            return Failure(ErrorKind.BAD_REQUEST, message)
        return Failure(ErrorKind.UPSTREAM_ERROR, message)
