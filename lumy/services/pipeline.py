import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Union

from lumy.config.settings import Config
from lumy.core.errors import (
    CredentialError,
    ErrorKind,
    ExtractionError,
    Failure,
    ProvisioningError,
)
from lumy.core.logging import safe_url_for_log
from lumy.core.validators import UrlValidationResult, validate_url
from lumy.models.internal import BinarySet
from lumy.services.credentials import CredentialResolver, ResolvedCredential
from lumy.services.format import is_playlist
from lumy.services.provisioner import BinaryProvisioner
from lumy.services.ytdlp import YtDlpClient

logger = logging.getLogger(__name__)

PLAYLIST_MESSAGE = "Playlists are not supported. Please use a single video URL."
TIMEOUT_MESSAGE = "yt-dlp did not finish in time."

ClientFactory = Callable[[BinarySet, Config], YtDlpClient]


class MediaPipeline:
    """
    Stages shared by the info and download pipelines.
    Each stage returns its value or a Failure; nothing is raised past it.
    """

    def __init__(
        self,
        config: Config,
        resolver: CredentialResolver,
        provisioner: BinaryProvisioner,
        client_factory: ClientFactory = YtDlpClient
    ):
        self.config = config
        self.resolver = resolver
        self.provisioner = provisioner
        self.client_factory = client_factory

    @staticmethod
    def _validate_url(url: Any) -> Optional[Failure]:
        result = validate_url(url)
        if result is not UrlValidationResult.OK:
            return Failure(ErrorKind.BAD_REQUEST, result.message)
        return None

    async def _resolve_credential(
        self,
        cookies: Optional[str] = None,
        cookies_from_browser: Optional[str] = None
    ) -> Union[ResolvedCredential, Failure]:
        try:
            return await self.resolver.resolve(cookies, cookies_from_browser)
        except CredentialError as e:
            return Failure(ErrorKind.BAD_REQUEST, str(e))
        except OSError as e:
            logger.error(f"Cookie materialization failed: {e}")
            return Failure(ErrorKind.SERVICE_UNAVAILABLE, f"Could not prepare cookies: {e}")

    async def _ensure_binaries(self) -> Union[BinarySet, Failure]:
        try:
            return await self.provisioner.ensure()
        except (ProvisioningError, OSError) as e:
            logger.error(f"yt-dlp provisioning failed: {e}")
            return Failure(ErrorKind.SERVICE_UNAVAILABLE, str(e))

    async def _probe(
        self,
        client: YtDlpClient,
        url: str,
        credential: ResolvedCredential
    ) -> Union[Dict[str, Any], Failure]:
        try:
            info = await client.probe(url, credential)
        except ExtractionError as e:
            logger.warning(f"Probe failed for {safe_url_for_log(url)}: {e}")
            return self._probe_failure(str(e))
        except asyncio.TimeoutError:
            return Failure(ErrorKind.TIMEOUT, TIMEOUT_MESSAGE)

        if is_playlist(info):
            return Failure(ErrorKind.BAD_REQUEST, PLAYLIST_MESSAGE)
        return info

    def _probe_failure(self, message: str) -> Failure:
        return Failure(ErrorKind.UPSTREAM_ERROR, message)
