"""
yt-dlp and ffmpeg provisioning.

The yt-dlp release binary for the running platform is downloaded once into
a cache directory and reused across requests and restarts. Concurrent first
callers share one download.
"""
import asyncio
import logging
import os
import platform
import sys
import tempfile
from typing import Optional

import aiofiles
import httpx
import imageio_ffmpeg

from lumy.config.settings import BinaryConfig
from lumy.core.errors import ProvisioningError
from lumy.models.internal import BinarySet

logger = logging.getLogger(__name__)

ASSET_NAMES = {
    "linux": "yt-dlp_linux",
    "linux-arm64": "yt-dlp_linux_aarch64",
    "macos": "yt-dlp_macos",
    "windows": "yt-dlp.exe",
}

CHUNK_SIZE = 1024 * 1024


def detect_platform_tag(sys_platform: Optional[str] = None) -> str:
    sys_platform = sys_platform or sys.platform
    if sys_platform.startswith("linux"):
        return "linux"
    if sys_platform == "darwin":
        return "macos"
    if sys_platform in ("win32", "cygwin"):
        return "windows"
    raise ProvisioningError(f"Unsupported platform for yt-dlp: {sys_platform}")


def asset_name(platform_tag: str, machine: Optional[str] = None) -> str:
    machine = (machine if machine is not None else platform.machine()).lower()
    if platform_tag == "linux" and machine in ("aarch64", "arm64"):
        return ASSET_NAMES["linux-arm64"]
    return ASSET_NAMES[platform_tag]


def _has_content(path: str) -> bool:
    try:
        return os.path.getsize(path) > 0
    except OSError:
        return False


def _discard(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)


class BinaryProvisioner:
    """Process-wide owner of the resolved BinarySet"""

    def __init__(
        self,
        binary_config: BinaryConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sys_platform: Optional[str] = None,
        machine: Optional[str] = None
    ):
        self.config = binary_config
        self._transport = transport
        self._sys_platform = sys_platform
        self._machine = machine
        self._resolved: Optional[BinarySet] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def resolved(self) -> Optional[BinarySet]:
        return self._resolved

    async def ensure(self) -> BinarySet:
        if self._resolved is not None:
            return self._resolved

        if self._inflight is None:
            self._inflight = asyncio.create_task(self._provision())
            self._inflight.add_done_callback(self._clear_inflight)

        # Shielded so one cancelled caller does not abort the shared download
        return await asyncio.shield(self._inflight)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Mark the exception retrieved when nobody is awaiting anymore
            task.exception()

    async def _provision(self) -> BinarySet:
        platform_tag = detect_platform_tag(self._sys_platform)

        if self.config.extractor_path:
            extractor_path = self.config.extractor_path
        else:
            extractor_path = os.path.join(
                self.config.cache_dir, asset_name(platform_tag, self._machine)
            )
            if await asyncio.to_thread(_has_content, extractor_path):
                logger.info(f"Using cached yt-dlp at {extractor_path}")
            else:
                await self._download(extractor_path, platform_tag)

        binaries = BinarySet(
            extractor_path=extractor_path,
            transcoder_path=await asyncio.to_thread(self._find_transcoder),
            platform=platform_tag,
        )
        self._resolved = binaries
        return binaries

    async def _download(self, target: str, platform_tag: str) -> None:
        url = f"{self.config.download_base_url.rstrip('/')}/{os.path.basename(target)}"
        target_dir = os.path.dirname(target)
        await asyncio.to_thread(os.makedirs, target_dir, exist_ok=True)
        logger.info(f"Downloading yt-dlp from {url}")

        fd, partial = await asyncio.to_thread(tempfile.mkstemp, dir=target_dir, prefix=".yt-dlp-")
        os.close(fd)
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                follow_redirects=True,
                timeout=self.config.download_timeout
            ) as client:
                async with client.stream("GET", url) as response:
                    if response.status_code != 200:
                        raise ProvisioningError(
                            f"Failed to download yt-dlp binary: {response.status_code} {response.reason_phrase}"
                        )
                    async with aiofiles.open(partial, "wb") as f:
                        async for chunk in response.aiter_bytes(CHUNK_SIZE):
                            await f.write(chunk)

            if not await asyncio.to_thread(_has_content, partial):
                raise ProvisioningError("Failed to download yt-dlp binary: empty response")
            if platform_tag != "windows":
                await asyncio.to_thread(os.chmod, partial, 0o755)
            await asyncio.to_thread(os.replace, partial, target)
        except httpx.HTTPError as e:
            raise ProvisioningError(f"Failed to download yt-dlp binary: {e}") from e
        finally:
            await asyncio.to_thread(_discard, partial)

    def _find_transcoder(self) -> Optional[str]:
        if self.config.ffmpeg_path:
            return self.config.ffmpeg_path
        try:
            return imageio_ffmpeg.get_ffmpeg_exe()
        except RuntimeError as e:
            logger.warning(f"ffmpeg unavailable, merging disabled: {e}")
            return None
