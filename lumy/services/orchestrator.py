"""
Download pipeline.

    VALIDATING -> RESOLVING_CREDENTIAL -> ENSURING_BINARY -> PROBING
      -> SELECTING_FORMAT -> STREAMING | MERGING -> RESPONDING
      -> RELEASING_CREDENTIAL -> DONE

Any stage may end the run in FAILED. Formats that carry audio are streamed
as-is; video-only formats are merged with the best audio track through
ffmpeg in a private temp directory. The credential is released exactly
once on every path after it was resolved.
"""
import asyncio
import logging
import os
import re
import shutil
import tempfile
import time
import uuid
from enum import Enum, auto
from typing import Union

import aiofiles

from lumy.core.errors import ErrorKind, ExtractionError, Failure
from lumy.core.validators import detect_platform
from lumy.models.internal import BinarySet, DownloadPayload, MediaProbe, StreamFormat
from lumy.models.request import VideoRequest
from lumy.services.credentials import ResolvedCredential
from lumy.services.format import parse_probe
from lumy.services.pipeline import TIMEOUT_MESSAGE, MediaPipeline
from lumy.services.ytdlp import YtDlpClient
from lumy.utils.filename import DEFAULT_FILENAME, sanitize_filename

logger = logging.getLogger(__name__)

MISSING_FORMAT_MESSAGE = "Missing formatId."
UNAVAILABLE_FORMAT_MESSAGE = "Selected format is unavailable."
NO_TRANSCODER_MESSAGE = "FFmpeg missing in runtime. Set FFMPEG_PATH or install imageio-ffmpeg."


class PipelineState(Enum):
    VALIDATING = auto()
    RESOLVING_CREDENTIAL = auto()
    ENSURING_BINARY = auto()
    PROBING = auto()
    SELECTING_FORMAT = auto()
    STREAMING = auto()
    MERGING = auto()
    RESPONDING = auto()
    RELEASING_CREDENTIAL = auto()
    DONE = auto()
    FAILED = auto()


def mime_type_for(fmt: StreamFormat) -> str:
    if fmt.mime_type:
        return fmt.mime_type
    if fmt.has_video:
        return f"video/{fmt.ext}"
    return f"audio/{'mpeg' if fmt.ext == 'mp3' else fmt.ext}"


def download_filename(probe: MediaProbe, url: str, format_id: str, ext: str) -> str:
    base = sanitize_filename(probe.title) if probe.title else detect_platform(url)
    return sanitize_filename(f"{base or DEFAULT_FILENAME}-{format_id}.{ext}", max_length=120)


class DownloadRun:
    """State of one request travelling through the pipeline"""

    def __init__(self, url: str):
        self.run_id = uuid.uuid4().hex[:8]
        self.url = url
        self.state = PipelineState.VALIDATING
        self.history = [PipelineState.VALIDATING]

    def enter(self, state: PipelineState) -> None:
        logger.debug(f"[{self.run_id}] {self.state.name} -> {state.name}")
        self.state = state
        self.history.append(state)

    def fail(self, failure: Failure) -> Failure:
        logger.info(f"[{self.run_id}] failed in {self.state.name}: {failure.kind.name} {failure.message}")
        self.enter(PipelineState.FAILED)
        return failure


class DownloadOrchestrator(MediaPipeline):
    """Turns a download request into a payload or a Failure"""

    async def run(self, request: VideoRequest) -> Union[DownloadPayload, Failure]:
        run = DownloadRun(request.url if isinstance(request.url, str) else "")

        failure = self._validate_url(request.url)
        if failure:
            return run.fail(failure)
        format_id = request.format_id
        if not isinstance(format_id, str) or not format_id.strip():
            return run.fail(Failure(ErrorKind.BAD_REQUEST, MISSING_FORMAT_MESSAGE))
        url = request.url.strip()
        format_id = format_id.strip()

        run.enter(PipelineState.RESOLVING_CREDENTIAL)
        credential = await self._resolve_credential(request.cookies, request.cookies_from_browser)
        if isinstance(credential, Failure):
            return run.fail(credential)

        try:
            outcome = await self._download(run, url, format_id, credential)
        finally:
            if run.state is not PipelineState.FAILED:
                run.enter(PipelineState.RELEASING_CREDENTIAL)
            await credential.release()

        if isinstance(outcome, Failure):
            return outcome
        run.enter(PipelineState.DONE)
        return outcome

    async def _download(
        self,
        run: DownloadRun,
        url: str,
        format_id: str,
        credential: ResolvedCredential
    ) -> Union[DownloadPayload, Failure]:
        run.enter(PipelineState.ENSURING_BINARY)
        binaries = await self._ensure_binaries()
        if isinstance(binaries, Failure):
            return run.fail(binaries)
        client = self.client_factory(binaries, self.config)

        # Always re-probe: a format id from an earlier /info must still exist
        run.enter(PipelineState.PROBING)
        info = await self._probe(client, url, credential)
        if isinstance(info, Failure):
            return run.fail(info)
        probe = parse_probe(info)

        run.enter(PipelineState.SELECTING_FORMAT)
        target = probe.find_format(format_id)
        if target is None:
            return run.fail(Failure(ErrorKind.NOT_FOUND, UNAVAILABLE_FORMAT_MESSAGE))

        if target.has_audio:
            run.enter(PipelineState.STREAMING)
            outcome = await self._stream(client, url, probe, target, credential)
        else:
            run.enter(PipelineState.MERGING)
            outcome = await self._merge(client, binaries, url, probe, target, credential)

        if isinstance(outcome, Failure):
            return run.fail(outcome)
        run.enter(PipelineState.RESPONDING)
        return outcome

    async def _stream(
        self,
        client: YtDlpClient,
        url: str,
        probe: MediaProbe,
        target: StreamFormat,
        credential: ResolvedCredential
    ) -> Union[DownloadPayload, Failure]:
        try:
            body = await client.stream(url, target.id, credential)
        except ExtractionError as e:
            return Failure(ErrorKind.UPSTREAM_ERROR, f"Download failed: {e}")
        except asyncio.TimeoutError:
            return Failure(ErrorKind.TIMEOUT, TIMEOUT_MESSAGE)

        return DownloadPayload(
            body=body,
            mime_type=mime_type_for(target),
            filename=download_filename(probe, url, target.id, target.ext),
        )

    async def _merge(
        self,
        client: YtDlpClient,
        binaries: BinarySet,
        url: str,
        probe: MediaProbe,
        target: StreamFormat,
        credential: ResolvedCredential
    ) -> Union[DownloadPayload, Failure]:
        if not binaries.transcoder_path:
            return Failure(ErrorKind.SERVICE_UNAVAILABLE, NO_TRANSCODER_MESSAGE)

        container = self.config.download.merge_output_format
        try:
            tmp_dir = await asyncio.to_thread(self._make_merge_dir)
        except OSError as e:
            return Failure(ErrorKind.SERVICE_UNAVAILABLE, f"Could not prepare merge directory: {e}")
        safe_id = re.sub(r"[^\w.-]", "_", target.id)
        out_path = os.path.join(tmp_dir, f"{int(time.time() * 1000)}-{safe_id}.{container}")

        try:
            await client.execute(
                url,
                [
                    '-f', f"{target.id}+bestaudio/best",
                    '--merge-output-format', container,
                    '-o', out_path,
                ],
                credential
            )
            async with aiofiles.open(out_path, 'rb') as f:
                body = await f.read()
        except asyncio.TimeoutError:
            # Listed first: asyncio.TimeoutError is an OSError on 3.11+
            return Failure(ErrorKind.TIMEOUT, TIMEOUT_MESSAGE)
        except (ExtractionError, OSError) as e:
            return Failure(ErrorKind.UPSTREAM_ERROR, f"Failed to merge audio/video: {e}")
        finally:
            await self._remove_tree(tmp_dir)

        return DownloadPayload(
            body=body,
            mime_type=f"video/{container}",
            filename=download_filename(probe, url, target.id, container),
        )

    def _make_merge_dir(self) -> str:
        temp_root = self.config.download.temp_dir
        if temp_root:
            os.makedirs(temp_root, exist_ok=True)
        return tempfile.mkdtemp(prefix=self.config.download.temp_prefix, dir=temp_root)

    @staticmethod
    async def _remove_tree(path: str) -> None:
        try:
            await asyncio.to_thread(shutil.rmtree, path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove {path}: {e}")
