import asyncio
import json
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from lumy.config.settings import Config
from lumy.core.errors import ExtractionError
from lumy.models.internal import BinarySet
from lumy.services.credentials import ResolvedCredential

logger = logging.getLogger(__name__)

STDERR_MAX_CHARS = 500


class CompletedProcess(NamedTuple):
    """Subprocess result"""
    returncode: int
    stdout: bytes
    stderr: bytes


class SubprocessExecutor:
    """Execute subprocess with consistent error handling"""

    @staticmethod
    async def run(
        cmd: List[str],
        timeout: float,
        capture_stderr: bool = True
    ) -> CompletedProcess:
        """
        Run subprocess with timeout and proper cleanup.
        The process is killed on timeout, error or cancellation of the
        awaiting task, so a disconnected client leaves nothing running.
        """
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE if capture_stderr else asyncio.subprocess.DEVNULL,
            stdin=asyncio.subprocess.DEVNULL
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout
            )

            return CompletedProcess(
                returncode=process.returncode,
                stdout=stdout,
                stderr=stderr if capture_stderr else b""
            )

        except (Exception, asyncio.CancelledError):
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise


def tool_message(stderr: bytes) -> str:
    """Last part of yt-dlp's stderr, which carries the ERROR line"""
    text = stderr.decode(errors="replace").strip()
    return text[-STDERR_MAX_CHARS:] if text else "yt-dlp exited without output"


class YTDLPCommandBuilder:
    """Build yt-dlp commands"""

    def __init__(self, binaries: BinarySet, config: Config):
        self.binaries = binaries
        self.config = config

    def _base(self, credential: Optional[ResolvedCredential]) -> List[str]:
        cmd = [
            self.binaries.extractor_path,
            '--no-warnings',
            '--socket-timeout', str(self.config.download.socket_timeout),
            '--retries', str(self.config.download.retries),
        ]
        cmd.extend(self.config.ytdlp.extra_args)
        if self.binaries.transcoder_path:
            cmd.extend(['--ffmpeg-location', self.binaries.transcoder_path])
        if credential is not None:
            cmd.extend(credential.args)
        return cmd

    def build_info_command(self, url: str, credential: Optional[ResolvedCredential] = None) -> List[str]:
        """Build command for fetching video info"""
        cmd = self._base(credential)
        # --flat-playlist keeps playlist probes cheap; they are rejected anyway
        cmd.extend(['--dump-single-json', '--flat-playlist'])
        cmd.append(url)
        return cmd

    def build_stream_command(
        self,
        url: str,
        format_id: str,
        credential: Optional[ResolvedCredential] = None
    ) -> List[str]:
        """Build command writing exactly one format to stdout"""
        cmd = self._base(credential)
        cmd.extend([
            '-f', format_id,
            '-o', '-',
            '--no-playlist',
            '--no-part',
            # Keep stdout clean for the media bytes
            '--no-progress',
            '--quiet',
        ])
        cmd.append(url)
        return cmd

    def build_exec_command(
        self,
        url: str,
        args: Sequence[str],
        credential: Optional[ResolvedCredential] = None
    ) -> List[str]:
        cmd = self._base(credential)
        cmd.extend(['--no-playlist', '--no-progress'])
        cmd.extend(args)
        cmd.append(url)
        return cmd


class YtDlpClient:
    """Runs yt-dlp for probes and downloads. Never retries."""

    def __init__(self, binaries: BinarySet, config: Config):
        self.binaries = binaries
        self.config = config
        self.commands = YTDLPCommandBuilder(binaries, config)

    async def probe(self, url: str, credential: Optional[ResolvedCredential] = None) -> Dict[str, Any]:
        cmd = self.commands.build_info_command(url, credential)
        result = await SubprocessExecutor.run(cmd, timeout=self.config.download.probe_timeout_seconds)
        if result.returncode != 0:
            raise ExtractionError(tool_message(result.stderr))
        try:
            info = json.loads(result.stdout.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ExtractionError(f"Could not parse yt-dlp output: {e}") from e
        if not isinstance(info, dict):
            raise ExtractionError("Could not parse yt-dlp output: unexpected JSON document")
        return info

    async def stream(
        self,
        url: str,
        format_id: str,
        credential: Optional[ResolvedCredential] = None
    ) -> bytes:
        cmd = self.commands.build_stream_command(url, format_id, credential)
        result = await SubprocessExecutor.run(cmd, timeout=self.config.download.timeout_seconds)
        if result.returncode != 0:
            raise ExtractionError(tool_message(result.stderr))
        return result.stdout

    async def execute(
        self,
        url: str,
        args: Sequence[str],
        credential: Optional[ResolvedCredential] = None
    ) -> None:
        cmd = self.commands.build_exec_command(url, args, credential)
        logger.debug(f"Running {' '.join(args)}")
        result = await SubprocessExecutor.run(cmd, timeout=self.config.download.timeout_seconds)
        if result.returncode != 0:
            raise ExtractionError(tool_message(result.stderr))
