import os

import pytest

from lumy.config.settings import Config
from lumy.core.errors import ExtractionError, ProvisioningError
from lumy.models.internal import BinarySet
from lumy.services.credentials import CredentialResolver, ResolvedCredential
from lumy.services.info import VideoInfoService
from lumy.services.orchestrator import DownloadOrchestrator

SAMPLE_URL = "https://youtu.be/abc"

SAMPLE_INFO = {
    "_type": "video",
    "id": "abc",
    "title": "My Video: Part 1",
    "thumbnail": "https://i.ytimg.com/vi/abc/hq.jpg",
    "duration": 212,
    "formats": [
        {"format_id": "sb0", "ext": "mhtml", "vcodec": "none", "acodec": "none", "format_note": "storyboard"},
        {"format_id": "251", "ext": "webm", "vcodec": "none", "acodec": "opus", "format_note": "low"},
        {"format_id": "140", "ext": "m4a", "vcodec": "none", "acodec": "mp4a.40.2",
         "format_note": "medium", "filesize": 3400000},
        {"format_id": "18", "ext": "mp4", "vcodec": "avc1.42001E", "acodec": "mp4a.40.2",
         "height": 360, "format_note": "360p", "filesize_approx": 8123456.0},
        {"format_id": "137", "ext": "mp4", "vcodec": "avc1.640028", "acodec": "none",
         "height": 1080, "format_note": "1080p"},
        {"format_id": "248", "ext": "webm", "vcodec": "vp9", "acodec": "none", "height": 1080},
        {"format_id": "136", "ext": "mp4", "vcodec": "avc1.4d401f", "acodec": "none",
         "height": 720, "format_note": "720p"},
    ],
}

PLAYLIST_INFO = {
    "_type": "playlist",
    "title": "Mix",
    "entries": [{"url": "https://youtu.be/abc"}, {"url": "https://youtu.be/def"}],
}


class FakeProvisioner:
    def __init__(self, binaries=None, error=None):
        self.binaries = binaries or BinarySet("/opt/yt-dlp", "/opt/ffmpeg", "linux")
        self.error = error
        self.calls = 0

    @property
    def resolved(self):
        return None if self.error else self.binaries

    async def ensure(self):
        self.calls += 1
        if self.error:
            raise ProvisioningError(self.error)
        return self.binaries


class FakeClient:
    """Stands in for YtDlpClient; writes merge output where -o points"""

    def __init__(self, info=None, stream_body=b"muxed-bytes", merge_body=b"merged-bytes",
                 probe_error=None, merge_error=None):
        self.info = SAMPLE_INFO if info is None else info
        self.stream_body = stream_body
        self.merge_body = merge_body
        self.probe_error = probe_error
        self.merge_error = merge_error
        self.calls = []
        self.merge_dirs = []
        self.credentials = []

    async def probe(self, url, credential=None):
        self.calls.append(("probe", url))
        self.credentials.append(credential)
        if self.probe_error:
            raise ExtractionError(self.probe_error)
        return self.info

    async def stream(self, url, format_id, credential=None):
        self.calls.append(("stream", format_id))
        return self.stream_body

    async def execute(self, url, args, credential=None):
        self.calls.append(("execute", list(args)))
        out_path = args[args.index("-o") + 1]
        self.merge_dirs.append(os.path.dirname(out_path))
        assert os.path.isdir(os.path.dirname(out_path))
        if self.merge_error:
            raise ExtractionError(self.merge_error)
        with open(out_path, "wb") as f:
            f.write(self.merge_body)


class CountingCredential(ResolvedCredential):
    release_count = 0

    async def release(self):
        self.release_count += 1
        await super().release()


class CountingResolver(CredentialResolver):
    def __init__(self, cookie_config):
        super().__init__(cookie_config)
        self.issued = []

    async def resolve(self, cookies=None, cookies_from_browser=None):
        resolved = await super().resolve(cookies, cookies_from_browser)
        credential = CountingCredential(
            cookie_file=resolved.cookie_file,
            browser=resolved.browser,
            _release_actions=resolved._release_actions,
        )
        self.issued.append(credential)
        return credential


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture
def merge_root(tmp_path):
    path = tmp_path / "merge"
    path.mkdir()
    return path


@pytest.fixture
def test_config(merge_root):
    return Config(
        download={"temp_dir": str(merge_root)},
        logging={"enable_rich": False},
    )


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def fake_provisioner():
    return FakeProvisioner()


@pytest.fixture
def resolver(test_config):
    return CountingResolver(test_config.cookies)


@pytest.fixture
def orchestrator(test_config, resolver, fake_provisioner, fake_client):
    return DownloadOrchestrator(
        test_config, resolver, fake_provisioner, client_factory=lambda binaries, cfg: fake_client
    )


@pytest.fixture
def info_service(test_config, resolver, fake_provisioner, fake_client):
    return VideoInfoService(
        test_config, resolver, fake_provisioner, client_factory=lambda binaries, cfg: fake_client
    )
