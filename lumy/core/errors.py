from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Pipeline failure kinds and the HTTP status each one maps to"""
    BAD_REQUEST = 400
    NOT_FOUND = 404
    SERVICE_UNAVAILABLE = 500
    UPSTREAM_ERROR = 502
    TIMEOUT = 504

    @property
    def status(self) -> int:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Terminal outcome of a pipeline stage, returned instead of raised"""
    kind: ErrorKind
    message: str

    @property
    def status(self) -> int:
        return self.kind.status


class LumyError(Exception):
    """Base class for errors raised by lumy components"""


class CredentialError(LumyError):
    """Cookie configuration could not be turned into a usable cookie file"""


class ProvisioningError(LumyError):
    """The yt-dlp binary could not be made available"""


class ExtractionError(LumyError):
    """yt-dlp exited unsuccessfully or produced unusable output"""
