from enum import Enum, auto
from urllib.parse import urlparse

SUPPORTED_HOSTS = (
    "youtube.com",
    "www.youtube.com",
    "youtu.be",
    "instagram.com",
    "www.instagram.com",
    "facebook.com",
    "www.facebook.com",
    "fb.watch",
)

UNSUPPORTED_URL_MESSAGE = "Only YouTube, Instagram or Facebook links are supported."
INVALID_URL_MESSAGE = "Please enter a valid URL."


class UrlValidationResult(Enum):
    """URL validation result without throwing exceptions"""
    OK = auto()
    UNSUPPORTED = auto()
    INVALID = auto()

    @property
    def message(self) -> str:
        if self is UrlValidationResult.INVALID:
            return INVALID_URL_MESSAGE
        if self is UrlValidationResult.UNSUPPORTED:
            return UNSUPPORTED_URL_MESSAGE
        return ""


def validate_url(url) -> UrlValidationResult:
    """Check URL syntax and the host allowlist."""
    if not isinstance(url, str) or not url.strip():
        return UrlValidationResult.INVALID
    try:
        parsed = urlparse(url.strip())
        hostname = parsed.hostname
    except ValueError:
        return UrlValidationResult.INVALID

    if parsed.scheme not in ("http", "https") or not hostname:
        return UrlValidationResult.INVALID

    if hostname not in SUPPORTED_HOSTS:
        return UrlValidationResult.UNSUPPORTED
    return UrlValidationResult.OK


def is_supported_url(url) -> bool:
    return validate_url(url) is UrlValidationResult.OK


def detect_platform(url: str) -> str:
    """Map a supported URL onto its platform family"""
    hostname = urlparse(url.strip()).hostname or ""
    if "youtube" in hostname or "youtu.be" in hostname:
        return "youtube"
    if "instagram" in hostname:
        return "instagram"
    return "facebook"
