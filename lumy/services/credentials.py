"""
Cookie resolution for yt-dlp.

Cookies reach the service through several channels: the request body,
inline or base64 environment values, a cookie file path, or a browser to
read them from. They are reduced to one cookie file plus an optional
browser selector. Inline content is written to a private temp directory
that lives exactly as long as the request.
"""
import asyncio
import base64
import binascii
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

import aiofiles

from lumy.config.settings import CookieConfig
from lumy.core.errors import CredentialError

logger = logging.getLogger(__name__)

NETSCAPE_COOKIE_HEADER = "# Netscape HTTP Cookie File"
COOKIE_FILENAME = "cookies.txt"

INVALID_CONFIG_MESSAGE = (
    "Cookie configuration is invalid. Provide YT_COOKIES_FILE, YT_COOKIES, "
    "or YT_COOKIES_B64 with Netscape cookie rows."
)
NO_ROWS_MESSAGE = (
    "Cookie file has only header comments and no cookie rows. "
    "Re-export youtube.com cookies and paste full content."
)
INVALID_B64_MESSAGE = (
    "Invalid YT_COOKIES_B64 value. Provide valid base64-encoded Netscape cookies content."
)

ReleaseAction = Callable[[], Awaitable[None]]


@dataclass
class ResolvedCredential:
    """Cookie arguments for one request and the resources backing them"""
    cookie_file: Optional[str] = None
    browser: Optional[str] = None
    _release_actions: List[ReleaseAction] = field(default_factory=list, repr=False)
    _released: bool = field(default=False, repr=False)

    @property
    def args(self) -> List[str]:
        args = []
        if self.cookie_file:
            args.extend(['--cookies', self.cookie_file])
        if self.browser:
            args.extend(['--cookies-from-browser', self.browser])
        return args

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        """Remove materialized files. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        for action in self._release_actions:
            try:
                await action()
            except OSError as e:
                logger.warning(f"Cookie cleanup failed: {e}")


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip()


def looks_like_cookie_content(value: str) -> bool:
    return "\n" in value or "\t" in value or NETSCAPE_COOKIE_HEADER in value


def ensure_has_cookie_rows(content: str) -> None:
    lines = [line.strip() for line in content.splitlines()]
    rows = [line for line in lines if line and not line.startswith("#")]
    if not rows:
        raise CredentialError(NO_ROWS_MESSAGE)


def ensure_cookie_header(content: str) -> str:
    """Return content with exactly one leading header line and a trailing newline"""
    lines = content.replace("\r\n", "\n").strip().split("\n")
    body = [line for line in lines if line.strip() != NETSCAPE_COOKIE_HEADER]
    text = "\n".join(body).strip()
    return f"{NETSCAPE_COOKIE_HEADER}\n{text}\n"


def decode_base64_cookies(value: str) -> str:
    if not value:
        return ""
    try:
        # Non-alphabet characters are skipped so line-wrapped values still decode
        return base64.b64decode(value).decode("utf-8").strip()
    except (binascii.Error, ValueError):
        raise CredentialError(INVALID_B64_MESSAGE)


def _remove_file(path: str) -> ReleaseAction:
    async def action() -> None:
        if os.path.exists(path):
            await asyncio.to_thread(os.remove, path)
    return action


def _remove_dir(path: str) -> ReleaseAction:
    async def action() -> None:
        if os.path.exists(path):
            await asyncio.to_thread(shutil.rmtree, path)
    return action


class CredentialResolver:
    """Turns configured and per-request cookie inputs into yt-dlp arguments"""

    def __init__(self, cookie_config: CookieConfig):
        self.config = cookie_config

    async def resolve(
        self,
        cookies: Optional[str] = None,
        cookies_from_browser: Optional[str] = None
    ) -> ResolvedCredential:
        browser = _normalize(cookies_from_browser) or _normalize(self.config.from_browser)
        file_path = _normalize(self.config.file)
        decoded = decode_base64_cookies(_normalize(self.config.base64))
        inline_or_path = (
            _normalize(cookies)
            or _normalize(self.config.inline)
            or decoded
        )

        credential = ResolvedCredential(browser=browser or None)
        value = inline_or_path or file_path
        if value:
            credential.cookie_file = await self._resolve_cookie_path(value, credential)
        return credential

    async def _resolve_cookie_path(self, value: str, credential: ResolvedCredential) -> str:
        if await asyncio.to_thread(os.path.isfile, value):
            return value

        if not looks_like_cookie_content(value):
            raise CredentialError(INVALID_CONFIG_MESSAGE)

        ensure_has_cookie_rows(value)
        cookie_dir = await asyncio.to_thread(tempfile.mkdtemp, prefix=self.config.temp_prefix)
        cookie_path = os.path.join(cookie_dir, COOKIE_FILENAME)
        credential._release_actions.extend([_remove_file(cookie_path), _remove_dir(cookie_dir)])

        try:
            async with aiofiles.open(cookie_path, "w", encoding="utf-8") as f:
                await f.write(ensure_cookie_header(value))
        except OSError:
            await credential.release()
            raise

        logger.debug(f"Materialized cookies at {cookie_path}")
        return cookie_path
