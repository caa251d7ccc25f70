import base64
import os

import pytest

from lumy.config.settings import CookieConfig
from lumy.core.errors import CredentialError
from lumy.services.credentials import (
    NETSCAPE_COOKIE_HEADER,
    CredentialResolver,
    ResolvedCredential,
    ensure_cookie_header,
)

ROW = ".youtube.com\tTRUE\t/\tTRUE\t0\tSID\tabc123"
COMMENTS_ONLY = f"{NETSCAPE_COOKIE_HEADER}\n# This is a generated file! Do not edit.\n"


def b64(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


def read(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


@pytest.mark.asyncio
async def test_inline_row_without_header_is_materialized():
    credential = await CredentialResolver(CookieConfig()).resolve(cookies="name\tvalue")
    try:
        assert read(credential.cookie_file) == f"{NETSCAPE_COOKIE_HEADER}\nname\tvalue\n"
        assert credential.args == ["--cookies", credential.cookie_file]
    finally:
        await credential.release()


@pytest.mark.asyncio
async def test_release_removes_file_and_directory():
    credential = await CredentialResolver(CookieConfig()).resolve(cookies=ROW)
    cookie_dir = os.path.dirname(credential.cookie_file)
    assert os.path.basename(cookie_dir).startswith("lumy-cookies-")

    await credential.release()

    assert not os.path.exists(credential.cookie_file)
    assert not os.path.exists(cookie_dir)
    assert credential.released


@pytest.mark.asyncio
async def test_release_is_idempotent_and_tolerates_external_removal():
    credential = await CredentialResolver(CookieConfig()).resolve(cookies=ROW)
    cookie_dir = os.path.dirname(credential.cookie_file)
    os.remove(credential.cookie_file)
    os.rmdir(cookie_dir)

    await credential.release()
    await credential.release()


@pytest.mark.asyncio
async def test_release_attempts_every_action_after_a_failure():
    ran = []

    async def broken():
        ran.append("broken")
        raise OSError("busy")

    async def fine():
        ran.append("fine")

    credential = ResolvedCredential(_release_actions=[broken, fine])
    await credential.release()

    assert ran == ["broken", "fine"]


@pytest.mark.asyncio
async def test_existing_file_is_used_verbatim(tmp_path):
    cookie_file = tmp_path / "cookies.txt"
    cookie_file.write_text(f"{NETSCAPE_COOKIE_HEADER}\n{ROW}\n")

    credential = await CredentialResolver(CookieConfig()).resolve(cookies=str(cookie_file))
    assert credential.cookie_file == str(cookie_file)

    await credential.release()
    assert cookie_file.exists()


@pytest.mark.asyncio
async def test_existing_file_from_environment_path(tmp_path):
    cookie_file = tmp_path / "env-cookies.txt"
    cookie_file.write_text("# only comments are fine here, the file is not inspected\n")

    credential = await CredentialResolver(CookieConfig(file=str(cookie_file))).resolve()
    assert credential.cookie_file == str(cookie_file)
    await credential.release()
    assert cookie_file.exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("cookie_config, request_value", [
    (CookieConfig(), COMMENTS_ONLY),
    (CookieConfig(inline=COMMENTS_ONLY), None),
    (CookieConfig(base64=b64(COMMENTS_ONLY)), None),
    (CookieConfig(file=COMMENTS_ONLY), None),
])
async def test_comment_only_content_is_rejected_on_every_channel(cookie_config, request_value):
    with pytest.raises(CredentialError, match="no cookie rows"):
        await CredentialResolver(cookie_config).resolve(cookies=request_value)


@pytest.mark.asyncio
async def test_value_that_is_neither_file_nor_content_is_rejected():
    with pytest.raises(CredentialError, match="YT_COOKIES_FILE, YT_COOKIES, or YT_COOKIES_B64"):
        await CredentialResolver(CookieConfig()).resolve(cookies="/does/not/exist.txt")


@pytest.mark.asyncio
async def test_invalid_base64_fails_fast():
    with pytest.raises(CredentialError, match="YT_COOKIES_B64"):
        await CredentialResolver(CookieConfig(base64="abc")).resolve(cookies=ROW)


@pytest.mark.asyncio
async def test_request_value_wins_over_environment():
    cookie_config = CookieConfig(
        inline="env\tinline",
        base64=b64("env\tbase64"),
        file="env\tfile",
    )
    credential = await CredentialResolver(cookie_config).resolve(cookies="request\tvalue")
    try:
        assert "request\tvalue" in read(credential.cookie_file)
    finally:
        await credential.release()


@pytest.mark.asyncio
@pytest.mark.parametrize("cookie_config, expected", [
    (CookieConfig(inline="env\tinline", base64=b64("env\tbase64"), file="env\tfile"), "env\tinline"),
    (CookieConfig(base64=b64("env\tbase64"), file="env\tfile"), "env\tbase64"),
    (CookieConfig(file="env\tfile"), "env\tfile"),
])
async def test_environment_priority(cookie_config, expected):
    credential = await CredentialResolver(cookie_config).resolve()
    try:
        assert read(credential.cookie_file) == f"{NETSCAPE_COOKIE_HEADER}\n{expected}\n"
    finally:
        await credential.release()


@pytest.mark.asyncio
async def test_browser_selector_resolves_independently():
    resolver = CredentialResolver(CookieConfig(from_browser="firefox"))

    credential = await resolver.resolve(cookies_from_browser="chrome")
    assert credential.browser == "chrome"
    assert credential.cookie_file is None
    assert credential.args == ["--cookies-from-browser", "chrome"]

    credential = await resolver.resolve(cookies="a\tb")
    try:
        assert credential.browser == "firefox"
        assert credential.args == [
            "--cookies", credential.cookie_file, "--cookies-from-browser", "firefox"
        ]
    finally:
        await credential.release()


@pytest.mark.asyncio
async def test_nothing_configured_yields_empty_credential():
    credential = await CredentialResolver(CookieConfig()).resolve(cookies="   ")
    assert credential.cookie_file is None
    assert credential.browser is None
    assert credential.args == []
    await credential.release()


@pytest.mark.parametrize("content", [
    ROW,
    f"{NETSCAPE_COOKIE_HEADER}\n{ROW}",
    f"{NETSCAPE_COOKIE_HEADER}\n{NETSCAPE_COOKIE_HEADER}\n{ROW}\n",
    f"  {NETSCAPE_COOKIE_HEADER}\r\n{ROW}\r\n",
])
def test_header_appears_exactly_once(content):
    normalized = ensure_cookie_header(content)
    assert normalized.startswith(NETSCAPE_COOKIE_HEADER + "\n")
    assert normalized.count(NETSCAPE_COOKIE_HEADER) == 1
    assert normalized.endswith(f"{ROW}\n")
