import re
import unicodedata

DEFAULT_FILENAME = "lumy"

WINDOWS_RESERVED = {
    'CON', 'PRN', 'AUX', 'NUL',
    'COM1', 'COM2', 'COM3', 'COM4', 'COM5', 'COM6', 'COM7', 'COM8', 'COM9',
    'LPT1', 'LPT2', 'LPT3', 'LPT4', 'LPT5', 'LPT6', 'LPT7', 'LPT8', 'LPT9'
}


def sanitize_filename(name: str, max_length: int = 80, default: str = DEFAULT_FILENAME) -> str:
    """Reduce a title to printable ASCII that is safe in headers and on disk"""
    name = unicodedata.normalize("NFKD", name or "")
    name = re.sub(r'[^\x20-\x7E]', '', name)
    name = re.sub(r'[\\/:*?"<>|]+', '', name)
    name = name.strip()[:max_length].strip()

    if name.upper() in WINDOWS_RESERVED:
        name = f"_{name}"

    return name or default


def content_disposition(filename: str) -> str:
    return f'attachment; filename="{filename}"'
