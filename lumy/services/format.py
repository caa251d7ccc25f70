import re
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from lumy.models.internal import MediaProbe, StreamFormat

_DIGITS = re.compile(r"\d+")


class FormatSelection(NamedTuple):
    video_formats: List[StreamFormat]
    audio_formats: List[StreamFormat]


def _has_codec(codec: Optional[str]) -> bool:
    return bool(codec) and codec != "none"


def parse_format(raw: Dict[str, Any]) -> Optional[StreamFormat]:
    """Map one yt-dlp format dict onto a StreamFormat, or None without an id"""
    format_id = str(raw.get("format_id") or "")
    if not format_id:
        return None

    height = raw.get("height")
    size = raw.get("filesize") or raw.get("filesize_approx")
    return StreamFormat(
        id=format_id,
        quality_label=raw.get("format_note") or (f"{height}p" if height else None),
        ext=raw.get("ext") or "mp4",
        mime_type=raw.get("mime_type"),
        approx_size=int(size) if size else None,
        has_video=_has_codec(raw.get("vcodec")),
        has_audio=_has_codec(raw.get("acodec")),
    )


def parse_formats(raw_formats: Iterable[Dict[str, Any]]) -> List[StreamFormat]:
    formats = []
    for raw in raw_formats or []:
        if not isinstance(raw, dict):
            continue
        parsed = parse_format(raw)
        if parsed is not None:
            formats.append(parsed)
    return formats


def parse_probe(info: Dict[str, Any]) -> MediaProbe:
    thumbnails = info.get("thumbnails") or []
    thumbnail = info.get("thumbnail") or (thumbnails[0].get("url") if thumbnails else None)
    return MediaProbe(
        title=info.get("title") or "Unknown title",
        thumbnail=thumbnail,
        duration=info.get("duration"),
        formats=parse_formats(info.get("formats") or []),
    )


def is_playlist(info: Dict[str, Any]) -> bool:
    return info.get("_type") in ("playlist", "multi_video") or "entries" in info


def resolution_of(fmt: StreamFormat) -> int:
    """Leading number of the quality label ("1080p60" -> 1080), 0 if none"""
    match = _DIGITS.search(fmt.quality_label or "")
    return int(match.group()) if match else 0


def select_formats(formats: Iterable[StreamFormat]) -> FormatSelection:
    """Split a probe's formats into presentable video and audio groups"""
    video_formats = []
    audio_formats = []

    for fmt in formats:
        if fmt.has_video:
            video_formats.append(fmt)
        elif fmt.has_audio:
            audio_formats.append(fmt)

    # Label order stands in for bitrate, which yt-dlp does not always report
    audio_formats.sort(key=lambda f: f.quality_label or "", reverse=True)
    video_formats.sort(key=resolution_of, reverse=True)

    return FormatSelection(video_formats=video_formats, audio_formats=audio_formats[:1])
