from .internal import BinarySet, DownloadPayload, MediaProbe, StreamFormat
from .request import InfoRequest, VideoRequest
from .response import VideoInfo

__all__ = [
    "BinarySet",
    "DownloadPayload",
    "InfoRequest",
    "MediaProbe",
    "StreamFormat",
    "VideoInfo",
    "VideoRequest",
]
