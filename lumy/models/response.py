from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from lumy.models.internal import StreamFormat


class VideoInfo(BaseModel):
    """Video information response"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    thumbnail: Optional[str] = None
    duration: Optional[float] = None
    video_formats: List[StreamFormat] = []
    audio_formats: List[StreamFormat] = []
    platform: str
    url: str
