from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class StreamFormat(BaseModel):
    """One entry of a probe's format list"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    quality_label: Optional[str] = None
    ext: str = "mp4"
    mime_type: Optional[str] = None
    approx_size: Optional[int] = None
    is_audio: bool = False
    has_video: bool = False
    has_audio: bool = False

    @model_validator(mode="after")
    def derive_is_audio(self):
        self.is_audio = self.has_audio and not self.has_video
        return self


class MediaProbe(BaseModel):
    """Metadata returned by a single probe"""
    title: str
    thumbnail: Optional[str] = None
    duration: Optional[float] = None
    formats: List[StreamFormat] = []

    def find_format(self, format_id: str) -> Optional[StreamFormat]:
        for fmt in self.formats:
            if fmt.id == format_id:
                return fmt
        return None


@dataclass(frozen=True)
class BinarySet:
    """Resolved external tool locations"""
    extractor_path: str
    transcoder_path: Optional[str]
    platform: str


@dataclass(frozen=True)
class DownloadPayload:
    """Finished download ready to be sent"""
    body: bytes
    mime_type: str
    filename: str

    @property
    def content_length(self) -> int:
        return len(self.body)
