from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional


class InfoRequest(BaseModel):
    # Validated by the pipeline so bad URLs answer 400 rather than 422
    url: Any = Field(None, description="Video URL")


class VideoRequest(InfoRequest):
    model_config = ConfigDict(populate_by_name=True)

    format_id: Any = Field(None, alias="formatId", description="Format id from a previous /info call")
    cookies: Optional[str] = Field(None, description="Netscape cookie content or path to a cookie file")
    cookies_from_browser: Optional[str] = Field(
        None, alias="cookiesFromBrowser", description="Browser to read cookies from (yt-dlp syntax)"
    )
