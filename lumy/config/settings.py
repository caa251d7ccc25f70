import json
import os
import tempfile
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
import logging

logger = logging.getLogger(__name__)

CONFIG_PATH = os.getenv("CONFIG_PATH", "config.json")


class CookieConfig(BaseModel):
    file: Optional[str] = Field(default=None, description="Path to a Netscape cookie file (YT_COOKIES_FILE)")
    inline: Optional[str] = Field(default=None, description="Inline cookie content or path (YT_COOKIES)")
    base64: Optional[str] = Field(default=None, description="Base64-encoded cookie content (YT_COOKIES_B64)")
    from_browser: Optional[str] = Field(default=None, description="Browser to extract cookies from (YT_COOKIES_FROM_BROWSER)")
    temp_prefix: str = Field(default="lumy-cookies-", description="Prefix of materialized cookie directories")


class BinaryConfig(BaseModel):
    extractor_path: Optional[str] = Field(default=None, description="Use this yt-dlp binary instead of downloading one")
    ffmpeg_path: Optional[str] = Field(default=None, description="ffmpeg binary used for merging")
    cache_dir: str = Field(
        default_factory=lambda: os.path.join(tempfile.gettempdir(), "lumy-cache"),
        description="Directory holding the downloaded yt-dlp binary"
    )
    download_base_url: str = Field(
        default="https://github.com/yt-dlp/yt-dlp/releases/latest/download",
        description="Release URL the yt-dlp asset name is appended to"
    )
    download_timeout: float = Field(default=120.0, gt=0, description="HTTP timeout for the binary download")


class DownloadConfig(BaseModel):
    timeout_seconds: int = Field(default=3600, ge=1, description="Deadline for stream and merge processes")
    probe_timeout_seconds: int = Field(default=60, ge=1, description="Deadline for metadata probes")
    socket_timeout: int = Field(default=10, ge=1, description="Socket timeout for yt-dlp")
    retries: int = Field(default=3, ge=0, description="yt-dlp network retries")
    temp_dir: Optional[str] = Field(default=None, description="Root for merge temp directories (system temp if unset)")
    temp_prefix: str = Field(default="lumy-", description="Prefix of merge temp directories")
    merge_output_format: str = Field(default="mp4", description="Container produced by merges")


class YtDlpConfig(BaseModel):
    extra_args: List[str] = Field(
        default=["--extractor-args", "youtube:player_client=android"],
        description="Arguments added to every probe and download"
    )


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="%(message)s", description="Log format")
    enable_rich: bool = Field(default=True, description="Enable rich console logging")

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class ApiConfig(BaseModel):
    title: str = Field(default="Lumy Media API", description="API title")
    version: str = Field(default="1.0.0", description="API version")
    cors_origins: list = Field(default=["*"], description="CORS allowed origins")
    debug: bool = Field(default=False, description="Enable debug mode")


class Config(BaseModel):
    """Main configuration model"""
    cookies: CookieConfig = Field(default_factory=CookieConfig)
    binaries: BinaryConfig = Field(default_factory=BinaryConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    ytdlp: YtDlpConfig = Field(default_factory=YtDlpConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @classmethod
    def load_from_file(cls, config_path: str = "config.json") -> "Config":
        """Load configuration from JSON file"""
        if os.path.exists(config_path):
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    config_data = json.load(f)
                logger.info(f"Configuration loaded from {config_path}")
                return cls(**config_data)
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load config from {config_path}: {str(e)}")
                logger.info("Using default configuration")
        else:
            logger.warning(f"Config file {config_path} not found, using defaults")

        return cls()

    @classmethod
    def load_from_env(cls, environ=None) -> "Config":
        """Load configuration from environment variables"""
        env = os.environ if environ is None else environ
        config_data = {}

        # Cookies
        cookies = {}
        for key, var in (
            ("file", "YT_COOKIES_FILE"),
            ("inline", "YT_COOKIES"),
            ("base64", "YT_COOKIES_B64"),
            ("from_browser", "YT_COOKIES_FROM_BROWSER"),
        ):
            if env.get(var):
                cookies[key] = env.get(var)
        if cookies:
            config_data["cookies"] = cookies

        # Binaries
        binaries = {}
        if env.get("YT_DLP_PATH"):
            binaries["extractor_path"] = env.get("YT_DLP_PATH")
        if env.get("FFMPEG_PATH"):
            binaries["ffmpeg_path"] = env.get("FFMPEG_PATH")
        if env.get("YT_DLP_CACHE_DIR"):
            binaries["cache_dir"] = env.get("YT_DLP_CACHE_DIR")
        if env.get("YT_DLP_DOWNLOAD_URL"):
            binaries["download_base_url"] = env.get("YT_DLP_DOWNLOAD_URL")
        if binaries:
            config_data["binaries"] = binaries

        # Download
        download = {}
        if env.get("DOWNLOAD_TIMEOUT"):
            download["timeout_seconds"] = int(env.get("DOWNLOAD_TIMEOUT"))
        if env.get("PROBE_TIMEOUT"):
            download["probe_timeout_seconds"] = int(env.get("PROBE_TIMEOUT"))
        if env.get("DOWNLOAD_TEMP_DIR"):
            download["temp_dir"] = env.get("DOWNLOAD_TEMP_DIR")
        if download:
            config_data["download"] = download

        # Logging
        if env.get("LOG_LEVEL"):
            config_data["logging"] = {"level": env.get("LOG_LEVEL")}

        # API
        if env.get("CORS_ORIGINS"):
            config_data["api"] = {
                "cors_origins": [o.strip() for o in env.get("CORS_ORIGINS").split(",") if o.strip()]
            }

        return cls(**config_data) if config_data else cls()


def load_config() -> Config:
    """Load configuration with priority: config.json > env vars > defaults"""
    if os.path.exists(CONFIG_PATH):
        return Config.load_from_file(CONFIG_PATH)
    logger.info(f"Config file not found at {CONFIG_PATH}, checking environment variables")
    return Config.load_from_env()


# Global config instance
config = load_config()
