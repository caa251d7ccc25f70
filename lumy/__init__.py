"""Lumy: media info and download API built on yt-dlp and ffmpeg."""

__version__ = "1.0.0"
