"""filescout defaults (extension tables, MIME map, heuristics, timings).

Centralizes static defaults so the scanner/resolver/enricher carry no embedded
magic strings. ``ScoutConfig`` holds the tunable knobs; ``load_scout_config``
builds one from ``FILESCOUT_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

from dotenv import load_dotenv

# Sentinel extension for inferred downloads whose type is not recoverable locally
UNKNOWN_EXTENSION = "download"

# Literal fallback filename (resolver and scheduler)
FALLBACK_FILENAME = "download"

FILE_TYPES: Dict[str, Tuple[str, ...]] = {
    "images": ("jpg", "jpeg", "png", "gif", "webp", "svg", "bmp", "ico"),
    "documents": ("pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "txt", "rtf", "odt", "ods"),
    "videos": ("mp4", "webm", "avi", "mov", "mkv", "flv", "wmv"),
    "audio": ("mp3", "wav", "ogg", "flac", "aac", "m4a"),
    "archives": ("zip", "rar", "7z", "tar", "gz", "bz2"),
    "fonts": ("ttf", "otf", "woff", "woff2", "eot"),
    "downloads": (UNKNOWN_EXTENSION,),
}

SUPPORTED_EXTENSIONS: FrozenSet[str] = frozenset(
    ext for category, exts in FILE_TYPES.items() if category != "downloads" for ext in exts
)

MIME_TO_EXTENSION: Dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/bmp": "bmp",
    "image/x-icon": "ico",
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-powerpoint": "ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "text/plain": "txt",
    "application/rtf": "rtf",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/x-msvideo": "avi",
    "video/quicktime": "mov",
    "video/x-matroska": "mkv",
    "video/x-flv": "flv",
    "video/x-ms-wmv": "wmv",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/ogg": "ogg",
    "audio/flac": "flac",
    "audio/aac": "aac",
    "audio/mp4": "m4a",
    "application/zip": "zip",
    "application/x-rar-compressed": "rar",
    "application/x-7z-compressed": "7z",
    "application/x-tar": "tar",
    "application/gzip": "gz",
    "application/x-bzip2": "bz2",
    "font/ttf": "ttf",
    "font/otf": "otf",
    "font/woff": "woff",
    "font/woff2": "woff2",
    "application/vnd.ms-fontobject": "eot",
}

# Strings that say nothing about what a link points to
GENERIC_NAMES = frozenset(
    {
        "download",
        "dl",
        "get",
        "save",
        "export",
        "file",
        "click here",
        "click to download",
        "download file",
        "download now",
        "get file",
        "save file",
        "here",
        "link",
        "button",
    }
)

DOWNLOAD_PATH_PATTERNS = ("/download", "/get/", "/fetch/", "/file/", "/files/", "/dl/", "/d/")
DOWNLOAD_TEXT_PATTERNS = ("download", "get file", "save", "export")
DOWNLOAD_TOKEN = "download"

# Query parameters that commonly carry a human filename
FILENAME_QUERY_PARAMS = ("f", "file", "name", "filename", "fn", "title", "n", "font")
FORMAT_QUERY_PARAMS = ("format", "ext")

FETCHABLE_SCHEMES = frozenset({"http", "https", "ftp", "file"})

# Change monitor
CANDIDATE_TAGS = frozenset({"a", "area", "img", "video", "audio", "source", "object", "embed"})
WATCHED_ATTRIBUTES = ("href", "src", "srcset", "data", "download")

# Length bounds
USEFUL_NAME_MIN = 2
USEFUL_NAME_MAX = 100
CLEAN_NAME_MAX = 80
PAGE_NAME_MAX = 60
SANITIZED_NAME_MAX = 180
CONTEXT_DEPTH = 3


def _env_int(name: str, default: int) -> int:
    try:
        raw = os.getenv(name, "")
        return int(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        raw = os.getenv(name, "")
        return float(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


@dataclass
class ScoutConfig:
    """Tunable knobs for scanning, probing and scheduling."""

    head_timeout: float = 5.0
    head_cache_ttl: float = 60.0
    head_cache_max_entries: int = 500
    probe_concurrency: int = 16
    debounce_seconds: float = 0.5
    download_pause: float = 0.2
    download_timeout: float = 300.0
    page_timeout: float = 30.0
    max_frame_depth: int = 3
    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )
    accept_language: str = "en-US,en;q=0.9"
    cookies: Dict[str, str] = field(default_factory=dict)
    extra_headers: Dict[str, str] = field(default_factory=dict)

    def request_headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept-Language": self.accept_language,
        }
        headers.update(self.extra_headers)
        return headers


def _parse_cookie_string(raw: str) -> Dict[str, str]:
    cookies: Dict[str, str] = {}
    for chunk in raw.split(";"):
        name, sep, value = chunk.strip().partition("=")
        if not sep or not name.strip():
            continue
        cookies[name.strip()] = value.strip()
    return cookies


def load_scout_config(base: Optional[ScoutConfig] = None) -> ScoutConfig:
    """Build a ScoutConfig from ``FILESCOUT_*`` env vars (after loading ``.env``)."""

    load_dotenv(override=False)
    cfg = base or ScoutConfig()
    cfg.head_timeout = max(0.1, _env_float("FILESCOUT_HEAD_TIMEOUT", cfg.head_timeout))
    cfg.head_cache_ttl = max(0.0, _env_float("FILESCOUT_HEAD_CACHE_TTL", cfg.head_cache_ttl))
    cfg.head_cache_max_entries = max(1, _env_int("FILESCOUT_HEAD_CACHE_MAX", cfg.head_cache_max_entries))
    cfg.probe_concurrency = max(1, _env_int("FILESCOUT_PROBE_CONCURRENCY", cfg.probe_concurrency))
    cfg.debounce_seconds = max(0.0, _env_float("FILESCOUT_DEBOUNCE_SECONDS", cfg.debounce_seconds))
    cfg.download_pause = max(0.0, _env_float("FILESCOUT_DOWNLOAD_PAUSE", cfg.download_pause))
    cfg.download_timeout = max(1.0, _env_float("FILESCOUT_DOWNLOAD_TIMEOUT", cfg.download_timeout))
    cfg.page_timeout = max(1.0, _env_float("FILESCOUT_PAGE_TIMEOUT", cfg.page_timeout))
    cfg.max_frame_depth = max(0, _env_int("FILESCOUT_MAX_FRAME_DEPTH", cfg.max_frame_depth))
    user_agent = os.getenv("FILESCOUT_USER_AGENT", "").strip()
    if user_agent:
        cfg.user_agent = user_agent
    cookie_raw = os.getenv("FILESCOUT_COOKIES", "").strip()
    if cookie_raw:
        cfg.cookies.update(_parse_cookie_string(cookie_raw))
    return cfg


__all__ = [
    "CANDIDATE_TAGS",
    "CLEAN_NAME_MAX",
    "CONTEXT_DEPTH",
    "DOWNLOAD_PATH_PATTERNS",
    "DOWNLOAD_TEXT_PATTERNS",
    "DOWNLOAD_TOKEN",
    "FALLBACK_FILENAME",
    "FETCHABLE_SCHEMES",
    "FILENAME_QUERY_PARAMS",
    "FILE_TYPES",
    "FORMAT_QUERY_PARAMS",
    "GENERIC_NAMES",
    "MIME_TO_EXTENSION",
    "PAGE_NAME_MAX",
    "SANITIZED_NAME_MAX",
    "SUPPORTED_EXTENSIONS",
    "ScoutConfig",
    "UNKNOWN_EXTENSION",
    "USEFUL_NAME_MAX",
    "USEFUL_NAME_MIN",
    "WATCHED_ATTRIBUTES",
    "load_scout_config",
]
