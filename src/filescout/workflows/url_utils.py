"""URL and filename helpers shared by the scanner, resolver, enricher and scheduler.

Everything here is a pure function: no network, no DOM, no module state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import parse_qs, unquote, urljoin, urlparse, urlunparse

from .scout_config import (
    CLEAN_NAME_MAX,
    FALLBACK_FILENAME,
    FETCHABLE_SCHEMES,
    FILE_TYPES,
    FORMAT_QUERY_PARAMS,
    GENERIC_NAMES,
    SANITIZED_NAME_MAX,
    SUPPORTED_EXTENSIONS,
    UNKNOWN_EXTENSION,
    USEFUL_NAME_MAX,
    USEFUL_NAME_MIN,
)

_EXTENSION_RE = re.compile(r"\.([a-zA-Z0-9]+)$")
_SEPARATOR_RE = re.compile(r"[/\\\x00-\x1f\x7f]")
_INVALID_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
_DEFAULT_PORTS = {"http": 80, "https": 443, "ftp": 21}
_TAB_NEWLINE_RE = re.compile(r"[\t\n\r]")
_INNER_SPACE_RE = re.compile(r"[ \f\v]")


@dataclass(frozen=True)
class FileInfo:
    """Filename/extension facts recovered from a URL alone."""

    url: str
    filename: str
    extension: str


def _encode_whitespace(part: str) -> str:
    part = _TAB_NEWLINE_RE.sub("", part)
    return _INNER_SPACE_RE.sub(lambda m: "%{:02X}".format(ord(m.group(0))), part)


def normalize_url(u: str) -> str:
    """Normalize an absolute URL so equivalent spellings share one identity key.

    - Lower-case scheme and host
    - Remove default ports
    - Give hierarchical URLs with no path a ``/`` path
    - Leave path characters alone (path-sensitive servers can 404), except
      inner spaces, which are percent-encoded as a browser does; tab and
      newline characters are dropped
    """
    try:
        raw = (u or "").strip()
        p = urlparse(raw)
        scheme = (p.scheme or "").lower()
        host = (p.hostname or "").lower()
        if not host:
            return urlunparse(p._replace(scheme=scheme, path=_encode_whitespace(p.path or "")))
        if ":" in host:
            host = f"[{host}]"
        netloc = host
        port = p.port
        if port and _DEFAULT_PORTS.get(scheme) != port:
            netloc = f"{netloc}:{port}"
        if p.username is not None:
            userinfo = p.username
            if p.password is not None:
                userinfo = f"{userinfo}:{p.password}"
            netloc = f"{userinfo}@{netloc}"
        path = _encode_whitespace(p.path or "")
        query = _encode_whitespace(p.query or "")
        if not path and scheme in _DEFAULT_PORTS:
            path = "/"
        return urlunparse(p._replace(scheme=scheme, netloc=netloc, path=path, query=query))
    except ValueError:
        return u or ""


def resolve_url(raw: Optional[str], base_url: str = "") -> Optional[str]:
    """Resolve ``raw`` against ``base_url``; None when the result is not fetchable."""

    value = (raw or "").strip()
    if not value:
        return None
    try:
        absolute = urljoin(base_url or "", value)
        parsed = urlparse(absolute)
        parsed.port  # raises ValueError on a malformed port
    except ValueError:
        return None
    scheme = (parsed.scheme or "").lower()
    if scheme not in FETCHABLE_SCHEMES:
        return None
    if scheme != "file" and not parsed.netloc:
        return None
    return normalize_url(absolute)


def url_origin(url: str) -> str:
    try:
        p = urlparse(normalize_url(url))
    except ValueError:
        return ""
    if not p.scheme or not p.netloc:
        return ""
    return f"{p.scheme}://{p.netloc.rsplit('@', 1)[-1]}"


def decode_component(text: str) -> Optional[str]:
    """Percent-decode a URL component; None when the bytes are not valid UTF-8."""

    try:
        return unquote(text or "", errors="strict")
    except UnicodeDecodeError:
        return None


def _safe_segment(name: str) -> str:
    return _SEPARATOR_RE.sub("-", name)


def is_supported(extension: Optional[str]) -> bool:
    return bool(extension) and extension.lower() in SUPPORTED_EXTENSIONS


def suffix_extension(filename: Optional[str]) -> str:
    """Return the lowercase trailing ``.ext`` of a filename, or ``""``."""

    match = _EXTENSION_RE.search(filename or "")
    return match.group(1).lower() if match else ""


def extension_from_filename(filename: Optional[str]) -> str:
    """Return a recognized extension for ``filename`` or the unknown-download sentinel."""

    ext = suffix_extension(filename)
    if ext and ext in SUPPORTED_EXTENSIONS:
        return ext
    return UNKNOWN_EXTENSION


def category_for_extension(extension: Optional[str]) -> str:
    ext = (extension or "").lower()
    for category, extensions in FILE_TYPES.items():
        if ext in extensions:
            return category
    return "default"


def extract_file_info(url: Optional[str], base_url: str = "") -> Optional[FileInfo]:
    """Resolve a reference and recover ``{url, filename, extension}`` from its path.

    Returns None when the URL is malformed or carries no extension at all
    (neither in the last path segment nor in a ``format``/``ext`` query param).
    """

    absolute = resolve_url(url, base_url)
    if absolute is None:
        return None
    parsed = urlparse(absolute)
    segment = (parsed.path or "").split("/")[-1]
    decoded = decode_component(segment)
    if decoded is None:
        return None
    filename = _safe_segment(decoded.split("?")[0])
    extension = suffix_extension(filename)
    if not extension:
        params = parse_qs(parsed.query or "")
        for param in FORMAT_QUERY_PARAMS:
            values = params.get(param) or []
            value = values[0].strip().lower() if values else ""
            if value:
                if is_supported(value):
                    return FileInfo(url=absolute, filename=filename or "file", extension=value)
                break
        return None
    return FileInfo(url=absolute, filename=filename or f"file.{extension}", extension=extension)


def filename_from_url(url: Optional[str]) -> Optional[str]:
    """Last non-empty path segment of ``url``, percent-decoded."""

    try:
        parsed = urlparse(url or "")
    except ValueError:
        return None
    parts = [part for part in (parsed.path or "").split("/") if part]
    if not parts:
        return None
    decoded = decode_component(parts[-1])
    if not decoded:
        return None
    name = _safe_segment(decoded.split("?")[0]).strip()
    return name or None


def parse_srcset(srcset: Optional[str], base_url: str = "") -> List[str]:
    """Return one resolved URL per srcset candidate, dropping unresolvable ones."""

    urls: List[str] = []
    for part in (srcset or "").split(","):
        tokens = part.strip().split()
        if not tokens:
            continue
        resolved = resolve_url(tokens[0], base_url)
        if resolved:
            urls.append(resolved)
    return urls


def is_useful_filename(text: Optional[str]) -> bool:
    """Reject empty, over-long, and generic ("download", "click here") names."""

    normalized = (text or "").strip().lower()
    if len(normalized) < USEFUL_NAME_MIN or len(normalized) > USEFUL_NAME_MAX:
        return False
    return normalized not in GENERIC_NAMES


def clean_filename(text: str, max_length: int = CLEAN_NAME_MAX) -> str:
    """Collapse whitespace and swap filesystem-hostile characters for ``-``."""

    cleaned = re.sub(r"[\r\n]+", " ", (text or "").strip())
    cleaned = re.sub(r"\s+", " ", cleaned)
    cleaned = _INVALID_CHARS_RE.sub("-", cleaned)
    return cleaned[:max_length].strip()


def sanitize_filename(filename: Optional[str], max_length: int = SANITIZED_NAME_MAX) -> str:
    """Make a filename safe to hand to the save-to-disk primitive."""

    if not filename:
        return FALLBACK_FILENAME
    cleaned = _INVALID_CHARS_RE.sub("_", filename)
    cleaned = re.sub(r"[\s_]+", " ", cleaned).strip()
    cleaned = cleaned.strip(".")
    cleaned = cleaned[:max_length].rstrip()
    return cleaned or FALLBACK_FILENAME


def add_filename_counter(filename: str, count: int) -> str:
    """Insert `` (count)`` before the extension, or append it when there is none."""

    dot = filename.rfind(".")
    if dot <= 0:
        return f"{filename} ({count})"
    return f"{filename[:dot]} ({count}){filename[dot:]}"


def sanity_check() -> None:
    assert normalize_url("HTTPS://Example.COM:443/a.pdf") == "https://example.com/a.pdf"
    assert extract_file_info("/x/Report.PDF", "https://example.com/").extension == "pdf"
    assert extension_from_filename("notes") == UNKNOWN_EXTENSION
    assert add_filename_counter("report.pdf", 2) == "report (2).pdf"
    assert sanitize_filename("..") == FALLBACK_FILENAME


sanity_check()

__all__ = [
    "FileInfo",
    "add_filename_counter",
    "category_for_extension",
    "clean_filename",
    "decode_component",
    "extension_from_filename",
    "extract_file_info",
    "filename_from_url",
    "is_supported",
    "is_useful_filename",
    "normalize_url",
    "parse_srcset",
    "resolve_url",
    "sanitize_filename",
    "sanity_check",
    "suffix_extension",
    "url_origin",
]
