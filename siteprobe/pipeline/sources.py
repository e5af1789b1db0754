"""URL list ingestion: file admission and text parsing."""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

from .errors import FileTooLarge, InvalidFileType, NoUrlsFound, TooManyUrls, UrlTooLong

logger = logging.getLogger(__name__)

MAX_URLS = 1000
MAX_URL_LENGTH = 2048
MAX_FILE_BYTES = 5 * 1024 * 1024

ALLOWED_CONTENT_TYPES = frozenset({"text/plain", "text/csv"})
ALLOWED_EXTENSIONS = (".txt", ".csv")

# newline (any flavour), comma, semicolon, pipe
_SEPARATORS_RE = re.compile(r"[\r\n,;|]+")

_VALID_SCHEMES = {"http", "https"}


def normalize_urls(
    candidates: list[str],
    max_urls: int = MAX_URLS,
    max_url_length: int = MAX_URL_LENGTH,
) -> list[str]:
    """Trim entries, drop blanks and enforce the URL list limits.

    Order and duplicates are preserved.
    """
    urls = [u.strip() for u in candidates]
    urls = [u for u in urls if u]

    if not urls:
        raise NoUrlsFound()
    if len(urls) > max_urls:
        raise TooManyUrls(len(urls), max_urls)
    for url in urls:
        if len(url) > max_url_length:
            raise UrlTooLong(url, max_url_length)
    return urls


def parse_urls(
    raw_text: str,
    max_urls: int = MAX_URLS,
    max_url_length: int = MAX_URL_LENGTH,
) -> list[str]:
    """Split *raw_text* on newlines, commas, semicolons and pipes into a URL list."""
    urls = normalize_urls(_SEPARATORS_RE.split(raw_text), max_urls=max_urls, max_url_length=max_url_length)
    logger.debug("urls parsed", extra={"url_count": len(urls)})
    return urls


def check_file(
    filename: str | None,
    content_type: str | None,
    size: int,
    max_bytes: int = MAX_FILE_BYTES,
) -> None:
    """Admit plain-text or CSV uploads below the size limit.

    Either the declared content type or the filename extension is enough.
    """
    declared = (content_type or "").split(";")[0].strip().lower()
    name = (filename or "").lower()
    if declared not in ALLOWED_CONTENT_TYPES and not name.endswith(ALLOWED_EXTENSIONS):
        raise InvalidFileType()
    if size > max_bytes:
        raise FileTooLarge(size, max_bytes)


def load_upload(
    filename: str | None,
    content_type: str | None,
    data: bytes,
    max_bytes: int = MAX_FILE_BYTES,
    max_urls: int = MAX_URLS,
    max_url_length: int = MAX_URL_LENGTH,
) -> list[str]:
    """Admit, decode and parse an uploaded URL file."""
    check_file(filename, content_type, len(data), max_bytes=max_bytes)
    text = data.decode("utf-8-sig", errors="replace")
    urls = parse_urls(text, max_urls=max_urls, max_url_length=max_url_length)
    logger.info(
        "url file loaded",
        extra={"upload_filename": filename, "bytes": len(data), "url_count": len(urls)},
    )
    return urls


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in _VALID_SCHEMES and bool(parsed.netloc)


def find_invalid_urls(urls: list[str]) -> list[str]:
    return [u for u in urls if not is_valid_url(u)]
