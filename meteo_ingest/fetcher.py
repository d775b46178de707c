"""Fetch the source XML document (one bounded GET per call).

Data from the source is untrusted input: it is only checked for
well-formedness here, never interpreted.
"""

from __future__ import annotations

import codecs
import logging
import re
import xml.etree.ElementTree as ET
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

import requests

logger = logging.getLogger("fetcher")

USER_AGENT = "MeteoIngestor/1.0"
DEFAULT_TIMEOUT_SECONDS = 30

_PASTEBIN_HOSTS = ("pastebin.com", "www.pastebin.com")
_RAW_SEGMENT_RE = re.compile(r"/raw/", re.IGNORECASE)
_XML_DECL_ENCODING_RE = re.compile(rb"^\s*<\?xml[^>]*?encoding=[\"']([A-Za-z0-9._-]+)[\"']")


class FetchErrorKind(str, Enum):
    HTTP_STATUS = "http_status"
    EMPTY = "empty"
    MALFORMED = "malformed"
    TRANSPORT = "transport"


class FetchError(RuntimeError):
    def __init__(self, kind: FetchErrorKind, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


def normalize_url(url: str) -> str:
    """Rewrite pastebin page URLs to their raw-content form.

    https://pastebin.com/PMQueqDV -> https://pastebin.com/raw/PMQueqDV

    URLs that already point at /raw/ and URLs of other hosts are returned
    unchanged, so the rewrite is idempotent.
    """
    url = (url or "").strip()
    host = (urlsplit(url).hostname or "").lower()
    if host not in _PASTEBIN_HOSTS or _RAW_SEGMENT_RE.search(url):
        return url
    parts = [p for p in urlsplit(url).path.split("/") if p]
    if not parts:
        return url
    return f"https://pastebin.com/raw/{parts[-1]}"


def decode_body(resp) -> str:
    """Decode the body the way an XML parser would.

    An explicit charset in Content-Type wins; otherwise a BOM, then the XML
    declaration, then UTF-8.
    """
    content_type = (resp.headers.get("Content-Type") or "").lower()
    if "charset=" in content_type and resp.encoding:
        return resp.text

    raw = resp.content or b""
    if raw.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return raw.decode("utf-16")
    m = _XML_DECL_ENCODING_RE.match(raw)
    if m and not raw.startswith(codecs.BOM_UTF8):
        return raw.decode(m.group(1).decode("ascii"))
    return raw.decode("utf-8-sig")


def check_well_formed(text: str) -> None:
    """Raise ET.ParseError when text is not a well-formed XML document."""
    ET.fromstring(text)


def fetch_xml(
    url: str,
    session: Optional[requests.Session] = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    s = session or requests.Session()
    try:
        resp = s.get(
            url,
            timeout=timeout_seconds,
            headers={"User-Agent": USER_AGENT, "Accept-Encoding": "gzip, deflate"},
        )
    except requests.RequestException as e:
        raise FetchError(FetchErrorKind.TRANSPORT, f"request failed: {e}") from e

    if not 200 <= resp.status_code < 300:
        raise FetchError(
            FetchErrorKind.HTTP_STATUS,
            f"HTTP {resp.status_code} {resp.reason or ''}".rstrip(),
            status_code=resp.status_code,
        )

    try:
        xml_text = decode_body(resp)
    except (UnicodeDecodeError, LookupError) as e:
        raise FetchError(FetchErrorKind.MALFORMED, f"undecodable body: {e}") from e

    if not xml_text or not xml_text.strip():
        raise FetchError(FetchErrorKind.EMPTY, "empty response body")

    try:
        check_well_formed(xml_text)
    except ET.ParseError as e:
        raise FetchError(FetchErrorKind.MALFORMED, f"invalid XML: {e}") from e

    logger.debug("fetched %d chars from %s", len(xml_text), url)
    return xml_text
