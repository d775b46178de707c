import pytest
import requests

from fetcher import FetchError, FetchErrorKind, fetch_xml, normalize_url


class FakeResponse:
    def __init__(self, status_code=200, text="", reason="OK", content=None, content_type="text/xml"):
        self.status_code = status_code
        self.reason = reason
        self.content = content if content is not None else text.encode("utf-8")
        self.headers = {"Content-Type": content_type}
        # what requests does: charset from the header, ISO-8859-1 for text/* without one
        if "charset=" in content_type:
            self.encoding = content_type.split("charset=", 1)[1].strip()
        else:
            self.encoding = "ISO-8859-1"

    @property
    def text(self):
        return self.content.decode(self.encoding, errors="replace")


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, timeout=None, headers=None):
        self.calls.append({"url": url, "timeout": timeout, "headers": headers})
        if self.exc is not None:
            raise self.exc
        return self.response


def test_normalize_pastebin_page_url():
    assert normalize_url("https://pastebin.com/PMQueqDV") == "https://pastebin.com/raw/PMQueqDV"


def test_normalize_is_idempotent():
    once = normalize_url("https://pastebin.com/PMQueqDV/")
    assert once == "https://pastebin.com/raw/PMQueqDV"
    assert normalize_url(once) == once


def test_normalize_leaves_other_hosts_alone():
    url = "https://example.com/feeds/PMQueqDV.xml"
    assert normalize_url(url) == url
    # host check is on the hostname, not a substring of the URL
    url2 = "https://mirror.example.com/pastebin.com/abc"
    assert normalize_url(url2) == url2


def test_normalize_keeps_raw_url_case_insensitive():
    url = "https://Pastebin.com/RAW/PMQueqDV"
    assert normalize_url(url) == url


def test_fetch_ok_returns_text_and_sends_headers():
    s = FakeSession(FakeResponse(text="<weather><t>12</t></weather>"))
    assert fetch_xml("https://example.com/x.xml", session=s) == "<weather><t>12</t></weather>"
    call = s.calls[0]
    assert call["timeout"] == 30
    assert call["headers"]["User-Agent"] == "MeteoIngestor/1.0"
    assert "gzip" in call["headers"]["Accept-Encoding"]


def test_fetch_http_404():
    s = FakeSession(FakeResponse(status_code=404, text="nope", reason="Not Found"))
    with pytest.raises(FetchError) as ei:
        fetch_xml("https://example.com/x.xml", session=s)
    assert ei.value.kind == FetchErrorKind.HTTP_STATUS
    assert ei.value.status_code == 404
    assert "404" in str(ei.value)


def test_fetch_empty_body():
    s = FakeSession(FakeResponse(text="  \n\t "))
    with pytest.raises(FetchError) as ei:
        fetch_xml("https://example.com/x.xml", session=s)
    assert ei.value.kind == FetchErrorKind.EMPTY


def test_fetch_malformed_xml():
    s = FakeSession(FakeResponse(text="<a><b></a>"))
    with pytest.raises(FetchError) as ei:
        fetch_xml("https://example.com/x.xml", session=s)
    assert ei.value.kind == FetchErrorKind.MALFORMED


def test_fetch_transport_error_is_wrapped():
    s = FakeSession(exc=requests.Timeout("read timed out"))
    with pytest.raises(FetchError) as ei:
        fetch_xml("https://example.com/x.xml", session=s, timeout_seconds=5)
    assert ei.value.kind == FetchErrorKind.TRANSPORT
    assert s.calls[0]["timeout"] == 5


def test_fetch_utf8_without_charset_is_not_latin1():
    body = "<stanice><nazev>Ústí nad Labem</nazev></stanice>".encode("utf-8")
    s = FakeSession(FakeResponse(content=body, content_type="text/xml"))
    assert "Ústí nad Labem" in fetch_xml("https://example.com/x.xml", session=s)


def test_fetch_honours_xml_declaration_encoding():
    body = '<?xml version="1.0" encoding="windows-1250"?><stanice>Plzeň</stanice>'.encode("windows-1250")
    s = FakeSession(FakeResponse(content=body, content_type="application/xml"))
    assert "Plzeň" in fetch_xml("https://example.com/x.xml", session=s)


def test_fetch_explicit_charset_header_wins():
    body = "<stanice>Plzeň</stanice>".encode("iso-8859-2")
    s = FakeSession(FakeResponse(content=body, content_type="text/xml; charset=iso-8859-2"))
    assert "Plzeň" in fetch_xml("https://example.com/x.xml", session=s)


def test_fetch_undecodable_body_is_malformed():
    s = FakeSession(FakeResponse(content=b"<a>\xff\xfe\xfa</a>", content_type="text/xml"))
    with pytest.raises(FetchError) as ei:
        fetch_xml("https://example.com/x.xml", session=s)
    assert ei.value.kind == FetchErrorKind.MALFORMED
