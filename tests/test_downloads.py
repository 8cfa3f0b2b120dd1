import gzip

import pytest

from coda_mcp.downloads import ALLOWED_DOWNLOAD_HOSTS, decode_payload, is_trusted_host, validate_download_url
from coda_mcp.errors import GzipDecompressError, InvalidDownloadUrlError, UntrustedDownloadHostError


@pytest.mark.parametrize("host", [
    "coda.io",
    "codahosted.io",
    "files.codahosted.io",
    "coda-us-west-2-prod-blobs-upload.s3-accelerate.amazonaws.com",
    "CODA.IO",
    "coda.io.",
])
def test_trusted_hosts(host):
    assert is_trusted_host(host)


@pytest.mark.parametrize("host", [
    "evil-coda.io",
    "evilcodahosted.io",
    "coda.io.attacker.com",
    "example.com",
    "io",
])
def test_lookalike_hosts_are_rejected(host):
    # Only whole-label suffixes count; "evil-coda.io" merely ends with "coda.io".
    assert not is_trusted_host(host)


def test_allow_list_is_immutable():
    assert isinstance(ALLOWED_DOWNLOAD_HOSTS, frozenset)


def test_validate_returns_host():
    assert validate_download_url("https://Files.CodaHosted.io/x/y.html?sig=1") == "files.codahosted.io"


def test_validate_rejects_untrusted_host_by_name():
    with pytest.raises(UntrustedDownloadHostError) as excinfo:
        validate_download_url("https://evil-coda.io/export.html")
    assert excinfo.value.host == "evil-coda.io"
    assert "evil-coda.io" in str(excinfo.value)


@pytest.mark.parametrize("url", [
    "",
    "/relative/path.html",
    "ftp://coda.io/file",
    "https://",
    "https://[::1/broken",
])
def test_validate_rejects_malformed_urls(url):
    with pytest.raises(InvalidDownloadUrlError):
        validate_download_url(url)


def test_decode_plain_text():
    assert decode_payload("<h1>Hello World</h1>".encode("utf-8")) == "<h1>Hello World</h1>"


def test_decode_gzip():
    original = "<html><body>" + "Hello " * 500 + "</body></html>"
    assert decode_payload(gzip.compress(original.encode("utf-8"))) == original


def test_decode_truncated_gzip():
    data = gzip.compress(b"some exported page content")[:-8]
    with pytest.raises(GzipDecompressError):
        decode_payload(data)


def test_decode_garbage_after_gzip_magic():
    with pytest.raises(GzipDecompressError) as excinfo:
        decode_payload(b"\x1f\x8b\x00\x00garbage")
    assert "decompress" in str(excinfo.value)


def test_decode_invalid_utf8_is_lossy():
    assert decode_payload(b"ok \xff\xfe ok") == "ok \ufffd\ufffd ok"


def test_decode_gzip_with_invalid_utf8_is_lossy():
    assert decode_payload(gzip.compress(b"caf\xe9")) == "caf\ufffd"


def test_decode_empty():
    assert decode_payload(b"") == ""
