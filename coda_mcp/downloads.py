"""
Safety checks and decoding for export download links.

Coda hands back a `downloadLink` for finished exports. The link comes from a
response keyed by caller-supplied ids, so it is validated against a fixed set
of trusted domains before anything is fetched from it.
"""
import gzip
import logging
import zlib
from urllib.parse import urlsplit

from .errors import GzipDecompressError, InvalidDownloadUrlError, UntrustedDownloadHostError

logger = logging.getLogger(__name__)

ALLOWED_DOWNLOAD_HOSTS = frozenset({
    "coda.io",
    "codahosted.io",
    "amazonaws.com",
})

GZIP_MAGIC = b"\x1f\x8b"


def is_trusted_host(host: str, allowed=ALLOWED_DOWNLOAD_HOSTS) -> bool:
    """
    True if `host` is one of the allowed domains or a subdomain of one.

    Matching is on whole labels: "files.coda.io" passes, "evil-coda.io" and
    "coda.io.example.com" do not.
    """
    host = host.lower().rstrip(".")
    return any(host == domain or host.endswith("." + domain) for domain in allowed)


def validate_download_url(url: str, allowed=ALLOWED_DOWNLOAD_HOSTS) -> str:
    """
    Check that `url` is an absolute http(s) URL on a trusted host.

    Returns:
        str: the lower-cased host name.

    Raises:
        InvalidDownloadUrlError: if the URL cannot be parsed or has no host.
        UntrustedDownloadHostError: if the host is not allow-listed.
    """
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        raise InvalidDownloadUrlError(url)

    if parts.scheme not in ("http", "https") or not host:
        raise InvalidDownloadUrlError(url)

    if not is_trusted_host(host, allowed):
        logger.warning("Rejected export download from untrusted host %s", host)
        raise UntrustedDownloadHostError(host)
    return host


def decode_payload(data: bytes) -> str:
    """
    Turn downloaded export bytes into text.

    Gzip streams (detected by their magic prefix) are decompressed first.
    Invalid UTF-8 is replaced rather than rejected; a corrupt gzip stream is
    an error.
    """
    if data[:2] == GZIP_MAGIC:
        logger.debug("Detected gzip content, decompressing %d bytes", len(data))
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise GzipDecompressError(e)
        logger.debug("Decompressed to %d bytes", len(data))
    return data.decode("utf-8", errors="replace")
