"""
Exceptions raised by the Coda MCP server.

Every error that can reach an MCP client derives from `CodaError`, so tool
functions can wrap them uniformly. The `Export*` family describes the ways a
page export can end without producing content.
"""


class CodaError(Exception):
    """Base class for all Coda MCP errors."""


class ConfigError(CodaError):
    """Raised when the server configuration is missing or invalid."""


class TransportError(CodaError):
    """The HTTP request never produced a response (DNS, TLS, timeout, ...)."""

    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"HTTP request failed: {cause}")


class RateLimitedError(CodaError):
    def __init__(self):
        super().__init__("Rate limited by Coda API")


class JsonDecodeError(CodaError):
    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"JSON parse error: {cause}")


class ApiError(CodaError):
    """A non-success HTTP status returned by the Coda API."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"API error {status}: {body}")


class UnauthorizedError(ApiError):
    def __init__(self, body: str = ""):
        super().__init__(401, body or "Unauthorized: check the Coda API token")


class ForbiddenError(ApiError):
    def __init__(self, body: str = ""):
        super().__init__(403, body or "Forbidden: the token cannot access this resource")


class NotFoundError(ApiError):
    def __init__(self, body: str = ""):
        super().__init__(404, body or "Not found")


class ExportError(CodaError):
    """Base class for page-export failures."""


class ExportFailedError(ExportError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Export failed: {message}")


class ExportTimeoutError(ExportError):
    def __init__(self, seconds: float):
        self.seconds = seconds
        super().__init__(f"Export timed out after {seconds:g} seconds")


class ExportMissingLinkError(ExportError):
    def __init__(self):
        super().__init__("Export complete but no download link provided")


class UntrustedDownloadHostError(ExportError):
    def __init__(self, host: str):
        self.host = host
        super().__init__(f"Refusing to download export from untrusted host: {host}")


class InvalidDownloadUrlError(ExportError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid download URL: {url!r}")


class GzipDecompressError(ExportError):
    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"Failed to decompress gzip: {cause}")
