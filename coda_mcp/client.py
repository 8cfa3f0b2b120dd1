"""
A thin, blocking client for the Coda REST API built on `requests`.

Callers in async code run these methods through `asyncio.to_thread`.
"""
import json
import logging
from typing import Optional
from urllib.parse import urljoin

import requests

from .config import Config
from .downloads import decode_payload, validate_download_url
from .errors import (
    ApiError,
    ForbiddenError,
    JsonDecodeError,
    NotFoundError,
    RateLimitedError,
    TransportError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# (connect, read) timeouts in seconds
DEFAULT_TIMEOUT = (30, 60)

MAX_DOWNLOAD_REDIRECTS = 5


class CodaClient:
    """
    Authenticated access to `Config.base_url`.

    Every method raises a `CodaError` subclass on failure; successful JSON
    calls return the decoded body (an empty dict for empty bodies).
    """

    def __init__(self, config: Config, session: Optional[requests.Session] = None, timeout=DEFAULT_TIMEOUT):
        self.base_url = config.base_url.rstrip("/")
        self._api_token = config.api_token
        self.session = session or requests.Session()
        self.timeout = timeout
        logger.info("Creating Coda API client for %s", self.base_url)

    @property
    def token_preview(self) -> str:
        return self._api_token[:8] + "..." if len(self._api_token) > 8 else self._api_token

    def get_json(self, path: str, params: dict = None):
        return self._request("GET", path, params=params)

    def post_json(self, path: str, body):
        return self._request("POST", path, json=body)

    def put_json(self, path: str, body):
        return self._request("PUT", path, json=body)

    def delete(self, path: str) -> None:
        self._request("DELETE", path, parse=False)

    def download_raw(self, url: str) -> str:
        """
        Fetch an export artifact from an allow-listed host and return its text.

        The request carries no Authorization header. Redirects are followed by
        hand, and every hop is checked against the allow-list before it is
        requested. Gzip payloads are decompressed transparently.
        """
        for _ in range(MAX_DOWNLOAD_REDIRECTS + 1):
            validate_download_url(url)
            logger.debug("Downloading from external URL: %s", url)
            try:
                response = self.session.get(url, timeout=self.timeout, allow_redirects=False)
            except requests.RequestException as e:
                raise TransportError(e)

            if not response.is_redirect:
                break
            url = urljoin(url, response.headers["Location"])
            logger.debug("Export download redirected to %s", url)
        else:
            raise ApiError(
                response.status_code,
                f"Too many redirects downloading export (max {MAX_DOWNLOAD_REDIRECTS})",
            )

        if not response.ok:
            raise ApiError(response.status_code, response.text)

        data = response.content
        logger.debug("Downloaded %d bytes", len(data))
        return decode_payload(data)

    def _request(self, method: str, path: str, parse: bool = True, **kwargs):
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self._api_token}"}
        logger.info("%s %s (Authorization: Bearer %s)", method, url, self.token_preview)
        if "json" in kwargs:
            logger.debug("Request body: %s", json.dumps(kwargs["json"]))

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise TransportError(e)

        logger.info("%s %s -> %s", method, url, response.status_code)
        raise_for_status(response)

        if not parse:
            return None
        text = response.text
        logger.debug("Response body: %s", text)
        if not text.strip():
            return {}
        try:
            return json.loads(text)
        except ValueError as e:
            raise JsonDecodeError(e)


def raise_for_status(response: requests.Response) -> None:
    """Map a non-2xx response onto the matching `ApiError` subclass."""
    status = response.status_code
    if 200 <= status < 300:
        return
    if status == 429:
        logger.warning("Rate limited by Coda API")
        raise RateLimitedError()

    body = response.text
    logger.error("API error %s: %s", status, body)
    if status == 401:
        raise UnauthorizedError(body)
    if status == 403:
        raise ForbiddenError(body)
    if status == 404:
        raise NotFoundError(body)
    raise ApiError(status, body)
