"""
Page export workflow.

Coda only serves canvas page content through an asynchronous export:

1. POST /docs/{doc}/pages/{page}/export starts a job and returns its id.
2. GET  /docs/{doc}/pages/{page}/export/{id} is polled until the job reports
   "complete" or "failed".
3. The finished job carries a short-lived `downloadLink`, which is fetched
   (after host validation) and decoded.

`PageExporter.export_page` runs one such workflow end to end. Each call owns
its own export id and attempt counter; nothing is shared between calls.
"""
import asyncio
import logging
from typing import Optional
from urllib.parse import quote

from .client import CodaClient
from .config import ExportSettings
from .errors import ExportFailedError, ExportMissingLinkError, ExportTimeoutError, JsonDecodeError
from .models import STATUS_COMPLETE, STATUS_FAILED, ExportRequest, ExportStatus, RenderedPage

logger = logging.getLogger(__name__)


def page_path(doc_id: str, page_id: str) -> str:
    return f"/docs/{quote(doc_id, safe='')}/pages/{quote(page_id, safe='')}"


class PageExporter:
    """
    Drives a page export to completion or a definitive failure.

    Args:
        client (CodaClient): Blocking API client; its calls are run in worker
            threads so polling never blocks the event loop.
        settings (ExportSettings): Polling budget. Production uses 30 attempts
            one second apart; tests typically shrink both.
    """

    def __init__(self, client: CodaClient, settings: Optional[ExportSettings] = None):
        self.client = client
        self.settings = settings or ExportSettings()

    async def export_page(self, doc_id: str, page_id: str) -> RenderedPage:
        """
        Export a page as HTML and return its name and content.

        Raises:
            ValueError: if either id is empty.
            ExportFailedError: Coda reported the export as failed.
            ExportTimeoutError: the job never finished within the budget.
            ExportMissingLinkError: the job finished without a download link.
            InvalidDownloadUrlError, UntrustedDownloadHostError,
            GzipDecompressError: the download link or payload was rejected.
            CodaError: any HTTP-level failure, propagated unchanged.
        """
        if not doc_id or not doc_id.strip():
            raise ValueError("doc_id must not be empty")
        if not page_id or not page_id.strip():
            raise ValueError("page_id must not be empty")

        base = page_path(doc_id, page_id)
        export_id = await self._initiate(base)
        status = await self._poll(f"{base}/export/{quote(export_id, safe='')}")
        content = await self._download(status)

        page = await asyncio.to_thread(self.client.get_json, base)
        page_name = page.get("name") or page_id
        return RenderedPage(page_name=page_name, content=content)

    async def _initiate(self, base: str) -> str:
        export_path = f"{base}/export"
        logger.info("Initiating page export: POST %s", export_path)
        try:
            data = await asyncio.to_thread(
                self.client.post_json, export_path, ExportRequest().to_json()
            )
        except Exception as e:
            logger.error("Failed to initiate export: %s", e)
            raise

        initial = ExportStatus.from_json(data)
        if not initial.id:
            logger.error("Export response from %s has no id: %r", export_path, data)
            raise JsonDecodeError("export response has no 'id'")
        logger.info("Export initiated: id=%s, status=%s", initial.id, initial.status)
        return initial.id

    async def _poll(self, status_path: str) -> ExportStatus:
        attempts = self.settings.max_poll_attempts
        for attempt in range(1, attempts + 1):
            logger.info("Polling export status, attempt %d/%d: GET %s", attempt, attempts, status_path)
            try:
                data = await asyncio.to_thread(self.client.get_json, status_path)
            except Exception as e:
                logger.error("Failed to poll export status: %s", e)
                raise

            status = ExportStatus.from_json(data)
            logger.info("Export status: %s", status.status)

            if status.phase == STATUS_COMPLETE:
                return status
            if status.phase == STATUS_FAILED:
                raise ExportFailedError(status.error or "Unknown error")

            await asyncio.sleep(self.settings.poll_interval)

        logger.error("Export did not finish after %d attempts", attempts)
        raise ExportTimeoutError(self.settings.budget_seconds)

    async def _download(self, status: ExportStatus) -> str:
        if not status.download_link:
            raise ExportMissingLinkError()

        logger.info("Export complete, downloading from: %s", status.download_link)
        try:
            content = await asyncio.to_thread(self.client.download_raw, status.download_link)
        except Exception as e:
            logger.error("Failed to download export: %s", e)
            raise
        logger.info("Downloaded %d characters", len(content))
        return content
