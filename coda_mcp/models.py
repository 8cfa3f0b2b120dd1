"""
Request and response shapes for the Coda page-export workflow.

Other API resources (docs, tables, rows, ...) are passed through to the
client as JSON and are not modelled here.
"""
from dataclasses import dataclass
from typing import Optional

HTML_FORMAT = "html"

STATUS_COMPLETE = "complete"
STATUS_FAILED = "failed"
STATUS_IN_PROGRESS = "inProgress"


@dataclass(frozen=True)
class ExportRequest:
    output_format: str = HTML_FORMAT

    def to_json(self) -> dict:
        return {"outputFormat": self.output_format}


@dataclass(frozen=True)
class ExportStatus:
    """
    A snapshot of a server-side export job.

    `status` is whatever string Coda sent. Use `phase` rather than comparing
    it directly: values other than "complete" and "failed" (including ones
    Coda may add later) all mean the export is still running.
    """
    id: str
    status: str
    href: Optional[str] = None
    download_link: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_json(cls, data: dict) -> "ExportStatus":
        return cls(
            id=str(data.get("id") or ""),
            status=str(data.get("status") or ""),
            href=data.get("href"),
            download_link=data.get("downloadLink"),
            error=data.get("error"),
        )

    @property
    def phase(self) -> str:
        if self.status == STATUS_COMPLETE:
            return STATUS_COMPLETE
        if self.status == STATUS_FAILED:
            return STATUS_FAILED
        return STATUS_IN_PROGRESS


@dataclass(frozen=True)
class RenderedPage:
    page_name: str
    content: str

    def render(self) -> str:
        return f"Page: {self.page_name}\n\nContent:\n{self.content}"
