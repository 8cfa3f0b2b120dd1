"""MCP server exposing the Coda.io REST API as tools."""
from .client import CodaClient
from .config import Config, ExportSettings
from .export import PageExporter
from .models import RenderedPage

__version__ = "0.1.0"

__all__ = ["CodaClient", "Config", "ExportSettings", "PageExporter", "RenderedPage"]
