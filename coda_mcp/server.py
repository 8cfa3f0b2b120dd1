"""
This module implements a FastMCP server that acts as a bridge to the Coda API.
It allows MCP clients to interact with Coda documents, pages, tables, rows,
formulas and controls by calling the tools defined in this server.

Page content is only available through Coda's asynchronous export API; the
`get_page` tool delegates that workflow to `coda_mcp.export.PageExporter`.
"""
import asyncio
import json
import logging
import os
import sys
from typing import Any, Dict, Optional
from urllib.parse import quote

from mcp.server.fastmcp import FastMCP

from .client import CodaClient
from .config import Config
from .export import PageExporter

logger = logging.getLogger(__name__)

# Maximum page size accepted by the Coda list endpoints.
MAX_LIMIT = 1000

MUTATION_NOTE = "Note: Changes may take a few seconds to appear."


# --- Coda API Client ---
# Set by init(); every tool reads these module globals at call time.
coda: Optional[CodaClient] = None
exporter: Optional[PageExporter] = None


def init(config: Config) -> None:
    """Create the shared API client and page exporter from `config`."""
    global coda, exporter
    coda = CodaClient(config)
    exporter = PageExporter(coda, config.export)


def _client() -> CodaClient:
    if coda is None:
        raise RuntimeError("The Coda client is not configured; call init() first.")
    return coda


def _segment(value: str) -> str:
    return quote(value, safe="")


def _doc_path(doc_id: str) -> str:
    return f"/docs/{_segment(doc_id)}"


def _table_path(doc_id: str, table_id: str) -> str:
    return f"{_doc_path(doc_id)}/tables/{_segment(table_id)}"


def _to_json(data) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _with_json(heading: str, data) -> str:
    return f"{heading}\n\n```json\n{_to_json(data)}\n```"


def _cells(cells: Dict[str, Any]) -> list:
    return [{"column": column, "value": value} for column, value in cells.items()]


# --- MCP Server Definition ---
mcp = FastMCP(
    name="Coda MCP Server",
    instructions=(
        "Coda.io MCP Server - Interact with Coda documents, pages, tables and rows. "
        "Requires the CODA_API_TOKEN environment variable."
    ),
)


# --- Document Tools ---

@mcp.tool()
async def list_docs(limit: int = 50, query: Optional[str] = None) -> str:
    """
    List available Coda documents. Returns doc IDs, names, and metadata.

    Args:
        limit (int): Maximum number of docs to return (default 50, at most 1000).
        query (str, optional): Search query to filter docs by name.
    """
    try:
        params = {"limit": min(limit, MAX_LIMIT)}
        if query:
            params["query"] = query
        logger.info("list_docs: limit=%s, query=%r", params["limit"], query)

        docs = await asyncio.to_thread(_client().get_json, "/docs", params)
        items = docs.get("items", [])
        return _with_json(f"Found {len(items)} documents", items)
    except Exception as e:
        raise RuntimeError(f"An error occurred while listing documents: {e}")


@mcp.tool()
async def get_doc(doc_id: str) -> str:
    """
    Get detailed information about a specific Coda document.

    Args:
        doc_id (str): The ID of the Coda document.
    """
    try:
        logger.info("get_doc: doc_id=%s", doc_id)
        doc = await asyncio.to_thread(_client().get_json, _doc_path(doc_id))
        return _with_json(f"Document: {doc.get('name')}", doc)
    except Exception as e:
        raise RuntimeError(f"An error occurred while getting doc '{doc_id}': {e}")


@mcp.tool()
async def search_docs(query: str) -> str:
    """
    Search for Coda documents by name or content.

    Args:
        query (str): Search query.
    """
    try:
        logger.info("search_docs: query=%s", query)
        docs = await asyncio.to_thread(_client().get_json, "/docs", {"query": query})
        items = docs.get("items", [])
        return _with_json(f"Found {len(items)} documents matching '{query}'", items)
    except Exception as e:
        raise RuntimeError(f"An error occurred while searching documents for '{query}': {e}")


@mcp.tool()
async def create_doc(
    title: str,
    folder_id: Optional[str] = None,
    source_doc: Optional[str] = None,
    timezone: Optional[str] = None,
) -> str:
    """
    Create a new Coda document. Optionally specify a folder, source document
    (template), or timezone.

    Args:
        title (str): Title of the new document.
        folder_id (str, optional): Folder to create the document in.
        source_doc (str, optional): ID of a document to copy.
        timezone (str, optional): Timezone for the document, e.g. "Europe/London".
    """
    try:
        body = {"title": title}
        if folder_id:
            body["folderId"] = folder_id
        if source_doc:
            body["sourceDoc"] = source_doc
        if timezone:
            body["timezone"] = timezone
        logger.info("create_doc: %s", body)

        doc = await asyncio.to_thread(_client().post_json, "/docs", body)
        heading = (
            "Document created successfully!\n\n"
            f"Name: {doc.get('name')}\nID: {doc.get('id')}"
        )
        return _with_json(heading, doc)
    except Exception as e:
        raise RuntimeError(f"An error occurred while creating document '{title}': {e}")


@mcp.tool()
async def delete_doc(doc_id: str) -> str:
    """
    Delete a Coda document. This action is permanent and cannot be undone.

    Args:
        doc_id (str): The ID of the Coda document to delete.
    """
    try:
        logger.info("delete_doc: doc_id=%s", doc_id)
        await asyncio.to_thread(_client().delete, _doc_path(doc_id))
        return f"Document '{doc_id}' deleted successfully."
    except Exception as e:
        raise RuntimeError(f"An error occurred while deleting doc '{doc_id}': {e}")


# --- Page Tools ---

@mcp.tool()
async def list_pages(doc_id: str) -> str:
    """
    List all pages in a Coda document.

    Args:
        doc_id (str): The ID of the Coda document.
    """
    try:
        logger.info("list_pages: doc_id=%s", doc_id)
        pages = await asyncio.to_thread(_client().get_json, f"{_doc_path(doc_id)}/pages")
        items = pages.get("items", [])
        return _with_json(f"Found {len(items)} pages", items)
    except Exception as e:
        raise RuntimeError(f"An error occurred while listing pages for doc '{doc_id}': {e}")


@mcp.tool()
async def get_page(doc_id: str, page_id: str) -> str:
    """
    Get a specific page's content in HTML format.

    The page is exported by Coda in the background; this waits for the export
    to finish (about 30 seconds at most) before returning.

    Args:
        doc_id (str): The ID of the Coda document.
        page_id (str): The page ID or name.
    """
    try:
        logger.info("get_page: doc_id=%s, page_id=%s", doc_id, page_id)
        if exporter is None:
            raise RuntimeError("The page exporter is not configured; call init() first.")
        page = await exporter.export_page(doc_id, page_id)
        return page.render()
    except Exception as e:
        raise RuntimeError(f"An error occurred while getting page '{page_id}': {e}")


# --- Table Tools ---

@mcp.tool()
async def list_tables(doc_id: str) -> str:
    """
    List all tables in a Coda document.

    Args:
        doc_id (str): The ID of the Coda document.
    """
    try:
        logger.info("list_tables: doc_id=%s", doc_id)
        tables = await asyncio.to_thread(_client().get_json, f"{_doc_path(doc_id)}/tables")
        items = tables.get("items", [])
        return _with_json(f"Found {len(items)} tables", items)
    except Exception as e:
        raise RuntimeError(f"An error occurred while listing tables for doc '{doc_id}': {e}")


@mcp.tool()
async def get_table(doc_id: str, table_id: str) -> str:
    """
    Get detailed information about a specific table.

    Args:
        doc_id (str): The ID of the Coda document.
        table_id (str): The table ID or name.
    """
    try:
        logger.info("get_table: doc_id=%s, table_id=%s", doc_id, table_id)
        table = await asyncio.to_thread(_client().get_json, _table_path(doc_id, table_id))
        return _with_json(f"Table: {table.get('name')}", table)
    except Exception as e:
        raise RuntimeError(f"An error occurred while getting table '{table_id}': {e}")


@mcp.tool()
async def list_columns(doc_id: str, table_id: str) -> str:
    """
    List all columns in a table.

    Args:
        doc_id (str): The ID of the Coda document.
        table_id (str): The table ID or name.
    """
    try:
        logger.info("list_columns: doc_id=%s, table_id=%s", doc_id, table_id)
        path = f"{_table_path(doc_id, table_id)}/columns"
        columns = await asyncio.to_thread(_client().get_json, path)
        items = columns.get("items", [])
        return _with_json(f"Found {len(items)} columns", items)
    except Exception as e:
        raise RuntimeError(f"An error occurred while listing columns for table '{table_id}': {e}")


# --- Row Tools ---

@mcp.tool()
async def get_rows(doc_id: str, table_id: str, limit: int = 100, query: Optional[str] = None) -> str:
    """
    Get rows from a table with optional filtering. Returns rows with column
    values using column names as keys.

    Args:
        doc_id (str): The ID of the Coda document.
        table_id (str): The table ID or name.
        limit (int): Maximum rows to return (default 100, at most 1000).
        query (str, optional): Filter in Coda syntax, e.g. 'Status:"Active"'.
    """
    try:
        params = {"limit": min(limit, MAX_LIMIT), "useColumnNames": "true"}
        if query:
            params["query"] = query
        logger.info(
            "get_rows: doc_id=%s, table_id=%s, limit=%s, query=%r",
            doc_id, table_id, params["limit"], query,
        )

        path = f"{_table_path(doc_id, table_id)}/rows"
        rows = await asyncio.to_thread(_client().get_json, path, params)
        items = rows.get("items", [])
        return _with_json(f"Found {len(items)} rows", items)
    except Exception as e:
        raise RuntimeError(f"An error occurred while getting rows for table '{table_id}': {e}")


@mcp.tool()
async def get_row(doc_id: str, table_id: str, row_id: str) -> str:
    """
    Get a specific row by ID.

    Args:
        doc_id (str): The ID of the Coda document.
        table_id (str): The table ID or name.
        row_id (str): The row ID.
    """
    try:
        logger.info("get_row: doc_id=%s, table_id=%s, row_id=%s", doc_id, table_id, row_id)
        path = f"{_table_path(doc_id, table_id)}/rows/{_segment(row_id)}"
        row = await asyncio.to_thread(_client().get_json, path, {"useColumnNames": "true"})
        return _with_json(f"Row: {row.get('id')}", row)
    except Exception as e:
        raise RuntimeError(f"An error occurred while getting row '{row_id}': {e}")


@mcp.tool()
async def add_row(doc_id: str, table_id: str, cells: Dict[str, Any]) -> str:
    """
    Add a new row to a table.

    Args:
        doc_id (str): The ID of the Coda document.
        table_id (str): The table ID or name.
        cells (dict): Mapping of column names to values.
    """
    try:
        logger.info("add_row: doc_id=%s, table_id=%s, cells=%s", doc_id, table_id, cells)
        body = {"rows": [{"cells": _cells(cells)}]}
        path = f"{_table_path(doc_id, table_id)}/rows"
        result = await asyncio.to_thread(_client().post_json, path, body)

        added_ids = ", ".join(result.get("addedRowIds") or [])
        return (
            "Row added successfully.\n"
            f"Request ID: {result.get('requestId')}\n"
            f"Added row IDs: {added_ids}\n\n{MUTATION_NOTE}"
        )
    except Exception as e:
        raise RuntimeError(f"An error occurred while adding a row to table '{table_id}': {e}")


@mcp.tool()
async def update_row(doc_id: str, table_id: str, row_id: str, cells: Dict[str, Any]) -> str:
    """
    Update an existing row in a table.

    Args:
        doc_id (str): The ID of the Coda document.
        table_id (str): The table ID or name.
        row_id (str): The row ID to update.
        cells (dict): Mapping of column names to new values.
    """
    try:
        logger.info("update_row: doc_id=%s, table_id=%s, row_id=%s", doc_id, table_id, row_id)
        body = {"row": {"cells": _cells(cells)}}
        path = f"{_table_path(doc_id, table_id)}/rows/{_segment(row_id)}"
        result = await asyncio.to_thread(_client().put_json, path, body)
        return (
            "Row updated successfully.\n"
            f"Request ID: {result.get('requestId')}\n\n{MUTATION_NOTE}"
        )
    except Exception as e:
        raise RuntimeError(f"An error occurred while updating row '{row_id}': {e}")


@mcp.tool()
async def delete_row(doc_id: str, table_id: str, row_id: str) -> str:
    """
    Delete a row from a table.

    Args:
        doc_id (str): The ID of the Coda document.
        table_id (str): The table ID or name.
        row_id (str): The row ID to delete.
    """
    try:
        logger.info("delete_row: doc_id=%s, table_id=%s, row_id=%s", doc_id, table_id, row_id)
        path = f"{_table_path(doc_id, table_id)}/rows/{_segment(row_id)}"
        await asyncio.to_thread(_client().delete, path)
        return f"Row deleted successfully.\n\n{MUTATION_NOTE}"
    except Exception as e:
        raise RuntimeError(f"An error occurred while deleting row '{row_id}': {e}")


# --- Formula Tools ---

@mcp.tool()
async def list_formulas(doc_id: str) -> str:
    """
    List all named formulas in a document.

    Args:
        doc_id (str): The ID of the Coda document.
    """
    try:
        logger.info("list_formulas: doc_id=%s", doc_id)
        formulas = await asyncio.to_thread(_client().get_json, f"{_doc_path(doc_id)}/formulas")
        items = formulas.get("items", [])
        return _with_json(f"Found {len(items)} formulas", items)
    except Exception as e:
        raise RuntimeError(f"An error occurred while listing formulas for doc '{doc_id}': {e}")


@mcp.tool()
async def get_formula(doc_id: str, formula_id: str) -> str:
    """
    Get a specific formula's current value.

    Args:
        doc_id (str): The ID of the Coda document.
        formula_id (str): The formula ID or name.
    """
    try:
        logger.info("get_formula: doc_id=%s, formula_id=%s", doc_id, formula_id)
        path = f"{_doc_path(doc_id)}/formulas/{_segment(formula_id)}"
        formula = await asyncio.to_thread(_client().get_json, path)
        return _with_json(f"Formula: {formula.get('name')}", formula)
    except Exception as e:
        raise RuntimeError(f"An error occurred while getting formula '{formula_id}': {e}")


# --- Control Tools ---

@mcp.tool()
async def list_controls(doc_id: str) -> str:
    """
    List all controls (buttons, sliders, etc.) in a document.

    Args:
        doc_id (str): The ID of the Coda document.
    """
    try:
        logger.info("list_controls: doc_id=%s", doc_id)
        controls = await asyncio.to_thread(_client().get_json, f"{_doc_path(doc_id)}/controls")
        items = controls.get("items", [])
        return _with_json(f"Found {len(items)} controls", items)
    except Exception as e:
        raise RuntimeError(f"An error occurred while listing controls for doc '{doc_id}': {e}")


# --- Server Execution ---

def setup_logging(level: Optional[str] = None) -> None:
    """Log to stderr; stdout carries the MCP JSON-RPC stream."""
    logging.basicConfig(
        stream=sys.stderr,
        level=(level or os.getenv("LOG_LEVEL") or "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main() -> None:
    setup_logging()
    config = Config.from_env()
    logger.info("Starting Coda MCP server, base URL: %s", config.base_url)
    init(config)
    # Serves MCP over stdio until the client disconnects.
    mcp.run()


if __name__ == "__main__":
    main()
