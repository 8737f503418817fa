"""
sheet-server: the HTTP front door of a multi-tenant spreadsheet server.

- sheetserver.core: ids, references, documents, stores, locales, providers
- sheetserver.engine: formula evaluation and the per-spreadsheet engine
- sheetserver.hateos: request routing and resource mapping dispatch
- sheetserver.api: tenant cache, resources, FastAPI app
- sheetserver.cli: typer command line
"""

__version__ = "0.1.0"
