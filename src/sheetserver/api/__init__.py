"""HTTP front door of the sheet server."""

from sheetserver.api.app import create_app

__all__ = ["create_app"]
