"""Spreadsheet primitives: ids, references, documents, stores, locales and providers."""
