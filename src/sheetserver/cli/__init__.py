"""sheet-server command line."""
