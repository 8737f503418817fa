"""Formula evaluation and the per-spreadsheet engine."""
