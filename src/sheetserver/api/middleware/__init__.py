"""API middleware package.

Cross-cutting concerns (request ids, timing, transaction ids, errors)
live in middleware so resource handlers stay focused on spreadsheets.

Tags:
    sheet-server, api, middleware
"""
