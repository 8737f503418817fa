"""Request routing and hypermedia resource mapping.

Tags:
    sheet-server, hateos, routing

Doc-Types:
    api-reference
"""
