"""Infrastructure layer package.

Implements Port interfaces with concrete adapters (PostgreSQL, in-memory).
The gateway reaches these only through the composition root.
"""
