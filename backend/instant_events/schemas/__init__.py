"""Pydantic Schemas: validation of operation inputs and shape of returned documents.

Invariants:
    - Schemas validate at the core boundary (operation arguments, stored payloads)
    - Stored field names are camelCase aliases of snake_case attributes

Design Decisions:
    - Separate from models: schemas are document contracts, models are persistence
"""
