"""Schemas Layer: Pydantic models for the data API wire format.

Invariants:
    - Request/response validation at the HTTP boundary only
"""
