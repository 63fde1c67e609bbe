"""Core Layer: pure record-editing logic, no IO, no async.

Invariants:
    - No module in core/ imports from services/ or infrastructure/
    - Functions are pure and deterministic (time is passed in, never read implicitly
      except through an explicit default)
"""
