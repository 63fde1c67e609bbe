"""FormBuilder: entity-record editing engine.

Invariants:
    - Package root contains no executable code (no import side effects)
"""
