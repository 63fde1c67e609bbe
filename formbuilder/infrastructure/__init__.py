"""Infrastructure Layer: remote service clients and cross-cutting concerns.

Invariants:
    - Infrastructure never imports services/; it implements the core boundary Protocols
    - All HTTP calls wrapped with retry/timeout/error mapping
"""
