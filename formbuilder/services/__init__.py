"""Services Layer: async orchestration around the pure core.

Invariants:
    - Load and save orchestration split into separate classes sharing one EditorContext
    - All IO goes through the core boundary Protocols
"""
