"""
Consolidation Kernel

Shared foundation for the multi-entity ownership consolidation engine:
- Immutable domain value objects (entities, ownership edges, accounts)
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
- Collaborator contracts with in-memory and SQLAlchemy implementations
"""

__version__ = "0.1.0"
