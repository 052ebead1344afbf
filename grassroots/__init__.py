"""
Grassroots Hub Backend — Application Package
==============================================

Layers:

    ┌─────────────────────────────────────┐
    │      Routes (API layer, auth)       │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (transactions, locks)    │  ← one unit of work per mutation
    ├─────────────────────────────────────┤
    │  RankedList (pure ranking rules)    │  ← no I/O
    ├─────────────────────────────────────┤
    │   Repositories, Models & Schemas    │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │       Database (async engine)       │  ← SQLite or PostgreSQL
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
