"""Query adapters — execute a CompiledQuery against a backend.

The SQLAlchemy adapter is imported from its module explicitly::

    from cqrs_ddd_criteria.adapters.sqlalchemy import SQLAlchemyQueryAdapter
"""

from __future__ import annotations

from .memory import MEMORY_OPERATORS, MemoryQuery, MemoryQueryAdapter

__all__ = ["MEMORY_OPERATORS", "MemoryQuery", "MemoryQueryAdapter"]
