"""
Persistence backends.

- postgres: asyncpg-backed storage for rules and submission evaluations.
- memory: dictionary-backed storage with the same coroutine interface.
"""

from .memory import InMemoryPersistence
from .postgres import PostgreSQLPersistence

__all__ = ["InMemoryPersistence", "PostgreSQLPersistence"]
