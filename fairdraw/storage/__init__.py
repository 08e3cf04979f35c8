"""Storage backends for commitments, audit entries and verifications."""

from .base import DrawStore
from .memory import InMemoryDrawStore
from .sql import SqlAlchemyDrawStore

__all__ = ["DrawStore", "InMemoryDrawStore", "SqlAlchemyDrawStore"]
