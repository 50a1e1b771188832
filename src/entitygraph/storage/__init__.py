"""
Relational storage adapter
"""

from .operators import OPERATORS, Op, lookup_operator
from .options import FindOptions, Include
from .store import EntityStore, RelationAccessor

__all__ = [
    "OPERATORS",
    "EntityStore",
    "FindOptions",
    "Include",
    "Op",
    "RelationAccessor",
    "lookup_operator",
]
