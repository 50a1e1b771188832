"""
entitygraph
Schema-driven GraphQL resolvers over a relational object model
"""

__version__ = "0.1.0"

from .config import settings
from .engine import EntityEngine
from .handles import Anonymous
from .storage import EntityStore

__all__ = ["Anonymous", "EntityEngine", "EntityStore", "settings", "__version__"]
