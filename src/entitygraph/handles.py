"""
Entity handles passed between resolvers
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Anonymous:
    """Placeholder for "an entity of this type that does not exist yet".

    Returned by a root query-one without identifying arguments so that
    ``create`` (and ``batch``) can be invoked on it. Never persisted.
    """

    type_name: str

    def is_type(self, type_name: str) -> bool:
        return self.type_name == type_name


def is_anonymous(handle: Any, type_name: str | None = None) -> bool:
    match handle:
        case Anonymous() if type_name is None:
            return True
        case Anonymous(type_name=name):
            return name == type_name
        case _:
            return False
