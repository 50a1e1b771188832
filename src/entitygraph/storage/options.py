"""
Storage-level query parameters produced by the query option builder.
"""

from dataclasses import dataclass, field
from typing import Any

OrderSpec = str | list[str | list[str] | tuple[str, str]]


@dataclass
class Include:
    """Follow one relation, optionally filtering the owner rows by the related rows."""

    relation: str
    target: str
    where: dict[Any, Any] | None = None
    include: list["Include"] = field(default_factory=list)

    @property
    def filtered(self) -> bool:
        return self.where is not None or any(nested.filtered for nested in self.include)


@dataclass
class FindOptions:
    """Options accepted by every finder of the entity store."""

    where: dict[Any, Any] | None = None
    include: list[Include] = field(default_factory=list)
    order: OrderSpec | None = None
    offset: int | None = None
    limit: int | None = None
    attributes: list[str] | None = None
