"""
Storage models of the demo organization domain
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class OrgUnit(Base):
    __tablename__ = "org_units"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    initials: Mapped[str | None] = mapped_column(String(10))
    name: Mapped[str | None] = mapped_column(String(100))
    parent_unit_id: Mapped[str | None] = mapped_column(
        ForeignKey("org_units.id", ondelete="SET NULL")
    )

    parent_unit: Mapped[OrgUnit | None] = relationship(
        remote_side=[id], foreign_keys=[parent_unit_id]
    )
    director: Mapped[Person | None] = relationship(foreign_keys="Person.director_of_id")
    members: Mapped[list[Person]] = relationship(
        back_populates="belongs_to", foreign_keys="Person.org_unit_id"
    )


class Person(Base):
    __tablename__ = "persons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    initials: Mapped[str | None] = mapped_column(String(10))
    name: Mapped[str | None] = mapped_column(String(100))
    role: Mapped[str | None] = mapped_column(String(20))
    org_unit_id: Mapped[str | None] = mapped_column(
        ForeignKey("org_units.id", ondelete="SET NULL")
    )
    director_of_id: Mapped[str | None] = mapped_column(
        ForeignKey("org_units.id", ondelete="SET NULL")
    )
    supervisor_id: Mapped[str | None] = mapped_column(
        ForeignKey("persons.id", ondelete="SET NULL")
    )

    belongs_to: Mapped[OrgUnit | None] = relationship(
        back_populates="members", foreign_keys=[org_unit_id]
    )
    supervisor: Mapped[Person | None] = relationship(
        remote_side=[id], foreign_keys=[supervisor_id]
    )
