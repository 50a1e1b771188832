"""
Seed data for the demo organization domain
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from ..logging import get_logger
from .models import Base, OrgUnit, Person

logger = get_logger(__name__)


def _uuid() -> str:
    return str(uuid.uuid4())


async def create_tables(engine: AsyncEngine, drop: bool = False) -> None:
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def seed_demo_data(session: AsyncSession) -> dict[str, str]:
    """Insert the demo organization and return its ids keyed by initials."""
    msg = OrgUnit(id=_uuid(), initials="MSG", name="msg systems ag")
    xt = OrgUnit(id=_uuid(), initials="XT", name="msg Applied Technology Research (XT)")
    xis = OrgUnit(id=_uuid(), initials="XIS", name="msg Information Security (XIS)")

    hz = Person(id=_uuid(), initials="HZ", name="Hans Zehetmaier", role="MANAGER")
    js = Person(id=_uuid(), initials="JS", name="Jens Stäcker", role="MANAGER")
    rse = Person(id=_uuid(), initials="RSE", name="Ralf S. Engelschall", role="MANAGER")
    ben = Person(id=_uuid(), initials="BEN", name="Bernd Endras", role="EMPLOYEE")
    cgu = Person(id=_uuid(), initials="CGU", name="Carol Gutzeit", role="EMPLOYEE")
    mws = Person(id=_uuid(), initials="MWS", name="Mark-W. Schmidt", role="MANAGER")
    bwe = Person(id=_uuid(), initials="BWE", name="Bernhard Weber", role="EMPLOYEE")
    fst = Person(id=_uuid(), initials="FST", name="Florian Stahl", role="EXTERNAL")

    msg.director = hz
    msg.members = [hz, js]
    xt.director = rse
    xt.members = [rse, ben, cgu]
    xt.parent_unit = msg
    xis.director = mws
    xis.members = [mws, bwe, fst]
    xis.parent_unit = msg

    js.supervisor = hz
    rse.supervisor = js
    ben.supervisor = rse
    cgu.supervisor = rse
    mws.supervisor = js
    bwe.supervisor = mws
    fst.supervisor = mws

    entities = [msg, xt, xis, hz, js, rse, ben, cgu, mws, bwe, fst]
    session.add_all(entities)
    await session.flush()

    logger.info("Demo data seeded", org_units=3, persons=8)
    return {entity.initials: entity.id for entity in entities}
