"""
Demo application factory
"""

from fastapi import FastAPI

from ..api import create_app
from ..database import get_async_engine, transaction
from ..logging import get_logger
from .schema import build_engine, build_schema
from .seed import create_tables, seed_demo_data

logger = get_logger(__name__)


def create_demo_app(database_url: str | None = None, seed: bool = True) -> FastAPI:
    """Demo API over the organization models.

    With ``seed`` the tables are recreated and filled on startup.
    """
    engine = build_engine()
    schema = build_schema(engine)

    async def prepare() -> None:
        await create_tables(get_async_engine(), drop=seed)
        if seed:
            async with transaction() as tx:
                await seed_demo_data(tx.session)

    return create_app(
        engine, schema, database_url=database_url, title="entitygraph demo", prepare=prepare
    )
