"""
Shared pytest fixtures and configuration for all tests.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from graphql import ExecutionResult, GraphQLSchema, graphql
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import StaticPool

from entitygraph.database import Transaction, get_async_engine, init_database, reset_database
from entitygraph.database import transaction as db_transaction
from entitygraph.demo.schema import build_engine, build_schema
from entitygraph.demo.seed import create_tables, seed_demo_data
from entitygraph.engine import EntityEngine
from entitygraph.storage import EntityStore

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database with the demo tables."""
    reset_database()
    init_database(
        TEST_DATABASE_URL,
        force_reinit=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    engine = get_async_engine()
    await create_tables(engine)

    yield engine

    await engine.dispose()
    reset_database()


@pytest_asyncio.fixture
async def seeded(database: AsyncEngine) -> dict[str, str]:
    """Demo organization data; returns ids keyed by initials."""
    async with db_transaction() as tx:
        ids = await seed_demo_data(tx.session)
    return ids


@pytest_asyncio.fixture
async def tx(database: AsyncEngine) -> AsyncGenerator[Transaction, None]:
    """Transaction that is rolled back at the end of the test."""
    async with db_transaction() as transaction:
        yield transaction
        transaction.set_rollback_only()


@pytest.fixture
def store() -> EntityStore:
    from entitygraph.demo.models import Base

    return EntityStore.from_base(Base)


@pytest.fixture
def make_engine() -> Callable[..., tuple[EntityEngine, GraphQLSchema]]:
    """Factory for a demo engine plus its executable schema."""

    def factory(**options: Any) -> tuple[EntityEngine, GraphQLSchema]:
        engine = build_engine(**options)
        return engine, build_schema(engine)

    return factory


@pytest_asyncio.fixture
async def demo(
    seeded: dict[str, str], make_engine: Callable[..., tuple[EntityEngine, GraphQLSchema]]
) -> tuple[EntityEngine, GraphQLSchema]:
    """Booted demo engine over seeded data."""
    engine, schema = make_engine()
    async with db_transaction() as tx:
        await engine.boot(tx)
    return engine, schema


@pytest.fixture
def execute() -> Callable[..., Awaitable[ExecutionResult]]:
    """Run a GraphQL document in its own transaction, rolling back on errors."""

    async def run(
        schema: GraphQLSchema,
        query: str,
        variables: dict[str, Any] | None = None,
        tx: Transaction | None = None,
    ) -> ExecutionResult:
        if tx is not None:
            return await graphql(
                schema, query, variable_values=variables, context_value={"request": None, "tx": tx}
            )
        async with db_transaction() as own:
            result = await graphql(
                schema, query, variable_values=variables, context_value={"request": None, "tx": own}
            )
            if result.errors:
                own.set_rollback_only()
        return result

    return run
