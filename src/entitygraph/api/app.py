"""
FastAPI application exposing an entity schema over HTTP
"""

from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from graphql import GraphQLSchema, graphql
from pydantic import BaseModel, ConfigDict, Field

from .. import __version__
from ..config import settings
from ..database import init_database, test_database_connection, transaction
from ..engine import EntityEngine
from ..graphql.schema import validate_schema
from ..logging import configure_logging, get_logger
from ..middleware import LoggingContextMiddleware

# Configure logging before creating logger
configure_logging(debug=settings.debug, level=None if settings.debug else settings.log_level)
logger = get_logger(__name__)


class GraphQLRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    variables: dict[str, Any] | None = None
    operation_name: str | None = Field(default=None, alias="operationName")


def create_app(
    engine: EntityEngine,
    schema: GraphQLSchema,
    database_url: str | None = None,
    title: str = "entitygraph API",
    prepare: Callable[[], Awaitable[None]] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Every GraphQL request runs inside one database transaction, which is
    rolled back whenever the execution result carries errors. ``prepare``
    runs once the database is reachable, before the engine boots.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting entitygraph API...")
        init_database(database_url)

        ok, error = await test_database_connection()
        if not ok:
            logger.error("Database connection check failed", error=error)
            raise RuntimeError(error)

        if prepare is not None:
            await prepare()

        async with transaction() as tx:
            await engine.boot(tx)
        logger.info("Engine booted", fts_types=list(engine.fts.config))

        yield

        logger.info("Shutting down entitygraph API...")

    app = FastAPI(
        title=title,
        description="GraphQL entity API over a relational object model",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(LoggingContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Fail fast: the server should not start with a broken schema
    logger.info("Validating GraphQL schema...")
    validate_schema(schema)

    app.state.engine = engine
    app.state.schema = schema

    @app.get("/health")
    async def health_check():  # pyright: ignore [reportUnusedFunction]
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    @app.post("/graphql")
    async def graphql_endpoint(  # pyright: ignore [reportUnusedFunction]
        payload: GraphQLRequest, request: Request
    ) -> JSONResponse:
        """Execute one GraphQL operation in its own transaction."""
        async with transaction() as tx:
            result = await graphql(
                schema,
                payload.query,
                variable_values=payload.variables,
                operation_name=payload.operation_name,
                context_value={"request": request, "tx": tx},
            )
            if result.errors:
                tx.set_rollback_only()

        body: dict[str, Any] = {"data": result.data}
        if result.errors:
            messages = [error.message for error in result.errors]
            logger.warning("GraphQL execution failed, transaction rolled back", errors=messages)
            body["errors"] = [error.formatted for error in result.errors]

        status_code = 400 if result.errors and result.data is None else 200
        return JSONResponse(body, status_code=status_code)

    logger.info("GraphQL endpoint initialized successfully", endpoint="/graphql")
    return app
