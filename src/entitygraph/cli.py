#!/usr/bin/env python3
"""
Main CLI entry point for the entitygraph demo server.
"""

import sys

import click
import uvicorn

from entitygraph import __version__
from entitygraph.logging import configure_logging, get_logger

logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="entitygraph")
def cli() -> None:
    """entitygraph CLI - run the demo server and inspect its schema."""
    pass


@cli.command()
@click.option(
    "--host",
    default="0.0.0.0",
    help="Host to bind to (default: 0.0.0.0)",
)
@click.option(
    "--port",
    default=8099,
    type=int,
    help="Port to bind to (default: 8099)",
)
@click.option(
    "--database-url",
    default=None,
    help="Database URL (default: ENTITYGRAPH_DATABASE_URL or settings)",
)
@click.option(
    "--seed/--no-seed",
    default=True,
    help="Recreate and fill the demo tables on startup (default: seed)",
)
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Log level (default: info)",
)
def serve(host: str, port: int, database_url: str | None, seed: bool, log_level: str) -> None:
    """Start the demo API server."""
    configure_logging(debug=(log_level == "debug"), level=log_level)

    logger.info(
        "Starting entitygraph demo server",
        host=host,
        port=port,
        seed=seed,
        log_level=log_level,
    )

    from entitygraph.demo.app import create_demo_app

    try:
        app = create_demo_app(database_url=database_url, seed=seed)
        uvicorn.run(app, host=host, port=port, log_level=log_level, access_log=True)
    except KeyboardInterrupt:
        logger.info("Server shutdown requested by user")
    except Exception as e:
        logger.error("Server startup failed", error=str(e))
        sys.exit(1)


@cli.command()
def schema() -> None:
    """Print the SDL of the demo schema."""
    from graphql import print_schema

    from entitygraph.demo.schema import build_engine, build_schema

    click.echo(print_schema(build_schema(build_engine())))


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
