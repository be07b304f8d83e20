"""
Command-line interface for mention-analytics.

Provides commands to run the API server, check database health and print
analytics reports.

Usage:
    mention-analytics serve                           # Run the API server
    mention-analytics health                          # Check database health
    mention-analytics report overview <project_id>    # Print a report as JSON
"""

import asyncio
import json
import sys
from datetime import datetime
from typing import Any

import asyncpg
import click

from src.analytics.config import MAX_CITATION_SOURCES_LIMIT
from src.config.settings import get_settings
from src.observability.logging import setup_logging
from src.observability.metrics import get_metrics

REPORT_OPERATIONS = {
    "overview": "platform_overview",
    "evolution": "platform_evolution",
    "entities": "entity_breakdown",
    "topics": "topic_performance",
    "momentum": "momentum",
    "citation-sources": "citation_sources",
}


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Mention Analytics - brand visibility across AI platforms."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging(stream=sys.stderr)

    # Initialize tracing if enabled
    settings = get_settings()
    if settings.tracing_enabled:
        from src.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )


@main.command()
def health() -> None:
    """Check health of the analytics database."""
    import structlog
    logger = structlog.get_logger()

    async def check() -> bool:
        from src.storage.database import Database

        try:
            async with Database() as db:
                return await db.health_check()
        except (OSError, ConnectionError) as e:
            logger.error("Postgres health check failed", error=str(e))
            return False

    healthy = asyncio.run(check())

    click.echo("\nHealth Check Results:")
    click.echo("-" * 40)
    icon = "✓" if healthy else "✗"
    color = "green" if healthy else "red"
    click.echo(click.style(f"  {icon} postgres: {healthy}", fg=color))
    click.echo("-" * 40)

    if healthy:
        click.echo(click.style("All core services healthy!", fg="green"))
        sys.exit(0)
    click.echo(click.style("Some services unhealthy!", fg="red"))
    sys.exit(1)


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the analytics API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    # Start metrics server on separate port
    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command()
@click.argument("operation", type=click.Choice(sorted(REPORT_OPERATIONS)))
@click.argument("project_id")
@click.option("--start", default=None, type=click.DateTime(formats=["%Y-%m-%d"]),
              help="Inclusive first day (YYYY-MM-DD)")
@click.option("--end", default=None, type=click.DateTime(formats=["%Y-%m-%d"]),
              help="Inclusive last day (YYYY-MM-DD)")
@click.option("--region", default=None, help="Region code (GLOBAL/all for no filter)")
@click.option("--topic", default=None, help="Topic id or name")
@click.option("--as-of", "as_of", default=None,
              type=click.DateTime(formats=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]),
              help="Evaluate as of this UTC instant instead of now")
@click.option("--limit", default=None, type=click.IntRange(1, MAX_CITATION_SOURCES_LIMIT),
              help="Domains per platform (citation-sources)")
def report(
    operation: str,
    project_id: str,
    start: datetime | None,
    end: datetime | None,
    region: str | None,
    topic: str | None,
    as_of: datetime | None,
    limit: int | None,
) -> None:
    """Print an analytics report for a project as JSON."""
    from src.analytics.errors import StoreUnavailable
    from src.analytics.service import AnalyticsService
    from src.storage.database import Database

    kwargs: dict[str, Any] = {
        "start": start.date() if start else None,
        "end": end.date() if end else None,
        "region": region,
        "topic": topic,
        "as_of": as_of,
    }
    if operation == "citation-sources":
        kwargs["limit"] = limit

    async def run() -> dict[str, Any]:
        try:
            async with Database() as db:
                service = AnalyticsService.from_database(db)
                method = getattr(service, REPORT_OPERATIONS[operation])
                result = await method(project_id, **kwargs)
                return result.to_dict()
        except (asyncpg.PostgresError, OSError) as e:
            # Pool connect or close failure
            raise StoreUnavailable("database", "connect", str(e) or type(e).__name__) from e

    try:
        payload = asyncio.run(run())
    except StoreUnavailable as e:
        click.echo(click.style(f"Data unavailable, try again ({e})", fg="red"), err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(click.style(f"Invalid request: {e}", fg="red"), err=True)
        sys.exit(2)

    if payload["degraded"]:
        for warning in payload["warnings"]:
            click.echo(click.style(f"Warning: {warning}", fg="yellow"), err=True)

    click.echo(json.dumps(payload, indent=2))


if __name__ == "__main__":
    main()
