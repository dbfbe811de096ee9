"""CLI for the club site: serve the API, run syncs, edit the resource catalog."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click

from clubsite import __version__
from clubsite.config import SiteConfig, load_config
from clubsite.core.logging import configure_logging
from clubsite.errors import ConfigError, SyncError
from clubsite.models import DriveResource, ResourceCatalog, ResourceCategory, ResourceSource
from clubsite.storage import JsonCatalogStore
from clubsite.timestamps import isoformat_z, utcnow

logger = logging.getLogger(__name__)

GITHUB_RAW_BASE = (
    "https://raw.githubusercontent.com/Colgate-University-AI-Club/Club-Resources/main"
)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to clubsite.toml (defaults to $CLUBSITE_CONFIG)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """Club site backend: calendar and Drive sync into JSON catalogs."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    configure_logging(config.logging.level, config.logging.format)
    ctx.obj = config


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", type=int, default=8000, show_default=True, help="Bind port")
@click.pass_obj
def serve(config: SiteConfig, host: str, port: int) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from clubsite.api.app import create_app

    click.echo(f"Serving catalogs from {config.data_dir} on http://{host}:{port}")
    # log_config=None keeps the structlog handlers installed by configure_logging.
    uvicorn.run(create_app(config), host=host, port=port, log_config=None)


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------


@cli.group()
def sync() -> None:
    """Run a sync now (as the scheduler would, without cooldown)."""


async def _run_sync(config: SiteConfig, target: str):
    from clubsite.api.deps import build_services

    services = build_services(config)
    try:
        if target == "events":
            return await services.events.sync(trusted=True)
        return await services.drive.sync(caller="cli", trusted=True)
    finally:
        await services.aclose()


def _sync_or_exit(config: SiteConfig, target: str):
    try:
        return asyncio.run(_run_sync(config, target))
    except SyncError as exc:
        click.echo(f"Error [{exc.code}]: {exc.message}", err=True)
        if exc.details:
            click.echo(f"  {exc.details}", err=True)
        sys.exit(1)


@sync.command("events")
@click.pass_obj
def sync_events(config: SiteConfig) -> None:
    """Mirror upcoming Google Calendar events into events.json."""
    outcome = _sync_or_exit(config, "events")
    stats = outcome.stats
    click.echo(f"Synced {outcome.fetched} events from Google Calendar")
    click.echo(
        f"  total={stats.total} calendar={stats.from_calendar} manual={stats.manual} "
        f"new={stats.new} updated={stats.updated} removed={stats.removed}"
    )
    for event_id in stats.suspect_removals:
        click.echo(f"  warning: upcoming event {event_id} disappeared from the calendar")


@sync.command("drive")
@click.pass_obj
def sync_drive(config: SiteConfig) -> None:
    """Regenerate the Drive-sourced entries of resources.json."""
    outcome = _sync_or_exit(config, "drive")
    stats = outcome.stats
    click.echo(f"Synced {outcome.listed} resources from Google Drive")
    click.echo(
        f"  total={stats.total_resources} drive={stats.drive_resources} "
        f"manual={stats.manual_resources} new={stats.new} updated={stats.updated} "
        f"removed={stats.removed}"
    )


# ---------------------------------------------------------------------------
# resources
# ---------------------------------------------------------------------------


@cli.group()
def resources() -> None:
    """Inspect and edit resources.json by hand."""


def _load_resources(store: JsonCatalogStore) -> ResourceCatalog:
    try:
        return asyncio.run(store.load_resources())
    except SyncError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)


def _save_resources(store: JsonCatalogStore, catalog: ResourceCatalog) -> None:
    try:
        asyncio.run(store.save_resources(catalog))
    except SyncError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)


@resources.command("list")
@click.option(
    "--category",
    type=click.Choice([c.value for c in ResourceCategory]),
    default=None,
    help="Only show one category",
)
@click.pass_obj
def list_resources(config: SiteConfig, category: str | None) -> None:
    """List the catalog's resources."""
    catalog = _load_resources(JsonCatalogStore(config.data_dir))
    shown = [r for r in catalog.resources if category is None or r.category == category]
    click.echo(f"Total: {len(shown)} resources")
    for resource in shown:
        origin = resource.source or ResourceSource.MANUAL
        click.echo(f"[{resource.id}] {resource.title}")
        click.echo(f"  Category: {resource.category}  Source: {origin}")
        click.echo(f"  Tags: {', '.join(resource.tag_list)}")
        click.echo(f"  Author: {resource.author or 'N/A'}")


@resources.command("add")
@click.option("--title", required=True, help="Resource title")
@click.option(
    "--category",
    type=click.Choice([c.value for c in ResourceCategory]),
    default=ResourceCategory.OTHER.value,
    show_default=True,
)
@click.option("--description", default="", help="Short description")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--file-type", default=None, help="pdf, pptx, youtube, py, ...")
@click.option("--url", default=None, help="Download URL (embed URL for youtube)")
@click.option(
    "--github-path",
    default=None,
    help="Path inside the resources repo, e.g. /presentations/file.pdf",
)
@click.option("--file-size", default=None, help="Human readable size, e.g. 2.3 MB")
@click.option("--author", default=None)
@click.option("--course", default=None)
@click.pass_obj
def add_resource(
    config: SiteConfig,
    title: str,
    category: str,
    description: str,
    tags: tuple[str, ...],
    file_type: str | None,
    url: str | None,
    github_path: str | None,
    file_size: str | None,
    author: str | None,
    course: str | None,
) -> None:
    """Add a manual resource; Drive sync never touches it."""
    store = JsonCatalogStore(config.data_dir)
    catalog = _load_resources(store)
    now = utcnow()
    download_url = url if file_type != "youtube" else None
    if github_path:
        if not github_path.startswith("/"):
            github_path = f"/{github_path}"
        download_url = f"{GITHUB_RAW_BASE}{github_path}"
    optional = {
        "file_type": file_type,
        "file_size": file_size,
        "download_url": download_url,
        "embed_url": url if file_type == "youtube" else None,
        "github_path": github_path,
        "author": author,
        "course": course,
    }
    resource = DriveResource(
        id=f"res-{int(now.timestamp() * 1000)}",
        title=title,
        description=description,
        category=ResourceCategory(category),
        tags=[t.strip() for t in tags if t.strip()],
        uploaded_at=isoformat_z(now),
        source=ResourceSource.MANUAL,
        **{key: value for key, value in optional.items() if value is not None},
    )
    catalog.resources.append(resource)
    catalog.last_updated = isoformat_z(now)
    _save_resources(store, catalog)
    click.echo(f"Added resource {resource.id}")


@resources.command("clear")
@click.confirmation_option(prompt="Remove every resource from resources.json?")
@click.pass_obj
def clear_resources(config: SiteConfig) -> None:
    """Empty the resource catalog."""
    store = JsonCatalogStore(config.data_dir)
    _save_resources(store, ResourceCatalog(last_updated=isoformat_z(utcnow()), resources=[]))
    click.echo("Resource catalog cleared.")


if __name__ == "__main__":
    cli()
