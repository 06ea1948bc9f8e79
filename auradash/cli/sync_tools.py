"""CLI utilities for seeding and inspecting the mirrored inspection collection."""

# purpose: give operators a way to seed the shared collection and print the derived dashboard
# status: pilot
# depends_on: auradash.session, auradash.collection_sync

from __future__ import annotations

import asyncio
import json

import typer

from ..collection_sync import CollectionSyncEngine
from ..config import configure_logging, load_config
from ..identity import IdentityBootstrapper
from ..schemas import DashboardView, SeedReport
from ..session import DashboardSession, build_context
from ..streams import first_matching

app = typer.Typer(help="Inspection dashboard sync commands")


async def _seed() -> SeedReport:
    context = build_context(load_config())
    if context.store is None:
        raise typer.BadParameter("AURADASH_STORE_CONFIG is required to seed the collection")
    principal = await IdentityBootstrapper(context.identity).bootstrap(context.config)
    engine = CollectionSyncEngine(context.store, context.config.app_id)
    return await engine.ensure_seeded(principal)


async def _show(search_term: str, timeout: float) -> DashboardView:
    session = DashboardSession(build_context(load_config()))
    try:
        await session.start()
        await asyncio.wait_for(session.wait_ready(), timeout)
        if session.collection is not None:
            await asyncio.wait_for(session.wait_seeded(), timeout)
            expected = len(await session.context.store.list_collection_once(session.collection.path))
            async with session.view_model.watch() as watch:
                try:
                    await asyncio.wait_for(first_matching(watch, lambda view: view.total >= expected), timeout)
                except asyncio.TimeoutError:
                    typer.echo("Not every inspection arrived before the timeout", err=True)
        return session.set_search_term(search_term)
    finally:
        await session.close()


@app.command()
def seed() -> None:
    """Seed the shared inspection collection if it is empty."""

    configure_logging(load_config().log_level)
    report = asyncio.run(_seed())
    typer.echo(json.dumps(report.model_dump(), indent=2))
    if report.failed or report.error:
        raise typer.Exit(code=1)


@app.command()
def show(
    search: str = typer.Option("", "--search", "-s", help="Search term applied to the dashboard"),
    timeout: float = typer.Option(5.0, help="Seconds to wait for the first inspections"),
) -> None:
    """Print the dashboard view derived from the mirrored collection."""

    configure_logging(load_config().log_level)
    view = asyncio.run(_show(search, timeout))
    typer.echo(json.dumps(view.model_dump(mode="json", by_alias=True), indent=2))
