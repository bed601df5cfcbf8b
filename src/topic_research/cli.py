"""CLI for topic research's request and caching layer.

Commands:
- fetch: GET a JSON URL through the cache, lock and retry stack
- enrich: Attach a URL's JSON to its item through the per-URL enrichment cache
- cache-key: Print the cache key for a source search
- cache-status: List cached records and their ages
- clear-cache: Delete every cached record
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Protocol

import typer
from rich import print as rprint
from rich import print_json

from .application.enrich import CachedEnricher
from .application.fetch import CacheOptions, CachedFetcher
from .config import ResearchConfig
from .domain.cache_keys import SourceQuery, request_cache_key
from .exceptions import HttpError, RateLimitError
from .infrastructure.cache import DiskCache
from .protocols import HttpClient
from .types import JsonObject, Provenance


class DependenciesBuilder(Protocol):
    """Protocol for constructing CLI dependencies."""

    def __call__(self, *, config: ResearchConfig) -> CliDependencies:
        """Build dependencies for CLI commands."""
        ...


@dataclass(frozen=True)
class CliDependencies:
    """Concrete dependencies required by the CLI."""

    cache: DiskCache
    fetcher: CachedFetcher
    http_client: HttpClient
    enricher: CachedEnricher


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    config: ResearchConfig
    deps_builder: DependenciesBuilder

    def build_dependencies(self, *, config: ResearchConfig | None = None) -> CliDependencies:
        """Return dependencies using the configured builder."""
        return self.deps_builder(config=config or self.config)


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the topic-research entry point.")


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


def _format_age(age_hours: float | None) -> str:
    if age_hours is None:
        return "unknown age"
    if age_hours < 1:
        return f"{age_hours * 60:.0f} min old"
    return f"{age_hours:.1f} h old"


def create_app(deps_builder: DependenciesBuilder) -> typer.Typer:
    """Create a Typer app wired with the provided dependencies builder."""
    app = typer.Typer(
        add_completion=False,
        help="Topic research cache: fresh cache → locked live call → stale fallback",
    )

    @app.callback()
    def main(ctx: typer.Context) -> None:
        """Initialise CLI context."""
        ctx.obj = CliContext(config=ResearchConfig.from_env(), deps_builder=deps_builder)

    @app.command(name="fetch")
    def fetch(
        ctx: typer.Context,
        url: Annotated[str, typer.Argument(help="JSON URL to fetch")],
        refresh: Annotated[
            bool,
            typer.Option("--refresh", help="Bypass cache reads and force a live call"),
        ] = False,
        no_cache: Annotated[
            bool,
            typer.Option("--no-cache", help="Disable cache reads and writes"),
        ] = False,
        debug: Annotated[
            bool,
            typer.Option("--debug", help="Log every request attempt"),
        ] = False,
    ) -> None:
        """Fetch a JSON document, serving it from cache when fresh."""
        state = _get_context(ctx)
        config = state.config.with_overrides(debug=True) if debug else state.config
        deps = state.build_dependencies(config=config)
        key = request_cache_key("GET", url)

        try:
            result = deps.fetcher.fetch(
                key,
                lambda: deps.http_client.request("GET", url),
                options=CacheOptions.from_flags(refresh=refresh, no_cache=no_cache),
            )
        except RateLimitError as exc:
            reason = "retryable" if exc.retryable else "quota/billing"
            rprint(f"[red]✗ Rate limited ({reason}) after {exc.attempts} attempt(s):[/red] {exc}")
            raise typer.Exit(code=1) from exc
        except HttpError as exc:
            rprint(f"[red]✗ Request failed after {exc.attempts} attempt(s):[/red] {exc}")
            raise typer.Exit(code=1) from exc

        if result.provenance is Provenance.LIVE:
            rprint(f"[green]✓ Live response[/green] (key {key})")
        elif result.provenance is Provenance.FRESH:
            rprint(f"[green]✓ Served from cache[/green] ({_format_age(result.age_hours)})")
        else:
            rprint(f"[yellow]! {result.note}[/yellow] ({_format_age(result.age_hours)})")
        print_json(data=result.payload)

    @app.command(name="enrich")
    def enrich(
        ctx: typer.Context,
        url: Annotated[str, typer.Argument(help="Item URL whose JSON is attached as `thread`")],
        refresh: Annotated[
            bool,
            typer.Option("--refresh", help="Ignore cached enrichment and fetch again"),
        ] = False,
        no_cache: Annotated[
            bool,
            typer.Option("--no-cache", help="Disable enrichment cache reads and writes"),
        ] = False,
    ) -> None:
        """Enrich an item with its URL's JSON, reusing enrichment cached for the URL."""
        state = _get_context(ctx)
        deps = state.build_dependencies()

        def attach_thread(item: JsonObject) -> JsonObject:
            return {**item, "thread": deps.http_client.request("GET", url)}

        outcome = deps.enricher.enrich(
            {"url": url},
            attach_thread,
            options=CacheOptions.from_flags(refresh=refresh, no_cache=no_cache),
        )
        if outcome.error is not None:
            rprint(f"[yellow]! {outcome.error}; keeping the original item[/yellow]")
        elif outcome.from_cache:
            rprint("[green]✓ Enrichment served from cache[/green]")
        else:
            rprint("[green]✓ Enriched live[/green]")
        print_json(data=outcome.item)

    @app.command(name="cache-key")
    def cache_key(
        topic: Annotated[str, typer.Argument(help="Research topic")],
        from_date: Annotated[str, typer.Option("--from", help="Window start (YYYY-MM-DD)")],
        to_date: Annotated[str, typer.Option("--to", help="Window end (YYYY-MM-DD)")],
        source: Annotated[str, typer.Option("--source", help="Source name, e.g. reddit or x")],
        days: Annotated[int, typer.Option("--days", help="Lookback window in days")] = 30,
        depth: Annotated[str, typer.Option("--depth", help="quick, default or deep")] = "default",
        model: Annotated[
            str | None, typer.Option("--model", help="Selected provider model")
        ] = None,
        prompt_version: Annotated[
            str, typer.Option("--prompt-version", help="Prompt/schema version tag")
        ] = "v1",
    ) -> None:
        """Print the cache key a source search would use."""
        query = SourceQuery(
            topic=topic,
            from_date=from_date,
            to_date=to_date,
            days=days,
            source=source,
            depth=depth,
            model=model,
            prompt_version=prompt_version,
        )
        rprint(query.cache_key())

    @app.command(name="cache-status")
    def cache_status(ctx: typer.Context) -> None:
        """List cached records, newest first."""
        state = _get_context(ctx)
        deps = state.build_dependencies()
        entries = deps.cache.entries()
        rprint(f"[bold]Cache directory:[/bold] {deps.cache.cache_dir}")
        if not entries:
            rprint("  (empty)")
            return
        fresh_ttl = state.config.cache_ttl_hours
        stale_ttl = state.config.stale_cache_ttl_hours
        for entry in entries:
            if entry.age_hours < fresh_ttl:
                label = "[green]fresh[/green]"
            elif entry.age_hours < stale_ttl:
                label = "[yellow]stale[/yellow]"
            else:
                label = "[red]expired[/red]"
            rprint(
                f"  {entry.key}  {label}  {_format_age(entry.age_hours)}  {entry.size_bytes:,} B"
            )

    @app.command(name="clear-cache")
    def clear_cache(ctx: typer.Context) -> None:
        """Delete every cached record."""
        state = _get_context(ctx)
        deps = state.build_dependencies()
        removed = deps.cache.clear_all()
        rprint(f"[green]✓ Cleared {removed:,} cached record(s)[/green]")

    return app
