"""Harvester CLI — the main entry point for the Potato Harvester."""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from harvester import __version__
from harvester.errors import HarvesterError

console = Console()

root_option = click.option(
    "--root",
    "-r",
    default=None,
    type=click.Path(file_okay=False),
    help="Store directory (default: $HARVESTER_ROOT or the current directory)",
)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, show_time=False)],
        force=True,
    )


def _open_store(root: str | None):
    from harvester.config import default_root
    from harvester.registry.store import RegistryStore

    store = RegistryStore.in_directory(root or default_root())
    store.load()
    return store


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def main(verbose: bool):
    """Potato Harvester — build packages from source repos and index them.

    Each run syncs the configured sources, builds every new package version,
    copies the artifacts into the harvest tree, and regenerates the harvest
    index and per-tag indexes.
    """
    _setup_logging(verbose)


# ── Run ──────────────────────────────────────────────────────────────


@main.command()
@root_option
@click.option("--sources", "-s", default=None, help="Sources file (default: <root>/sources.json)")
@click.option("--build-command", default=None, help="Build command to run in each package directory")
@click.option("--build-timeout", default=None, type=int, help="Build timeout in seconds")
@click.option("--refresh-metadata", is_flag=True, help="Always take descriptive fields from the latest manifest")
@click.option("--prune-tags", is_flag=True, help="Delete tag indexes for tags no package carries")
def run(
    root: str | None,
    sources: str | None,
    build_command: str | None,
    build_timeout: int | None,
    refresh_metadata: bool,
    prune_tags: bool,
):
    """Run a full harvest over every configured source."""
    from harvester.config import load_config
    from harvester.pipeline import HarvestPipeline

    overrides = {"refresh_metadata": refresh_metadata, "prune_tags": prune_tags}
    if build_timeout is not None:
        overrides["build_timeout"] = build_timeout

    try:
        config = load_config(root, sources, build_command, **overrides)
        console.print(f"\n[bold blue]Harvester[/] — {len(config.sources)} source(s) in {config.root}\n")
        report = HarvestPipeline(config).run()
    except HarvesterError as e:
        console.print(f"[red]Harvest failed:[/] {e}")
        raise SystemExit(1)

    console.print(Panel(report.summary(), title="Harvest Result"))

    if report.harvested:
        table = Table(title="Harvested")
        table.add_column("Slug", style="cyan")
        table.add_column("Version")
        table.add_column("Artifact", style="dim")
        for r in report.harvested:
            table.add_row(r.slug, r.version, r.artifact)
        console.print(table)

    for r in report.invalid + report.failed:
        console.print(f"  [red]x[/] {r.slug or r.path}: {r.reason}")
    for name in report.failed_sources:
        console.print(f"  [red]x[/] source {name} could not be synced")


# ── Tags ─────────────────────────────────────────────────────────────


@main.command()
@root_option
@click.option("--prune", is_flag=True, help="Delete tag indexes for tags no package carries")
def tags(root: str | None, prune: bool):
    """Regenerate tag indexes from the saved harvest index (no build)."""
    from harvester.registry.tag_index import TagIndexBuilder, collect_tag_map

    try:
        store = _open_store(root)
        builder = TagIndexBuilder(store.index_path.parent, store.document.indexed_tag_template)
        written = builder.write_all(collect_tag_map(store.entries), store.entries)
        if prune:
            builder.prune_stale(store.recompute_indexed_tags())
    except HarvesterError as e:
        console.print(f"[red]Tag generation failed:[/] {e}")
        raise SystemExit(1)

    console.print(f"[green]v[/] {len(written)} tag index(es) written")


# ── Query ────────────────────────────────────────────────────────────


@main.command(name="list")
@root_option
@click.option("--tag", "-t", default=None, help="Only packages with this tag")
def list_packages(root: str | None, tag: str | None):
    """List all packages in the harvest index."""
    try:
        store = _open_store(root)
    except HarvesterError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)

    entries = [e for e in store.entries if tag is None or tag in e.tags]
    if not entries:
        console.print("[yellow]Harvest index is empty.[/]")
        return

    table = Table(title=f"Harvest index ({len(entries)} packages)")
    table.add_column("Slug", style="cyan")
    table.add_column("Current")
    table.add_column("Versions", justify="right")
    table.add_column("Tags")
    table.add_column("Name")

    for entry in entries:
        table.add_row(
            entry.slug,
            entry.current_version,
            str(len(entry.versions)),
            ", ".join(entry.tags),
            entry.name[:40],
        )

    console.print(table)


@main.command()
@click.argument("slug")
@root_option
def show(slug: str, root: str | None):
    """Show one package from the harvest index."""
    try:
        store = _open_store(root)
    except HarvesterError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)

    entry = store.find_entry(slug)
    if entry is None:
        console.print(f"[yellow]No package with slug {slug!r}.[/]")
        raise SystemExit(1)

    lines = [
        f"[bold]{entry.name or entry.slug}[/] ({entry.slug})",
        entry.info,
        "",
        f"Current version: {entry.current_version}",
        f"Versions: {', '.join(entry.versions)}",
        f"Tags: {', '.join(entry.tags)}",
        f"License: {entry.license}",
        f"Author: {entry.author_name} <{entry.author_email}> {entry.author_site}".rstrip(),
    ]
    console.print(Panel("\n".join(lines), title=entry.qualified_id))


if __name__ == "__main__":
    main()
