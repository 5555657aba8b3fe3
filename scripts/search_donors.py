"""Interactive terminal search over the donor catalog.

Every line typed is fed to a SearchSession exactly like keystrokes from a search box,
so debouncing, suggestions and stats behave the same as in a UI.

Usage:
    python scripts/search_donors.py [--config PATH] [--donors CSV] [--types CSV] [--verbose]

Commands inside the loop:
    :mode exact|partial|fuzzy|phonetic   switch matching strategy
    :field all|name|code                 switch searched field
    :gov / :nongov / :nofilter           toggle government filters
    :type C01,C02                        restrict contributor types
    :export PATH                         write current results to CSV
    :history                             show recent queries
    :clear                               reset the query
    :quit                                exit
"""

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.table import Table

from donor_search.catalog.store import RecordStore
from donor_search.search.export import export_results_csv, score_band
from donor_search.search.models import SearchSnapshot
from donor_search.search.session import SearchSession
from donor_search.utils.config import Config, load_config
from donor_search.utils.logging_setup import setup_logging

console = Console()

MAX_ROWS = 20
BAND_STYLES = {"high": "green", "medium": "yellow", "low": "red", "none": "dim"}


def render_snapshot(snapshot: SearchSnapshot) -> None:
    """Print results, stats and suggestions for one published snapshot."""
    if snapshot.stats is None:
        console.print(f"[dim]Browsing {len(snapshot.results)} donors (no query)[/dim]")
    elif snapshot.is_empty_result:
        console.print(f"[yellow]No results found for \"{snapshot.query}\".[/yellow]")
    else:
        stats = snapshot.stats
        console.print(
            f"[bold]{stats.total_results}[/bold] results found in {stats.formatted_time} "
            f"([cyan]{stats.search_type.value}[/cyan] search) for \"{stats.query}\""
        )

    if snapshot.results:
        table = Table(show_lines=False)
        table.add_column("NAME")
        table.add_column("CEB CODE", style="bold")
        table.add_column("TYPE")
        table.add_column("CONTRIBUTOR TYPE")
        table.add_column("RELEVANCE", justify="right")
        for result in snapshot.results[:MAX_ROWS]:
            record = result.record
            band = score_band(result.score)
            relevance = "" if result.score is None else f"{round(result.score * 100)}%"
            table.add_row(
                record.name or "",
                record.code or "",
                record.contributor_type_name,
                record.contributor_type_code or "Unknown",
                f"[{BAND_STYLES[band]}]{relevance}[/{BAND_STYLES[band]}]",
            )
        console.print(table)
        if len(snapshot.results) > MAX_ROWS:
            console.print(f"[dim]... {len(snapshot.results) - MAX_ROWS} more[/dim]")

    if snapshot.suggestions:
        hints = ", ".join(f"{s.text} ({s.kind.value})" for s in snapshot.suggestions)
        console.print(f"[dim]Suggestions: {hints}[/dim]")


async def run_interactive(session: SearchSession, config: Config) -> None:
    """Read commands/queries until the user quits."""
    session.subscribe(render_snapshot)
    session.clear()

    while True:
        line = (await asyncio.to_thread(console.input, "[bold cyan]Search > [/bold cyan]")).strip()

        if line in (":quit", ":q", ":exit"):
            break
        if line.startswith(":mode "):
            await session.set_mode(line.split(maxsplit=1)[1])
        elif line.startswith(":field "):
            await session.set_field(line.split(maxsplit=1)[1])
        elif line == ":gov":
            await session.set_filters(session.options.filters.toggle_government())
        elif line == ":nongov":
            await session.set_filters(session.options.filters.toggle_non_government())
        elif line == ":nofilter":
            await session.set_filters(session.options.filters.cleared())
        elif line.startswith(":type "):
            codes = [code.strip() for code in line.split(maxsplit=1)[1].split(",") if code.strip()]
            await session.set_filters(session.options.filters.with_contributor_types(codes))
        elif line.startswith(":export "):
            target = Path(line.split(maxsplit=1)[1])
            results = session.latest.results if session.latest else []
            export_results_csv(results, target, config.catalog.government_type_codes)
            console.print(f"[green]Exported {len(results)} results to {target}[/green]")
        elif line == ":history":
            for query in session.history:
                console.print(f"  {query}")
        elif line == ":clear":
            session.clear()
        else:
            session.set_query(line)
            await session.wait_settled()

    session.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Search the donor catalog interactively")
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--donors", type=Path, default=None, help="Donor CSV file")
    parser.add_argument("--types", type=Path, default=None, help="Contributor type CSV file")
    parser.add_argument("--verbose", action="store_true", help="Show debug logging")
    args = parser.parse_args()

    config = load_config(args.config) if args.config else Config()
    if args.verbose:
        config.logging.level = "DEBUG"
    setup_logging(config.logging)

    donors = args.donors or Path(config.catalog.donors_file)
    types = args.types or (
        Path(config.catalog.contributor_types_file)
        if config.catalog.contributor_types_file
        else None
    )
    if types is not None and not types.exists():
        logger.warning(f"Contributor type table {types} not found; types will show as Unknown")
        types = None

    try:
        store = RecordStore.from_csv(donors, types)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Could not load catalog: {e}[/bold red]")
        sys.exit(1)

    session = SearchSession(store, config=config)
    try:
        asyncio.run(run_interactive(session, config))
    except (KeyboardInterrupt, EOFError):
        console.print("\n[dim]Bye[/dim]")


if __name__ == "__main__":
    main()
