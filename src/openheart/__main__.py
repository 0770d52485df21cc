"""CLI entry point for OpenHeart Reviews."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.table import Table

from openheart import __version__
from openheart.reviews.mock import mock_reviews
from openheart.reviews.models import RATING_SCALE
from openheart.web.cli import register_cli_commands

console = Console()


@click.group()
@click.version_option(version=__version__)
def cli():
    """OpenHeart Reviews - privacy-first review platform."""
    pass


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def reviews(as_json: bool):
    """List the sample reviews."""
    items = mock_reviews()
    if as_json:
        click.echo(json.dumps([r.to_dict() for r in items], indent=2))
        return

    table = Table(title="Reviews")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Rating", style="yellow")
    table.add_column("Product")
    table.add_column("Author", style="dim")
    for review in items:
        table.add_row(
            review.id,
            review.title,
            review.stars,
            review.product_name or "-",
            review.author_display,
        )
    console.print(table)


@cli.command("rating-scale")
def rating_scale():
    """Show the rating levels offered by the submission form."""
    table = Table(title="Rating Scale")
    table.add_column("Value", style="cyan")
    table.add_column("Stars", style="yellow")
    table.add_column("Label")
    for level in RATING_SCALE:
        table.add_row(str(level.value), level.stars, level.label)
    console.print(table)


register_cli_commands(cli)


if __name__ == "__main__":
    cli()
