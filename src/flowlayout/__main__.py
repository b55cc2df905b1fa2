"""CLI entry point for flowlayout."""

import asyncio
import json
import logging
import sys

import click

from flowlayout.config import LayoutOptions
from flowlayout.errors import LayoutError
from flowlayout.layout import layout_diagram
from flowlayout.model.diagram import Diagram
from flowlayout.types import Compactness, Direction, LaneStrategy


@click.command()
@click.argument("input", required=False, type=click.Path(exists=True))
@click.option("--output", "-o", "output", type=str, default=None, help="Write output to this file instead of stdout")
@click.option("--direction", "-d", "direction", type=str, default="RIGHT", help="Flow direction (RIGHT, DOWN, LEFT, UP)")
@click.option("--grid", "-g", "grid", type=int, default=None, help="Snap positions to multiples of this quantum")
@click.option("--scope", "-s", "scope", type=str, default=None, help="Only re-lay the content of this pool or subprocess")
@click.option("--autosize-pools", "autosize", is_flag=True, help="Resize pools to fit their content")
@click.option("--aspect-ratio", "aspect_ratio", type=float, default=None, help="Target pool width/height ratio")
@click.option(
    "--lane-strategy",
    "lane_strategy",
    type=click.Choice(["preserve", "optimize"], case_sensitive=False),
    default="preserve",
    help="Keep or reorder lanes",
)
@click.option(
    "--compactness",
    "compactness",
    type=click.Choice(["compact", "normal", "spacious"], case_sensitive=False),
    default="normal",
    help="Spacing preset",
)
@click.option("--verbose", "-v", "verbose", is_flag=True, help="Log pipeline steps to stderr")
def main(
    input: str | None,
    output: str | None,
    direction: str,
    grid: int | None,
    scope: str | None,
    autosize: bool,
    aspect_ratio: float | None,
    lane_strategy: str,
    compactness: str,
    verbose: bool,
) -> None:
    """Lay out a JSON diagram and print the positioned diagram with a layout report."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    if input:
        try:
            with open(input) as f:
                text = f.read()
        except OSError as e:
            click.echo(f"error: cannot read '{input}': {e}", err=True)
            sys.exit(1)
    else:
        text = sys.stdin.read()

    try:
        diagram = Diagram.from_dict(json.loads(text))
    except (KeyError, ValueError, TypeError) as e:
        click.echo(f"parse error:\n{e}", err=True)
        sys.exit(1)

    try:
        parsed_direction = Direction.parse(direction)
    except ValueError as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(1)

    options = LayoutOptions(
        direction=parsed_direction,
        compactness=Compactness[compactness.upper()],
        scope_element_id=scope,
        grid_quantum=grid,
        lane_strategy=LaneStrategy[lane_strategy.upper()],
        pool_autosize=autosize,
        target_aspect_ratio=aspect_ratio,
    )

    try:
        result = asyncio.run(layout_diagram(diagram, options))
    except LayoutError as e:
        click.echo(f"layout error: {e}", err=True)
        sys.exit(1)

    rendered = json.dumps({"diagram": diagram.to_dict(), "result": result.to_dict()}, indent=2) + "\n"
    if output:
        try:
            with open(output, "w") as f:
                f.write(rendered)
        except OSError as e:
            click.echo(f"error: cannot write '{output}': {e}", err=True)
            sys.exit(1)
    else:
        click.echo(rendered, nl=False)


if __name__ == "__main__":
    main()
