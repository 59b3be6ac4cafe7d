"""
carrots/cli/__init__.py

Carrots CLI — root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    carrots = "carrots.cli:cli"

Adding a new command:
    1. Create carrots/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

import logging
import sys

import click

from carrots.cli.compute import compute_command
from carrots.cli.diff import diff_command


@click.group()
@click.version_option(package_name="carrots")
@click.option(
    "-v", "--verbose",
    count=True,
    help="Log to stderr (-v info, -vv debug).",
)
def cli(verbose: int) -> None:
    """
    Carrots — conditional commitment liability engine.

    \b
    Commands:
      compute   Compute group liabilities from a snapshot.
      diff      Compare a previous result with a fresh calculation.

    \b
    Quick start:
      carrots compute household.yaml
      carrots compute household.yaml --format json
      carrots compute household.yaml --export before.json
      carrots diff before.json household.yaml
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG if verbose > 1 else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )


cli.add_command(compute_command)
cli.add_command(diff_command)
