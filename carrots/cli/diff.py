"""
carrots/cli/diff.py

carrots diff — compare a previous liability result with a fresh calculation.

Usage:
    carrots diff <previous.json> <snapshot>
    carrots diff <previous.json> <snapshot> --format json

PREVIOUS is a `carrots compute --export` file, `--format json` output,
or a bare JSON list of liability records.

Exit codes:
    0  Calculated (with or without changes)
    1  Did not converge
    2  Error
"""

import json
import sys
from pathlib import Path
from typing import List, Optional

import click

from carrots.cli.compute import build_config, engine_options
from carrots.cli.output import _Color, banner, emit_error, row_info
from carrots.core.exceptions import CarrotsError, NonConvergenceError, SnapshotError
from carrots.engine.changes import detect_changes, format_changes
from carrots.engine.fixpoint import LiabilityEngine
from carrots.engine.result import LiabilityRecord
from carrots.loader.snapshot import load_snapshot


def load_previous(path: Path) -> List[LiabilityRecord]:
    """
    Read previously computed liabilities.

    Raises:
        SnapshotError: file missing or not a liability result
    """
    if not path.exists():
        raise SnapshotError(f"Previous result not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Could not parse previous result {path}: {e}") from e
    except OSError as e:
        raise SnapshotError(f"Could not read previous result {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("carrots_compute", data)
        data = data.get("liabilities") if isinstance(data, dict) else None
    if not isinstance(data, list):
        raise SnapshotError(f"{path} does not contain a liabilities list")

    try:
        return [LiabilityRecord.from_dict(r) for r in data]
    except (KeyError, TypeError, ValueError) as e:
        raise SnapshotError(f"Malformed liability record in {path}: {e}") from e


@click.command(name="diff")
@click.argument("previous", type=click.Path(exists=False))
@click.argument("snapshot", type=click.Path(exists=False))
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format.",
)
@engine_options
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
def diff_command(
    previous:       str,
    snapshot:       str,
    fmt:            str,
    strategy:       Optional[str],
    max_iterations: Optional[int],
    tolerance:      Optional[float],
    strict:         Optional[bool],
    no_color:       bool,
) -> None:
    """
    Show how liabilities changed since a previous calculation.

    \b
    Examples:
      carrots compute household.yaml --export before.json
      carrots diff before.json household.yaml
    """
    _Color.configure(not no_color)

    try:
        config = build_config(strategy, max_iterations, tolerance, strict)
        old = load_previous(Path(previous))
        group = load_snapshot(Path(snapshot), config)
    except CarrotsError as e:
        emit_error("diff", str(e), fmt, quiet=False)
        sys.exit(2)

    try:
        result = LiabilityEngine(config).calculate_group(group)
    except NonConvergenceError as e:
        emit_error("diff", str(e), fmt, quiet=False)
        sys.exit(1)

    changes = detect_changes(old, result.liabilities, tolerance=config.tolerance)

    if fmt == "json":
        click.echo(json.dumps({"carrots_diff": {
            "groupId":     result.group_id,
            "converged":   True,
            "fingerprint": result.fingerprint,
            "count":       len(changes),
            "changes":     [c.to_dict() for c in changes],
        }}, indent=2))
        sys.exit(0)

    banner("Liability Update")
    click.echo(row_info("Previous", previous))
    click.echo(row_info("Snapshot", snapshot))
    click.echo()
    if changes:
        click.echo(f"  ⚖️  {len(changes)} change(s):")
        click.echo()
        for line in format_changes(changes, group.usernames).splitlines():
            click.echo(f"    {line}")
    else:
        click.echo(_Color.green("  ✅  No liability changes"))
    click.echo()
    sys.exit(0)
