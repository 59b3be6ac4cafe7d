"""
carrots/cli/compute.py

carrots compute — Group Liability Calculation CLI
=================================================

Usage:
    carrots compute <snapshot>                         Human output (default)
    carrots compute <snapshot> --format json           Machine-readable JSON
    carrots compute <snapshot> --format compact        One-line pipeline output
    carrots compute <snapshot> --export result.json    Export the full result
    carrots compute <snapshot> --strategy monotone     Decreasing iteration
    carrots compute <snapshot> --strict                Reject malformed records
    carrots compute <snapshot> --quiet                 Exit code only

Exit codes:
    0  Converged
    1  Did not converge (commitment graph oscillates or diverges)
    2  Error  (file missing, malformed snapshot, bad configuration)

Defaults for --strategy, --max-iterations, --tolerance and --strict come
from CARROTS_STRATEGY, CARROTS_MAX_ITERATIONS, CARROTS_TOLERANCE and
CARROTS_MODE.
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from carrots.cli.output import (
    BAR_LIGHT,
    _Color,
    banner,
    emit_error,
    fmt_amount,
    row_fail,
    row_info,
    row_ok,
)
from carrots.core.exceptions import (
    CarrotsError,
    ConfigurationError,
    NonConvergenceError,
)
from carrots.core.models import GroupSnapshot
from carrots.core.modes import STRATEGIES, EngineConfig, IntegrityMode, config_from_env
from carrots.engine.fixpoint import CalculationResult, LiabilityEngine
from carrots.engine.result import records_by_user
from carrots.loader.snapshot import load_snapshot


def build_config(
    strategy: Optional[str],
    max_iterations: Optional[int],
    tolerance: Optional[float],
    strict: Optional[bool],
) -> EngineConfig:
    """Environment defaults with command-line overrides on top."""
    mode = None
    if strict is not None:
        mode = IntegrityMode.STRICT if strict else IntegrityMode.LENIENT
    return config_from_env().with_overrides(
        mode=mode,
        strategy=strategy,
        max_iterations=max_iterations,
        tolerance=tolerance,
    )


def engine_options(func):
    """Options shared by every command that runs the engine."""
    func = click.option(
        "--strict/--lenient",
        "strict",
        default=None,
        help="Strict: malformed records are errors. Lenient: they are logged and skipped.",
    )(func)
    func = click.option(
        "--tolerance",
        type=float,
        default=None,
        help="Convergence tolerance per slot (default 0.001).",
    )(func)
    func = click.option(
        "--max-iterations",
        type=int,
        default=None,
        help="Iteration bound before giving up (default 100).",
    )(func)
    func = click.option(
        "--strategy",
        type=click.Choice(list(STRATEGIES), case_sensitive=False),
        default=None,
        help="recompute (default) or monotone.",
    )(func)
    return func


# ── CLI command ───────────────────────────────────────────────────────────────

@click.command(name="compute")
@click.argument("snapshot", type=click.Path(exists=False))
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json", "compact"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format: human (default), json (automation), compact (pipelines).",
)
@click.option(
    "--export",
    "export_path",
    type=click.Path(),
    default=None,
    metavar="PATH",
    help="Export the calculation result to a JSON file.",
)
@engine_options
@click.option(
    "--quiet",
    is_flag=True,
    default=False,
    help="Suppress all output. Use exit code only (0=converged, 1=not converged, 2=error).",
)
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable ANSI color output.",
)
def compute_command(
    snapshot:       str,
    fmt:            str,
    export_path:    Optional[str],
    strategy:       Optional[str],
    max_iterations: Optional[int],
    tolerance:      Optional[float],
    strict:         Optional[bool],
    quiet:          bool,
    no_color:       bool,
) -> None:
    """
    Compute group liabilities from a snapshot of active commitments.

    SNAPSHOT is a YAML or JSON document with members and commitments.

    \b
    Examples:
      carrots compute household.yaml
      carrots compute household.yaml --format json
      carrots compute household.yaml --export liabilities.json
      carrots compute household.yaml --quiet && echo "settled"
    """
    _Color.configure(not no_color)

    try:
        config = build_config(strategy, max_iterations, tolerance, strict)
    except ConfigurationError as e:
        emit_error("compute", str(e), fmt, quiet)
        sys.exit(2)

    snapshot_path = Path(snapshot)

    # ── Load ──────────────────────────────────────────────────
    try:
        group = load_snapshot(snapshot_path, config)
    except CarrotsError as e:
        emit_error("compute", str(e), fmt, quiet)
        sys.exit(2)

    # ── Calculate ─────────────────────────────────────────────
    engine = LiabilityEngine(config)
    try:
        result = engine.calculate_group(group)
    except NonConvergenceError as e:
        if not quiet:
            _output_non_convergence(e, snapshot_path, group, config, fmt)
        sys.exit(1)

    # ── Export ────────────────────────────────────────────────
    if export_path:
        try:
            with open(export_path, "w", encoding="utf-8") as f:
                json.dump(result.to_dict(), f, indent=2)
        except OSError as e:
            if not quiet and fmt == "human":
                click.echo(
                    _Color.yellow(f"\n  ⚠️   Export failed: {e}"),
                    err=True,
                )

    # ── Output ────────────────────────────────────────────────
    if quiet:
        sys.exit(0)

    if fmt == "json":
        out = {"carrots_compute": {
            "snapshot":    str(snapshot_path),
            "converged":   True,
            "export_path": export_path,
            **result.to_dict(),
        }}
        click.echo(json.dumps(out, indent=2))
    elif fmt == "compact":
        _output_compact(result, snapshot_path)
    else:
        _output_human(result, snapshot_path, group, export_path)

    sys.exit(0)


# ── Human output ──────────────────────────────────────────────────────────────

def _output_human(
    result:        CalculationResult,
    snapshot_path: Path,
    group:         GroupSnapshot,
    export_path:   Optional[str],
) -> None:
    banner("Group Liabilities")

    click.echo(row_info("Snapshot",    str(snapshot_path)))
    click.echo(row_info("Group",       group.group_id or "—"))
    click.echo(row_info("Members",     str(len(group.members))))
    click.echo(row_info("Commitments", str(len(group.commitments))))
    click.echo(row_info("Strategy",    result.strategy))
    click.echo()

    click.echo(row_ok("Status", f"converged after {result.iterations} iteration(s)"))
    short = result.fingerprint[:16] + "..." + result.fingerprint[-8:]
    click.echo(row_info("Fingerprint", _Color.cyan(short)))
    if export_path:
        click.echo(row_info("Exported", export_path))
    click.echo()

    if result.liabilities:
        click.echo(f"  {BAR_LIGHT}")
        click.echo(
            f"  {_Color.bold('User'):<24}  {_Color.bold('Liability'):<32}  "
            f"{_Color.bold('Commitments')}"
        )
        click.echo(f"  {BAR_LIGHT}")
        for user_id, records in records_by_user(result.liabilities).items():
            for i, record in enumerate(records):
                who = ""
                if i == 0:
                    who = f"{record.username} ({user_id})" if record.username else user_id
                liability = f"{record.action}: {fmt_amount(record.amount)} {record.unit}"
                click.echo(
                    f"  {who:<24}  {_Color.cyan(f'{liability:<32}')}  "
                    f"{_Color.dim(', '.join(record.effective_commitment_ids))}"
                )
        click.echo(f"  {BAR_LIGHT}")
        click.echo()

    click.echo(f"  {BAR_LIGHT}")
    click.echo(_Color.green(_Color.bold(
        f"  ✅  CONVERGED  ·  {len(result.liabilities)} liabilities"
    )))
    click.echo(f"  {BAR_LIGHT}")
    click.echo()


def _output_non_convergence(
    error:         NonConvergenceError,
    snapshot_path: Path,
    group:         GroupSnapshot,
    config:        EngineConfig,
    fmt:           str,
) -> None:
    if fmt == "json":
        click.echo(json.dumps({"carrots_compute": {
            "snapshot":   str(snapshot_path),
            "groupId":    group.group_id,
            "converged":  False,
            "state":      "non_convergent",
            "error":      error.message,
            "iterations": error.iterations,
            "tolerance":  error.tolerance,
            "max_delta":  error.max_delta,
        }}, indent=2))
        return

    if fmt == "compact":
        click.echo(
            _Color.red(f"{'DIVERGED':<10}") +
            f"  {snapshot_path.name:<30}  {error.iterations} iterations  "
            f"max delta {error.max_delta:g}"
        )
        return

    banner("Group Liabilities")
    click.echo(row_info("Snapshot", str(snapshot_path)))
    click.echo(row_info("Group",    group.group_id or "—"))
    click.echo(row_info("Strategy", config.strategy))
    click.echo()
    click.echo(row_fail("Status", _Color.red(
        f"no fixed point within {error.iterations} iterations"
    )))
    click.echo(row_info("Max delta", f"{error.max_delta:g}  (tolerance {error.tolerance:g})"))
    click.echo()
    click.echo(f"  {BAR_LIGHT}")
    click.echo(_Color.red(_Color.bold(
        "  ❌  NON-CONVERGENT  ·  commitment graph oscillates or diverges"
    )))
    click.echo(f"  {BAR_LIGHT}")
    click.echo()


# ── Compact output ────────────────────────────────────────────────────────────

def _output_compact(result: CalculationResult, snapshot_path: Path) -> None:
    """
    Single-line output for shell pipelines.

    Format:
        CONVERGED   household.yaml   3 liabilities   2 iterations   3f2a9c01d4e7
    """
    line = (
        _Color.green(f"{'CONVERGED':<10}") +
        f"  {snapshot_path.name:<30}  {len(result.liabilities):>4} liabilities  "
        f"{result.iterations:>3} iterations  {result.fingerprint[:12]}"
    )
    click.echo(line)
