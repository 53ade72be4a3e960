"""
brewsync — CLI entrypoint.

Usage:
    brewsync --help
    brewsync install --dry-run
    brewsync diff
    brewsync clean
"""

from __future__ import annotations

import json
import os
import sys
import threading
from pathlib import Path

import click

from brewsync import __version__
from brewsync.core.errors import BrewsyncError, ConfigError
from brewsync.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="brewsync")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Desired state: brewsync.yml or a snapshot .json (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """brewsync — converge Homebrew and npm packages to a desired state."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
    )


# ── Helpers ─────────────────────────────────────────────────────


def _settings(ctx: click.Context):
    from brewsync.core.config.settings import Settings

    if "settings" not in ctx.obj:
        try:
            ctx.obj["settings"] = Settings.from_env()
        except ConfigError as e:
            _fail(str(e))
    return ctx.obj["settings"]


def _registry(ctx: click.Context):
    """Registry from context (tests inject one), else the real adapters."""
    if "registry" not in ctx.obj:
        from brewsync.adapters.brew import FallbackPolicy
        from brewsync.adapters.registry import default_registry

        settings = _settings(ctx)
        ctx.obj["registry"] = default_registry(
            fallback=FallbackPolicy(
                formula_to_cask=settings.formula_to_cask,
                cask_to_formula=settings.cask_to_formula,
            )
        )
    return ctx.obj["registry"]


def _desired(ctx: click.Context):
    from brewsync.core.config.loader import load_desired_state

    try:
        return load_desired_state(ctx.obj.get("config_path"))
    except ConfigError as e:
        _fail(str(e))


def _fail(message: str, code: int = 1) -> None:
    click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(code)


def _duration(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    seconds = ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    return f"{int(seconds // 60)}m{int(seconds % 60):02d}s"


def _render_progress(event) -> None:
    if event.phase != "finish":
        return
    counter = f"[{event.completed}/{event.total}]"
    if event.bucket == "failed":
        click.echo(f"  {counter} " + click.style(f"✗ {event.name} ({event.reason})", fg="red"))
    elif event.bucket == "skipped":
        click.echo(f"  {counter} " + click.style(f"⊘ {event.name} ({event.reason})", fg="yellow"))
    else:
        click.echo(
            f"  {counter} "
            + click.style(f"✔ {event.name}", fg="green")
            + click.style(f" ({_duration(event.duration_ms)})", fg="cyan")
        )


# ── Install ─────────────────────────────────────────────────────


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be installed; run nothing.")
@click.option("--workers", "-w", type=int, default=None, help="Formula worker pool size.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, dry_run: bool, workers: int | None, as_json: bool) -> None:
    """Install every desired package that is missing."""
    from brewsync.core.services.install_ops import install_packages

    desired = _desired(ctx)
    settings = _settings(ctx)
    if workers is not None:
        settings = settings.model_copy(update={"workers": max(1, workers)})

    cancel = threading.Event()
    try:
        report = install_packages(
            desired,
            _registry(ctx),
            settings=settings,
            dry_run=dry_run,
            listener=None if as_json else _render_progress,
            cancel=cancel,
        )
    except KeyboardInterrupt:
        cancel.set()
        _fail("Installation aborted", code=130)
        return
    except BrewsyncError as e:
        _fail(str(e))
        return

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        sys.exit(report.exit_code)

    if dry_run:
        click.secho("[DRY-RUN] No changes will be made", fg="yellow")
        for category, names in report.planned.items():
            click.secho(f"   Would install {category} ({len(names)}):", bold=True)
            for name in names:
                click.echo(f"     • {name}")
        return

    for warning in report.warnings:
        click.secho(f"⚠️  {warning}", fg="yellow")

    click.echo()
    click.echo(
        f"   Installed: {report.succeeded}   Skipped: {report.skipped}   Failed: {report.failed}"
    )
    failures = report.failures_by_category()
    if failures:
        click.secho(f"\n❌ {report.failed} package(s) failed to install:", fg="red", bold=True)
        for category, items in failures.items():
            click.secho(f"   {category}:", bold=True)
            for name, reason in items:
                click.echo(f"     - {name} ({reason})")
        click.echo()
        sys.exit(report.exit_code)

    click.secho("✅ All packages installed", fg="green")


# ── Diff / Clean ────────────────────────────────────────────────


def _print_plan(plan) -> None:
    for category, names in plan.to_dict()["extra"].items():
        if not names:
            continue
        click.secho(f"   Extra {category} ({len(names)}):", fg="yellow", bold=True)
        for name in names:
            click.echo(f"     • {name}")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def diff(ctx: click.Context, as_json: bool) -> None:
    """Show installed packages that are not in the desired state."""
    from brewsync.core.services.clean_ops import plan_clean

    desired = _desired(ctx)
    try:
        plan = plan_clean(desired, _registry(ctx))
    except BrewsyncError as e:
        _fail(str(e))
        return

    if as_json:
        click.echo(json.dumps(plan.to_dict(), indent=2))
        return

    if plan.is_empty:
        click.secho("✅ Your system is clean — no extra packages found.", fg="green")
        return
    _print_plan(plan)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Preview what would be removed.")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def clean(ctx: click.Context, dry_run: bool, yes: bool, as_json: bool) -> None:
    """Remove packages that are not in the desired state."""
    from brewsync.core.services.clean_ops import apply_clean, plan_clean

    desired = _desired(ctx)
    registry = _registry(ctx)
    try:
        plan = plan_clean(desired, registry)
    except BrewsyncError as e:
        _fail(str(e))
        return

    if plan.is_empty:
        if as_json:
            click.echo(json.dumps({"plan": plan.to_dict(), "result": None}, indent=2))
        else:
            click.secho("✅ Your system is clean — no extra packages found.", fg="green")
        return

    if as_json:
        if not (yes or dry_run):
            _fail("--json cannot prompt for confirmation; pass --yes or --dry-run")
    else:
        _print_plan(plan)
        if dry_run:
            click.secho("\n[DRY-RUN] No packages will be removed", fg="yellow")
        elif not yes and not click.confirm(f"\nRemove {plan.total} packages?", default=False):
            click.echo("Clean cancelled.")
            return

    result = apply_clean(plan, registry, dry_run=dry_run)

    if as_json:
        click.echo(json.dumps({"plan": plan.to_dict(), "result": result.to_dict()}, indent=2))
        sys.exit(0 if result.ok else 1)

    if dry_run:
        return

    click.echo(f"\n   Removed: {result.total_removed}   Failed: {result.total_failed}")
    if result.error is not None:
        click.secho("\n❌ Some packages failed to remove:", fg="red", bold=True)
        for label, reason in result.error.failures.items():
            click.echo(f"     - {label} ({reason})")
        sys.exit(1)
    click.secho("✅ Clean complete!", fg="green")


# ── Maintenance ─────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def outdated(ctx: click.Context, as_json: bool) -> None:
    """List outdated Homebrew packages."""
    from brewsync.core.services.maintenance_ops import list_outdated

    try:
        pkgs = list_outdated(_registry(ctx))
    except BrewsyncError as e:
        _fail(str(e))
        return

    if as_json:
        click.echo(json.dumps(
            [{"name": p.name, "current": p.current, "latest": p.latest, "cask": p.cask} for p in pkgs],
            indent=2,
        ))
        return

    if not pkgs:
        click.secho("✅ All packages up to date", fg="green")
        return

    click.secho(f"📦 Outdated ({len(pkgs)}):", fg="yellow", bold=True)
    for p in pkgs:
        click.echo(f"   {p.label:<30} {p.current or '?':<12} → {p.latest or '?'}")


@cli.command()
@click.pass_context
def doctor(ctx: click.Context) -> None:
    """Run brew doctor and suggest fixes."""
    from brewsync.core.services.maintenance_ops import diagnose

    try:
        suggestions = diagnose(_registry(ctx))
    except BrewsyncError as e:
        _fail(str(e))
        return

    if not suggestions:
        click.secho("✅ Your system is ready to brew", fg="green")
        return
    click.secho("⚠️  Homebrew reported problems:", fg="yellow", bold=True)
    for suggestion in suggestions:
        click.echo(f"   • {suggestion}")
    sys.exit(1)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would run.")
@click.pass_context
def update(ctx: click.Context, dry_run: bool) -> None:
    """brew update && brew upgrade."""
    from brewsync.core.services.maintenance_ops import update_all

    try:
        result = update_all(_registry(ctx), dry_run=dry_run)
    except BrewsyncError as e:
        _fail(str(e))
        return

    if dry_run:
        click.echo("[DRY-RUN] Would run: brew update && brew upgrade")
        return
    if not result["ok"]:
        failed = [step for step, ok in result["steps"].items() if not ok]
        _fail(f"brew {failed[0] if failed else 'update'} failed")
    click.secho("✅ Homebrew updated", fg="green")


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would run.")
@click.pass_context
def cleanup(ctx: click.Context, dry_run: bool) -> None:
    """Remove old versions (brew cleanup)."""
    from brewsync.core.services.maintenance_ops import cleanup as run_cleanup

    try:
        ok = run_cleanup(_registry(ctx), dry_run=dry_run)
    except BrewsyncError as e:
        _fail(str(e))
        return

    if dry_run:
        click.echo("[DRY-RUN] Would run: brew cleanup")
        return
    if not ok:
        _fail("brew cleanup failed")
    click.secho("✅ Cleanup complete", fg="green")


if __name__ == "__main__":
    cli()
