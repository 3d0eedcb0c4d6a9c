"""
vboard Command Line Interface

Thin wiring over the feature engine. Each command builds its components
from the Options stored on the click context and maps VBoardError
exit codes to the process exit status.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from vboard.config import Options
from vboard.exceptions import EXIT_VALIDATION, InvalidArgumentError, VBoardError, exit_code_for
from vboard.locks import LockManager
from vboard.logging_config import setup_logging
from vboard.manager import FeatureManager
from vboard.template import TemplateProcessor
from vboard.validator import Validator

console = Console()
err_console = Console(stderr=True)


def _respond(opts: Options, success: bool, message: str, data: Optional[Dict[str, Any]] = None) -> None:
    if opts.json_output:
        payload = {"success": success, "message": message, "data": data or {}}
        click.echo(json.dumps(payload, indent=2, default=str))
        return
    marker = "[green]✓[/green]" if success else "[yellow]⚠[/yellow]"
    console.print(f"{marker} {message}")


def _fail(opts: Optional[Options], error: BaseException) -> None:
    code = exit_code_for(error)
    if opts is not None and opts.json_output:
        message = error.message if isinstance(error, VBoardError) else str(error)
        click.echo(json.dumps({"success": False, "message": message, "exit_code": code}, indent=2))
    else:
        err_console.print(f"[red]Error:[/red] {error}")
    sys.exit(code)


def _split_assignment(raw: str, flag: str) -> Tuple[str, str]:
    if "=" not in raw:
        raise InvalidArgumentError(f"{flag} expects NAME=VALUE, got {raw!r}", argument=flag)
    name, value = raw.split("=", 1)
    return name.strip(), value


@click.group()
@click.version_option(package_name="vboard")
@click.option("--root", type=click.Path(file_okay=False, path_type=Path), help="Workspace root")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON output")
@click.option("--verbose", "-v", is_flag=True, help="Show informational logs")
@click.option("--dry-run", is_flag=True, help="Report changes without writing")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), help="Write logs to a file")
@click.pass_context
def main(ctx, root, json_output, verbose, dry_run, log_file):
    """vboard: feature workflow and validation for .virtualboard workspaces"""
    try:
        opts = Options.init(
            root=root,
            dry_run=True if dry_run else None,
            json_output=json_output,
            verbose=verbose,
            log_file=log_file,
        )
    except VBoardError as e:
        _fail(None, e)
    setup_logging(level=logging.INFO if verbose else None, log_file=opts.log_file)
    ctx.obj = opts


@main.command()
@click.argument("title")
@click.option("--label", "-l", "labels", multiple=True, help="Label (repeatable)")
@click.pass_obj
def new(opts: Options, title: str, labels):
    """Create a backlog feature from the template."""
    try:
        feature = FeatureManager(opts).create_feature(title, list(labels))
    except VBoardError as e:
        _fail(opts, e)
    _respond(opts, True, f"Created {feature.id}", {
        "id": feature.id,
        "path": str(feature.path.relative_to(opts.root_dir)),
        "labels": feature.front_matter.labels,
    })


@main.command()
@click.argument("feature_id")
@click.argument("status")
@click.argument("owner", required=False, default="")
@click.option("--owner", "owner_flag", default="", help="Set the owner while moving")
@click.pass_obj
def move(opts: Options, feature_id: str, status: str, owner: str, owner_flag: str):
    """Move a feature to a new status and optionally assign an owner."""
    try:
        result = FeatureManager(opts).move_feature(feature_id, status, owner_flag or owner)
    except VBoardError as e:
        _fail(opts, e)
    for warning in result.warnings:
        err_console.print(f"[yellow]⚠[/yellow] {warning}")
    fm = result.feature.front_matter
    _respond(opts, True, result.summary, {
        "id": fm.id,
        "status": fm.status,
        "owner": fm.owner,
        "path": str(result.feature.path.relative_to(opts.root_dir)),
        "warnings": result.warnings,
    })


@main.command()
@click.argument("feature_id")
@click.option("--field", "fields", multiple=True, help="Header field as NAME=VALUE")
@click.option("--section", "sections", multiple=True, help="Body section as NAME=TEXT")
@click.pass_obj
def update(opts: Options, feature_id: str, fields, sections):
    """Update header fields or body sections of a feature."""
    manager = FeatureManager(opts)
    try:
        if not fields and not sections:
            raise InvalidArgumentError("nothing to update; pass --field or --section")
        feature = manager.load_by_id(feature_id)
        for raw in fields:
            feature.set_field(*_split_assignment(raw, "--field"))
        for raw in sections:
            feature.set_section(*_split_assignment(raw, "--section"))
        manager.update_feature(feature)
    except VBoardError as e:
        _fail(opts, e)
    _respond(opts, True, f"Updated {feature.id}", {"id": feature.id, "path": str(feature.path)})


@main.command()
@click.argument("feature_id")
@click.pass_obj
def delete(opts: Options, feature_id: str):
    """Delete a feature file."""
    try:
        path = FeatureManager(opts).delete_feature(feature_id)
    except VBoardError as e:
        _fail(opts, e)
    _respond(opts, True, f"Deleted {feature_id}", {"id": feature_id, "path": str(path)})


@main.command("list")
@click.pass_obj
def list_features(opts: Options):
    """List all features."""
    try:
        features = FeatureManager(opts).list_features()
    except VBoardError as e:
        _fail(opts, e)

    if opts.json_output:
        click.echo(json.dumps([f.front_matter.to_dict() for f in features], indent=2))
        return

    table = Table(title="Features")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Owner")
    table.add_column("Dependencies")
    for feature in features:
        fm = feature.front_matter
        table.add_row(fm.id, fm.title, fm.status, fm.owner, ", ".join(fm.dependencies))
    console.print(table)


@main.command()
@click.argument("feature_id")
@click.option("--ttl", default=30, show_default=True, help="Lock TTL in minutes")
@click.option("--owner", default="", help="Owner acquiring the lock")
@click.option("--release", is_flag=True, help="Release the lock")
@click.option("--status", "show_status", is_flag=True, help="Show lock status")
@click.option("--force", is_flag=True, help="Override an active lock")
@click.pass_obj
def lock(opts: Options, feature_id: str, ttl: int, owner: str, release: bool, show_status: bool, force: bool):
    """Acquire, inspect or release an advisory lock."""
    manager = LockManager(opts)
    try:
        if show_status and release:
            raise InvalidArgumentError("--status and --release cannot be combined")

        if show_status:
            info = manager.load(feature_id)
            if info is None:
                _respond(opts, False, f"No active lock for {feature_id}", {
                    "id": feature_id, "locked": False, "expired": False,
                })
                return
            state = "expired" if info.expired else "active"
            _respond(
                opts,
                not info.expired,
                f"Lock {state} for {feature_id} (owner {info.owner}, expires {info.expires_at.isoformat()})",
                info.to_dict(),
            )
            return

        if release:
            manager.release(feature_id)
            _respond(opts, True, f"Released lock for {feature_id}", {"id": feature_id, "released": True})
            return

        info = manager.acquire(feature_id, owner, ttl, force)
    except VBoardError as e:
        _fail(opts, e)
    _respond(
        opts,
        True,
        f"Lock acquired for {feature_id} (owner {info.owner}, ttl {info.ttl_minutes}m)",
        info.to_dict(),
    )


@main.group()
def template():
    """Template operations."""


@template.command("apply")
@click.argument("feature_id")
@click.pass_obj
def template_apply(opts: Options, feature_id: str):
    """Re-apply the feature template to restore missing sections."""
    manager = FeatureManager(opts)
    try:
        feature = manager.load_by_id(feature_id)
        TemplateProcessor(manager).apply(feature)
        manager.save(feature)
    except VBoardError as e:
        _fail(opts, e)
    _respond(opts, True, f"Template applied to {feature.id}", {
        "id": feature.id,
        "path": str(feature.path.relative_to(opts.root_dir)),
    })


@main.command()
@click.argument("feature_id", required=False)
@click.option("--fix", is_flag=True, help="Re-apply the template before validating")
@click.pass_obj
def validate(opts: Options, feature_id: Optional[str], fix: bool):
    """Validate one feature or the whole workspace."""
    manager = FeatureManager(opts)
    try:
        validator = Validator(manager)
        if fix:
            ids = (feature_id,) if feature_id else ()
            validator.apply_fixes(validator.collect_features(*ids), TemplateProcessor(manager))

        if feature_id:
            result = validator.validate_one(feature_id)
            if result.valid:
                _respond(opts, True, f"{feature_id} is valid", result.to_dict())
                return
            _respond(opts, False, f"{feature_id} has {len(result.errors)} error(s)", result.to_dict())
            if not opts.json_output:
                for message in result.errors:
                    console.print(f"  - {message}")
            sys.exit(EXIT_VALIDATION)

        summary = validator.validate_all()
    except VBoardError as e:
        _fail(opts, e)

    if opts.json_output:
        click.echo(json.dumps(summary.to_dict(), indent=2))
    else:
        console.print(f"Validated {summary.total} feature(s): {summary.valid} valid, {summary.invalid} invalid")
        for result in summary.invalid_results():
            console.print(f"[bold]{result.feature_id}[/bold] [dim]{result.path}[/dim]")
            for message in result.errors:
                console.print(f"  - {message}")
    if summary.has_errors:
        sys.exit(EXIT_VALIDATION)


if __name__ == "__main__":
    main()
