"""Command line interface: rename, audit, prune and show cassettes."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from vcr_cassette import audit as audit_ops
from vcr_cassette import prune as prune_ops
from vcr_cassette import rename as rename_ops
from vcr_cassette.batch import should_execute
from vcr_cassette.cassette_file import CassetteFile, decode_response_body, ensure_directory
from vcr_cassette.codec import get_codec
from vcr_cassette.config import Settings
from vcr_cassette.errors import CassetteError
from vcr_cassette.logging import LOG_FORMATS, LOG_LEVELS, setup_logging
from vcr_cassette.models import (
    NO_BODY_HASH,
    AuditReport,
    BatchResult,
    CassetteEntry,
    PruneAction,
    PruneActionType,
    RecordedRequest,
    RecordedResponse,
)
from vcr_cassette.show import show_cassette

BODY_PREVIEW_BYTES = 500


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except CassetteError as exc:
        raise click.ClickException(str(exc)) from exc


def _settings() -> Settings:
    return click.get_current_context().find_object(Settings) or Settings()


def _store() -> CassetteFile:
    return CassetteFile(get_codec(_settings().json_codec))


def _cassettes_dir(override: Path | None) -> Path:
    return override if override is not None else _settings().cassettes_dir


def _echo_failures(result: BatchResult) -> None:
    for failure in result.failed:
        click.echo(f"  failed: {failure.path}: {failure.error}", err=True)


dir_option = click.option(
    "--dir",
    "cassettes_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Cassette directory (default: VCR_CASSETTES_DIR or test/support/cassettes)",
)
dry_run_option = click.option(
    "--dry-run", is_flag=True, help="Show what would change without changing anything"
)
force_option = click.option("--force", is_flag=True, help="Skip the confirmation prompt")


@click.group()
@click.version_option(package_name="vcr-cassette")
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), default=None)
@click.option("--log-format", type=click.Choice(LOG_FORMATS), default=None)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, log_format: str | None) -> None:
    """Maintain recorded HTTP cassettes."""
    settings = Settings()
    if log_level:
        settings.log_level = log_level.lower()
    if log_format:
        settings.log_format = log_format
    setup_logging(level=settings.log_level, fmt=settings.log_format)
    ctx.obj = settings


# --- rename ---


@cli.command()
@click.argument("names", nargs=-1)
@click.option(
    "--from", "from_prefix", default=None, help="Match cassettes starting with this prefix"
)
@click.option("--to", "to_prefix", default=None, help="Replace the prefix with this value")
@click.option("--migrate", is_flag=True, help="Migrate cassettes to the latest schema version")
@dir_option
@dry_run_option
@force_option
def rename(
    names: tuple[str, ...],
    from_prefix: str | None,
    to_prefix: str | None,
    migrate: bool,
    cassettes_dir: Path | None,
    dry_run: bool,
    force: bool,
) -> None:
    """Rename or move cassette files.

    \b
      vcr-cassette rename old_name.jsonl new_name.jsonl
      vcr-cassette rename --from OldModule/ --to NewModule/
      vcr-cassette rename --migrate
    """
    directory = _cassettes_dir(cassettes_dir)
    with _reported_errors():
        ensure_directory(directory)
        if migrate:
            _run_migration(directory, dry_run, force)
        elif from_prefix is not None and to_prefix is not None:
            _run_prefix_rename(directory, from_prefix, to_prefix, dry_run, force)
        elif len(names) == 2:
            _run_single_rename(directory, names[0], names[1], dry_run, force)
        else:
            raise click.UsageError(
                "expected <from> <to> or --from PREFIX --to PREFIX or --migrate"
            )


def _run_single_rename(
    directory: Path,
    source: str,
    destination: str,
    dry_run: bool,
    force: bool,
) -> None:
    op = rename_ops.rename_cassette(directory, source, destination, force=force, dry_run=dry_run)
    click.echo("DRY RUN - Would rename:" if dry_run else "✓ Renamed:")
    click.echo(f"  {op.source}")
    click.echo(f"  → {op.destination}")


def _run_prefix_rename(
    directory: Path,
    from_prefix: str,
    to_prefix: str,
    dry_run: bool,
    force: bool,
) -> None:
    ops = rename_ops.plan_prefix_rename(directory, from_prefix, to_prefix, force=force)
    if not ops:
        click.echo(f"No cassettes found with prefix: {from_prefix}")
        return

    click.echo(f"Found {len(ops)} cassette(s) to rename:\n")
    for op in ops:
        click.echo(f"  {op.source.relative_to(directory)}")
        click.echo(f"  → {op.destination.relative_to(directory)}\n")

    if dry_run:
        click.echo("DRY RUN - No changes made")
    elif should_execute(dry_run, force, lambda: click.confirm("Continue with rename?")):
        result = rename_ops.execute_renames(ops)
        _echo_failures(result)
        click.echo(f"\n✓ Renamed {len(result.applied)} cassette(s)!")
        if result.failed:
            raise click.exceptions.Exit(1)
    else:
        click.echo("Rename cancelled.")


def _run_migration(directory: Path, dry_run: bool, force: bool) -> None:
    click.echo(f"Migrating cassettes in {directory}...\n")
    store = _store()
    ops = rename_ops.plan_migrations(directory, store=store)
    if not ops:
        click.echo("✓ All cassettes are up to date!")
        return

    click.echo(f"{len(ops)} cassette(s) need migration:\n")
    for op in ops:
        click.echo(f"  {op.path}")

    if dry_run:
        click.echo("\nDRY RUN - No changes made")
    elif should_execute(dry_run, force, lambda: click.confirm("\nContinue with migration?")):
        result = rename_ops.execute_migrations(ops, store=store)
        _echo_failures(result)
        click.echo(f"\n✓ Migrated {len(result.applied)} cassette(s)!")
        if result.failed:
            raise click.exceptions.Exit(1)
    else:
        click.echo("Migration cancelled.")


# --- audit ---


@cli.command()
@click.option("--secrets-only", is_flag=True, help="Only check for potential secrets")
@click.option("--unused-only", is_flag=True, help="Only check for unused cassettes")
@click.option("--stale-days", type=int, default=None, help="Report cassettes older than N days")
@dir_option
def audit(
    secrets_only: bool,
    unused_only: bool,
    stale_days: int | None,
    cassettes_dir: Path | None,
) -> None:
    """Audit cassettes for secrets, unused entries and staleness.

    Exits with status 1 when any issue is found.
    """
    settings = _settings()
    directory = _cassettes_dir(cassettes_dir)
    categories = audit_ops.audit_categories(secrets_only, unused_only, stale_days)

    with _reported_errors():
        ensure_directory(directory)
        click.echo(f"Auditing cassettes in {directory}...\n")
        if not CassetteFile.find_cassettes(directory):
            click.echo("No cassettes found.")
            return
        report = audit_ops.audit(
            directory,
            stale_days=stale_days if stale_days is not None else settings.stale_days,
            display_limit=settings.secret_display_limit,
            store=_store(),
            **categories,
        )

    _render_audit(report)
    if report.total:
        raise click.exceptions.Exit(1)


def _render_audit(report: AuditReport) -> None:
    if report.total == 0:
        click.echo("✓ No issues found!")
        return

    if report.secrets:
        click.echo(f"\n⚠ Potential Secrets Found ({len(report.secrets)}):\n", err=True)
        for finding in report.secrets:
            click.echo(f"  {finding.path}:{finding.line}", err=True)
            click.echo(f"    Location: {finding.location}", err=True)
            click.echo(f"    Value: {finding.value}\n", err=True)

    if report.stale:
        click.echo(f"\n⏰ Stale Cassettes ({len(report.stale)}):\n")
        for stale in report.stale:
            click.echo(f"  {stale.path} ({stale.age_days} days old)")

    if report.unused:
        click.echo(f"\n🗑  Unused Cassettes ({len(report.unused)}):\n")
        for unused in report.unused:
            click.echo(f"  {unused.path}")

    click.echo(f"\nTotal issues: {report.total}")


# --- prune ---


@cli.command()
@click.option("--stale-days", type=int, default=None, help="Remove cassettes older than N days")
@click.option("--duplicates-only", is_flag=True, help="Only remove duplicate entries")
@click.option("--empty-only", is_flag=True, help="Only remove empty cassette files")
@dir_option
@dry_run_option
@force_option
def prune(
    stale_days: int | None,
    duplicates_only: bool,
    empty_only: bool,
    cassettes_dir: Path | None,
    dry_run: bool,
    force: bool,
) -> None:
    """Remove empty or stale cassettes and duplicate entries."""
    if duplicates_only and empty_only:
        raise click.UsageError("--duplicates-only and --empty-only are mutually exclusive")

    directory = _cassettes_dir(cassettes_dir)
    categories = prune_ops.prune_categories(empty_only, duplicates_only, stale_days)
    store = _store()

    with _reported_errors():
        ensure_directory(directory)
        click.echo(f"Scanning cassettes in {directory}...\n")
        actions = prune_ops.plan_prune(
            directory,
            empty=categories["empty"],
            duplicates=categories["duplicates"],
            stale_days=stale_days if categories["stale"] else None,
            store=store,
        )

    if not actions:
        click.echo("✓ Nothing to prune!")
        return

    _render_prune_actions(actions, dry_run)
    if dry_run:
        return

    if should_execute(dry_run, force, lambda: _confirm_prune(actions)):
        result = prune_ops.execute_prune(actions, store=store)
        _echo_failures(result)
        click.echo("\n✓ Prune completed!")
        if result.failed:
            raise click.exceptions.Exit(1)
    else:
        click.echo("Prune cancelled.")


def _render_prune_actions(actions: list[PruneAction], dry_run: bool) -> None:
    if dry_run:
        click.echo("DRY RUN - No changes will be made\n")

    deletions = [a for a in actions if a.type == PruneActionType.DELETE_FILE]
    dedups = [a for a in actions if a.type == PruneActionType.REMOVE_DUPLICATES]

    if deletions:
        click.echo(f"Files to delete ({len(deletions)}):\n")
        for action in deletions:
            click.echo(f"  {action.path}")
            click.echo(f"    Reason: {action.reason}\n")

    if dedups:
        click.echo(f"Files with duplicates to clean ({len(dedups)}):\n")
        for action in dedups:
            click.echo(f"  {action.path}")
            click.echo(f"    Reason: {action.reason}\n")


def _confirm_prune(actions: list[PruneAction]) -> bool:
    delete_count = sum(1 for a in actions if a.type == PruneActionType.DELETE_FILE)
    dedup_count = len(actions) - delete_count

    click.echo("\nThis will:")
    if delete_count:
        click.echo(f"  - Delete {delete_count} cassette file(s)")
    if dedup_count:
        click.echo(f"  - Remove duplicates from {dedup_count} cassette file(s)")
    return click.confirm("\nContinue with prune?")


# --- show ---


@cli.command()
@click.argument("cassette")
@click.option("--grep", default=None, help="Filter entries by URL substring")
@click.option("--method", default=None, help="Filter by HTTP method")
@click.option("--request-only", is_flag=True, help="Only show request details")
@click.option("--response-only", is_flag=True, help="Only show response details")
@click.option("--raw", is_flag=True, help="Show raw JSON lines")
@click.option("--decode-body", is_flag=True, help="Pretty-print JSON response bodies")
@click.option("--no-truncate", is_flag=True, help="Show full response bodies")
@dir_option
def show(
    cassette: str,
    grep: str | None,
    method: str | None,
    request_only: bool,
    response_only: bool,
    raw: bool,
    decode_body: bool,
    no_truncate: bool,
    cassettes_dir: Path | None,
) -> None:
    """Display the entries of a cassette."""
    path = CassetteFile.resolve_path(cassette, _cassettes_dir(cassettes_dir))
    store = _store()
    with _reported_errors():
        result = show_cassette(path, grep=grep, method=method, store=store)

    if result.total == 0:
        click.echo(f"Cassette is empty: {path}")
        return
    if not result.entries:
        click.echo("No entries match the filters.")
        return

    click.echo(f"Cassette: {path}")
    click.echo(f"Entries: {len(result.entries)}/{result.total}\n")

    for idx, entry in enumerate(result.entries, 1):
        if raw:
            click.echo(store.codec.encode(entry.model_dump(mode="json")).decode("utf-8"))
            click.echo("")
            continue
        for line in render_entry(entry, idx, request_only, response_only, decode_body, no_truncate):
            click.echo(line)


def render_entry(
    entry: CassetteEntry,
    idx: int,
    request_only: bool = False,
    response_only: bool = False,
    decode_body: bool = False,
    no_truncate: bool = False,
) -> list[str]:
    lines = [f"═══ Entry {idx} ═══", f"Key: {entry.key}\n"]
    if not response_only:
        lines += _render_request(entry.req)
    if not request_only:
        lines += _render_response(entry.resp, decode_body, no_truncate)
    lines.append("")
    return lines


def _render_headers(headers: dict[str, str]) -> list[str]:
    if not headers:
        return []
    return ["│ Headers:"] + [f"│   {k}: {v}" for k, v in headers.items()]


def _render_request(req: RecordedRequest) -> list[str]:
    lines = ["┌─ Request", f"│ Method: {req.method}", f"│ URL: {req.url}"]
    if req.body_hash != NO_BODY_HASH:
        lines.append(f"│ Body Hash: {req.body_hash}")
    lines += _render_headers(req.headers)
    lines.append("└─")
    return lines


def _render_response(resp: RecordedResponse, decode_body: bool, no_truncate: bool) -> list[str]:
    lines = ["┌─ Response", f"│ Status: {resp.status}"]
    lines += _render_headers(resp.headers)
    if resp.body_b64:
        body = decode_response_body(resp)
        lines.append(f"│ Body ({len(body)} bytes):")
        preview = format_body(body, resp.headers, decode_body, no_truncate)
        lines += [f"│   {line}" for line in preview.split("\n")]
    lines.append("└─")
    return lines


def format_body(body: bytes, headers: dict[str, str], decode_body: bool, no_truncate: bool) -> str:
    text = body.decode("utf-8", errors="replace")
    content_type = next((v for k, v in headers.items() if k.lower() == "content-type"), "")
    if decode_body and "json" in content_type:
        try:
            return json.dumps(json.loads(text), indent=2, ensure_ascii=False)
        except ValueError:
            pass
    if no_truncate or len(body) <= BODY_PREVIEW_BYTES:
        return text
    return text[: BODY_PREVIEW_BYTES - 3] + "..."


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
