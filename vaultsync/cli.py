"""CLI interface for vaultsync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .cli_progress import SyncProgressDisplay
from .config import config
from .exceptions import ConfigurationError, ConflictError, VaultSyncError
from .output import OutputFormatter
from .s3 import S3Storage
from .sync import (
    DirectoryScanner,
    FileRecord,
    FileSyncInfo,
    KeepSide,
    StateStore,
    SyncPhase,
    SyncSession,
    SyncStats,
    default_state_path,
)
from .utils import format_size, format_timestamp

logger = logging.getLogger(__name__)

# Exit code used when a sync stops on an unresolved conflict
EXIT_CONFLICT = 2

VAULT_ARGUMENT = click.argument(
    "vault", type=click.Path(exists=True, file_okay=False, path_type=Path)
)


def _open_store(vault: Path) -> StateStore:
    """Open the state store for a vault and the configured bucket."""
    db_path = config.state_db
    if db_path is None:
        bucket = config.bucket
        if not bucket:
            raise ConfigurationError(
                "No bucket configured. Run 'vaultsync init' first."
            )
        db_path = default_state_path(vault, bucket)
    return StateStore(db_path)


def _describe(record: Optional[FileRecord]) -> list[str]:
    if record is None:
        return ["-", "-"]
    return [format_size(record.size), format_timestamp(record.mtime)]


def _show_conflict(out: OutputFormatter, error: ConflictError) -> None:
    out.warning(f"\nConflict: {error.path}")
    out.warning(
        "The file was modified both locally and in the bucket since the last sync."
    )
    info = error.info or FileSyncInfo(path=error.path)
    out.output_table(
        ["Version", "Size", "Modified"],
        [
            ["last synced", *_describe(info.last_synced)],
            ["local", *_describe(info.local)],
            ["remote", *_describe(info.remote)],
        ],
    )


def _run_session(
    session: SyncSession,
    resume_only: bool,
    subtree: Optional[str],
    show_progress: bool,
) -> SyncStats:
    if not show_progress:
        return session.start_sync(resume_only=resume_only, subtree=subtree)

    with SyncProgressDisplay() as display:
        unsubscribe = session.subscribe_progress(display.handle_event)
        try:
            return session.start_sync(resume_only=resume_only, subtree=subtree)
        finally:
            unsubscribe()


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="vaultsync")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """vaultsync - Keep a local folder and an S3 bucket in sync."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("vaultsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--bucket", prompt="Bucket name", help="Bucket to sync with")
@click.option("--region", prompt="Region", help="Bucket region")
@click.option("--access-key-id", prompt="Access key ID", help="Access key ID")
@click.option(
    "--secret-access-key",
    prompt="Secret access key",
    hide_input=True,
    help="Secret access key",
)
@click.option(
    "--endpoint",
    prompt="Custom endpoint (leave empty for AWS)",
    default="",
    show_default=False,
    help="Endpoint URL of an S3-compatible service",
)
@click.pass_context
def init(
    ctx: Any,
    bucket: str,
    region: str,
    access_key_id: str,
    secret_access_key: str,
    endpoint: str,
) -> None:
    """Store bucket settings and credentials.

    Settings are written to ~/.config/vaultsync/config.
    """
    out: OutputFormatter = ctx.obj["out"]
    if config.is_configured():
        out.info(f"Replacing existing configuration in {config.config_file}")
    config.save(
        bucket=bucket,
        region=region,
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        endpoint=endpoint or None,
    )
    out.success(f"Configuration saved to {config.config_file}")


@main.command()
@VAULT_ARGUMENT
@click.option("--subtree", "-s", help="Only sync this folder (relative to VAULT)")
@click.option(
    "--resume-only",
    is_flag=True,
    help="Only finish the work left pending by an interrupted sync",
)
@click.option("--no-progress", is_flag=True, help="Disable progress bars")
@click.option(
    "--no-prompt",
    is_flag=True,
    help="Stop on the first conflict instead of asking how to resolve it",
)
@click.pass_context
def sync(
    ctx: Any,
    vault: Path,
    subtree: Optional[str],
    resume_only: bool,
    no_progress: bool,
    no_prompt: bool,
) -> None:
    """Sync a local folder with the configured bucket.

    Files changed on one side since the last sync are copied to the other
    side, and files deleted on one side are deleted on the other. A file
    changed on both sides is a conflict: you choose which version to keep
    and the sync continues.

    Examples:
        vaultsync sync ~/notes
        vaultsync sync ~/notes --subtree journal
        vaultsync sync ~/notes --resume-only
    """
    out: OutputFormatter = ctx.obj["out"]
    show_progress = not (no_progress or out.quiet or out.json_output)
    totals = SyncStats()

    try:
        storage = S3Storage.from_config(config)
        with _open_store(vault) as store:
            session = SyncSession.for_vault(vault, storage, store, DirectoryScanner())
            if not out.quiet:
                out.info(f"Syncing: {vault} <-> s3://{storage.bucket}")

            while True:
                try:
                    stats = _run_session(session, resume_only, subtree, show_progress)
                except ConflictError as e:
                    totals.add(session.stats)
                    _show_conflict(out, e)
                    if no_prompt:
                        out.error(
                            f"Sync stopped on conflict: {e.path}. "
                            f"Resolve it with 'vaultsync resolve'."
                        )
                        ctx.exit(EXIT_CONFLICT)
                    choice = click.prompt(
                        "Keep which version?",
                        type=click.Choice(["local", "remote", "skip", "abort"]),
                        default="abort",
                    )
                    if choice == "abort":
                        out.warning("Sync stopped. Run again to continue.")
                        ctx.exit(EXIT_CONFLICT)
                    action = session.resolve_conflict(e.path, KeepSide(choice))
                    if action is not None:
                        totals.record(action)
                    # The diff already ran; only pending work is left
                    if session.phase == SyncPhase.SYNC_PENDING:
                        resume_only = True
                    continue

                totals.add(stats)
                break

    except KeyboardInterrupt:
        out.warning("\nSync cancelled by user")
        ctx.exit(130)
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(totals.to_dict())
    else:
        out.success(
            f"Sync complete: {totals.uploads} uploaded, "
            f"{totals.downloads} downloaded, "
            f"{totals.deletes_local} deleted locally, "
            f"{totals.deletes_remote} deleted remotely"
        )


@main.command()
@VAULT_ARGUMENT
@click.argument("path", type=str)
@click.option(
    "--keep",
    "-k",
    type=click.Choice([side.value for side in KeepSide]),
    required=True,
    help="Version to keep (skip leaves both and re-checks on next sync)",
)
@click.pass_context
def resolve(ctx: Any, vault: Path, path: str, keep: str) -> None:
    """Resolve a conflict on PATH (relative to VAULT).

    Afterwards run 'vaultsync sync VAULT --resume-only' to continue.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        storage = S3Storage.from_config(config)
        with _open_store(vault) as store:
            session = SyncSession.for_vault(vault, storage, store)
            session.resolve_conflict(path, KeepSide(keep))
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    out.success(f"Resolved {path} (kept {keep})")


@main.command()
@VAULT_ARGUMENT
@click.pass_context
def status(ctx: Any, vault: Path) -> None:
    """Show paths still pending from an earlier sync."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        with _open_store(vault) as store:
            last_sync = store.get_last_sync_time()
            infos = [store.get_sync_info(path) for path in store.list_pending()]
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return  # Unreachable, but helps type checker

    pending = [info for info in infos if info is not None]
    if out.json_output:
        out.output_json(
            {
                "last_sync": last_sync,
                "pending": [info.to_dict() for info in pending],
            }
        )
        return

    out.info(f"Last full sync: {format_timestamp(last_sync)}")
    if not pending:
        out.success("Nothing pending")
        return

    rows = []
    for info in pending:
        cells = []
        for record in (info.last_synced, info.local, info.remote):
            size, modified = _describe(record)
            cells.append("-" if record is None else f"{size}, {modified}")
        rows.append([info.path, *cells])
    out.output_table(
        ["Path", "Last synced", "Local", "Remote"],
        rows,
        title=f"{len(pending)} pending path(s)",
    )


@main.command()
@VAULT_ARGUMENT
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def reset(ctx: Any, vault: Path, yes: bool) -> None:
    """Forget all sync state for VAULT.

    The next sync treats every file as new; files differing on both sides
    will be reported as conflicts.
    """
    out: OutputFormatter = ctx.obj["out"]

    if not yes and not click.confirm("Delete all sync state for this vault?"):
        out.info("Aborted.")
        return

    try:
        with _open_store(vault) as store:
            store.delete_all()
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    out.success("Sync state cleared")


if __name__ == "__main__":
    main()
