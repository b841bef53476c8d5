"""CLI interface for pystoresync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from . import __version__
from .api import StoreClient
from .config import config
from .exceptions import StoreConfigError, StoreSyncError
from .output import OutputFormatter
from .sync import DirectoryScanner, SyncEngine
from .utils import format_size

logger = logging.getLogger(__name__)


def _create_client(
    ctx: Any, store_id: Optional[str], endpoint: Optional[str]
) -> StoreClient:
    return StoreClient(
        store_id=store_id,
        api_url=endpoint,
        api_key=ctx.obj.get("api_key"),
    )


@click.group()
@click.option(
    "--api-key",
    "-k",
    envvar="PYSTORESYNC_API_KEY",
    help="Bearer token for the store",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__, prog_name="pystoresync")
@click.pass_context
def main(
    ctx: Any,
    api_key: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pystoresync - Sync a local directory into a remote content store."""
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pystoresync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--store-id", "-s", required=True, help="Default target store")
@click.option("--endpoint", "-e", help="Default store endpoint URL")
@click.option("--workers", "-w", type=int, help="Default number of upload workers")
@click.pass_context
def init(
    ctx: Any, store_id: str, endpoint: Optional[str], workers: Optional[int]
) -> None:
    """Save default settings to the config file."""
    out: OutputFormatter = ctx.obj["out"]
    values: dict[str, Any] = {"store_id": store_id}
    if endpoint:
        values["api_url"] = endpoint
    if workers is not None:
        values["max_workers"] = workers
    if ctx.obj.get("api_key"):
        values["api_key"] = ctx.obj["api_key"]

    try:
        config.save(**values)
    except (OSError, StoreConfigError) as e:
        out.error(f"Cannot save configuration: {e}")
        ctx.exit(1)

    out.success(f"Configuration saved to {config.get_config_path()}")


@main.command()
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--store-id", "-s", help="Target store identifier")
@click.option("--endpoint", "-e", help="Store endpoint URL override")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be uploaded and deleted without changing the store",
)
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(min=1),
    default=None,
    help="Number of concurrent chunk uploads",
)
@click.option(
    "--ignore",
    "-i",
    multiple=True,
    help="Glob pattern of files to leave out (repeatable)",
)
@click.option(
    "--exclude-dot-files",
    is_flag=True,
    help="Leave out files and folders starting with a dot",
)
@click.pass_context
def sync(
    ctx: Any,
    path: Path,
    store_id: Optional[str],
    endpoint: Optional[str],
    dry_run: bool,
    workers: Optional[int],
    ignore: tuple[str, ...],
    exclude_dot_files: bool,
) -> None:
    """Upload changed files in PATH and delete entries missing locally.

    Local always wins: remote entries with no local file are removed, and a
    file is re-uploaded whenever its size or modification time differs.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        max_workers = workers or config.max_workers
        client = _create_client(ctx, store_id, endpoint)
        scanner = DirectoryScanner(
            ignore_patterns=list(ignore),
            exclude_dot_files=exclude_dot_files,
        )
        with client:
            engine = SyncEngine(
                client, output=out, scanner=scanner, max_workers=max_workers
            )
            result = engine.sync(path.resolve(), dry_run=dry_run)
    except KeyboardInterrupt:
        out.warning("Sync cancelled by user; nothing was committed")
        ctx.exit(130)
    except (StoreSyncError, ValueError) as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(result.to_dict())


@main.command()
@click.option("--store-id", "-s", help="Target store identifier")
@click.option("--endpoint", "-e", help="Store endpoint URL override")
@click.pass_context
def ls(ctx: Any, store_id: Optional[str], endpoint: Optional[str]) -> None:
    """List the entries stored in the remote store."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        with _create_client(ctx, store_id, endpoint) as client:
            entries = client.list_entries()
    except StoreSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    entries.sort(key=lambda e: e.name)
    if out.json_output:
        out.output_json([entry.to_dict() for entry in entries])
        return

    if not entries:
        out.info("Store is empty")
        return
    for entry in entries:
        out.print(f"{format_size(entry.size):>10}  {entry.timestamp:>14}  {entry.name}")
    out.info(f"\n{len(entries)} entries")
