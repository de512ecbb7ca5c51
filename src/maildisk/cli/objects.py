"""Stored-file commands: ls, fetch, upload, rm."""

import base64
from pathlib import Path

import click
import humanize
from click import argument, echo, option
from rich.console import Console
from rich.table import Table

from .utils import (
    emit_json,
    exit_failure,
    get_store,
    json_option,
    parse_id,
    safe_filename,
)


@click.command()
@option('-f', '--filter', 'keyword', help="Only files whose subject contains KEYWORD")
@json_option
@option('-l', '--limit', type=int, help="Show at most N files (the most recent)")
def ls(keyword: str | None, as_json: bool, limit: int | None):
    """List stored files, newest first.

    \b
    Examples:
      maildisk ls
      maildisk ls -f report -l 10
      maildisk ls -j | jq '.objects[].name'
    """
    result = get_store().list(keyword=keyword, limit=limit)
    if not result.ok:
        exit_failure(result, as_json)

    objects = result.value
    if as_json:
        emit_json({"success": True, "objects": [o.to_dict() for o in objects]})
        return

    if not objects:
        echo("No stored files.")
        return
    table = Table(title=f"{len(objects)} stored file(s)")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Date", style="dim")
    for obj in objects:
        table.add_row(
            str(obj.id),
            obj.name,
            humanize.naturalsize(obj.size, binary=True),
            f"{obj.date:%Y-%m-%d %H:%M}" if obj.date else "-",
        )
    Console().print(table)


@click.command(no_args_is_help=True)
@option('-o', '--output', 'output_dir', type=click.Path(file_okay=False), help="Write the file into this directory")
@argument('object_id')
def fetch(output_dir: str | None, object_id: str):
    """Download a stored file; prints a JSON result.

    Without -o the file content is included base64-encoded.

    \b
    Examples:
      maildisk fetch 42 -o ~/Downloads
      maildisk fetch 42 | jq -r .file.content | base64 -d > out.bin
    """
    uid = parse_id(object_id, as_json=True)
    result = get_store().download(uid)
    if not result.ok:
        exit_failure(result, as_json=True)

    obj = result.value
    info = {"id": uid, "filename": obj.filename, "mediaType": obj.media_type, "size": obj.size}
    if output_dir:
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        path = out / safe_filename(obj.filename)
        path.write_bytes(obj.data)
        info["path"] = str(path)
    else:
        info["content"] = base64.b64encode(obj.data).decode("ascii")
    emit_json({"success": True, "file": info})


@click.command(no_args_is_help=True)
@json_option
@option('-n', '--name', help="Stored file name (default: the file's basename)")
@argument('file_path', type=click.Path(exists=True, dir_okay=False))
def upload(as_json: bool, name: str | None, file_path: str):
    """Store a local file as a new message.

    \b
    Examples:
      maildisk upload report.pdf
      maildisk upload build.tar.gz -n nightly.tar.gz
    """
    path = Path(file_path)
    data = path.read_bytes()
    store = get_store()
    if as_json:
        result = store.upload(data, name or path.name)
    else:
        with Console(stderr=True).status(f"Uploading {path.name}..."):
            result = store.upload(data, name or path.name)
    if not result.ok:
        exit_failure(result, as_json)

    receipt = result.value
    if as_json:
        emit_json({"success": True, **receipt.to_dict()})
        return
    suffix = f" as id {receipt.id}" if receipt.id is not None else ""
    echo(f"Uploaded {receipt.filename} ({humanize.naturalsize(receipt.size, binary=True)}){suffix}")


@click.command(no_args_is_help=True)
@json_option
@argument('object_id')
def rm(as_json: bool, object_id: str):
    """Delete a stored file.

    \b
    Examples:
      maildisk rm 42
    """
    uid = parse_id(object_id, as_json)
    result = get_store().delete(uid)
    if not result.ok:
        exit_failure(result, as_json)
    if as_json:
        emit_json({"success": True, "id": uid})
    else:
        echo(f"Deleted {uid}")
