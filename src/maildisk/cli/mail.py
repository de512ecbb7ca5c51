"""Plain mail commands: inbox, send."""

from pathlib import Path

import click
from click import echo, option
from rich.console import Console
from rich.table import Table

from .utils import emit_json, exit_failure, get_store, json_option


@click.command()
@option('-f', '--filter', 'keyword', help="Only messages whose subject contains KEYWORD")
@json_option
@option('-l', '--limit', type=int, help="Show at most N messages (default: 10, or 20 with -j)")
def inbox(keyword: str | None, as_json: bool, limit: int | None):
    """List the newest messages in the mailbox, stored files or not.

    \b
    Examples:
      maildisk inbox
      maildisk inbox -f invoice -l 5
      maildisk inbox -j | jq '.emails[].subject'
    """
    if limit is None:
        limit = 20 if as_json else 10
    result = get_store().messages(keyword=keyword, limit=limit)
    if not result.ok:
        exit_failure(result, as_json)

    messages = result.value
    if as_json:
        emit_json({"success": True, "emails": [m.to_dict() for m in messages]})
        return

    if not messages:
        echo("No messages.")
        return
    table = Table(title=f"{len(messages)} message(s)")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("From")
    table.add_column("Subject")
    table.add_column("Date", style="dim")
    for msg in messages:
        table.add_row(
            str(msg.id),
            msg.sender,
            msg.subject,
            f"{msg.date:%Y-%m-%d %H:%M}" if msg.date else "-",
        )
    Console().print(table)


@click.command(no_args_is_help=True)
@option('-a', '--attach', 'attach_paths', multiple=True, type=click.Path(exists=True, dir_okay=False), help="Attach a file (repeatable)")
@option('-b', '--body', default="", help="Plain-text body")
@json_option
@option('-s', '--subject', help="Subject (default: \"(no subject)\")")
@option('-t', '--to', required=True, help="Recipient address")
def send(attach_paths: tuple[str, ...], body: str, as_json: bool, subject: str | None, to: str):
    """Send an ordinary email from the configured account.

    \b
    Examples:
      maildisk send -t friend@example.com -s "Hello" -b "See attached" -a photo.jpg
    """
    attachments = [(Path(p).name, Path(p).read_bytes()) for p in attach_paths]
    result = get_store().send(to, subject=subject, body=body, attachments=attachments)
    if not result.ok:
        exit_failure(result, as_json)
    if as_json:
        emit_json({"success": True, "messageId": result.value})
    else:
        echo(f"Sent to {to} (Message-ID {result.value})")
