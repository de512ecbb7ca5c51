"""Shared CLI utilities and helpers."""

import json
import logging
import sys
from pathlib import Path

import click
import yaml
from click import echo, prompt
from rich.console import Console
from rich.logging import RichHandler

from ..config import AccountConfig, load_config
from ..errors import Result
from ..store import ObjectStore


def err(*args, **kwargs):
    """Print to stderr."""
    print(*args, file=sys.stderr, **kwargs)


def setup_logging(verbose: bool) -> None:
    """Send maildisk log records to stderr via rich when verbose."""
    if not verbose:
        return
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    pkg_logger = logging.getLogger("maildisk")
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(logging.DEBUG)


def load_account() -> AccountConfig | None:
    """Load config, exiting with a message if the file is unreadable."""
    try:
        return load_config()
    except (yaml.YAMLError, ValueError, OSError) as e:
        err(f"Could not read config: {e}")
        sys.exit(1)


def get_store() -> ObjectStore:
    return ObjectStore(load_account(), logger=logging.getLogger("maildisk.cli"))


def emit_json(payload: dict) -> None:
    echo(json.dumps(payload, ensure_ascii=False))


def exit_failure(result: Result, as_json: bool) -> None:
    """Report a failed Result and exit non-zero."""
    if as_json:
        emit_json(result.failure_dict())
    else:
        err(f"Error: {result.message}")
    sys.exit(1)


def parse_id(value: str, as_json: bool) -> int:
    """Object ids are IMAP UIDs: positive integers."""
    if value.isdecimal() and int(value) > 0:
        return int(value)
    if as_json:
        emit_json({"success": False, "error": f"Invalid id: {value}", "kind": "usage"})
    else:
        err(f"Invalid id: {value}")
    sys.exit(1)


def safe_filename(name: str, default: str = "download") -> str:
    """Strip directory parts so a stored name can't escape the output directory."""
    base = Path(name.replace("\\", "/")).name
    return base if base not in ("", ".", "..") else default


def get_password(password_opt: str | None) -> str:
    """Get password from option, stdin (if piped), or prompt."""
    if password_opt:
        return password_opt
    elif not sys.stdin.isatty():
        return sys.stdin.readline().rstrip("\n")
    else:
        return prompt("Password", hide_input=True)


json_option = click.option('-j', '--json', 'as_json', is_flag=True, help="Output a single JSON object")


class AliasGroup(click.Group):
    """Click Group that supports command aliases."""

    def __init__(self, *args, aliases: dict[str, str] | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.aliases = aliases or {}
        self._cmd_aliases: dict[str, list[str]] = {}
        for alias, cmd in self.aliases.items():
            self._cmd_aliases.setdefault(cmd, []).append(alias)

    def get_command(self, ctx, cmd_name):
        cmd_name = self.aliases.get(cmd_name, cmd_name)
        return super().get_command(ctx, cmd_name)

    def resolve_command(self, ctx, args):
        _, cmd_name, args = super().resolve_command(ctx, args)
        cmd_name = self.aliases.get(cmd_name, cmd_name)
        return _, cmd_name, args

    def format_commands(self, ctx, formatter):
        """List commands with their aliases."""
        rows = []
        for subcommand in self.list_commands(ctx):
            cmd = self.get_command(ctx, subcommand)
            if cmd is None or cmd.hidden:
                continue
            aliases = self._cmd_aliases.get(subcommand, [])
            name = f"{subcommand} ({', '.join(sorted(aliases))})" if aliases else subcommand
            rows.append((name, cmd.get_short_help_str(limit=formatter.width)))
        if rows:
            with formatter.section("Commands"):
                formatter.write_dl(rows)
