"""Account configuration commands."""

import sys

import click
from click import argument, echo, option
from rich.console import Console

from ..config import (
    DEFAULT_MAILBOX,
    DEFAULT_TAG,
    PRESETS,
    TRANSPORTS,
    AccountConfig,
    ServerConfig,
    get_config_path,
    get_preset,
    save_config,
)
from ..errors import StoreError
from ..imap import check_imap
from ..smtp import check_smtp

from .utils import AliasGroup, err, get_password, load_account


@click.group(cls=AliasGroup, aliases={
    's': 'set',
    'sh': 'show',
    't': 'test',
})
def config():
    """Manage the mail account used as the store."""
    pass


@config.command("set", no_args_is_help=True)
@option('-i', '--imap-host', help="IMAP host (not needed with --preset)")
@option('-I', '--imap-port', type=int, default=993, help="IMAP port")
@option('-m', '--mailbox', help=f"Mailbox holding stored files (default: {DEFAULT_MAILBOX})")
@option('-p', '--password', 'password_opt', help="Password or app token (prompts if not provided)")
@option('-P', '--preset', type=click.Choice(sorted(PRESETS)), help="Provider preset for IMAP/SMTP servers")
@option('-s', '--smtp-host', help="SMTP host (not needed with --preset)")
@option('-S', '--smtp-port', type=int, default=465, help="SMTP port (465 is implicit TLS, others use STARTTLS)")
@option('-t', '--tag', help=f"Subject tag marking stored files (default: {DEFAULT_TAG})")
@option('-T', '--transport', type=click.Choice(TRANSPORTS), help="Upload via SMTP send or IMAP APPEND")
@argument('user')
def config_set(
    imap_host: str | None,
    imap_port: int,
    mailbox: str | None,
    password_opt: str | None,
    preset: str | None,
    smtp_host: str | None,
    smtp_port: int,
    tag: str | None,
    transport: str | None,
    user: str,
):
    """Save account credentials and server settings.

    \b
    Examples:
      maildisk config set me@qq.com -P qq
      maildisk config set me@example.com -i imap.example.com -s smtp.example.com
      echo "$TOKEN" | maildisk config set me@gmail.com -P gmail
      maildisk c s me@163.com -P 163 -t '[BACKUP]'   # using aliases
    """
    if preset:
        servers = get_preset(preset)
        imap, smtp = servers["imap"], servers["smtp"]
    else:
        if not imap_host or not smtp_host:
            err("Specify --imap-host and --smtp-host, or use --preset.")
            sys.exit(1)
        imap = ServerConfig(imap_host, imap_port)
        smtp = ServerConfig(smtp_host, smtp_port, ssl=smtp_port == 465)

    password = get_password(password_opt)
    if not password:
        err("Password must not be empty.")
        sys.exit(1)

    # Keep store settings from an existing config unless overridden
    previous = load_account()
    account = AccountConfig(
        user=user,
        password=password,
        imap=imap,
        smtp=smtp,
        mailbox=mailbox or (previous.mailbox if previous else DEFAULT_MAILBOX),
        tag=tag or (previous.tag if previous else DEFAULT_TAG),
        transport=transport or (previous.transport if previous else "smtp"),
    )
    if previous:
        account.connect_timeout = previous.connect_timeout
        account.auth_timeout = previous.auth_timeout

    path = save_config(account)
    echo(f"Saved {user} ({imap.host} / {smtp.host}) to {path}")


@config.command("show")
def config_show():
    """Show the current configuration, password masked."""
    account = load_account()
    if not account:
        echo(f"Not configured ({get_config_path()} missing). Run: maildisk config set")
        return

    data = account.masked()
    echo(f"Config ({get_config_path()}):\n")
    echo(f"  user:      {data['user']}")
    echo(f"  password:  {data.get('password') or '(none)'}")
    for key in ("imap", "smtp"):
        server = data.get(key)
        if server:
            security = "ssl" if server["ssl"] else "starttls"
            echo(f"  {key}:      {server['host']}:{server['port']} ({security})")
        else:
            echo(f"  {key}:      (not set)")
    echo(f"  mailbox:   {account.mailbox}")
    echo(f"  tag:       {account.tag}")
    echo(f"  transport: {account.transport}")


@config.command("test")
def config_test():
    """Check IMAP and SMTP logins."""
    account = load_account()
    console = Console()
    failed = False
    for label, check in (("IMAP", check_imap), ("SMTP", check_smtp)):
        try:
            check(account)
        except StoreError as e:
            console.print(f"[red]✗[/] {label}: {e.message}")
            failed = True
        else:
            console.print(f"[green]✓[/] {label}")
    if failed:
        sys.exit(1)
