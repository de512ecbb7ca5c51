"""CLI package for maildisk.

This package organizes CLI commands into modules:
- config_cmds.py: Account configuration (set, show, test)
- objects.py: Stored files (ls, fetch, upload, rm)
- mail.py: Plain mail (inbox, send)
- serve.py: HTTP server
- utils.py: Shared utilities and helpers
"""

import click
from click import option
from dotenv import load_dotenv

from .utils import AliasGroup, setup_logging

from .config_cmds import config
from .mail import inbox, send
from .objects import fetch, ls, rm, upload
from .serve import serve


@click.group(cls=AliasGroup, aliases={
    'c': 'config',
    'f': 'fetch',
    'i': 'inbox',
    'l': 'ls',
    'd': 'rm',
    's': 'serve',
    'u': 'upload',
})
@option('-v', '--verbose', is_flag=True, help="Log IMAP/SMTP activity to stderr")
def main(verbose: bool):
    """Use a mailbox as file storage."""
    load_dotenv()
    setup_logging(verbose)


main.add_command(config)
main.add_command(fetch)
main.add_command(inbox)
main.add_command(ls)
main.add_command(rm)
main.add_command(send)
main.add_command(serve)
main.add_command(upload)


__all__ = [
    'main',
    'config',
    'fetch',
    'inbox',
    'ls',
    'rm',
    'send',
    'serve',
    'upload',
]
