"""HTTP server command."""

import click
from click import option


@click.command()
@option('-h', '--host', default="127.0.0.1", help="Host to bind to")
@option('-p', '--port', type=int, default=5174, help="Port to listen on")
def serve(host: str, port: int):
    """Serve the store over HTTP.

    \b
    Examples:
      maildisk serve                # http://127.0.0.1:5174
      maildisk serve -h 0.0.0.0 -p 8080
    """
    from ..web import main as web_main
    web_main(host=host, port=port)
