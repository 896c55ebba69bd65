"""
MediaDrop Command Line Interface

Main CLI entry point: administration of albums, MIME mappings and the
database, token issuing and the development server.
"""

import click
import logging
from typing import Optional

from ..config import load_config
from ..config.security import get_security_config
from ..utils.logging import setup_logging
from .album_commands import album, mime
from .db_commands import db

logger = logging.getLogger(__name__)


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True),
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-error output')
@click.pass_context
def main(ctx, config: Optional[str] = None, verbose: bool = False, quiet: bool = False):
    """
    MediaDrop - token-addressed photo and video drop albums
    """
    if ctx.obj is None:
        ctx.obj = {}

    ctx.obj['config'] = load_config(config)
    setup_logging(ctx.obj['config'])

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif quiet:
        logging.getLogger().setLevel(logging.ERROR)

    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


@main.group()
def token():
    """API token commands"""
    pass


@token.command('issue')
@click.argument('user_id', type=int)
@click.argument('username')
@click.option('--permission', '-p', 'permissions', multiple=True,
              help='Grant only these permissions (repeatable)')
@click.pass_context
def issue_token(ctx, user_id: int, username: str, permissions: tuple):
    """Issue a bearer token for a registered user"""
    from ..api.auth import APIAuth

    config = ctx.obj['config']
    security_config = get_security_config(
        secret_key=config.get('api', {}).get('secret_key'))
    auth = APIAuth.from_config(security_config.secret_key, config,
                               algorithm=security_config.jwt_algorithm)

    click.echo(auth.issue_token(user_id, username, permissions or None))


@main.command()
@click.option('--host', default='127.0.0.1', help='Interface to bind')
@click.option('--port', default=5000, type=int, help='Port to listen on')
@click.option('--debug', is_flag=True, help='Enable the Flask debugger')
@click.pass_context
def serve(ctx, host: str, port: int, debug: bool):
    """Run the upload API with the development server"""
    from ..api.app import run_development_server

    click.echo(f"Starting MediaDrop on http://{host}:{port}")
    run_development_server(ctx.obj['config'], host=host, port=port, debug=debug)


main.add_command(db)
main.add_command(album)
main.add_command(mime)


if __name__ == '__main__':
    main()
