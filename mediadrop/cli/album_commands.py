"""
Album and MIME mapping administration commands.
"""

import click
from typing import Optional
from tabulate import tabulate

from ..config.security import check_album_directory
from ..db import AlbumManager, MimeMappingOperations
from ..ingest import DirectoryProvisioner
from ..utils.naming import normalize_label
from .db_commands import get_database


@click.group()
def album():
    """Drop album management commands"""
    pass


@album.command('create')
@click.argument('name')
@click.option('--directory', '-d', help='Storage directory (default: derived from the name)')
@click.option('--image-type', help='Media type forced for every image upload')
@click.option('--video-type', help='Media type forced for every video upload')
@click.option('--organize/--no-organize', default=True,
              help='File uploads into the category tree')
@click.option('--notify', '-n', 'emails', multiple=True,
              help='Email to notify about new uploads (repeatable)')
@click.pass_context
def create_album(ctx, name: str, directory: Optional[str], image_type: Optional[str],
                 video_type: Optional[str], organize: bool, emails: tuple):
    """Create an album and print its upload token"""
    manager = get_database(ctx)
    config = ctx.find_root().obj['config']

    try:
        base_directory = check_album_directory(config['storage']['root'],
                                               directory or normalize_label(name))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    with manager.session_scope() as session:
        new_album = AlbumManager(session).create_album(
            name,
            base_directory=base_directory,
            image_media_type=image_type,
            video_media_type=video_type,
            auto_organize=organize,
            notification_emails=list(emails),
        )
        album_id, album_token = new_album.id, new_album.token

    root_node_id = None
    if organize:
        root_node_id = DirectoryProvisioner.from_config(manager, config).ensure_album_root(album_id)

    click.echo(f"Created album '{name}' (id {album_id})")
    click.echo(f"  Token: {album_token}")
    if root_node_id:
        click.echo(f"  Root category node: {root_node_id}")


@album.command('list')
@click.option('--active-only', is_flag=True, help='Hide deactivated albums')
@click.pass_context
def list_albums(ctx, active_only: bool):
    """List albums with upload counts"""
    with get_database(ctx).session_scope() as session:
        albums = AlbumManager(session).list_albums(include_inactive=not active_only)

    if not albums:
        click.echo("No albums found")
        return

    rows = [[a['id'], a['name'], a['base_directory'], 'yes' if a['is_active'] else 'no',
             a['media_count'], a['contributor_count'], a['token']] for a in albums]
    click.echo(tabulate(rows, headers=['ID', 'Name', 'Directory', 'Active', 'Media',
                                       'Contributors', 'Token']))


@album.command('rotate-token')
@click.argument('album_id', type=int)
@click.pass_context
def rotate_token(ctx, album_id: int):
    """Replace an album's token; old links stop working"""
    with get_database(ctx).session_scope() as session:
        new_token = AlbumManager(session).rotate_token(album_id)

    if new_token is None:
        click.echo(f"Album {album_id} not found", err=True)
        ctx.exit(1)
    click.echo(f"New token: {new_token}")


@album.command('deactivate')
@click.argument('album_id', type=int)
@click.pass_context
def deactivate(ctx, album_id: int):
    """Stop accepting uploads for an album"""
    _set_active(ctx, album_id, False)


@album.command('activate')
@click.argument('album_id', type=int)
@click.pass_context
def activate(ctx, album_id: int):
    """Accept uploads for an album again"""
    _set_active(ctx, album_id, True)


def _set_active(ctx, album_id: int, active: bool):
    with get_database(ctx).session_scope() as session:
        found = AlbumManager(session).set_active(album_id, active)

    if not found:
        click.echo(f"Album {album_id} not found", err=True)
        ctx.exit(1)
    click.echo(f"Album {album_id} {'activated' if active else 'deactivated'}")


@click.group()
def mime():
    """MIME type to media type mappings"""
    pass


@mime.command('list')
@click.pass_context
def list_mappings(ctx):
    """Show mappings in the order they are matched"""
    mappings = MimeMappingOperations(get_database(ctx)).list_mappings()
    if not mappings:
        click.echo("No MIME mappings configured")
        return

    rows = [[m.weight, m.mime_type, m.media_type] for m in mappings]
    click.echo(tabulate(rows, headers=['Weight', 'MIME type', 'Media type']))


@mime.command('add')
@click.argument('mime_type')
@click.argument('media_type')
@click.option('--weight', '-w', default=0, type=int, help='Lower weights are matched first')
@click.pass_context
def add_mapping(ctx, mime_type: str, media_type: str, weight: int):
    """Map a MIME type or pattern such as video/* to a media type"""
    try:
        MimeMappingOperations(get_database(ctx)).add_mapping(mime_type, media_type, weight)
    except ValueError as e:
        click.echo(str(e), err=True)
        ctx.exit(1)
    click.echo(f"Mapped {mime_type} -> {media_type}")


@mime.command('remove')
@click.argument('mime_type')
@click.pass_context
def remove_mapping(ctx, mime_type: str):
    """Remove a mapping"""
    if not MimeMappingOperations(get_database(ctx)).remove_mapping(mime_type):
        click.echo(f"No mapping for {mime_type}", err=True)
        ctx.exit(1)
    click.echo(f"Removed {mime_type}")
