"""
Database CLI commands for MediaDrop

Provides command-line interface for database operations.
"""

import click
import logging

from ..db import DatabaseManager, MimeMappingOperations
from ..ingest import DirectoryProvisioner

logger = logging.getLogger(__name__)


def get_database(ctx: click.Context) -> DatabaseManager:
    """Database manager shared by the commands of one invocation"""
    root = ctx.find_root()
    if root.obj is None:
        root.obj = {}
    if 'db' not in root.obj:
        root.obj['db'] = DatabaseManager.from_config(root.obj.get('config', {}))
    return root.obj['db']


@click.group()
def db():
    """Database management commands"""
    pass


@db.command('init')
@click.option('--seed/--no-seed', default=True, help='Insert the default MIME mappings')
@click.pass_context
def init_db(ctx, seed: bool):
    """Create tables and seed default MIME mappings"""
    manager = get_database(ctx)
    manager.init_database()
    click.echo("Database schema created")

    if seed:
        added = MimeMappingOperations(manager).seed_defaults()
        click.echo(f"Added {added} default MIME mappings")


@db.command('prune-nodes')
@click.pass_context
def prune_nodes(ctx):
    """Delete empty category nodes"""
    config = ctx.find_root().obj['config']
    provisioner = DirectoryProvisioner.from_config(get_database(ctx), config)
    if not provisioner.tree_id:
        click.echo("No category tree configured (directories.tree_id)", err=True)
        ctx.exit(1)

    deleted = provisioner.prune_empty_nodes()
    click.echo(f"Deleted {deleted} empty category nodes")


@db.command('check')
@click.pass_context
def check_db(ctx):
    """Check that the database answers"""
    if get_database(ctx).is_available():
        click.echo("Database connection OK")
    else:
        click.echo("Database connection failed", err=True)
        ctx.exit(1)
