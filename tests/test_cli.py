"""
Tests for the mediadrop command line interface.
"""

import jwt
import pytest
import yaml
from click.testing import CliRunner

from mediadrop.cli.main import main
from mediadrop.db import Album, CategoryNode, DatabaseManager

SECRET = 'cli-test-secret-key-0123456789abcdef'


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump({
        'database': {'url': f"sqlite:///{tmp_path / 'cli.db'}"},
        'storage': {'root': str(tmp_path / 'media')},
        'api': {'secret_key': SECRET},
    }))
    return path


@pytest.fixture
def invoke(config_file):
    runner = CliRunner()

    def _invoke(*args):
        return runner.invoke(main, ['-c', str(config_file), '-q', *args])
    return _invoke


@pytest.fixture
def cli_db(tmp_path):
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'cli.db'}")
    yield manager
    manager.dispose()


class TestDatabaseCommands:

    def test_init_seeds_mappings(self, invoke):
        result = invoke('db', 'init')

        assert result.exit_code == 0, result.output
        assert 'Database schema created' in result.output
        assert 'Added 10 default MIME mappings' in result.output

        again = invoke('db', 'init')
        assert 'Added 0 default MIME mappings' in again.output

    def test_check(self, invoke):
        result = invoke('db', 'check')
        assert result.exit_code == 0
        assert 'Database connection OK' in result.output

    def test_prune_nodes(self, invoke, cli_db):
        invoke('db', 'init')
        with cli_db.session_scope() as session:
            session.add(CategoryNode(tree_id='media_directories', label='stale',
                                     normalized_label='stale', parent_key=0))

        result = invoke('db', 'prune-nodes')
        assert result.exit_code == 0
        assert 'Deleted 1 empty category nodes' in result.output


class TestAlbumCommands:

    def test_create_and_list(self, invoke, cli_db):
        result = invoke('album', 'create', 'Summer Party', '-n', 'host@example.com')

        assert result.exit_code == 0, result.output
        assert "Created album 'Summer Party'" in result.output
        assert 'Root category node' in result.output

        with cli_db.session_scope() as session:
            album = session.query(Album).one()
            assert album.base_directory == 'summer_party'
            assert album.notifications_enabled
            assert album.root_node_id is not None
            assert album.token in result.output

        listed = invoke('album', 'list')
        assert 'Summer Party' in listed.output
        assert 'summer_party' in listed.output

    def test_create_without_organizing(self, invoke, cli_db):
        result = invoke('album', 'create', 'Loose', '--no-organize', '-d', 'loose_files')

        assert result.exit_code == 0
        with cli_db.session_scope() as session:
            album = session.query(Album).one()
            assert album.root_node_id is None
            assert album.base_directory == 'loose_files'

    def test_directory_outside_storage_root_rejected(self, invoke, cli_db):
        invoke('db', 'init')
        result = invoke('album', 'create', 'Escape', '-d', '../outside')

        assert result.exit_code == 1
        assert 'outside the storage root' in result.output
        with cli_db.session_scope() as session:
            assert session.query(Album).count() == 0

    def test_rotate_token(self, invoke, cli_db):
        invoke('album', 'create', 'Party')
        with cli_db.session_scope() as session:
            album = session.query(Album).one()
            old_token = album.token

        result = invoke('album', 'rotate-token', str(album.id))

        assert result.exit_code == 0
        with cli_db.session_scope() as session:
            new_token = session.query(Album).one().token
        assert new_token != old_token
        assert new_token in result.output

    def test_deactivate_and_activate(self, invoke, cli_db):
        invoke('album', 'create', 'Party')

        assert invoke('album', 'deactivate', '1').exit_code == 0
        with cli_db.session_scope() as session:
            assert session.query(Album).one().is_active is False

        assert invoke('album', 'activate', '1').exit_code == 0
        with cli_db.session_scope() as session:
            assert session.query(Album).one().is_active is True

    def test_unknown_album(self, invoke):
        result = invoke('album', 'rotate-token', '42')
        assert result.exit_code == 1
        assert 'Album 42 not found' in result.output

    def test_empty_list(self, invoke):
        assert 'No albums found' in invoke('album', 'list').output


class TestMimeCommands:

    def test_add_list_remove(self, invoke):
        invoke('db', 'init', '--no-seed')

        result = invoke('mime', 'add', 'Image/X-Canon-CR2', 'raw', '-w', '5')
        assert result.exit_code == 0
        assert 'image/x-canon-cr2' in invoke('mime', 'list').output

        duplicate = invoke('mime', 'add', 'image/x-canon-cr2', 'raw')
        assert duplicate.exit_code == 1

        assert invoke('mime', 'remove', 'image/x-canon-cr2').exit_code == 0
        assert 'No MIME mappings configured' in invoke('mime', 'list').output

    def test_remove_unknown(self, invoke):
        result = invoke('mime', 'remove', 'audio/mpeg')
        assert result.exit_code == 1


class TestTokenCommand:

    def test_issue(self, invoke):
        result = invoke('token', 'issue', '7', 'erin', '-p', 'upload')

        assert result.exit_code == 0
        token = result.output.strip().splitlines()[-1]
        payload = jwt.decode(token, SECRET, algorithms=['HS256'])
        assert payload['user_id'] == 7
        assert payload['username'] == 'erin'
        assert payload['permissions'] == ['upload']
