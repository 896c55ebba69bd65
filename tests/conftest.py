"""
Shared fixtures: a temporary SQLite database and storage root per test.
"""

import io
import logging

import pytest
from PIL import Image

from mediadrop.api.app import create_app
from mediadrop.config import get_default_config, merge_config
from mediadrop.db import AlbumManager, DatabaseManager, MimeMappingOperations
from mediadrop.ingest import (
    AlbumSettings, BatchCoordinator, Contributor, DirectoryProvisioner,
    DuplicateDetector, MediaClassifier, PipelineSettings, StorageWriter,
    ThumbnailGenerator, TrackingRecorder
)
from mediadrop.storage import LocalStorage


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's environment and log handlers out of the tests"""
    for var in ('DATABASE_URL', 'MEDIADROP_CONFIG', 'MEDIADROP_ENVIRONMENT',
                'MEDIADROP_SECRET_KEY', 'FLASK_DEBUG'):
        monkeypatch.delenv(var, raising=False)

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def test_config(tmp_path):
    return merge_config(get_default_config(), {
        'database': {'url': f"sqlite:///{tmp_path / 'mediadrop.db'}"},
        'storage': {'root': str(tmp_path / 'media')},
        'api': {'secret_key': 'test-secret-key-for-mediadrop-tests'},
    })


@pytest.fixture
def db(test_config):
    manager = DatabaseManager(test_config['database']['url'])
    manager.init_database()
    MimeMappingOperations(manager).seed_defaults()
    yield manager
    manager.dispose()


@pytest.fixture
def storage(test_config):
    return LocalStorage(test_config['storage']['root'])


@pytest.fixture
def provisioner(db):
    return DirectoryProvisioner(db, tree_id='media_directories', max_attempts=3)


@pytest.fixture
def make_album(db, provisioner):
    """Factory creating an album row and returning its settings snapshot"""
    def _make(name='Family Reunion', base_directory='reunion', organize=True, **kwargs):
        with db.session_scope() as session:
            album = AlbumManager(session).create_album(
                name, base_directory, auto_organize=organize, **kwargs)
            album_id = album.id
        if organize:
            provisioner.ensure_album_root(album_id)
        with db.session_scope() as session:
            from mediadrop.db import Album
            return AlbumSettings.from_album(session.get(Album, album_id))
    return _make


@pytest.fixture
def album(make_album):
    return make_album()


@pytest.fixture
def notifier():
    from unittest.mock import Mock
    from mediadrop.ingest import Notifier
    mock = Mock(spec=Notifier)
    mock.notify_upload_batch.return_value = True
    return mock


@pytest.fixture
def pipeline_settings():
    return PipelineSettings.from_config(get_default_config())


@pytest.fixture
def coordinator(db, storage, provisioner, notifier, pipeline_settings):
    detector = DuplicateDetector(storage)
    mappings = MimeMappingOperations(db)
    return BatchCoordinator(
        classifier=MediaClassifier(mappings.ordered_patterns),
        detector=detector,
        writer=StorageWriter(storage, detector, db, ThumbnailGenerator(storage)),
        provisioner=provisioner,
        recorder=TrackingRecorder(db, storage),
        notifier=notifier,
        storage=storage,
        settings=pipeline_settings,
    )


@pytest.fixture
def alice():
    return Contributor(name='Alice', session_id='session_alice')


@pytest.fixture
def app(test_config, db):
    """Create test Flask app"""
    app = create_app(test_config, db=db)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def sample_png():
    """Bytes of a small valid PNG"""
    def _make(color='red', size=(64, 48)):
        img = Image.new('RGB', size, color=color)
        buffer = io.BytesIO()
        img.save(buffer, 'PNG')
        return buffer.getvalue()
    return _make
