"""
Tests for the batch coordinator: per-file isolation, placement, tracking
failure policies and notification flushing.
"""

import io
from dataclasses import replace
from datetime import timedelta
from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import OperationalError

from mediadrop.db import CategoryNode, DatabaseManager, MediaItem, UploadRecord
from mediadrop.db.models import utcnow
from mediadrop.errors import TrackingError
from mediadrop.ingest import Contributor, IncomingFile, PipelineSettings


def _incoming(filename, data, content_type=None):
    return IncomingFile(filename=filename, content_type=content_type,
                        stream=io.BytesIO(data), size=len(data))


def _count(db, model, **filters):
    with db.session_scope() as session:
        return session.query(model).filter_by(**filters).count()


class TestProcessSubmission:

    def test_single_photo_end_to_end(self, db, storage, coordinator, album, alice):
        results = coordinator.process_submission(
            album, alice, [_incoming('photo.png', b'\x89PNG' + b'\x00' * 2044, 'image/png')])

        assert len(results) == 1
        result = results[0]
        assert result.success
        assert result.media_type == 'image'
        assert storage.get_size('reunion/alice/photo.png') == 2048

        with db.session_scope() as session:
            item = session.get(MediaItem, result.object_id)
            node = session.get(CategoryNode, item.category_node_id)
            assert item.file_path == 'reunion/alice/photo.png'
            assert item.mime_type == 'image/png'
            assert node.normalized_label == 'alice'
            assert node.parent_id == album.root_node_id

            records = session.query(UploadRecord).all()
            assert len(records) == 1
            assert records[0].media_item_id == item.id
            assert records[0].session_id == 'session_alice'
            assert records[0].contributor_name == 'Alice'

    def test_failing_file_does_not_abort_siblings(self, db, coordinator, album, alice):
        coordinator.settings = replace(coordinator.settings, allowed_extensions=[])

        results = coordinator.process_submission(album, alice, [
            _incoming('a.jpg', b'a' * 10, 'image/jpeg'),
            _incoming('notes.txt', b'b' * 10, 'text/plain'),
            _incoming('c.mp4', b'c' * 10, 'video/mp4'),
        ])

        assert [r.success for r in results] == [True, False, True]
        assert results[1].error == 'Unsupported file type: text/plain'
        assert results[1].error_code == 'UNSUPPORTED_CONTENT_TYPE'
        assert results[2].media_type == 'video'
        assert _count(db, UploadRecord) == 2

    def test_disallowed_extension(self, coordinator, album, alice):
        result = coordinator.process_submission(
            album, alice, [_incoming('run.exe', b'MZ', 'application/octet-stream')])[0]

        assert not result.success
        assert result.error_code == 'INVALID_UPLOAD'

    def test_oversized_file(self, coordinator, album, alice):
        coordinator.settings = replace(coordinator.settings, max_file_size=10)

        result = coordinator.process_submission(
            album, alice, [_incoming('big.jpg', b'x' * 11, 'image/jpeg')])[0]

        assert not result.success
        assert result.error_code == 'INVALID_UPLOAD'

    def test_client_path_is_stripped(self, storage, coordinator, album, alice):
        result = coordinator.process_submission(
            album, alice, [_incoming('C:\\Users\\me\\Pictures\\a.jpg', b'x', 'image/jpeg')])[0]

        assert result.filename == 'a.jpg'
        assert storage.exists('reunion/alice/a.jpg')

    def test_duplicate_is_skipped(self, db, coordinator, album, alice):
        coordinator.process_submission(album, alice, [_incoming('a.jpg', b'x' * 100, 'image/jpeg')])
        result = coordinator.process_submission(
            album, alice, [_incoming('a.jpg', b'y' * 100, 'image/jpeg')])[0]

        assert not result.success
        assert result.is_duplicate
        assert result.error == 'This file already exists'
        assert _count(db, MediaItem) == 1

    def test_same_name_other_size_is_renamed(self, storage, coordinator, album, alice):
        coordinator.process_submission(album, alice, [_incoming('a.jpg', b'x' * 100, 'image/jpeg')])
        result = coordinator.process_submission(
            album, alice, [_incoming('a.jpg', b'y' * 101, 'image/jpeg')])[0]

        assert result.success
        assert result.filename == 'a_0.jpg'
        assert storage.get_size('reunion/alice/a_0.jpg') == 101

    def test_sub_label_directory_and_node(self, db, storage, coordinator, album, alice):
        result = coordinator.process_submission(
            album, alice, [_incoming('a.jpg', b'x', 'image/jpeg')], sub_label='Day One')[0]

        assert storage.exists('reunion/alice/day_one/a.jpg')
        with db.session_scope() as session:
            item = session.get(MediaItem, result.object_id)
            node = session.get(CategoryNode, item.category_node_id)
            assert node.normalized_label == 'day_one'
            assert node.parent.normalized_label == 'alice'
            record = session.query(UploadRecord).one()
            assert record.sub_label == 'Day One'

    def test_unorganized_album_skips_tree(self, db, coordinator, make_album, alice):
        album = make_album('Loose', 'loose', organize=False)

        result = coordinator.process_submission(
            album, alice, [_incoming('a.jpg', b'x', 'image/jpeg')])[0]

        assert result.success
        with db.session_scope() as session:
            assert session.get(MediaItem, result.object_id).category_node_id is None
        assert _count(db, CategoryNode, normalized_label='alice') == 0

    def test_authenticated_owner_is_recorded(self, db, coordinator, album):
        user = Contributor(name='Erin', session_id='user_7', owner_uid=7)
        result = coordinator.process_submission(
            album, user, [_incoming('a.jpg', b'x', 'image/jpeg')])[0]

        with db.session_scope() as session:
            assert session.get(MediaItem, result.object_id).owner_uid == 7
            assert session.query(UploadRecord).one().owner_uid == 7

    def test_provision_failure_discards_file(self, db, storage, coordinator, album, alice):
        coordinator.process_submission(album, alice, [_incoming('a.jpg', b'x', 'image/jpeg')])

        # Every lookup misses, so every insert hits the unique constraint
        coordinator.provisioner._find_node = lambda normalized, parent_id: None
        result = coordinator.process_submission(
            album, alice, [_incoming('b.jpg', b'x', 'image/jpeg')])[0]

        assert not result.success
        assert result.error_code == 'PROVISION_ERROR'
        assert not storage.exists('reunion/alice/b.jpg')
        assert _count(db, MediaItem) == 1

    def test_album_outside_storage_root_fails_per_file(self, storage, coordinator, album, alice):
        escaped = album.model_copy(update={'base_directory': '../outside'})

        results = coordinator.process_submission(escaped, alice, [
            _incoming('a.jpg', b'a' * 10, 'image/jpeg'),
            _incoming('b.jpg', b'b' * 10, 'image/jpeg'),
        ])

        assert [r.filename for r in results] == ['a.jpg', 'b.jpg']
        assert all(r.error_code == 'WRITE_ERROR' for r in results)
        assert not (storage.base_path.parent / 'outside').exists()

    def test_storage_failure_during_cleanup_is_contained(self, db, storage, coordinator,
                                                         album, alice):
        coordinator.settings = replace(coordinator.settings, max_file_size=5)

        with patch.object(storage, 'delete', side_effect=OSError('device busy')):
            results = coordinator.process_submission(album, alice, [
                IncomingFile('a.jpg', 'image/jpeg', io.BytesIO(b'a' * 10)),
                _incoming('b.jpg', b'b', 'image/jpeg'),
            ])

        assert results[0].error_code == 'INVALID_UPLOAD'
        assert results[1].success
        assert _count(db, MediaItem) == 1


class TestTrackingFailure:

    def test_rollback_policy(self, db, storage, coordinator, album, alice):
        with patch.object(coordinator.recorder, 'record',
                          side_effect=TrackingError("Failed to record upload ownership")):
            result = coordinator.process_submission(
                album, alice, [_incoming('a.jpg', b'x' * 10, 'image/jpeg')])[0]

        assert not result.success
        assert result.error_code == 'TRACKING_ERROR'
        assert not storage.exists('reunion/alice/a.jpg')
        assert _count(db, MediaItem) == 0

    def test_rollback_survives_broken_database(self, db, storage, coordinator, album, alice):
        broken = Mock(spec=DatabaseManager)
        broken.session_scope.side_effect = OperationalError(
            'DELETE FROM media_items', {}, Exception('database is locked'))

        def lose_database(*args, **kwargs):
            coordinator.writer.db = broken
            raise TrackingError("Failed to record upload ownership")

        with patch.object(coordinator.recorder, 'record', side_effect=lose_database):
            results = coordinator.process_submission(album, alice, [
                _incoming('a.jpg', b'a' * 10, 'image/jpeg'),
                _incoming('b.jpg', b'b' * 10, 'image/jpeg'),
            ])

        assert [r.filename for r in results] == ['a.jpg', 'b.jpg']
        assert results[0].error_code == 'TRACKING_ERROR'
        assert results[1].error_code == 'WRITE_ERROR'
        assert not storage.exists('reunion/alice/a.jpg')
        assert not storage.exists('reunion/alice/b.jpg')

    def test_keep_policy(self, db, storage, coordinator, album, alice):
        coordinator.settings = replace(coordinator.settings, tracking_failure_policy='keep')

        with patch.object(coordinator.recorder, 'record',
                          side_effect=TrackingError("Failed to record upload ownership")):
            result = coordinator.process_submission(
                album, alice, [_incoming('a.jpg', b'x' * 10, 'image/jpeg')])[0]

        assert result.success
        assert result.error_code == 'TRACKING_ERROR'
        assert result.error
        assert storage.exists('reunion/alice/a.jpg')
        assert _count(db, MediaItem) == 1
        assert _count(db, UploadRecord) == 0

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            PipelineSettings(tracking_failure_policy='ignore')


class TestFoldersAndProbe:

    def test_create_and_list_folders(self, db, coordinator, album):
        created = coordinator.create_folder(album, 'Alice', 'Day 1')

        assert created['success']
        assert created['safe_folder_name'] == 'day_1'
        assert created['node_id'] is not None
        assert coordinator.list_folders(album, 'Alice') == [{'safe_name': 'day_1', 'name': 'day_1'}]
        assert coordinator.list_folders(album, 'Bob') == []

    def test_check_duplicate(self, coordinator, album, alice):
        coordinator.process_submission(album, alice, [_incoming('a.jpg', b'x' * 100, 'image/jpeg')])

        assert coordinator.check_duplicate(album, 'Alice', 'a.jpg', 100).is_duplicate
        assert not coordinator.check_duplicate(album, 'Alice', 'a.jpg', 99).is_duplicate
        assert not coordinator.check_duplicate(album, 'Bob', 'a.jpg', 100).is_duplicate


class TestFlushNotifications:

    def test_one_notification_per_batch(self, coordinator, notifier, album, alice):
        coordinator.process_submission(album, alice, [
            _incoming('a.jpg', b'a', 'image/jpeg'),
            _incoming('b.jpg', b'b', 'image/jpeg'),
        ])

        assert coordinator.flush_notifications(album, alice) == 2
        notifier.notify_upload_batch.assert_called_once()
        name, _, files = notifier.notify_upload_batch.call_args[0]
        assert name == 'Alice'
        assert [f['name'] for f in files] == ['a.jpg', 'b.jpg']

    def test_uploads_outside_window_are_excluded(self, db, coordinator, notifier, album, alice):
        coordinator.process_submission(album, alice, [
            _incoming('old.jpg', b'a', 'image/jpeg'),
            _incoming('new.jpg', b'b', 'image/jpeg'),
        ])
        window = coordinator.settings.notification_window
        with db.session_scope() as session:
            old = (session.query(UploadRecord)
                   .join(MediaItem, MediaItem.id == UploadRecord.media_item_id)
                   .filter(MediaItem.name == 'old.jpg').one())
            old.created_at = utcnow() - timedelta(seconds=window + 30)

        assert coordinator.flush_notifications(album, alice) == 1
        _, _, files = notifier.notify_upload_batch.call_args[0]
        assert [f['name'] for f in files] == ['new.jpg']

    def test_other_contributors_are_not_included(self, coordinator, notifier, album, alice):
        coordinator.process_submission(album, alice, [_incoming('a.jpg', b'a', 'image/jpeg')])

        bob = Contributor(name='Bob', session_id='session_bob')
        assert coordinator.flush_notifications(album, bob) == 0
        notifier.notify_upload_batch.assert_not_called()

    def test_disabled(self, coordinator, notifier, album, alice):
        coordinator.settings = replace(coordinator.settings, notifications_enabled=False)
        coordinator.process_submission(album, alice, [_incoming('a.jpg', b'a', 'image/jpeg')])

        assert coordinator.flush_notifications(album, alice) == 0
        notifier.notify_upload_batch.assert_not_called()

    def test_nothing_sent(self, coordinator, notifier, album, alice):
        notifier.notify_upload_batch.return_value = False
        coordinator.process_submission(album, alice, [_incoming('a.jpg', b'a', 'image/jpeg')])

        assert coordinator.flush_notifications(album, alice) == 0
