"""
Tests for category tree provisioning.
"""

import threading

import pytest

from mediadrop.db import CategoryNode, MediaItem
from mediadrop.errors import ProvisionConflict, ProvisionError
from mediadrop.ingest import DirectoryProvisioner


def _nodes(db, **filters):
    with db.session_scope() as session:
        return session.query(CategoryNode).filter_by(**filters).all()


class TestGetOrCreate:

    def test_creates_once(self, db, provisioner):
        first = provisioner.get_or_create_node('alice', None)
        second = provisioner.get_or_create_node('alice', None)

        assert first == second
        assert len(_nodes(db, normalized_label='alice')) == 1

    def test_labels_compare_normalized(self, db, provisioner):
        first = provisioner.get_or_create_node('Alice Smith', None)
        second = provisioner.get_or_create_node('alice smith', None)

        assert first == second
        node = _nodes(db, id=first)[0]
        assert node.normalized_label == 'alice_smith'
        assert node.label == 'Alice Smith'

    def test_same_label_under_different_parents(self, provisioner):
        parent_a = provisioner.get_or_create_node('a', None)
        parent_b = provisioner.get_or_create_node('b', None)

        assert (provisioner.get_or_create_node('day1', parent_a)
                != provisioner.get_or_create_node('day1', parent_b))

    def test_empty_label_rejected(self, provisioner):
        with pytest.raises(ProvisionError):
            provisioner.get_or_create_node('   ', None)

    def test_lost_race_rereads_winner(self, db, provisioner):
        """A create that hits the unique constraint returns the existing node"""
        winner = provisioner.get_or_create_node('bob', None)

        original = provisioner._find_node
        calls = []

        def stale_find(normalized, parent_id):
            calls.append(normalized)
            if len(calls) == 1:
                return None
            return original(normalized, parent_id)

        provisioner._find_node = stale_find
        assert provisioner.get_or_create_node('bob', None) == winner
        assert len(calls) == 2
        assert len(_nodes(db, normalized_label='bob')) == 1

    def test_conflict_after_retry_budget(self, db):
        provisioner = DirectoryProvisioner(db, 'media_directories', max_attempts=2)
        provisioner.get_or_create_node('carol', None)
        provisioner._find_node = lambda normalized, parent_id: None

        with pytest.raises(ProvisionConflict):
            provisioner.get_or_create_node('carol', None)

    def test_concurrent_creation_yields_one_node(self, db):
        provisioner = DirectoryProvisioner(db, 'media_directories', max_attempts=5)
        workers = 6
        barrier = threading.Barrier(workers)
        results, errors = [], []

        def worker():
            barrier.wait()
            try:
                results.append(provisioner.get_or_create_node('Dave', None))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(set(results)) == 1
        assert len(_nodes(db, normalized_label='dave')) == 1


class TestEnsureDirectoryNode:

    def test_contributor_under_album_root(self, db, provisioner, album):
        node_id = provisioner.ensure_directory_node(album, 'alice')

        node = _nodes(db, id=node_id)[0]
        assert node.parent_id == album.root_node_id
        assert node.tree_id == 'media_directories'

    def test_sub_label_under_contributor(self, db, provisioner, album):
        contributor_id = provisioner.ensure_directory_node(album, 'alice')
        sub_id = provisioner.ensure_directory_node(album, 'alice', 'ceremony')

        assert sub_id != contributor_id
        assert _nodes(db, id=sub_id)[0].parent_id == contributor_id

    def test_blank_sub_label_is_ignored(self, provisioner, album):
        assert (provisioner.ensure_directory_node(album, 'alice', '  ')
                == provisioner.ensure_directory_node(album, 'alice'))

    def test_disabled_tree(self, db, album):
        assert DirectoryProvisioner(db, 'media_directories', enabled=False) \
            .ensure_directory_node(album, 'alice') is None
        assert DirectoryProvisioner(db, None).ensure_directory_node(album, 'alice') is None

    def test_from_config(self, db):
        provisioner = DirectoryProvisioner.from_config(
            db, {'directories': {'tree_id': 'other', 'max_attempts': 0}})
        assert provisioner.tree_id == 'other'
        assert provisioner.max_attempts == 1
        assert provisioner.is_enabled


class TestAlbumRoot:

    def test_root_named_after_album(self, db, album):
        root = _nodes(db, id=album.root_node_id)[0]
        assert root.parent_id is None
        assert root.normalized_label == 'family_reunion'

    def test_root_is_stable(self, provisioner, album):
        assert provisioner.ensure_album_root(album.id) == album.root_node_id

    def test_unknown_album(self, provisioner):
        with pytest.raises(ValueError):
            provisioner.ensure_album_root(9999)


class TestPrune:

    def test_removes_empty_branches_only(self, db, provisioner, album):
        used = provisioner.ensure_directory_node(album, 'alice', 'day1')
        provisioner.ensure_directory_node(album, 'bob', 'day2')

        with db.session_scope() as session:
            session.add(MediaItem(album_id=album.id, name='a.jpg', media_type='image',
                                  mime_type='image/jpeg', file_path='reunion/alice/day1/a.jpg',
                                  file_size=10, category_node_id=used))

        assert provisioner.prune_empty_nodes() == 2

        labels = {node.normalized_label for node in _nodes(db)}
        assert labels == {'family_reunion', 'alice', 'day1'}

    def test_album_root_is_kept(self, db, provisioner, album):
        assert provisioner.prune_empty_nodes() == 0
        assert _nodes(db, id=album.root_node_id)
