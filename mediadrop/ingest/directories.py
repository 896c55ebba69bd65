"""
Category tree provisioning.

Resolves the node a contributor's upload is filed under, creating it on
first use. Lookups and inserts run in their own short transactions; two
requests racing to create the same node are settled by the unique
constraint on (tree_id, parent_key, normalized_label): the loser rolls back
and re-reads the winner's row.
"""

import logging
from typing import Optional, Dict, Any

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from .album_settings import AlbumSettings
from ..db.connection import DatabaseManager
from ..db.models import Album, CategoryNode, MediaItem
from ..errors import ProvisionConflict, ProvisionError
from ..utils.naming import normalize_label

logger = logging.getLogger(__name__)


class DirectoryProvisioner:
    """Idempotent get-or-create over the category tree"""

    def __init__(self, db: DatabaseManager, tree_id: Optional[str],
                 enabled: bool = True, max_attempts: int = 3):
        self.db = db
        self.tree_id = tree_id
        self.enabled = enabled
        self.max_attempts = max(1, max_attempts)

    @classmethod
    def from_config(cls, db: DatabaseManager, config: Dict[str, Any]) -> 'DirectoryProvisioner':
        dir_config = config.get('directories', {})
        return cls(
            db,
            tree_id=dir_config.get('tree_id'),
            enabled=dir_config.get('enabled', True),
            max_attempts=dir_config.get('max_attempts', 3),
        )

    @property
    def is_enabled(self) -> bool:
        return bool(self.enabled and self.tree_id)

    def ensure_directory_node(self, album: AlbumSettings, contributor_label: str,
                              sub_label: Optional[str] = None) -> Optional[int]:
        """
        Resolve the node for ``contributor_label`` (and ``sub_label`` below it).

        The contributor node hangs under the album's root node, or at the top
        of the tree when the album has none.

        Returns:
            The deepest node id, or None when the tree is not configured

        Raises:
            ProvisionConflict: Creation kept conflicting for ``max_attempts``
        """
        if not self.is_enabled:
            return None

        node_id = self.get_or_create_node(contributor_label, album.root_node_id)
        if sub_label and sub_label.strip():
            node_id = self.get_or_create_node(sub_label, node_id)
        return node_id

    def get_or_create_node(self, label: str, parent_id: Optional[int]) -> int:
        normalized = normalize_label(label)
        if not label.strip():
            raise ProvisionError("Cannot create a directory for an empty label")

        for attempt in range(1, self.max_attempts + 1):
            node_id = self._find_node(normalized, parent_id)
            if node_id is not None:
                return node_id

            try:
                return self._create_node(label.strip(), normalized, parent_id)
            except IntegrityError:
                logger.info(f"Concurrent creation of '{normalized}' under {parent_id} "
                            f"(attempt {attempt}/{self.max_attempts}), re-reading")

        raise ProvisionConflict(self.tree_id, label, parent_id)

    def _find_node(self, normalized: str, parent_id: Optional[int]) -> Optional[int]:
        with self.db.session_scope() as session:
            return (session.query(CategoryNode.id)
                    .filter(CategoryNode.tree_id == self.tree_id,
                            CategoryNode.parent_key == (parent_id or 0),
                            CategoryNode.normalized_label == normalized)
                    .scalar())

    def _create_node(self, label: str, normalized: str, parent_id: Optional[int]) -> int:
        with self.db.session_scope() as session:
            node = CategoryNode(
                tree_id=self.tree_id,
                label=label,
                normalized_label=normalized,
                parent_id=parent_id,
                parent_key=parent_id or 0,
            )
            session.add(node)
            session.flush()
            node_id = node.id

        logger.info(f"Created category node '{label}' (id {node_id}) under {parent_id}")
        return node_id

    def ensure_album_root(self, album_id: int) -> Optional[int]:
        """
        Give the album a top-level node named after it, if it has none.

        Returns:
            The album's root node id, or None when the tree is not configured
        """
        if not self.is_enabled:
            return None

        with self.db.session_scope() as session:
            album = session.get(Album, album_id)
            if album is None:
                raise ValueError(f"Album {album_id} not found")
            if album.root_node_id is not None:
                return album.root_node_id
            name = album.name

        node_id = self.get_or_create_node(name, None)
        with self.db.session_scope() as session:
            album = session.get(Album, album_id)
            if album.root_node_id is None:
                album.root_node_id = node_id
            node_id = album.root_node_id
        return node_id

    def prune_empty_nodes(self) -> int:
        """
        Delete leaf nodes that hold no media and are no album's root.

        Repeats until a pass deletes nothing, so emptied branches go too.

        Returns:
            Number of nodes deleted
        """
        if not self.tree_id:
            return 0

        deleted = 0
        child = aliased(CategoryNode)
        while True:
            with self.db.session_scope() as session:
                empty = (session.query(CategoryNode)
                         .filter(CategoryNode.tree_id == self.tree_id)
                         .filter(~exists().where(child.parent_id == CategoryNode.id))
                         .filter(~exists().where(MediaItem.category_node_id == CategoryNode.id))
                         .filter(~exists().where(Album.root_node_id == CategoryNode.id))
                         .all())
                for node in empty:
                    session.delete(node)
                count = len(empty)

            if not count:
                break
            deleted += count

        logger.info(f"Pruned {deleted} empty category nodes from {self.tree_id}")
        return deleted
