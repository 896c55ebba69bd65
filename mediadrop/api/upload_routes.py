"""
Upload API Routes for MediaDrop

Token-addressed endpoints used by the drop page: multi-file upload,
contributor folders, duplicate probing, batch notification and the
caller's own uploads.
"""

import io
import logging
import os
from typing import Any, BinaryIO, Dict, List, Optional

from flask import Blueprint, request, jsonify, current_app, send_file, url_for, abort

from .auth import UserSession
from ..errors import ContributorRequired, Forbidden, InvalidRequest, NoFilesProvided
from ..ingest import AlbumSettings, Contributor, IncomingFile, UploadResult
from ..storage import StorageNotFoundError

logger = logging.getLogger(__name__)

upload_api = Blueprint('upload_api', __name__, url_prefix='/albums')


def _resolve_album(token: str) -> AlbumSettings:
    album = current_app.albums.resolve_active(token)
    return AlbumSettings.from_album(album)


def _contributor_name(user: UserSession, supplied: Optional[str]) -> str:
    """Name shown for the contributor; anonymous callers must supply one."""
    name = (supplied or '').strip()
    if name:
        return name
    if user.is_authenticated:
        return user.username or user.session_id
    if current_app.mediadrop_config['uploads'].get('require_contributor_name', True):
        raise ContributorRequired("Please enter your name")
    return 'anonymous'


def _contributor(user: UserSession, supplied: Optional[str]) -> Contributor:
    return Contributor(
        name=_contributor_name(user, supplied),
        session_id=user.session_id,
        owner_uid=user.user_id,
    )


def _owner(user: UserSession) -> Contributor:
    """Ownership scope of the caller, for reading and deleting uploads."""
    return Contributor(name=user.username or '', session_id=user.session_id,
                       owner_uid=user.user_id)


def _stream_size(stream: BinaryIO) -> Optional[int]:
    """Byte length of a seekable upload stream, None if it cannot be measured."""
    try:
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(0)
    except (OSError, ValueError, AttributeError):
        return None
    return size


def _thumbnail_url(token: str, media_id: int) -> str:
    return url_for('upload_api.media_thumbnail', token=token, media_id=media_id)


def _result_dict(token: str, result: UploadResult) -> Dict[str, Any]:
    thumbnail_url = None
    if result.has_thumbnail and result.object_id is not None:
        thumbnail_url = _thumbnail_url(token, result.object_id)
    return result.to_dict(thumbnail_url=thumbnail_url)


@upload_api.route('/<token>/upload', methods=['POST'])
def upload(token: str):
    """
    Upload one or more files

    Form fields: ``file`` (repeated), ``contributor_name``, ``sub_label``.
    Responds 200 with one result per file even when some files fail.
    """
    album = _resolve_album(token)
    user = current_app.auth.require('upload')
    contributor = _contributor(user, request.form.get('contributor_name'))

    parts = request.files.getlist('file') or request.files.getlist('files[]')
    parts = [part for part in parts if part and part.filename]
    if not parts:
        raise NoFilesProvided("No files were uploaded")

    files: List[IncomingFile] = [
        IncomingFile(
            filename=part.filename,
            content_type=part.content_type,
            stream=part.stream,
            size=_stream_size(part.stream),
        )
        for part in parts
    ]

    results = current_app.coordinator.process_submission(
        album, contributor, files, sub_label=request.form.get('sub_label') or None)

    return jsonify({'results': [_result_dict(token, result) for result in results]})


@upload_api.route('/<token>/folders', methods=['GET'])
def list_folders(token: str):
    """List the caller's sub-folders as they exist on disk"""
    album = _resolve_album(token)
    user = current_app.auth.identify()

    name = (request.args.get('contributor_name') or '').strip()
    if not name and user.is_authenticated:
        name = user.username or user.session_id
    if not name:
        return jsonify({'folders': []})

    return jsonify({'folders': current_app.coordinator.list_folders(album, name)})


@upload_api.route('/<token>/folders', methods=['POST'])
def create_folder(token: str):
    """Create a sub-folder for the caller"""
    album = _resolve_album(token)
    user = current_app.auth.require('create_folder')

    folder_name = (request.form.get('folder_name') or '').strip()
    if not folder_name:
        raise InvalidRequest("Folder name is required")
    name = _contributor_name(user, request.form.get('contributor_name'))

    return jsonify(current_app.coordinator.create_folder(album, name, folder_name))


@upload_api.route('/<token>/notify', methods=['POST'])
def notify(token: str):
    """Flush the batch notification once the client's queue is empty"""
    album = _resolve_album(token)
    user = current_app.auth.identify()
    contributor = _contributor(user, request.form.get('contributor_name'))

    notified = current_app.coordinator.flush_notifications(album, contributor)
    return jsonify({'success': True, 'notified': notified})


@upload_api.route('/<token>/check-duplicate', methods=['POST'])
def check_duplicate(token: str):
    """Probe for an existing file with the same name and size before uploading"""
    album = _resolve_album(token)
    user = current_app.auth.identify()

    filename = (request.form.get('filename') or '').strip()
    if not filename:
        raise InvalidRequest("Filename is required")
    try:
        file_size = int(request.form.get('file_size', ''))
    except ValueError:
        raise InvalidRequest("file_size must be an integer")

    name = _contributor_name(user, request.form.get('contributor_name'))
    check = current_app.coordinator.check_duplicate(
        album, name, filename, file_size, sub_label=request.form.get('sub_label') or None)

    response = {'exists': check.is_duplicate}
    if check.is_duplicate:
        response['message'] = "This file already exists"
    return jsonify(response)


@upload_api.route('/<token>/media', methods=['GET'])
def list_media(token: str):
    """The caller's own uploads to the album"""
    album = _resolve_album(token)
    user = current_app.auth.require('view_own')
    contributor = _owner(user)

    media = current_app.recorder.list_for_owner(album.id, contributor)
    for item in media:
        if item.pop('has_thumbnail'):
            item['thumbnail_url'] = _thumbnail_url(token, item['id'])

    return jsonify({'media': media, 'total_count': len(media)})


@upload_api.route('/<token>/media/<int:media_id>', methods=['DELETE'])
def delete_media(token: str, media_id: int):
    """Delete one of the caller's uploads"""
    album = _resolve_album(token)
    user = current_app.auth.require('delete_own')
    contributor = _owner(user)

    if not current_app.recorder.delete_owned(album.id, contributor, media_id):
        raise Forbidden("You can only delete your own uploads")

    return jsonify({'success': True})


@upload_api.route('/<token>/media/<int:media_id>/thumbnail', methods=['GET'])
def media_thumbnail(token: str, media_id: int):
    """JPEG thumbnail of one of the caller's uploads"""
    album = _resolve_album(token)
    user = current_app.auth.require('view_own')
    contributor = _owner(user)

    item = current_app.recorder.find_owned(album.id, contributor, media_id)
    if item is None or not item.thumbnail_path:
        abort(404)

    try:
        data = current_app.storage.load_data(item.thumbnail_path)
    except StorageNotFoundError:
        abort(404)

    return send_file(
        io.BytesIO(data),
        mimetype='image/jpeg',
        download_name=f"thumbnail_{media_id}.jpg",
    )
