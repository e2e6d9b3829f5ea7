"""
Google Drive Object Storage
Path-addressed storage for KYC documents, contract templates and generated
contracts (the "kyc-documents" bucket).

Each path segment maps to a Drive folder below a root folder. In demo mode
objects are written to a local directory instead.
"""

import os
import logging
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Iterable

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from .google_auth import load_credentials, demo_mode_enabled

logger = logging.getLogger(__name__)

# Root folder holding the bucket in Drive
ROOT_FOLDER_NAME = os.environ.get('DRIVE_ROOT_FOLDER', 'kyc-documents')

# Local storage directory for demo mode
LOCAL_STORAGE_DIR = os.environ.get('LOCAL_STORAGE_DIR', os.path.join(os.getcwd(), 'storage'))

FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'


class StorageError(Exception):
    """Object storage failure"""
    pass


class ObjectNotFoundError(StorageError):
    """No object stored at the requested path"""
    pass


def normalize_path(path: str) -> str:
    """Strip leading slashes and reject empty or parent-relative segments"""
    if not path:
        raise StorageError("Empty storage path")
    parts = [p for p in path.replace('\\', '/').split('/') if p not in ('', '.')]
    if not parts or '..' in parts:
        raise StorageError(f"Invalid storage path: {path}")
    return '/'.join(parts)


def _quote(name: str) -> str:
    """Escape a name for a Drive query string literal"""
    return name.replace('\\', '\\\\').replace("'", "\\'")


class DriveStorage:
    """Object store backed by Google Drive (or a local folder in demo mode)"""

    def __init__(self, demo_mode: Optional[bool] = None, local_dir: Optional[str] = None):
        self.local_dir = Path(local_dir or LOCAL_STORAGE_DIR)
        self.service = None
        self._folder_cache: Dict[str, str] = {}
        self.demo_mode = True

        if demo_mode is None:
            demo_mode = demo_mode_enabled()
        if demo_mode:
            logger.info(f"Drive storage running in DEMO MODE - objects stored under {self.local_dir}")
            return

        creds = load_credentials()
        if not creds:
            logger.info("Drive storage running in DEMO MODE - no credentials configured")
            return

        try:
            self.service = build('drive', 'v3', credentials=creds)
            self.demo_mode = False
            logger.info("Google Drive storage initialized successfully")
        except Exception as e:
            logger.error(f"Failed to build Drive service: {e}")
            logger.info("Drive storage falling back to DEMO MODE")

    # ========== Drive lookups ==========

    def _find_child(self, name: str, parent_id: Optional[str], folder: bool) -> Optional[str]:
        """ID of a named file or folder inside a parent, or None"""
        query = f"name='{_quote(name)}' and trashed=false"
        if folder:
            query += f" and mimeType='{FOLDER_MIME_TYPE}'"
        else:
            query += f" and mimeType!='{FOLDER_MIME_TYPE}'"
        # Top-level lookups stay in My Drive's root, not anywhere in the account
        query += f" and '{parent_id or 'root'}' in parents"

        results = self.service.files().list(
            q=query,
            spaces='drive',
            fields='files(id, name)'
        ).execute()
        files = results.get('files', [])
        return files[0]['id'] if files else None

    def _folder_id(self, segments: List[str], create: bool) -> Optional[str]:
        """Resolve (and optionally create) the folder chain below the root"""
        parent_id = None
        chain = [ROOT_FOLDER_NAME] + segments

        for depth, name in enumerate(chain):
            cache_key = '/'.join(chain[:depth + 1])
            if cache_key in self._folder_cache:
                parent_id = self._folder_cache[cache_key]
                continue

            folder_id = self._find_child(name, parent_id, folder=True)
            if folder_id is None:
                if not create:
                    return None
                metadata = {'name': name, 'mimeType': FOLDER_MIME_TYPE}
                if parent_id:
                    metadata['parents'] = [parent_id]
                folder_id = self.service.files().create(body=metadata, fields='id').execute().get('id')
                logger.info(f"Created folder: {cache_key} ({folder_id})")

            self._folder_cache[cache_key] = folder_id
            parent_id = folder_id

        return parent_id

    def _file_id(self, path: str) -> Optional[str]:
        segments = path.split('/')
        folder_id = self._folder_id(segments[:-1], create=False)
        if folder_id is None:
            return None
        return self._find_child(segments[-1], folder_id, folder=False)

    # ========== Object operations ==========

    def exists(self, path: str) -> bool:
        """Check whether an object is stored at path"""
        path = normalize_path(path)
        if self.demo_mode:
            return (self.local_dir / path).is_file()
        try:
            return self._file_id(path) is not None
        except HttpError as e:
            raise StorageError(f"Error looking up {path}: {e}") from e

    def download(self, path: str) -> bytes:
        """Fetch the full content of an object"""
        return self.read_range(path, 0)

    def read_range(self, path: str, start: int, end: Optional[int] = None) -> bytes:
        """
        Read bytes start..end (inclusive) of an object.

        end=None reads to the end of the object.
        """
        path = normalize_path(path)
        if start < 0 or (end is not None and end < start):
            raise StorageError(f"Invalid byte range {start}-{end} for {path}")

        if self.demo_mode:
            local_path = self.local_dir / path
            if not local_path.is_file():
                raise ObjectNotFoundError(f"Object not found: {path}")
            with open(local_path, 'rb') as f:
                f.seek(start)
                if end is None:
                    return f.read()
                return f.read(end - start + 1)

        try:
            file_id = self._file_id(path)
            if file_id is None:
                raise ObjectNotFoundError(f"Object not found: {path}")
            request = self.service.files().get_media(fileId=file_id)
            if start or end is not None:
                request.headers['Range'] = f"bytes={start}-{'' if end is None else end}"
            return request.execute()
        except HttpError as e:
            if e.resp.status == 404:
                raise ObjectNotFoundError(f"Object not found: {path}") from e
            raise StorageError(f"Error downloading {path}: {e}") from e

    def upload(
        self,
        path: str,
        content: bytes,
        content_type: str = 'application/octet-stream',
        upsert: bool = True
    ) -> Dict[str, str]:
        """
        Write an object at path.

        With upsert an existing object is replaced, otherwise an existing
        object is an error.
        """
        path = normalize_path(path)

        if self.demo_mode:
            local_path = self.local_dir / path
            if local_path.exists() and not upsert:
                raise StorageError(f"Object already exists: {path}")
            try:
                local_path.parent.mkdir(parents=True, exist_ok=True)
                local_path.write_bytes(content)
            except OSError as e:
                raise StorageError(f"Error writing {path}: {e}") from e
            logger.info(f"[DEMO] Stored {path} ({len(content)} bytes)")
            return {'path': path, 'id': str(local_path)}

        segments = path.split('/')
        media = MediaIoBaseUpload(BytesIO(content), mimetype=content_type)
        try:
            folder_id = self._folder_id(segments[:-1], create=True)
            existing_id = self._find_child(segments[-1], folder_id, folder=False)

            if existing_id and not upsert:
                raise StorageError(f"Object already exists: {path}")

            if existing_id:
                file = self.service.files().update(
                    fileId=existing_id,
                    media_body=media,
                    fields='id'
                ).execute()
            else:
                file = self.service.files().create(
                    body={'name': segments[-1], 'parents': [folder_id]},
                    media_body=media,
                    fields='id'
                ).execute()
        except HttpError as e:
            raise StorageError(f"Error uploading {path}: {e}") from e

        logger.info(f"Uploaded {path} ({file.get('id')}, {len(content)} bytes)")
        return {'path': path, 'id': file.get('id')}

    def remove(self, paths: Iterable[str]) -> List[str]:
        """Delete objects; returns the paths that were actually removed"""
        removed = []
        for raw_path in paths:
            path = normalize_path(raw_path)

            if self.demo_mode:
                local_path = self.local_dir / path
                if not local_path.is_file():
                    continue
                try:
                    local_path.unlink()
                except OSError as e:
                    raise StorageError(f"Error deleting {path}: {e}") from e
                logger.info(f"[DEMO] Deleted {path}")
                removed.append(path)
                continue

            try:
                file_id = self._file_id(path)
                if file_id is None:
                    continue
                self.service.files().delete(fileId=file_id).execute()
            except HttpError as e:
                raise StorageError(f"Error deleting {path}: {e}") from e
            logger.info(f"Deleted {path} ({file_id})")
            removed.append(path)

        return removed


# Singleton instance
_client: Optional[DriveStorage] = None


def get_client() -> DriveStorage:
    """Get or create the shared storage client"""
    global _client
    if _client is None:
        _client = DriveStorage()
    return _client


def reset_client(client: Optional[DriveStorage] = None):
    """Replace the shared client (None forces a fresh one on next use)"""
    global _client
    _client = client
