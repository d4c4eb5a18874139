"""File storage for message attachments and verification documents.

Uploads are streamed to disk in chunks. Message attachments go to
``upload_dir`` and are served publicly under ``/uploads/<filename>``.
Verification documents go to ``document_dir``, which is not mounted; the API
serves them under ``/api/verification-documents/<filename>`` to the owner
and admins only.
"""
import logging
import os
import secrets
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiofiles
from fastapi import UploadFile
from pydantic import BaseModel

from config import settings_conf

logger = logging.getLogger(__name__)

UPLOAD_DIR = settings_conf['upload_dir']
MAX_UPLOAD_BYTES = settings_conf['max_upload_bytes']
UPLOAD_URL_PREFIX = "/uploads"
DOCUMENT_DIR = settings_conf['document_dir']
DOCUMENT_URL_PREFIX = "/api/verification-documents"
CHUNK_SIZE = 64 * 1024

class UploadError(Exception):
    """Base class for upload errors."""
    pass

class UploadTooLargeError(UploadError):
    """Raised when an upload exceeds the configured size limit."""
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"File exceeds maximum upload size of {limit} bytes")

class StoredUpload(BaseModel):
    """A file saved under the upload directory."""
    url: str
    path: str
    original_name: str
    content_type: str
    size: int

def _safe_extension(filename: Optional[str]) -> str:
    suffix = Path(filename or "").suffix.lower()
    # Keep short alphanumeric extensions only
    if 1 < len(suffix) <= 10 and suffix[1:].isalnum():
        return suffix
    return ""

async def save_upload(
    file: UploadFile,
    prefix: str,
    upload_dir: Optional[str] = None,
    max_bytes: Optional[int] = None,
    url_prefix: Optional[str] = None
) -> StoredUpload:
    """Stream an upload to disk.

    Args:
        file: The uploaded file
        prefix: Filename prefix, e.g. ``message_12``
        upload_dir: Target directory (defaults to settings)
        max_bytes: Size limit (defaults to settings)
        url_prefix: Prefix of the returned URL (defaults to ``/uploads``)

    Raises:
        UploadTooLargeError: If the file is bigger than ``max_bytes``
        UploadError: If the file is empty or cannot be written
    """
    upload_dir = upload_dir or UPLOAD_DIR
    max_bytes = max_bytes if max_bytes is not None else MAX_UPLOAD_BYTES
    url_prefix = url_prefix or UPLOAD_URL_PREFIX

    os.makedirs(upload_dir, exist_ok=True)

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    filename = f"{prefix}_{timestamp}_{secrets.token_hex(4)}{_safe_extension(file.filename)}"
    file_path = os.path.join(upload_dir, filename)

    size = 0
    try:
        async with aiofiles.open(file_path, 'wb') as f:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise UploadTooLargeError(max_bytes)
                await f.write(chunk)
    except UploadError:
        _remove_quietly(file_path)
        raise
    except OSError as e:
        _remove_quietly(file_path)
        logger.error(f"Error writing upload {filename}: {e}")
        raise UploadError(f"Failed to store file: {str(e)}")

    if size == 0:
        _remove_quietly(file_path)
        raise UploadError("Uploaded file is empty")

    logger.info(f"Stored upload {filename} ({size} bytes)")
    return StoredUpload(
        url=f"{url_prefix}/{filename}",
        path=file_path,
        original_name=file.filename or filename,
        content_type=file.content_type or "application/octet-stream",
        size=size
    )

def _remove_quietly(path: str):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass

def delete_upload(url: str, upload_dir: Optional[str] = None):
    """Remove a stored file given its public URL."""
    upload_dir = upload_dir or UPLOAD_DIR
    filename = os.path.basename(url)
    _remove_quietly(os.path.join(upload_dir, filename))

def stored_path(filename: str, upload_dir: Optional[str] = None) -> Optional[str]:
    """Return the path of a stored file, or None if the name is unsafe or missing."""
    upload_dir = upload_dir or UPLOAD_DIR
    if not filename or os.path.basename(filename) != filename or filename in ('.', '..'):
        return None
    path = os.path.join(upload_dir, filename)
    return path if os.path.isfile(path) else None

__all__ = [
    'save_upload',
    'delete_upload',
    'stored_path',
    'StoredUpload',
    'UploadError',
    'UploadTooLargeError',
    'UPLOAD_URL_PREFIX',
    'DOCUMENT_DIR',
    'DOCUMENT_URL_PREFIX'
]
