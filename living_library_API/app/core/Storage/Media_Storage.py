# Media_Storage.py
# Description: Filesystem-backed media bucket with signed upload URLs and public object URLs.
#
# Imports
import os
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Union
from urllib.parse import quote, unquote, urlparse
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from living_library_API.app.core.config import API_V1_PREFIX
from living_library_API.app.core.exceptions import AuthenticationError, ErrorKind, NotFoundError, StorageError
from living_library_API.app.core.Security.Security import (
    create_upload_token,
    decode_upload_token,
    UploadTokenData,
)
#
########################################################################################################################
#
# Functions:


class MediaStorage:
    """
    A single storage bucket rooted at ``<root_dir>/<bucket>``.

    Object names are relative POSIX paths ("<user_id>/<file>"). Absolute paths and
    any ``..`` segment are rejected.
    """

    def __init__(self, root_dir: Union[str, Path], bucket: str, site_url: str):
        self.bucket = bucket
        self.site_url = site_url.rstrip("/")
        self.bucket_dir = (Path(root_dir) / bucket).resolve()
        self.bucket_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"MediaStorage bucket '{bucket}' at {self.bucket_dir}")

    # --- Paths & URLs ---
    def _resolve(self, object_path: str) -> Path:
        if not object_path or not object_path.strip():
            raise StorageError("Object path is required.", kind=ErrorKind.VALIDATION)
        posix = PurePosixPath(object_path)
        if posix.is_absolute() or ".." in posix.parts or "\\" in object_path:
            raise StorageError(f"Invalid object path: {object_path}", kind=ErrorKind.VALIDATION,
                               context={"path": object_path})
        full_path = (self.bucket_dir / Path(*posix.parts)).resolve()
        if self.bucket_dir not in full_path.parents:
            raise StorageError(f"Invalid object path: {object_path}", kind=ErrorKind.VALIDATION,
                               context={"path": object_path})
        return full_path

    def create_signed_upload_url(self, object_path: str, expires_in: int) -> str:
        self._resolve(object_path)
        token = create_upload_token(self.bucket, object_path, expires_in)
        return f"{self.site_url}{API_V1_PREFIX}/storage/upload/{token}"

    def verify_upload_token(self, token: str) -> UploadTokenData:
        data = decode_upload_token(token)
        if data is None or data.bucket != self.bucket:
            raise AuthenticationError("Invalid or expired upload token.")
        return data

    def get_public_url(self, object_path: str) -> str:
        return f"{self.site_url}{API_V1_PREFIX}/storage/object/{self.bucket}/{quote(object_path)}"

    def path_from_url(self, url: str) -> Optional[str]:
        """
        Object name for removal. Public URLs of this bucket map back to their full
        object path; any other URL yields its last path segment.
        """
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            raise StorageError(f"Invalid media URL: {url}", kind=ErrorKind.VALIDATION)
        marker = f"{API_V1_PREFIX}/storage/object/{self.bucket}/"
        if marker in parsed.path:
            return unquote(parsed.path.split(marker, 1)[1]) or None
        segment = parsed.path.rstrip("/").split("/")[-1]
        return unquote(segment) or None

    # --- Objects ---
    def put_object(self, object_path: str, data: bytes, upsert: bool = False) -> Path:
        target = self._resolve(object_path)
        if target.exists() and not upsert:
            raise StorageError(f"Object already exists: {object_path}", kind=ErrorKind.CONFLICT,
                               context={"path": object_path})
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = target.with_name(target.name + ".part")
        try:
            with open(tmp_path, "wb") as fh:
                fh.write(data)
            os.replace(tmp_path, target)
        except OSError as e:
            logger.error(f"Failed to write object {object_path}: {e}")
            if tmp_path.exists():
                tmp_path.unlink()
            raise StorageError(f"Failed to store object: {object_path}", original_error=e) from e
        logger.info(f"Stored object {object_path} ({len(data)} bytes) in bucket '{self.bucket}'")
        return target

    def remove(self, object_paths: Iterable[str]) -> List[str]:
        """Removes objects; a missing or unremovable object raises StorageError."""
        removed = []
        for object_path in object_paths:
            target = self._resolve(object_path)
            if not target.is_file():
                raise StorageError(f"Object not found: {object_path}", kind=ErrorKind.NOT_FOUND,
                                   context={"path": object_path})
            try:
                target.unlink()
            except OSError as e:
                raise StorageError(f"Failed to remove object: {object_path}", original_error=e) from e
            removed.append(object_path)
            logger.debug(f"Removed object {object_path} from bucket '{self.bucket}'")
        return removed

    def object_file(self, object_path: str) -> Path:
        target = self._resolve(object_path)
        if not target.is_file():
            raise NotFoundError(f"Object not found: {object_path}", context={"path": object_path})
        return target

#
# End of Media_Storage.py
########################################################################################################################
