"""
Binary object store for photos.

LocalObjectStore writes below <root>/<bucket>/ and hands back URLs under the
public base URL; the application mounts the root as static files so those URLs
resolve.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath

from reefscan.core.exceptions import ObjectStoreError


logger = logging.getLogger(__name__)


class ObjectStore(ABC):
    """Upload/delete contract for photo bytes."""

    @abstractmethod
    def upload(self, data: bytes, path: str, content_type: str) -> str:
        """
        Store bytes at path.

        Returns:
            Public URL of the stored object

        Raises:
            ObjectStoreError: The upload failed
        """

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove an object. Missing objects are ignored."""


class LocalObjectStore(ObjectStore):
    """Filesystem-backed object store."""

    def __init__(self, root: str | Path, bucket: str, public_base_url: str):
        self.root = Path(root)
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip('/')

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or '..' in relative.parts:
            raise ObjectStoreError(path, 'path must be relative and stay inside the bucket')
        return self.root / self.bucket / relative

    def upload(self, data: bytes, path: str, content_type: str) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise ObjectStoreError(path, str(e)) from e

        logger.debug(f'Stored {len(data)} bytes ({content_type}) at {target}')
        return f'{self.public_base_url}/{self.bucket}/{path}'

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise ObjectStoreError(path, str(e)) from e
