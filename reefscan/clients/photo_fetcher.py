"""
Remote photo fetcher.

Downloads a photo referenced by URL so it can go through the same pipeline as
an uploaded file. Every failure surfaces as an InputValidationError on
'photo_url': the caller supplied a URL we could not turn into image bytes.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

import requests

from reefscan.core.exceptions import InputValidationError


logger = logging.getLogger(__name__)

DEFAULT_FILENAME = 'downloaded_image.jpg'
ALLOWED_SCHEMES = ('http', 'https')


class PhotoFetcher(ABC):
    """Fetch contract for remote photos."""

    @abstractmethod
    def fetch(self, url: str) -> tuple[bytes, str]:
        """
        Download a photo.

        Returns:
            Tuple of (image bytes, filename)

        Raises:
            InputValidationError: The URL is unusable or the download failed
        """


def filename_from_url(url: str) -> str:
    """Last path segment of the URL, or the default name when there is none."""
    name = PurePosixPath(unquote(urlparse(url).path)).name
    return name or DEFAULT_FILENAME


class HttpPhotoFetcher(PhotoFetcher):
    """requests-based fetcher with a timeout and a size cap."""

    def __init__(self, timeout: float = 15.0, max_bytes: int = 10 * 1024 * 1024):
        self.timeout = timeout
        self.max_bytes = max_bytes

    def fetch(self, url: str) -> tuple[bytes, str]:
        if urlparse(url).scheme.lower() not in ALLOWED_SCHEMES:
            raise InputValidationError('photo_url', 'must be an http or https URL')

        try:
            with requests.get(url, timeout=self.timeout, stream=True) as response:
                if not response.ok:
                    raise InputValidationError(
                        'photo_url', f'download failed with HTTP {response.status_code}'
                    )
                data = self._read_capped(response)
        except requests.RequestException as e:
            logger.warning(f'Photo download from {url} failed: {e}')
            raise InputValidationError('photo_url', f'download failed: {e}') from e

        if not data:
            raise InputValidationError('photo_url', 'download returned an empty body')

        logger.debug(f'Fetched {len(data)} bytes from {url}')
        return data, filename_from_url(url)

    def _read_capped(self, response: requests.Response) -> bytes:
        chunks = []
        total = 0
        for chunk in response.iter_content(chunk_size=64 * 1024):
            total += len(chunk)
            if total > self.max_bytes:
                raise InputValidationError(
                    'photo_url', f'download exceeds maximum {self.max_bytes} bytes'
                )
            chunks.append(chunk)
        return b''.join(chunks)
