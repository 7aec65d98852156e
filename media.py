"""
Image uploads to Cloudinary.

Uses the signed upload REST endpoint directly with ``requests``. The local
file is always removed once the upload has been attempted.
"""
import hashlib
import logging
import os
import time
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30  # seconds
UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud}/auto/upload"


class UploadError(Exception):
    pass


def sign_params(params: Dict[str, str], api_secret: str) -> str:
    payload = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
    return hashlib.sha1((payload + api_secret).encode()).hexdigest()


class MediaUploader:
    """Upload local files to a Cloudinary account.

    Args:
        cloud_name: Cloudinary cloud name.
        api_key:    API key.
        api_secret: API secret used to sign requests.
        timeout:    HTTP timeout in seconds.
    """

    def __init__(self, cloud_name: Optional[str], api_key: Optional[str], api_secret: Optional[str],
                 timeout: int = _DEFAULT_TIMEOUT, session: Optional[requests.Session] = None) -> None:
        self._cloud = cloud_name
        self._key = api_key
        self._secret = api_secret
        self._timeout = timeout
        self._http = session or requests.Session()

    @classmethod
    def from_settings(cls, settings) -> "MediaUploader":
        return cls(settings.cloudinary_cloud_name, settings.cloudinary_api_key, settings.cloudinary_api_secret)

    def upload(self, path: str, folder: str) -> str:
        """Upload ``path`` into ``folder`` and return its public URL.

        The local file is deleted whether or not the upload succeeds.

        Raises:
            UploadError: missing credentials, HTTP failure or a response
                without a URL.
        """
        try:
            return self._upload(path, folder)
        finally:
            remove_quietly(path)

    def _upload(self, path: str, folder: str) -> str:
        if not (self._cloud and self._key and self._secret):
            raise UploadError("Media host credentials are not configured")
        params = {"folder": folder, "timestamp": str(int(time.time()))}
        data = dict(params, api_key=self._key, signature=sign_params(params, self._secret))
        try:
            with open(path, "rb") as fh:
                resp = self._http.post(
                    UPLOAD_URL.format(cloud=self._cloud),
                    data=data,
                    files={"file": (os.path.basename(path), fh)},
                    timeout=self._timeout,
                )
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, OSError, ValueError) as e:
            raise UploadError(str(e)) from e
        if not isinstance(body, dict):
            raise UploadError(f"Unexpected upload response: {body!r}")
        url = body.get("secure_url") or body.get("url")
        if not url:
            raise UploadError(f"Upload response has no URL: {body}")
        return url


def remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove temporary file %s: %s", path, e)
