"""
Bunny CDN storage integration

Generated media (images, videos, TTS audio) is copied from the provider's
temporary URLs into our Bunny storage zone and served from the pull zone.

Storage API:
- PUT    https://{host}/{zone}/{path}   upload (AccessKey header)
- DELETE https://{host}/{zone}/{path}   delete

Mock mode returns deterministic URLs without network access.
"""
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass

import httpx

from app.api.errors import AppError
from app.core.config import settings

logger = logging.getLogger(__name__)

_CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mp3": "audio/mpeg",
}


@dataclass(frozen=True)
class CdnObject:
    path: str  # path inside the storage zone, e.g. "images/123/1700000000_ab12cd.png"
    cdn_url: str  # public URL


def build_path(folder: str, ext: str, owner: int | str | None = None) -> str:
    """Unique object path: {folder}/{owner}/{ts}_{rand}.{ext}"""
    ts = int(time.time() * 1000)
    rand = secrets.token_hex(4)
    prefix = f"{folder}/{owner}" if owner is not None else folder
    return f"{prefix}/{ts}_{rand}.{ext}"


def guess_extension(url: str, default: str) -> str:
    tail = url.split("?", 1)[0].rsplit("/", 1)[-1]
    if "." in tail:
        ext = tail.rsplit(".", 1)[-1].lower()
        if ext in _CONTENT_TYPES:
            return ext
    return default


class BunnyCdnClient:
    """
    Bunny storage client

    All failures surface as AppError 502301-502304 so callers can decide
    whether an upload failure is fatal.
    """

    def __init__(self) -> None:
        self._mock = settings.CDN_MOCK
        self._api_key = settings.BUNNY_API_KEY
        self._zone = settings.BUNNY_STORAGE_ZONE
        self._host = settings.BUNNY_STORAGE_HOST
        self._public_base = settings.BUNNY_CDN_URL.rstrip("/")

    def public_url(self, path: str) -> str:
        return f"{self._public_base}/{path.lstrip('/')}"

    def _storage_url(self, path: str) -> str:
        return f"https://{self._host}/{self._zone}/{path.lstrip('/')}"

    def _headers(self, content_type: str | None = None) -> dict[str, str]:
        if not self._api_key:
            raise AppError(code=500301, message="BUNNY_API_KEY not configured", status_code=500)
        headers = {"AccessKey": self._api_key}
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def upload_bytes(self, *, data: bytes, path: str, content_type: str | None = None) -> CdnObject:
        """
        Upload raw bytes

        Args:
            data: file contents
            path: object path inside the storage zone
            content_type: MIME type, guessed from the extension when omitted

        Returns:
            CdnObject: stored path and public URL

        Raises:
            AppError: 502301 when the storage API rejects the upload
        """
        if self._mock:
            return CdnObject(path=path, cdn_url=self.public_url(path))

        if content_type is None:
            content_type = _CONTENT_TYPES.get(path.rsplit(".", 1)[-1].lower(), "application/octet-stream")
        try:
            with httpx.Client(timeout=60) as client:
                r = client.put(self._storage_url(path), content=data, headers=self._headers(content_type))
                r.raise_for_status()
        except httpx.HTTPError as e:
            raise AppError(code=502301, message=f"CDN upload failed: {e}", status_code=502)
        return CdnObject(path=path, cdn_url=self.public_url(path))

    def upload_from_url(self, *, url: str, folder: str, owner: int | str | None = None,
                        default_ext: str = "png", retries: int = 3) -> CdnObject:
        """
        Copy a remote file into the storage zone

        Downloads the source and uploads it, retrying the whole copy up to
        `retries` times with a linear backoff.

        Raises:
            AppError: 502302 when every attempt failed
        """
        ext = guess_extension(url, default_ext)
        path = build_path(folder, ext, owner)
        if self._mock:
            return CdnObject(path=path, cdn_url=self.public_url(path))

        last_error: Exception | None = None
        for attempt in range(1, retries + 1):
            try:
                with httpx.Client(timeout=60, follow_redirects=True) as client:
                    src = client.get(url)
                    src.raise_for_status()
                    content = src.content
                return self.upload_bytes(data=content, path=path)
            except (httpx.HTTPError, AppError) as e:
                last_error = e
                logger.warning("CDN copy attempt %s/%s failed for %s: %s", attempt, retries, url, e)
                if attempt < retries:
                    time.sleep(attempt)
        raise AppError(code=502302, message=f"CDN copy failed: {last_error}", status_code=502)

    def delete_file(self, *, path: str) -> None:
        """
        Delete an object; a missing object is not an error

        Raises:
            AppError: 502303 on any other storage API failure
        """
        if self._mock:
            return
        try:
            with httpx.Client(timeout=30) as client:
                r = client.delete(self._storage_url(path), headers=self._headers())
                if r.status_code == 404:
                    return
                r.raise_for_status()
        except httpx.HTTPError as e:
            raise AppError(code=502303, message=f"CDN delete failed: {e}", status_code=502)


cdn_client = BunnyCdnClient()
