"""
Artifact Store - downloads source media to scratch and persists results.

Two backends share the download path (HTTP(S) via httpx, ``s3://`` via boto3,
``file://`` and plain local paths under ``local_source_root`` when it is set):

- ``S3ArtifactStore`` uploads results to a bucket and returns public URLs.
- ``LocalArtifactStore`` copies results into an output directory.

The store never deletes local files; scratch cleanup belongs to the pipeline.
"""

import asyncio
import logging
import mimetypes
import os
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import boto3
import httpx
from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from vedit_engine.config import Settings, get_settings
from vedit_engine.errors import DownloadError, UploadError

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    """Result of an upload."""

    url: str
    key: str
    file_size_bytes: int
    content_type: str


def _content_type(path: str, is_image: bool) -> str:
    guessed, _ = mimetypes.guess_type(path)
    if guessed:
        return guessed
    return "image/png" if is_image else "video/mp4"


class ArtifactStore:
    """
    Base artifact store with the shared download implementation.

    Subclasses implement ``_store``.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._s3_client = None

    @property
    def s3_client(self):
        """Lazy-initialize S3 client."""
        if self._s3_client is None:
            config = {
                "region_name": self.settings.aws_region,
            }
            if self.settings.aws_access_key_id and self.settings.aws_secret_access_key:
                config["aws_access_key_id"] = self.settings.aws_access_key_id
                config["aws_secret_access_key"] = self.settings.aws_secret_access_key

            self._s3_client = boto3.client("s3", **config)

        return self._s3_client

    # ============================================================
    # DOWNLOAD
    # ============================================================

    async def download(self, url: str, output_path: str) -> int:
        """
        Download a media blob to a local scratch path.

        Args:
            url: http(s)://, s3://, file:// URL or local path
            output_path: Destination path in scratch space

        Returns:
            Size of the downloaded file in bytes

        Raises:
            DownloadError: If the source is unreachable, unreadable, empty,
                outside the allowed local root or slower than the download timeout
        """
        timeout = self.settings.download_timeout_seconds
        try:
            await asyncio.wait_for(self._fetch(url, output_path), timeout=timeout)
        except DownloadError:
            raise
        except asyncio.TimeoutError as e:
            raise DownloadError(f"Download timed out after {timeout}s: {url}", {"url": url}) from e
        except httpx.HTTPStatusError as e:
            raise DownloadError(
                f"Source returned HTTP {e.response.status_code}: {url}",
                {"url": url, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise DownloadError(f"Failed to download {url}: {e}", {"url": url}) from e
        except (ClientError, BotoCoreError, Boto3Error) as e:
            raise DownloadError(f"Failed to download {url} from S3: {e}", {"url": url}) from e
        except OSError as e:
            raise DownloadError(f"Failed to read {url}: {e}", {"url": url}) from e

        if not os.path.isfile(output_path):
            raise DownloadError(f"Download completed but file not found: {output_path}", {"url": url})

        file_size = os.path.getsize(output_path)
        if file_size == 0:
            raise DownloadError(f"Downloaded file is empty: {url}", {"url": url})

        logger.info(f"Downloaded {url} -> {output_path} ({file_size / 1024 / 1024:.1f} MB)")
        return file_size

    async def _fetch(self, url: str, output_path: str) -> None:
        parsed = urlparse(url)
        scheme = parsed.scheme.lower()

        if scheme in ("http", "https"):
            await self._download_http(url, output_path)
        elif scheme == "s3":
            await self._download_s3(parsed.netloc, parsed.path.lstrip("/"), output_path)
        elif scheme == "file":
            await self._copy_local(self._local_source(unquote(parsed.path), url), output_path)
        elif scheme == "" or (len(scheme) == 1 and os.name == "nt"):
            await self._copy_local(self._local_source(url, url), output_path)
        else:
            raise DownloadError(f"Unsupported URL scheme: {scheme}", {"url": url})

    def _local_source(self, path: str, url: str) -> str:
        """
        Resolve a local source path, which must sit under ``local_source_root``.

        Local reads are refused entirely when no root is configured.
        """
        root = self.settings.local_source_root
        if not root:
            raise DownloadError("Local file sources are disabled", {"url": url})

        root = os.path.realpath(root)
        resolved = os.path.realpath(path)
        try:
            inside = os.path.commonpath([root, resolved]) == root
        except ValueError:
            # Different drives on Windows
            inside = False
        if not inside:
            logger.warning(f"Rejected local source outside {root}: {url}")
            raise DownloadError("Local source is outside the allowed directory", {"url": url})
        return resolved

    async def _download_http(self, url: str, output_path: str) -> None:
        """Stream a direct URL to disk using httpx."""
        timeout = httpx.Timeout(self.settings.download_timeout_seconds, connect=30.0)
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()

                with open(output_path, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)

    async def _download_s3(self, bucket: str, key: str, output_path: str) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(
            None,
            lambda: self.s3_client.download_file(bucket, key, output_path),
        )

    async def _copy_local(self, source: str, output_path: str) -> None:
        if not os.path.isfile(source):
            raise DownloadError(f"Source file not found: {source}", {"url": source})
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, shutil.copyfile, source, output_path)

    # ============================================================
    # UPLOAD
    # ============================================================

    def _object_name(self, local_path: str, is_image: bool) -> str:
        """Unique object name; videos are normalized to the default container."""
        extension = Path(local_path).suffix.lstrip(".").lower()
        if not is_image or not extension:
            extension = self.settings.default_video_extension if not is_image else "png"
        timestamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")
        return f"{timestamp}_{uuid.uuid4().hex[:12]}.{extension}"

    async def upload(self, local_path: str, folder: str, is_image: bool = False) -> str:
        """
        Persist a result file and return its public URL.

        Args:
            local_path: Verified output file
            folder: Destination folder (e.g. vedit/processed)
            is_image: Whether the file is an image (keeps its extension)

        Returns:
            Public URL of the stored artifact

        Raises:
            UploadError: If the file cannot be stored
        """
        if not os.path.isfile(local_path):
            raise UploadError(f"File not found: {local_path}")

        key = f"{folder.strip('/')}/{self._object_name(local_path, is_image)}"
        content_type = _content_type(key, is_image)

        try:
            result = await asyncio.wait_for(
                self._store(local_path, key, content_type),
                timeout=self.settings.upload_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise UploadError(
                f"Upload timed out after {self.settings.upload_timeout_seconds}s",
                {"key": key},
            ) from e
        except (ClientError, BotoCoreError, Boto3Error, OSError) as e:
            raise UploadError(f"Upload failed: {e}", {"key": key}) from e

        logger.info(f"Upload complete: {result.url}")
        return result.url

    async def _store(self, local_path: str, key: str, content_type: str) -> UploadResult:
        raise NotImplementedError


class S3ArtifactStore(ArtifactStore):
    """Stores results in S3."""

    def public_url(self, key: str) -> str:
        if self.settings.public_base_url:
            return f"{self.settings.public_base_url.rstrip('/')}/{key}"
        return f"https://{self.settings.s3_bucket}.s3.{self.settings.aws_region}.amazonaws.com/{key}"

    async def _store(self, local_path: str, key: str, content_type: str) -> UploadResult:
        logger.info(f"Uploading to s3://{self.settings.s3_bucket}/{key}")
        file_size = os.path.getsize(local_path)

        # Upload (use thread pool for sync boto3 call)
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(
            None,
            lambda: self.s3_client.upload_file(
                local_path,
                self.settings.s3_bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            ),
        )

        return UploadResult(
            url=self.public_url(key),
            key=key,
            file_size_bytes=file_size,
            content_type=content_type,
        )


class LocalArtifactStore(ArtifactStore):
    """
    Stores results in a local output directory.

    URLs are ``file://`` URIs unless ``public_base_url`` is configured (e.g. a
    static file server in front of the directory).
    """

    def __init__(self, settings: Optional[Settings] = None, output_directory: Optional[str] = None):
        super().__init__(settings)
        self.output_directory = os.path.abspath(output_directory or self.settings.local_output_directory)

    def public_url(self, key: str) -> str:
        if self.settings.public_base_url:
            return f"{self.settings.public_base_url.rstrip('/')}/{key}"
        return Path(self.output_directory, key).as_uri()

    async def _store(self, local_path: str, key: str, content_type: str) -> UploadResult:
        destination = os.path.join(self.output_directory, *key.split("/"))
        os.makedirs(os.path.dirname(destination), exist_ok=True)

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, shutil.copyfile, local_path, destination)

        logger.info(f"Stored artifact locally: {destination}")
        return UploadResult(
            url=self.public_url(key),
            key=key,
            file_size_bytes=os.path.getsize(destination),
            content_type=content_type,
        )


def create_artifact_store(settings: Optional[Settings] = None) -> ArtifactStore:
    """Build the artifact store selected by ``storage_backend``."""
    settings = settings or get_settings()
    if settings.storage_backend == "local":
        return LocalArtifactStore(settings)
    return S3ArtifactStore(settings)
