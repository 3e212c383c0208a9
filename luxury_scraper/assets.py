"""Image acquisition: download listing photos and relay them to storage."""

import asyncio
import logging
import random
import re
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, urlsplit, urlunsplit

import boto3
import httpx

from luxury_scraper.config import ImageDownload, Settings, StorageBackend
from luxury_scraper.models import PropertyImage

logger = logging.getLogger(__name__)


def safe_id(property_id: str) -> str:
    """Property id usable as a path segment or object key part."""
    return re.sub(r"[^A-Za-z0-9_.-]", "_", property_id)


def select_sample(
    urls: list[str],
    minimum: int,
    maximum: int,
    rng: random.Random | None = None,
) -> list[str]:
    """Random subset of ``urls`` sized between minimum and maximum, page order kept."""
    rng = rng or random.Random()
    count = min(len(urls), rng.randint(minimum, max(minimum, maximum)))
    indices = sorted(rng.sample(range(len(urls)), count))
    return [urls[i] for i in indices]


class ImageStorage(Protocol):
    """Put-only image store."""

    async def put(self, property_id: str, number: int, data: bytes) -> str: ...


class LocalDiskStorage:
    """Writes images under ``{base_dir}/property_{id}/image_{n}.jpg``."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)

    def path_for(self, property_id: str, number: int) -> Path:
        return self.base_dir / f"property_{safe_id(property_id)}" / f"image_{number}.jpg"

    async def put(self, property_id: str, number: int, data: bytes) -> str:
        path = self.path_for(property_id, number)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path.as_posix()


class S3BlobStorage:
    """Uploads images to ``properties/{id}/image_{n}.jpg`` in an S3 bucket."""

    def __init__(self, bucket: str, endpoint: str, region: str | None = None, client=None):
        self.bucket = bucket
        self.endpoint = endpoint
        self.client = client or boto3.client("s3", region_name=region)

    @staticmethod
    def key_for(property_id: str, number: int) -> str:
        return f"properties/{safe_id(property_id)}/image_{number}.jpg"

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.{self.endpoint}/{key}"

    async def put(self, property_id: str, number: int, data: bytes) -> str:
        key = self.key_for(property_id, number)
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType="image/jpeg",
        )
        return self.public_url(key)


def build_storage(settings: Settings) -> ImageStorage:
    """Image storage selected by ``settings.storage_backend``."""
    if settings.storage_backend == StorageBackend.BLOB_STORE:
        if not settings.bucket_name:
            raise ValueError("LXSCRAPER_BUCKET_NAME is required for the blob store backend")
        return S3BlobStorage(
            bucket=settings.bucket_name,
            endpoint=settings.blob_endpoint,
            region=settings.aws_region,
        )
    return LocalDiskStorage(settings.output_dir)


def proxy_url(settings: Settings) -> str | None:
    """Proxy server URL with credentials folded in, for httpx."""
    if not settings.proxy_server:
        return None
    if not settings.proxy_username:
        return settings.proxy_server

    parts = urlsplit(settings.proxy_server)
    credentials = quote(settings.proxy_username, safe="")
    if settings.proxy_password:
        credentials += ":" + quote(settings.proxy_password, safe="")
    return urlunsplit(parts._replace(netloc=f"{credentials}@{parts.netloc}"))


class AssetFetcher:
    """
    Downloads listing images and stores them.

    A failed image is logged and skipped; it never aborts the others or
    the record that owns them.
    """

    def __init__(
        self,
        settings: Settings,
        storage: ImageStorage,
        client: httpx.AsyncClient | None = None,
        rng: random.Random | None = None,
    ):
        self.settings = settings
        self.storage = storage
        self.client = client
        self.rng = rng or random.Random()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                headers={
                    "User-Agent": self.settings.user_agent,
                    "Accept": "image/avif,image/webp,image/*,*/*;q=0.8",
                },
                follow_redirects=True,
                timeout=30.0,
                proxy=proxy_url(self.settings),
            )
        return self.client

    async def close(self) -> None:
        """Close HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None

    def select(self, urls: list[str]) -> list[str]:
        if not self.settings.image_sample:
            return list(urls)
        return select_sample(
            urls,
            self.settings.image_sample_min,
            self.settings.image_sample_max,
            self.rng,
        )

    async def download(self, url: str, page=None) -> bytes:
        """Image bytes, through the browser page or a plain HTTP client."""
        if self.settings.image_download == ImageDownload.BROWSER and page is not None:
            response = await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.settings.navigation_timeout_ms,
            )
            if response is None or not response.ok:
                status = response.status if response is not None else "no response"
                raise httpx.HTTPError(f"Image request failed ({status}): {url}")
            return await response.body()

        client = await self._get_client()
        response = await client.get(url)
        response.raise_for_status()
        return response.content

    async def fetch_all(self, property_id: str, urls: list[str], page=None) -> list[PropertyImage]:
        """
        Download and store the images of one property.

        Returns:
            Stored images in page order; the first one is primary
        """
        selected = self.select(urls)
        stored: list[PropertyImage] = []

        for number, url in enumerate(selected, start=1):
            try:
                data = await self.download(url, page)
                remote_url = await self.storage.put(property_id, number, data)
            except Exception as e:
                logger.warning("Image %d/%d of %s failed: %s", number, len(selected), property_id, e)
                continue

            stored.append(PropertyImage(remote_url=remote_url, source_url=url))
            logger.debug("Stored image %d/%d for %s", number, len(selected), property_id)

        logger.info("Stored %d/%d images for %s", len(stored), len(selected), property_id)
        return [
            image.model_copy(update={"is_primary": index == 0})
            for index, image in enumerate(stored)
        ]
