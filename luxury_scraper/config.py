"""Configuration settings for the scraper."""

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings


class ImageStrategy(str, Enum):
    """How image URLs are discovered on a property page."""

    DIRECT_DOM = "direct_dom"
    GALLERY_MODAL = "gallery_modal"


class StorageBackend(str, Enum):
    """Where downloaded image bytes end up."""

    LOCAL_DISK = "local_disk"
    BLOB_STORE = "blob_store"


class RecordSink(str, Enum):
    """Where property records are persisted."""

    RELATIONAL = "relational"
    JSON_FILE = "json_file"


class DuplicatePolicy(str, Enum):
    """What to do when a record with the same external reference exists."""

    SKIP = "skip"
    OVERWRITE = "overwrite"


class ImageDownload(str, Enum):
    """Transport used to fetch image bytes."""

    HTTP = "http"
    BROWSER = "browser"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///properties.db"

    # Target site
    base_url: str = "https://www.luxuryestate.com"
    search_path: str = "/spain"
    max_pages: int = 5000

    # Work queue (SQS FIFO)
    queue_url: str | None = None
    aws_region: str = "eu-north-1"
    queue_group_id: str = "scraper-group"
    visibility_timeout: int = 300
    wait_time_seconds: int = 10

    # Blob store (S3)
    bucket_name: str | None = None
    bucket_endpoint: str | None = None

    # Pipeline strategies
    image_strategy: ImageStrategy = ImageStrategy.DIRECT_DOM
    storage_backend: StorageBackend = StorageBackend.LOCAL_DISK
    record_sink: RecordSink = RecordSink.RELATIONAL
    on_duplicate: DuplicatePolicy = DuplicatePolicy.SKIP
    image_download: ImageDownload = ImageDownload.HTTP
    fetch_agency_contact: bool = False

    # Local output
    output_dir: str = "luxury_estate_properties"

    # Image sampling
    image_sample: bool = False
    image_sample_min: int = 15
    image_sample_max: int = 21

    # Timeouts and pacing
    navigation_timeout_ms: int = 60000
    selector_timeout_ms: int = 15000
    delay_min: float = 2.0
    delay_max: float = 5.0

    # Worker loop
    max_empty_receives: int = 5
    empty_receive_delay: float = 5.0
    error_delay: float = 5.0

    # Retry policy for navigations and queue calls
    retry_attempts: int = 3
    retry_delay: float = 5.0

    # Proxy settings (optional)
    proxy_server: str | None = None
    proxy_username: str | None = None
    proxy_password: str | None = None

    # Browser
    headless: bool = True
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )

    # Logging
    log_level: str = "INFO"
    log_file: str | None = "scraper.log"

    model_config = {"env_file": ".env", "env_prefix": "LXSCRAPER_"}

    @property
    def search_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.search_path}"

    @property
    def blob_endpoint(self) -> str:
        return self.bucket_endpoint or f"s3.{self.aws_region}.amazonaws.com"


@lru_cache
def get_settings() -> Settings:
    """Settings read once per process."""
    return Settings()
