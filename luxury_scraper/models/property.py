"""Property data model."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from luxury_scraper.utils.amenities import empty_flags

REFERENCE_PREFIX = "EXT-"


# Feature values scraped from the ".feat-item" blocks of a listing page.


@dataclass(frozen=True)
class Present:
    """Label shown without any value element (presence-only feature)."""

    def as_text(self) -> str | None:
        return None

    def as_list(self) -> list[str]:
        return []

    def to_json(self):
        return True


@dataclass(frozen=True)
class Text:
    """Label with a single value."""

    value: str

    def as_text(self) -> str | None:
        return self.value

    def as_list(self) -> list[str]:
        return [self.value]

    def to_json(self):
        return self.value


@dataclass(frozen=True)
class Multi:
    """Label with several value elements."""

    values: tuple[str, ...]

    def as_text(self) -> str | None:
        return ", ".join(self.values)

    def as_list(self) -> list[str]:
        return list(self.values)

    def to_json(self):
        return list(self.values)


FeatureValue = Present | Text | Multi


class FeatureMap:
    """Ordered label -> FeatureValue mapping; repeated labels overwrite."""

    def __init__(self, items: dict[str, FeatureValue] | None = None):
        self._items: dict[str, FeatureValue] = dict(items or {})

    def set(self, label: str, value: FeatureValue) -> None:
        self._items[label] = value

    def get(self, *labels: str) -> FeatureValue | None:
        """First value found among ``labels``."""
        for label in labels:
            if label in self._items:
                return self._items[label]
        return None

    def text(self, *labels: str) -> str | None:
        """Text of the first label that carries one."""
        for label in labels:
            value = self._items.get(label)
            if value is not None and value.as_text():
                return value.as_text()
        return None

    def values(self, *labels: str) -> list[str]:
        value = self.get(*labels)
        return value.as_list() if value else []

    def raw(self, *labels: str):
        """Plain JSON-ish value (True / str / list) for boolean normalization."""
        for label in labels:
            value = self._items.get(label)
            if value is not None:
                return value.to_json()
        return None

    def to_dict(self) -> dict:
        return {label: value.to_json() for label, value in self._items.items()}

    def __contains__(self, label: str) -> bool:
        return label in self._items

    def __len__(self) -> int:
        return len(self._items)


class Price(BaseModel):
    """Asking price."""

    amount: Decimal | None = None
    currency: str = "EUR"


class Location(BaseModel):
    """Postal location, all parts optional."""

    address: str | None = None
    city: str | None = None
    neighborhood: str | None = None
    province: str | None = None
    country: str = "Spain"
    zip_code: str | None = None


class NumericFeatures(BaseModel):
    """Numbers pulled from noisy label/value pairs; missing stays None."""

    rooms: int | None = None
    bathrooms: int | None = None
    area_m2: int | None = None
    lot_area: int | None = None
    floor: int | None = None
    floor_total: int | None = None
    year_built: int | None = None
    balcony_count: int | None = None
    kitchen_count: int | None = None
    exterior_size: int | None = None


class PropertyDetails(BaseModel):
    """Free-text descriptors taken from the feature list."""

    property_type: str | None = None
    transaction: str | None = None
    status: str = "available"
    energy_rating: str | None = None
    cooling_system: str | None = None
    heating_source: str | None = None
    exterior_type: str | None = None
    floor_type: str | None = None
    garden_type: str | None = None
    roof_type: str | None = None
    architectural_style: str | None = None
    parking_type: str | None = None
    gas_emission_class: str | None = None
    general_view: str | None = None


class Agency(BaseModel):
    """Listing agency."""

    name: str | None = None
    phone: str | None = None
    logo_url: str | None = None
    location: str | None = None


class Media(BaseModel):
    """Media references discovered on the page, in page order."""

    images: list[str] = Field(default_factory=list)
    floor_plans: list[str] = Field(default_factory=list)
    video_url: str | None = None
    virtual_tour_url: str | None = None


class PropertyImage(BaseModel):
    """Stored image reference."""

    remote_url: str
    source_url: str | None = None
    is_primary: bool = False


class PropertyRecord(BaseModel):
    """Canonical property record produced by one page visit."""

    # Identifiers
    external_id: str = Field(..., min_length=1, description="Site-native listing id")
    url: str = Field(..., description="URL of the listing")
    source_url: str | None = None

    # Basic info
    title: str | None = None
    description: str | None = None

    price: Price = Field(default_factory=Price)
    location: Location = Field(default_factory=Location)
    numeric: NumericFeatures = Field(default_factory=NumericFeatures)
    details: PropertyDetails = Field(default_factory=PropertyDetails)
    amenities: dict[str, bool] = Field(default_factory=empty_flags)

    media: Media = Field(default_factory=Media)
    images: list[PropertyImage] = Field(default_factory=list)

    agency: Agency = Field(default_factory=Agency)

    # Raw feature map for debugging
    features: dict = Field(default_factory=dict)

    # Timestamps
    created_at: str | None = None
    modified_at: str | None = None
    scraped_at: datetime = Field(default_factory=datetime.now)

    @property
    def reference(self) -> str:
        """Namespaced external reference used as the dedup key."""
        return f"{REFERENCE_PREFIX}{self.external_id}"

    def with_images(self, images: list[PropertyImage]) -> "PropertyRecord":
        """Copy of the record carrying the stored images; first one is primary."""
        ordered = [
            image.model_copy(update={"is_primary": index == 0})
            for index, image in enumerate(images)
        ]
        return self.model_copy(update={"images": ordered})
