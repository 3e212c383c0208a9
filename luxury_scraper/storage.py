"""Storage utilities for persisting scraped properties (dedup/upsert gateway)."""

import csv
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from luxury_scraper.assets import safe_id
from luxury_scraper.config import DuplicatePolicy, RecordSink, Settings
from luxury_scraper.errors import PersistenceError
from luxury_scraper.models import PropertyRecord
from luxury_scraper.models.database import Database, PropertyDB, PropertyImageDB
from luxury_scraper.models.property import REFERENCE_PREFIX

logger = logging.getLogger(__name__)


class SaveResult(str, Enum):
    """Outcome of one save."""

    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"


class PropertySink(Protocol):
    """Destination for finished property records."""

    def exists(self, reference: str) -> bool: ...

    def save(self, record: PropertyRecord) -> SaveResult: ...

    def close(self) -> None: ...


def record_to_row(record: PropertyRecord) -> dict:
    """Flatten a record into ``properties`` column values, applying storage defaults."""
    row = {
        "property_reference": record.reference,
        "external_id": record.external_id,
        "listing_url": record.url,
        "property_url": record.source_url or record.url,
        "title": record.title or "Untitled Property",
        "description": record.description or "",
        "price": record.price.amount,
        "currency": record.price.currency,
        "address": record.location.address,
        "city": record.location.city,
        "neighborhood": record.location.neighborhood,
        "province": record.location.province,
        "country": record.location.country or "Spain",
        "zip_code": record.location.zip_code,
        "rooms": record.numeric.rooms or 0,
        "bathrooms": record.numeric.bathrooms or 0,
        "area": float(record.numeric.area_m2 or 0),
        "lot_area": record.numeric.lot_area,
        "floor": record.numeric.floor,
        "floor_total": record.numeric.floor_total,
        "year_built": record.numeric.year_built,
        "balcony_count": record.numeric.balcony_count,
        "kitchen_count": record.numeric.kitchen_count,
        "exterior_size": record.numeric.exterior_size,
        "property_type": record.details.property_type or "Other",
        "transaction": record.details.transaction,
        "status": record.details.status,
        "energy_rating": record.details.energy_rating,
        "cooling_system": record.details.cooling_system,
        "heating_source": record.details.heating_source,
        "exterior_type": record.details.exterior_type,
        "floor_type": record.details.floor_type,
        "garden_type": record.details.garden_type,
        "roof_type": record.details.roof_type,
        "architectural_style": record.details.architectural_style,
        "parking_type": record.details.parking_type,
        "gas_emission_class": record.details.gas_emission_class,
        "general_view": record.details.general_view,
        "agency_name": record.agency.name,
        "agency_phone": record.agency.phone,
        "agency_logo": record.agency.logo_url,
        "agency_location": record.agency.location,
        "floor_plans": record.media.floor_plans,
        "video_url": record.media.video_url,
        "virtual_tour_url": record.media.virtual_tour_url,
        "features": record.features,
        "source_created_at": record.created_at,
        "source_modified_at": record.modified_at,
        "scraped_at": record.scraped_at,
    }
    row.update(record.amenities)
    return row


def image_rows(record: PropertyRecord) -> list[PropertyImageDB]:
    return [
        PropertyImageDB(
            image_url=image.remote_url,
            source_url=image.source_url,
            position=index,
            is_primary=index == 0,
        )
        for index, image in enumerate(record.images)
    ]


class RelationalSink:
    """
    Writes records to the ``properties`` / ``property_images`` tables.

    Existence is checked before insert; the UNIQUE constraint on
    ``property_reference`` catches workers that race past the check.
    """

    def __init__(self, database: Database, policy: DuplicatePolicy = DuplicatePolicy.SKIP):
        self.database = database
        self.policy = policy

    def exists(self, reference: str) -> bool:
        """Check if a property already exists in the database."""
        with self.database.session() as session:
            found = session.scalar(
                select(PropertyDB.id).where(PropertyDB.property_reference == reference)
            )
            return found is not None

    def save(self, record: PropertyRecord) -> SaveResult:
        """
        Insert a property with its images, or handle an existing one per policy.

        Raises:
            PersistenceError: if the database rejects the write
        """
        try:
            return self._save(record)
        except IntegrityError as e:
            # Only a row for this reference makes the failure a duplicate
            try:
                duplicate = self.exists(record.reference)
                if duplicate and self.policy == DuplicatePolicy.SKIP:
                    logger.info("Skipped existing (concurrent insert): %s", record.reference)
                    return SaveResult.SKIPPED
                if duplicate:
                    return self._save(record)
            except SQLAlchemyError as retry_error:
                raise PersistenceError(f"Could not save {record.reference}: {retry_error}") from retry_error
            raise PersistenceError(f"Could not save {record.reference}: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not save {record.reference}: {e}") from e

    def _save(self, record: PropertyRecord) -> SaveResult:
        with self.database.session() as session:
            existing = session.scalar(
                select(PropertyDB).where(PropertyDB.property_reference == record.reference)
            )

            if existing is not None:
                if self.policy == DuplicatePolicy.SKIP:
                    logger.info("Skipped existing: %s", record.reference)
                    return SaveResult.SKIPPED

                row = record_to_row(record)
                # Keep the first time the listing was seen
                row.pop("scraped_at")
                for column, value in row.items():
                    setattr(existing, column, value)
                existing.images = image_rows(record)
                session.commit()
                logger.info("Updated property %s (%s)", existing.id, record.reference)
                return SaveResult.UPDATED

            prop = PropertyDB(**record_to_row(record))
            prop.images = image_rows(record)
            session.add(prop)
            session.commit()
            logger.info("Created property %s (%s)", prop.id, record.title)
            return SaveResult.INSERTED

    def close(self) -> None:
        self.database.dispose()


class JsonFileSink:
    """
    Keeps records in ``{output_dir}/properties.json`` plus one
    ``property_{id}/data.json`` per listing.
    """

    def __init__(self, output_dir: str | Path, policy: DuplicatePolicy = DuplicatePolicy.OVERWRITE):
        self.output_dir = Path(output_dir)
        self.path = self.output_dir / "properties.json"
        self.policy = policy

    def load(self) -> list[dict]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _dump(self, path: Path, data) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def exists(self, reference: str) -> bool:
        external_id = reference.removeprefix(REFERENCE_PREFIX)
        return any(item.get("external_id") == external_id for item in self.load())

    def save(self, record: PropertyRecord) -> SaveResult:
        try:
            properties = self.load()
            data = record.model_dump(mode="json")

            index = next(
                (i for i, item in enumerate(properties) if item.get("external_id") == record.external_id),
                None,
            )
            if index is not None and self.policy == DuplicatePolicy.SKIP:
                logger.info("Skipped existing: %s", record.reference)
                return SaveResult.SKIPPED

            if index is not None:
                properties[index] = data
                result = SaveResult.UPDATED
            else:
                properties.append(data)
                result = SaveResult.INSERTED

            self._dump(self.output_dir / f"property_{safe_id(record.external_id)}" / "data.json", data)
            self._dump(self.path, properties)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Could not save {record.reference} to {self.path}: {e}") from e

        logger.info("%s %s in %s", result.value.capitalize(), record.reference, self.path)
        return result

    def close(self) -> None:
        pass


def build_sink(settings: Settings, database: Database | None = None) -> PropertySink:
    """Record sink selected by ``settings.record_sink``."""
    if settings.record_sink == RecordSink.JSON_FILE:
        return JsonFileSink(settings.output_dir, settings.on_duplicate)

    database = database or Database(settings.database_url)
    database.init()
    return RelationalSink(database, settings.on_duplicate)


def get_property_count(database: Database) -> int:
    """Get count of properties in database."""
    with database.session() as session:
        return session.scalar(select(func.count(PropertyDB.id))) or 0


def get_image_count(database: Database) -> int:
    with database.session() as session:
        return session.scalar(select(func.count(PropertyImageDB.id))) or 0


EXPORT_COLUMNS = [
    "property_reference", "external_id", "listing_url", "title", "property_type",
    "price", "currency", "address", "city", "neighborhood", "province", "country",
    "zip_code", "rooms", "bathrooms", "area", "lot_area", "year_built",
    "agency_name", "agency_phone", "scraped_at",
]


def export_to_csv(database: Database, filepath: str, city: str | None = None) -> int:
    """
    Export properties to CSV file.

    Args:
        database: Database to read from
        filepath: Path to output CSV file
        city: Optional city filter

    Returns:
        Number of rows exported
    """
    with database.session() as session:
        query = select(PropertyDB).order_by(PropertyDB.id)
        if city:
            query = query.where(PropertyDB.city == city)

        properties = session.scalars(query).all()
        if not properties:
            return 0

        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(EXPORT_COLUMNS + ["primary_image"])

            for p in properties:
                primary = next((img.image_url for img in p.images if img.is_primary), None)
                writer.writerow([getattr(p, column) for column in EXPORT_COLUMNS] + [primary])

        return len(properties)
