"""
Listing page extractor.

Turns a rendered luxuryestate.com property page into a PropertyRecord.
Structured hydration payloads embedded in the page win over values
scraped from the DOM; the DOM is the fallback for anything the payloads
leave empty.
"""

import json
import logging
import re
import time
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from luxury_scraper.config import ImageStrategy, Settings
from luxury_scraper.models import (
    Agency,
    FeatureMap,
    Location,
    Media,
    Multi,
    NumericFeatures,
    Present,
    Price,
    PropertyDetails,
    PropertyRecord,
    Text,
)
from luxury_scraper.utils.amenities import BOOLEAN_FEATURES, SEA_VIEW_TERMS, empty_flags
from luxury_scraper.utils.helpers import (
    clean_text,
    derive_amenity_flags,
    digits_only,
    extract_number,
    normalize_amenity_field,
    normalize_boolean,
    parse_price,
)
from luxury_scraper.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

# Hydration payload ids
PROPERTY_PAYLOAD = "properties-hydration"
GALLERY_PAYLOAD = "gallery-hydration"
FEATURES_PAYLOAD = "features-hydration"
AGENCY_PAYLOAD = "agency-hydration"

MAIN_CONTENT_SELECTOR = ".lx-property__mainContent"

THUMBNAIL_SEGMENT = re.compile(r"/\d{2,4}x\d{2,4}(?=/)")


# =============================================================================
# PURE PARSERS
# =============================================================================


def parse_payload(soup: BeautifulSoup, element_id: str) -> dict:
    """Decode one ``<script type="application/json" id=...>`` payload; {} when missing or invalid."""
    tag = soup.find("script", attrs={"type": "application/json", "id": element_id})
    if tag is None:
        return {}

    text = tag.string or tag.get_text()
    if not text or not text.strip():
        return {}

    try:
        data = json.loads(text)
    except ValueError as e:
        logger.warning("Invalid JSON in #%s: %s", element_id, e)
        return {}
    return data if isinstance(data, dict) else {}


def build_feature_map(soup: BeautifulSoup) -> FeatureMap:
    """
    Collect the labeled ".feat-item" blocks.

    A label with no value element is a presence-only feature, one value
    element gives its text and several give the list of texts.
    """
    features = FeatureMap()
    for item in soup.select(".feat-item"):
        label_el = item.select_one(".feat-label")
        if label_el is None:
            continue

        label = label_el.get_text(strip=True)
        if label.endswith(":"):
            label = label[:-1].strip()
        if not label:
            continue

        values = [el.get_text(strip=True) for el in item.select(".single-value, .multiple-values")]
        if len(values) > 1:
            features.set(label, Multi(tuple(values)))
        elif len(values) == 1:
            features.set(label, Text(values[0]))
        else:
            features.set(label, Present())
    return features


def find_direct_images(soup: BeautifulSoup, base_url: str) -> list[str]:
    """Listing photos referenced straight from the DOM, placeholders excluded."""
    images = []
    for img in soup.select('img[src*="properties"]'):
        src = img.get("src")
        if not src or "placeholder" in src:
            continue
        images.append(urljoin(base_url, src))
    return images


def strip_thumbnail_size(url: str) -> str:
    """Turn a sized thumbnail URL into the full-resolution one."""
    return THUMBNAIL_SEGMENT.sub("", url, count=1)


def extract_description(soup: BeautifulSoup) -> str | None:
    """Description content block, then its container, then the meta description."""
    container = soup.select_one('[data-role="description-text-container"]')
    content = (container or soup).select_one('[data-role="description-text-content"]')

    if content is not None:
        text = content.get_text("\n", strip=True)
        if text:
            return text

    if container is not None:
        text = container.get_text(" ", strip=True)
        if text:
            return text

    meta = soup.find("meta", attrs={"name": "description"})
    if meta is not None and meta.get("content"):
        return meta["content"].strip() or None
    return None


def _select_text(soup: BeautifulSoup, selector: str) -> str | None:
    element = soup.select_one(selector)
    return clean_text(element.get_text(" ", strip=True)) if element else None


def _first_number(*candidates) -> int | None:
    for candidate in candidates:
        number = extract_number(candidate)
        if number is not None:
            return number
    return None


def _first(*candidates):
    for candidate in candidates:
        if candidate not in (None, "", [], {}):
            return candidate
    return None


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _translated(geo_info: dict, key: str) -> str | None:
    return _as_dict(_as_dict(geo_info.get(key)).get("translations")).get("en_GB")


def _fallback_id(reference: str | None) -> str:
    if reference:
        return re.sub(r"\s+", "-", reference.strip()).upper()
    return f"fallback-{int(time.time() * 1000)}"


# =============================================================================
# LIVE PAGE STEPS
# =============================================================================


async def _close_overlay(page, close_selector: str) -> None:
    try:
        if await page.query_selector(close_selector):
            await page.click(close_selector)
        else:
            await page.keyboard.press("Escape")
    except Exception as e:
        logger.debug("Could not close overlay %s: %s", close_selector, e)


class DirectDomImages:
    """Read image URLs from the rendered page as-is."""

    async def discover(self, page, soup: BeautifulSoup) -> list[str]:
        return find_direct_images(soup, page.url)


class GalleryModalImages:
    """Open the in-page gallery overlay and collect full-resolution URLs."""

    trigger_selector = '[data-role="gallery-trigger"], .lx-gallery__trigger'
    image_selector = ".lx-gallery-modal img"
    close_selector = ".lx-gallery-modal__close"

    def __init__(self, timeout_ms: int = 15000):
        self.timeout_ms = timeout_ms

    async def discover(self, page, soup: BeautifulSoup) -> list[str]:
        if await page.query_selector(self.trigger_selector) is None:
            logger.info("No gallery trigger on %s", page.url)
            return []

        try:
            await page.click(self.trigger_selector)
            await page.wait_for_selector(self.image_selector, timeout=self.timeout_ms)
            gallery = BeautifulSoup(await page.content(), "html.parser")

            urls: list[str] = []
            for img in gallery.select(self.image_selector):
                src = img.get("src") or img.get("data-src")
                if not src or "placeholder" in src:
                    continue
                full = strip_thumbnail_size(urljoin(page.url, src))
                if full not in urls:
                    urls.append(full)
            return urls
        finally:
            await _close_overlay(page, self.close_selector)


class AgencyContactModal:
    """Reveal the agency contact dialog and read name and phone."""

    trigger_selector = '[data-role="agency-contact"], .agency__contact-button'
    modal_selector = ".agency-modal"
    name_selector = ".agency-modal__name"
    phone_selector = ".agency-modal__phone"
    close_selector = ".agency-modal__close"

    def __init__(self, timeout_ms: int = 15000):
        self.timeout_ms = timeout_ms

    async def fetch(self, page) -> Agency | None:
        """Contact details or None; never raises."""
        try:
            if await page.query_selector(self.trigger_selector) is None:
                return None
            await page.click(self.trigger_selector)
            await page.wait_for_selector(self.modal_selector, timeout=self.timeout_ms)
            modal = BeautifulSoup(await page.content(), "html.parser")
        except Exception as e:
            logger.warning("Agency contact unavailable on %s: %s", page.url, e)
            return None
        finally:
            await _close_overlay(page, self.close_selector)

        return Agency(
            name=_select_text(modal, self.name_selector),
            phone=digits_only(_select_text(modal, self.phone_selector)),
        )


# =============================================================================
# EXTRACTOR
# =============================================================================


class PageExtractor:
    """Builds a PropertyRecord from a loaded listing page."""

    def __init__(
        self,
        settings: Settings,
        image_strategy=None,
        retry: RetryPolicy | None = None,
    ):
        self.settings = settings
        if image_strategy is None:
            if settings.image_strategy == ImageStrategy.GALLERY_MODAL:
                image_strategy = GalleryModalImages(settings.selector_timeout_ms)
            else:
                image_strategy = DirectDomImages()
        self.image_strategy = image_strategy
        self.agency_modal = AgencyContactModal(settings.selector_timeout_ms)
        self.retry = retry or RetryPolicy(max_attempts=1)

    async def load(self, page, url: str) -> None:
        """Navigate to a listing and wait for its main content; raises on timeout."""

        async def navigate():
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.settings.navigation_timeout_ms,
            )
            await page.wait_for_selector(
                MAIN_CONTENT_SELECTOR,
                timeout=self.settings.selector_timeout_ms,
            )

        await self.retry.run(navigate, description=f"load {url}")

    async def extract(self, page, url: str) -> PropertyRecord | None:
        """
        Extract one property from ``page``.

        Returns None when the page has neither a property payload nor a
        "Reference" feature. Any other failure only blanks the affected fields.
        """
        try:
            return await self._extract(page, url)
        except Exception:
            logger.exception("Extraction failed for %s", url)
            return None

    async def _extract(self, page, url: str) -> PropertyRecord | None:
        try:
            soup = BeautifulSoup(await page.content(), "html.parser")
        except Exception as e:
            logger.error("Could not read page content for %s: %s", url, e)
            return None

        primary = parse_payload(soup, PROPERTY_PAYLOAD)
        gallery = parse_payload(soup, GALLERY_PAYLOAD)
        features_data = parse_payload(soup, FEATURES_PAYLOAD)
        agency_data = parse_payload(soup, AGENCY_PAYLOAD)

        try:
            features = build_feature_map(soup)
        except Exception as e:
            logger.warning("Feature list unreadable on %s: %s", url, e)
            features = FeatureMap()

        reference = features.text("Reference")
        if not primary and not reference:
            logger.error("No property payload and no reference on %s", url)
            return None

        external_id = primary.get("id")
        if external_id is None or not str(external_id).strip():
            external_id = _fallback_id(reference)
            logger.info("Using fallback id %s for %s", external_id, url)

        try:
            images = await self.image_strategy.discover(page, soup)
        except Exception as e:
            logger.warning("Image discovery failed on %s: %s", url, e)
            images = []

        agency = self._agency(soup, primary, agency_data)
        if self.settings.fetch_agency_contact and not (agency.name and agency.phone):
            contact = await self.agency_modal.fetch(page)
            if contact is not None:
                agency = agency.model_copy(update={
                    "name": agency.name or contact.name,
                    "phone": agency.phone or contact.phone,
                })

        try:
            description = clean_text(_as_str(primary.get("description"))) or extract_description(soup)
        except Exception as e:
            logger.warning("Description unreadable on %s: %s", url, e)
            description = None

        general_view = features.text("View")

        return PropertyRecord(
            external_id=str(external_id).strip(),
            url=url,
            source_url=page.url,
            title=clean_text(_as_str(primary.get("title"))) or _select_text(soup, ".title-property"),
            description=description,
            price=self._price(soup, primary),
            location=self._location(primary, features_data, features),
            numeric=self._numeric(primary, features),
            details=PropertyDetails(
                property_type=_as_str(_first(primary.get("type"), features_data.get("type"), features.text("Type"))),
                transaction=_as_str(features_data.get("transaction")),
                status=features.text("Status") or "available",
                energy_rating=features.text("Energy Rating"),
                cooling_system=features.text("Cooling Systems"),
                heating_source=features.text("Heating Source", "Heating"),
                exterior_type=features.text("Exterior Type"),
                floor_type=features.text("Floor Type"),
                garden_type=features.text("Garden Type"),
                roof_type=features.text("Roof Type"),
                architectural_style=features.text("Architectural Style"),
                parking_type=features.text("Parking Type", "Car parking"),
                gas_emission_class=features.text("Gas emission Class"),
                general_view=general_view,
            ),
            amenities=self._amenities(features, features_data, general_view),
            media=Media(
                images=images,
                floor_plans=[
                    plan["src"] for plan in gallery.get("propertyFloorPlans") or []
                    if isinstance(plan, dict) and plan.get("src")
                ],
                video_url=gallery.get("videoUrl"),
                virtual_tour_url=gallery.get("virtualTourUrl"),
            ),
            agency=agency,
            features=features.to_dict(),
            created_at=_as_str(features_data.get("creationTime")),
            modified_at=_as_str(features_data.get("modificationTime")),
        )

    def _price(self, soup: BeautifulSoup, primary: dict) -> Price:
        price_data = primary.get("price")
        amount = None
        currency = None

        if isinstance(price_data, dict):
            amount = parse_price(_first(price_data.get("amount"), price_data.get("raw")))
            currency = _first(price_data.get("currencyCode"), price_data.get("currency"))
        elif price_data is not None:
            amount = parse_price(price_data)

        if amount is None:
            amount = parse_price(_select_text(soup, ".prices .price"))

        return Price(amount=amount, currency=currency or "EUR")

    def _location(self, primary: dict, features_data: dict, features: FeatureMap) -> Location:
        location = _as_dict(primary.get("location"))
        geo = _as_dict(features_data.get("geoInfo"))

        return Location(
            address=location.get("address"),
            city=_first(location.get("city"), _translated(geo, "PPL")),
            neighborhood=_first(location.get("neighborhood"), features.text("Neighborhood")),
            province=_first(location.get("province"), _translated(geo, "ADM1")),
            country=_first(location.get("country"), _translated(geo, "PCLI")) or "Spain",
            zip_code=_as_str(_first(location.get("postalCode"), location.get("zipCode"))),
        )

    def _numeric(self, primary: dict, features: FeatureMap) -> NumericFeatures:
        return NumericFeatures(
            rooms=_first_number(primary.get("bedrooms"), features.text("Rooms", "Bedrooms")),
            bathrooms=_first_number(primary.get("bathrooms"), features.text("Bathrooms")),
            area_m2=_first_number(primary.get("surface"), features.text("Size", "Area")),
            lot_area=_first_number(features.text("External size")),
            floor=_first_number(features.text("Floor")),
            floor_total=_first_number(features.text("Floor Count")),
            year_built=_first_number(features.text("Year of construction")),
            balcony_count=_first_number(features.text("Balcony count")),
            kitchen_count=_first_number(features.text("Kitchens")),
            exterior_size=_first_number(features.text("External size")),
        )

    def _amenities(
        self,
        features: FeatureMap,
        features_data: dict,
        general_view: str | None,
    ) -> dict[str, bool]:
        exterior = normalize_amenity_field(features.raw("Exterior Amenities"))
        interior = normalize_amenity_field(features.raw("Interior Amenities"))

        for extra in features_data.get("extraFeatures") or []:
            if not isinstance(extra, dict):
                continue
            if extra.get("label") == "exteriorAmenities":
                exterior += normalize_amenity_field(extra.get("value"))
            elif extra.get("label") == "interiorAmenities":
                interior += normalize_amenity_field(extra.get("value"))

        flags = derive_amenity_flags(exterior, interior, empty_flags())

        for flag, labels in BOOLEAN_FEATURES.items():
            if normalize_boolean(features.raw(*labels)):
                flags[flag] = True

        if general_view and any(term in general_view.lower() for term in SEA_VIEW_TERMS):
            flags["has_sea_view"] = True
            flags["near_beach"] = True

        return flags

    def _agency(self, soup: BeautifulSoup, primary: dict, agency_data: dict) -> Agency:
        embedded = _as_dict(primary.get("agency"))
        logo = _as_dict(agency_data.get("agencyLogo")).get("img")
        if not logo:
            logo_el = soup.select_one(".agency__logo img")
            logo = logo_el.get("src") if logo_el else None

        return Agency(
            name=_as_str(_first(agency_data.get("agencyName"), embedded.get("name"),
                                _select_text(soup, ".agency__name-container a"))),
            phone=_as_str(_first(agency_data.get("agencyPhoneCrypted"), embedded.get("phone"))),
            logo_url=logo,
            location=_as_str(agency_data.get("agencyLocation")),
        )


def _as_str(value) -> str | None:
    if value is None:
        return None
    return str(value)
