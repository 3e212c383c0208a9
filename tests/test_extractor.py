"""
Tests for the listing page extractor.

Run with: pytest tests/test_extractor.py -v
"""

import asyncio
from decimal import Decimal

from bs4 import BeautifulSoup

from fakes import SITE, FakePage, listing_html
from luxury_scraper.config import ImageStrategy
from luxury_scraper.models import Multi, Present, Text
from luxury_scraper.scrapers.extractor import (
    GalleryModalImages,
    PageExtractor,
    build_feature_map,
    extract_description,
    find_direct_images,
    parse_payload,
    strip_thumbnail_size,
)


def soup_of(html):
    return BeautifulSoup(html, "html.parser")


def extract(settings, page, **kwargs):
    extractor = PageExtractor(settings, **kwargs)
    return asyncio.run(extractor.extract(page, page.url))


# =============================================================================
# PURE PARSERS
# =============================================================================

class TestParsePayload:
    """Tests for parse_payload."""

    def test_valid_payload(self):
        soup = soup_of(listing_html(primary={"id": 123, "title": "Villa X"}))
        assert parse_payload(soup, "properties-hydration") == {"id": 123, "title": "Villa X"}

    def test_missing_payload(self):
        assert parse_payload(soup_of(listing_html()), "gallery-hydration") == {}

    def test_invalid_json(self):
        """Broken JSON reads as empty."""
        soup = soup_of(listing_html(gallery="{not json"))
        assert parse_payload(soup, "gallery-hydration") == {}

    def test_non_object(self):
        soup = soup_of(listing_html(gallery="[1, 2]"))
        assert parse_payload(soup, "gallery-hydration") == {}


class TestBuildFeatureMap:
    """Tests for build_feature_map."""

    def test_value_shapes(self):
        """No value, one value and several values map to three variants."""
        html = listing_html(features={
            "Sea view": True,
            "Rooms": "4",
            "Exterior Amenities": ["Pool", "Garden"],
        })
        features = build_feature_map(soup_of(html))

        assert features.get("Sea view") == Present()
        assert features.get("Rooms") == Text("4")
        assert features.get("Exterior Amenities") == Multi(("Pool", "Garden"))

    def test_trailing_colon_removed(self):
        features = build_feature_map(soup_of(listing_html(features={"Reference": "AB 12"})))
        assert "Reference" in features
        assert features.text("Reference") == "AB 12"

    def test_repeated_label_last_wins(self):
        html = listing_html(extra=(
            '<div class="feat-item"><span class="feat-label">Rooms:</span>'
            '<span class="single-value">3</span></div>'
            '<div class="feat-item"><span class="feat-label">Rooms:</span>'
            '<span class="single-value">5</span></div>'
        ))
        features = build_feature_map(soup_of(html))

        assert features.text("Rooms") == "5"
        assert len(features) == 1

    def test_to_dict(self):
        html = listing_html(features={"Pool": True, "Rooms": "4", "View": ["Sea", "Mountain"]})
        assert build_feature_map(soup_of(html)).to_dict() == {
            "Pool": True,
            "Rooms": "4",
            "View": ["Sea", "Mountain"],
        }


class TestImagesAndDescription:
    """Tests for DOM image and description helpers."""

    def test_direct_images(self):
        html = listing_html(images=[
            "/properties/123/a.jpg",
            "https://pic.example.com/properties/123/b.jpg",
            "/properties/placeholder.jpg",
            "/logo.png",
        ])
        assert find_direct_images(soup_of(html), f"{SITE}/p123") == [
            f"{SITE}/properties/123/a.jpg",
            "https://pic.example.com/properties/123/b.jpg",
        ]

    def test_strip_thumbnail_size(self):
        url = "https://pic.example.com/images/1024x768/properties/123/a.jpg"
        assert strip_thumbnail_size(url) == "https://pic.example.com/images/properties/123/a.jpg"

    def test_description_content_first(self):
        html = listing_html(description="Sunny villa", meta_description="Meta text")
        assert extract_description(soup_of(html)) == "Sunny villa"

    def test_description_container_fallback(self):
        html = listing_html(extra=(
            '<div data-role="description-text-container">Container text</div>'
        ))
        assert extract_description(soup_of(html)) == "Container text"

    def test_description_meta_fallback(self):
        html = listing_html(meta_description="Meta text")
        assert extract_description(soup_of(html)) == "Meta text"

    def test_no_description(self):
        assert extract_description(soup_of(listing_html())) is None


# =============================================================================
# PAGE EXTRACTOR
# =============================================================================

class TestPageExtractor:
    """Tests for PageExtractor.extract."""

    def test_payload_fields(self, settings):
        """Primary payload drives id, title, price and counts."""
        html = listing_html(
            primary={
                "id": 123,
                "title": "Villa X",
                "price": {"amount": "1,200,000", "currencyCode": "EUR"},
                "bedrooms": 5,
                "bathrooms": "4",
                "surface": "450 m2",
                "location": {"city": "Marbella", "postalCode": 29600},
            },
            features={"Rooms": "2", "Reference": "ZZ-1"},
            images=["/properties/123/a.jpg", "/properties/123/b.jpg"],
        )
        record = extract(settings, FakePage(html))

        assert record.external_id == "123"
        assert record.reference == "EXT-123"
        assert record.title == "Villa X"
        assert record.price.amount == Decimal("1200000")
        assert record.price.currency == "EUR"
        assert record.numeric.rooms == 5
        assert record.numeric.bathrooms == 4
        assert record.numeric.area_m2 == 450
        assert record.location.city == "Marbella"
        assert record.location.zip_code == "29600"
        assert record.location.country == "Spain"
        assert record.media.images == [
            f"{SITE}/properties/123/a.jpg",
            f"{SITE}/properties/123/b.jpg",
        ]

    def test_features_fill_gaps(self, settings):
        """Feature list values are used where the payload is silent."""
        html = listing_html(
            primary={"id": 7},
            features={
                "Rooms": "3 bedrooms",
                "Bathrooms": "N/A",
                "Type": "Villa",
                "Energy Rating": "B",
                "Neighborhood": "Golden Mile",
            },
        )
        record = extract(settings, FakePage(html))

        assert record.numeric.rooms == 3
        assert record.numeric.bathrooms is None
        assert record.details.property_type == "Villa"
        assert record.details.energy_rating == "B"
        assert record.location.neighborhood == "Golden Mile"
        assert record.features["Rooms"] == "3 bedrooms"

    def test_geo_info_translations(self, settings):
        html = listing_html(
            primary={"id": 7},
            features_payload={
                "geoInfo": {
                    "PPL": {"translations": {"en_GB": "Seville"}},
                    "ADM1": {"translations": {"en_GB": "Andalusia"}},
                    "PCLI": {"translations": {"en_GB": "Spain"}},
                },
                "transaction": "sale",
                "creationTime": "2024-01-02",
            },
        )
        record = extract(settings, FakePage(html))

        assert record.location.city == "Seville"
        assert record.location.province == "Andalusia"
        assert record.details.transaction == "sale"
        assert record.created_at == "2024-01-02"

    def test_no_payload_no_reference(self, settings):
        """Nothing identifies the listing: no record."""
        html = listing_html(features={"Rooms": "3"})
        assert extract(settings, FakePage(html)) is None

    def test_reference_fallback_id(self, settings):
        """Without a payload id the Reference feature becomes the id."""
        html = listing_html(features={"Reference": "ab 123 x"})
        record = extract(settings, FakePage(html))

        assert record.external_id == "AB-123-X"
        assert record.reference == "EXT-AB-123-X"

    def test_dom_price_fallback(self, settings):
        html = listing_html(
            primary={"id": 9},
            extra='<div class="prices"><span class="price">€ 3,400,000</span></div>',
        )
        record = extract(settings, FakePage(html))

        assert record.price.amount == Decimal("3400000")
        assert record.price.currency == "EUR"

    def test_description_precedence(self, settings):
        """Payload description wins over the DOM."""
        html = listing_html(primary={"id": 1, "description": "From payload"}, description="From DOM")
        assert extract(settings, FakePage(html)).description == "From payload"

        html = listing_html(primary={"id": 1}, description="From DOM")
        assert extract(settings, FakePage(html)).description == "From DOM"

    def test_media_from_gallery_payload(self, settings):
        html = listing_html(
            primary={"id": 1},
            gallery={
                "propertyFloorPlans": [{"src": "https://x/plan1.jpg"}, {"title": "no src"}],
                "videoUrl": "https://video/1",
                "virtualTourUrl": "https://tour/1",
            },
        )
        media = extract(settings, FakePage(html)).media

        assert media.floor_plans == ["https://x/plan1.jpg"]
        assert media.video_url == "https://video/1"
        assert media.virtual_tour_url == "https://tour/1"
        assert media.images == []

    def test_amenity_sources(self, settings):
        """DOM lists, extra features, direct booleans and view all set flags."""
        html = listing_html(
            primary={"id": 1},
            features={
                "Exterior Amenities": ["Swimming Pool", "Garage"],
                "Interior Amenities": "Home theater",
                "Sauna": "Yes",
                "Gym": "No",
                "View": "Sea view",
            },
            features_payload={"extraFeatures": [
                {"label": "interiorAmenities", "value": '["Fireplace"]'},
                {"label": "exteriorAmenities", "value": "Tennis court"},
            ]},
        )
        amenities = extract(settings, FakePage(html)).amenities

        assert amenities["has_pool"] is True
        assert amenities["has_garage"] is True
        assert amenities["has_cinema"] is True
        assert amenities["has_fireplace"] is True
        assert amenities["has_tennis_court"] is True
        assert amenities["has_sauna"] is True
        assert amenities["has_gym"] is False
        assert amenities["has_sea_view"] is True
        assert amenities["near_beach"] is True
        assert amenities["has_helipad"] is False

    def test_agency_from_payload(self, settings):
        html = listing_html(
            primary={"id": 1},
            agency={
                "agencyName": "Prime Homes",
                "agencyPhoneCrypted": "+34600000000",
                "agencyLogo": {"img": "https://x/logo.png"},
                "agencyLocation": "Marbella",
            },
        )
        agency = extract(settings, FakePage(html)).agency

        assert agency.name == "Prime Homes"
        assert agency.phone == "+34600000000"
        assert agency.logo_url == "https://x/logo.png"
        assert agency.location == "Marbella"

    def test_agency_contact_modal(self, settings):
        """Missing phone is read from the contact dialog when enabled."""
        settings = settings.model_copy(update={"fetch_agency_contact": True})
        before = listing_html(
            primary={"id": 1},
            extra='<button data-role="agency-contact">Contact</button>',
        )
        after = before.replace(
            "</body>",
            '<div class="agency-modal"><span class="agency-modal__name">Prime Homes</span>'
            '<span class="agency-modal__phone">+34 600 11 22 33</span>'
            '<button class="agency-modal__close">x</button></div></body>',
        )
        page = FakePage(before, clicks={'[data-role="agency-contact"], .agency__contact-button': after})

        agency = extract(settings, page).agency

        assert agency.name == "Prime Homes"
        assert agency.phone == "34600112233"
        assert ".agency-modal__close" in page.clicked

    def test_agency_modal_missing_trigger(self, settings):
        settings = settings.model_copy(update={"fetch_agency_contact": True})
        record = extract(settings, FakePage(listing_html(primary={"id": 1})))

        assert record.agency.phone is None


class TestGalleryModalImages:
    """Tests for the gallery overlay strategy."""

    trigger = '[data-role="gallery-trigger"], .lx-gallery__trigger'

    def test_no_trigger(self, settings):
        """A page without the trigger gives no images."""
        page = FakePage(listing_html(primary={"id": 1}, images=["/properties/1/a.jpg"]))
        record = extract(settings, page, image_strategy=GalleryModalImages(timeout_ms=10))

        assert record.media.images == []
        assert page.clicked == []

    def test_full_resolution_deduplicated(self, settings):
        before = listing_html(
            primary={"id": 1},
            extra='<button data-role="gallery-trigger">Photos</button>',
        )
        after = before.replace(
            "</body>",
            '<div class="lx-gallery-modal">'
            '<img src="https://pic.example.com/360x240/properties/1/a.jpg">'
            '<img src="https://pic.example.com/1024x768/properties/1/a.jpg">'
            '<img data-src="https://pic.example.com/360x240/properties/1/b.jpg">'
            '<img src="/static/placeholder.jpg">'
            '<button class="lx-gallery-modal__close">x</button></div></body>',
        )
        page = FakePage(before, clicks={self.trigger: after})

        record = extract(settings, page, image_strategy=GalleryModalImages(timeout_ms=10))

        assert record.media.images == [
            "https://pic.example.com/properties/1/a.jpg",
            "https://pic.example.com/properties/1/b.jpg",
        ]
        assert ".lx-gallery-modal__close" in page.clicked

    def test_strategy_from_settings(self, settings):
        settings = settings.model_copy(update={"image_strategy": ImageStrategy.GALLERY_MODAL})
        assert isinstance(PageExtractor(settings).image_strategy, GalleryModalImages)


class TestLoad:
    """Tests for PageExtractor.load."""

    def test_navigation_retried(self, settings):
        from luxury_scraper.utils.retry import RetryPolicy, fixed_backoff

        page = FakePage(listing_html(primary={"id": 1}), goto_failures=1)
        extractor = PageExtractor(settings, retry=RetryPolicy(max_attempts=2, backoff=fixed_backoff(0)))

        asyncio.run(extractor.load(page, f"{SITE}/p1"))

        assert page.goto_calls == [f"{SITE}/p1", f"{SITE}/p1"]
