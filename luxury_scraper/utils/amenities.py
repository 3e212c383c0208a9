"""
Enumerated amenity vocabulary.

Includes:
- Keyword table used to match free-text amenity lists
- Label table used when the page provides clean amenity labels
- Direct boolean features read from the feature list
"""

EXTERIOR = "exterior"
INTERIOR = "interior"
ANY = "any"


# =============================================================================
# KEYWORD TABLE
# =============================================================================

# flag -> (keywords, list the keywords are matched against)
AMENITY_KEYWORDS: dict[str, tuple[tuple[str, ...], str]] = {
    # Exterior
    "has_pool": (("pool",), EXTERIOR),
    "has_garden": (("garden",), EXTERIOR),
    "has_garage": (("garage", "parking"), EXTERIOR),
    "has_barbeque_area": (("barbeque area", "barbecue", "bbq"), EXTERIOR),
    "has_basement": (("basement",), EXTERIOR),
    "has_courtyard": (("courtyard",), EXTERIOR),
    "has_disabled_access": (("disabled access",), EXTERIOR),
    "has_gated_entry": (("gated entry",), EXTERIOR),
    "has_greenhouse": (("greenhouse",), EXTERIOR),
    "has_hottub": (("hottub", "hot tub", "spa"), EXTERIOR),
    "has_lawn": (("lawn",), EXTERIOR),
    "has_mother_in_law_unit": (("mother-in-law", "mother in law"), EXTERIOR),
    "has_patio": (("patio",), EXTERIOR),
    "has_pond": (("pond",), EXTERIOR),
    "has_porch": (("porch",), EXTERIOR),
    "has_private_patio": (("private patio",), EXTERIOR),
    "has_sports_court": (("sports court",), EXTERIOR),
    "has_sprinkler_system": (("sprinkler system",), EXTERIOR),
    "is_waterfront": (("waterfront",), EXTERIOR),
    "has_tennis_court": (("tennis court",), EXTERIOR),
    "has_helipad": (("helipad",), EXTERIOR),
    # Interior
    "has_attic": (("attic",), INTERIOR),
    "has_cable_satellite": (("cable", "satellite"), INTERIOR),
    "has_doublepane_windows": (("doublepane windows", "double pane"), INTERIOR),
    "has_elevator": (("elevator",), INTERIOR),
    "has_fireplace": (("fireplace",), INTERIOR),
    "furnished": (("furnished",), INTERIOR),
    "has_hand_rails": (("hand rails",), INTERIOR),
    "has_cinema": (("home theater", "cinema"), INTERIOR),
    "has_intercom": (("intercom",), INTERIOR),
    "has_jacuzzi": (("jacuzzi", "jetted bath tub"), INTERIOR),
    "has_sauna": (("sauna",), INTERIOR),
    "has_security_system": (("security system",), INTERIOR),
    "has_skylight": (("skylight",), INTERIOR),
    "has_vaulted_ceiling": (("vaulted ceiling",), INTERIOR),
    "has_wet_bar": (("wet bar",), INTERIOR),
    "has_window_coverings": (("window coverings",), INTERIOR),
    "has_gym": (("gym",), INTERIOR),
    # Either list
    "has_terrace": (("terrace",), ANY),
    "has_sea_view": (("sea view",), ANY),
    "near_beach": (("beachfront",), ANY),
}

AMENITY_FLAGS: tuple[str, ...] = tuple(AMENITY_KEYWORDS)


# =============================================================================
# LABEL TABLE
# =============================================================================

# Canonical amenity labels (lowercase) -> flag
AMENITY_LABELS: dict[str, str] = {
    "pool": "has_pool",
    "swimming pool": "has_pool",
    "garden": "has_garden",
    "garage": "has_garage",
    "parking": "has_garage",
    "jacuzzi": "has_jacuzzi",
    "sauna": "has_sauna",
    "gym": "has_gym",
    "terrace": "has_terrace",
    "elevator": "has_elevator",
    "sea view": "has_sea_view",
    "barbecue area": "has_barbeque_area",
    "bbq area": "has_barbeque_area",
    "basement": "has_basement",
    "courtyard": "has_courtyard",
    "disabled access": "has_disabled_access",
    "gated entry": "has_gated_entry",
    "greenhouse": "has_greenhouse",
    "hot tub": "has_hottub",
    "lawn": "has_lawn",
    "patio": "has_patio",
    "pond": "has_pond",
    "porch": "has_porch",
    "private patio": "has_private_patio",
    "sports court": "has_sports_court",
    "waterfront": "is_waterfront",
    "attic": "has_attic",
    "cable/satellite": "has_cable_satellite",
    "double pane windows": "has_doublepane_windows",
    "security system": "has_security_system",
    "skylight": "has_skylight",
    "vaulted ceiling": "has_vaulted_ceiling",
    "wet bar": "has_wet_bar",
    "fireplace": "has_fireplace",
    "cinema": "has_cinema",
    "tennis court": "has_tennis_court",
    "helipad": "has_helipad",
    "furnished": "furnished",
    "intercom": "has_intercom",
}


# =============================================================================
# DIRECT BOOLEAN FEATURES
# =============================================================================

# Feature labels (as shown on the page) whose value is a yes/no answer
BOOLEAN_FEATURES: dict[str, tuple[str, ...]] = {
    "has_pool": ("Pool", "Swimming pool"),
    "has_garden": ("Garden",),
    "has_garage": ("Garage", "Parking"),
    "near_beach": ("Beachfront", "Distance to beach"),
    "has_jacuzzi": ("Jacuzzi",),
    "has_sauna": ("Sauna",),
    "has_gym": ("Gym",),
    "has_terrace": ("Terrace",),
    "has_elevator": ("Elevator",),
    "has_sea_view": ("Sea view",),
    "furnished": ("Furnished",),
}

SEA_VIEW_TERMS = ("sea", "ocean", "waterfront", "beach", "marina")


def empty_flags() -> dict[str, bool]:
    """All amenity flags set to False."""
    return {flag: False for flag in AMENITY_FLAGS}
