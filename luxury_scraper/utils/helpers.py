"""Field normalization helpers and small scraping utilities."""

import asyncio
import json
import random
import re
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation

from luxury_scraper.utils.amenities import (
    AMENITY_KEYWORDS,
    AMENITY_LABELS,
    ANY,
    EXTERIOR,
    INTERIOR,
    empty_flags,
)

_DIGITS = re.compile(r"\d+")
_PRICE_NUMBER = re.compile(r"\d[\d.,]*")


async def random_delay(min_seconds: float, max_seconds: float) -> None:
    """Sleep for a random duration between min and max seconds."""
    if max_seconds <= 0:
        return
    delay = random.uniform(min_seconds, max_seconds)
    await asyncio.sleep(delay)


def extract_number(raw) -> int | None:
    """
    Extract the first run of digits from the stringified input.

    Decimals, thousands separators and signs are not interpreted:
    "1,200 m2" gives 1 and "-3" gives 3. Listing pages print small
    integers for these fields so only the first digit run is read.
    """
    if raw is None or isinstance(raw, bool):
        return None

    match = _DIGITS.search(str(raw))
    if match:
        return int(match.group())
    return None


def normalize_boolean(raw) -> bool | None:
    """
    Map yes/no style values to a boolean.

    Returns None when the value carries no signal; callers keep the prior value.
    """
    if raw is True or raw is False:
        return raw
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in ("true", "yes"):
            return True
        if value in ("false", "no"):
            return False
    return None


def normalize_amenity_field(raw) -> list[str]:
    """
    Coerce a raw amenity field into a list of strings.

    Lists pass through, a JSON-encoded array string is decoded, any other
    string becomes a one-element list and everything else is empty.
    """
    if isinstance(raw, (list, tuple)):
        return [str(item) for item in raw]

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except ValueError:
                return []
            if isinstance(decoded, list):
                return [str(item) for item in decoded]
            return []
        return [text]

    return []


def amenity_keyword_match(amenities: Iterable[str], keywords: Iterable[str]) -> bool:
    """Case-insensitive substring match of any keyword against any entry."""
    entries = [entry.lower() for entry in amenities]
    return any(keyword.lower() in entry for keyword in keywords for entry in entries)


def derive_amenity_flags(
    exterior: Iterable[str] = (),
    interior: Iterable[str] = (),
    flags: dict[str, bool] | None = None,
) -> dict[str, bool]:
    """
    Set amenity flags from exterior/interior amenity lists.

    Exact labels are looked up first, then keyword rules run against the
    list they belong to. Flags are only ever switched on.
    """
    flags = dict(flags) if flags is not None else empty_flags()
    exterior = list(exterior)
    interior = list(interior)

    for entry in exterior + interior:
        flag = AMENITY_LABELS.get(entry.strip().lower())
        if flag:
            flags[flag] = True

    sources = {EXTERIOR: exterior, INTERIOR: interior, ANY: exterior + interior}
    for flag, (keywords, source) in AMENITY_KEYWORDS.items():
        if not flags.get(flag) and amenity_keyword_match(sources[source], keywords):
            flags[flag] = True

    return flags


def parse_price(raw) -> Decimal | None:
    """
    Parse a price amount such as 1200000, "1,200,000", "1.200.000 €" or "€ 1.250,50".

    Dots and commas are both accepted as thousands separators.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        try:
            amount = Decimal(str(raw))
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None

    match = _PRICE_NUMBER.search(str(raw))
    if not match:
        return None

    number = match.group().rstrip(".,")
    last = max(number.rfind("."), number.rfind(","))
    if last == -1:
        return Decimal(number)

    # Both "1.200.000" and "1,200,000" use thousands separators; the last
    # separator is a decimal mark only when it is not followed by 3 digits
    if len(number) - last - 1 == 3:
        number = number.replace(".", "").replace(",", "")
    else:
        whole = number[:last].replace(".", "").replace(",", "")
        number = f"{whole}.{number[last + 1:]}"

    try:
        return Decimal(number)
    except InvalidOperation:
        return None


def digits_only(text: str | None) -> str | None:
    """Strip everything but digits, e.g. from a phone number."""
    if not text:
        return None
    digits = re.sub(r"\D", "", text)
    return digits or None


def clean_text(text: str | None) -> str | None:
    """Clean and normalize text."""
    if not text:
        return None

    # Remove extra whitespace
    text = " ".join(text.split())
    return text.strip() or None
