"""
Filter normalizer for lead search
Turns raw query-string or JSON input into a canonical SearchRequest
"""

import re
import json
import math
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Type, Union

from ..errors import ValidationError
from ..models.lead import LeadStatus, BusinessStatus, PriceLevel
from ..models.search import (
    SearchFilter, Pagination, SortSpec, SearchRequest,
    DEFAULT_PAGE, DEFAULT_LIMIT, MAX_LIMIT, MAX_PAGE, DEFAULT_SORT_FIELD, DEFAULT_SORT_DIRECTION,
)

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("created_at", "business_name", "google_rating", "review_count", "city", "state")
SORT_DIRECTIONS = ("asc", "desc")

MAX_TEXT_LENGTH = 100
MIN_RATING, MAX_RATING = 0.0, 5.0

KEY_ALIASES = {
    "category": "business_category",
    "sort": "sort_by",
    "sortby": "sort_by",
    "order": "sort_order",
    "sortorder": "sort_order",
    "direction": "sort_order",
    "name_contains": "business_name_contains",
    "q": "business_name_contains",
}

LOWERCASE_FIELDS = ("city", "business_category", "business_name_contains")
BOOLEAN_FIELDS = ("has_website", "has_phone", "pure_service_area_business")
ENUM_FIELDS = {
    "status": LeadStatus,
    "business_status": BusinessStatus,
}
RATING_FIELDS = ("min_rating", "max_rating")
DATETIME_FIELDS = ("created_after", "created_before")

TRUE_VALUES = {"true", "1", "yes", "y", "on"}
FALSE_VALUES = {"false", "0", "no", "n", "off"}

US_STATE_CODES = {
    "ALABAMA": "AL", "ALASKA": "AK", "ARIZONA": "AZ", "ARKANSAS": "AR", "CALIFORNIA": "CA",
    "COLORADO": "CO", "CONNECTICUT": "CT", "DELAWARE": "DE", "DISTRICT OF COLUMBIA": "DC",
    "FLORIDA": "FL", "GEORGIA": "GA", "HAWAII": "HI", "IDAHO": "ID", "ILLINOIS": "IL",
    "INDIANA": "IN", "IOWA": "IA", "KANSAS": "KS", "KENTUCKY": "KY", "LOUISIANA": "LA",
    "MAINE": "ME", "MARYLAND": "MD", "MASSACHUSETTS": "MA", "MICHIGAN": "MI", "MINNESOTA": "MN",
    "MISSISSIPPI": "MS", "MISSOURI": "MO", "MONTANA": "MT", "NEBRASKA": "NE", "NEVADA": "NV",
    "NEW HAMPSHIRE": "NH", "NEW JERSEY": "NJ", "NEW MEXICO": "NM", "NEW YORK": "NY",
    "NORTH CAROLINA": "NC", "NORTH DAKOTA": "ND", "OHIO": "OH", "OKLAHOMA": "OK", "OREGON": "OR",
    "PENNSYLVANIA": "PA", "RHODE ISLAND": "RI", "SOUTH CAROLINA": "SC", "SOUTH DAKOTA": "SD",
    "TENNESSEE": "TN", "TEXAS": "TX", "UTAH": "UT", "VERMONT": "VT", "VIRGINIA": "VA",
    "WASHINGTON": "WA", "WEST VIRGINIA": "WV", "WISCONSIN": "WI", "WYOMING": "WY",
}

PRICE_LEVELS = list(PriceLevel)


class FilterNormalizer:
    """Builds canonical search requests; degrades bad values instead of rejecting them"""

    def decode(self, raw: Any) -> Union[SearchRequest, ValidationError]:
        """
        Decode raw input into either a canonical request or a ValidationError

        Args:
            raw: Mapping of query params / JSON body, JSON text, or None

        Returns:
            SearchRequest on success, ValidationError for unparseable payloads
        """
        if raw is None:
            raw = {}

        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")

        if isinstance(raw, str):
            text = raw.strip()
            if not text:
                raw = {}
            else:
                try:
                    raw = json.loads(text)
                except ValueError:
                    return ValidationError("Search body is not valid JSON")

        if not isinstance(raw, Mapping):
            return ValidationError(
                "Search input must be an object",
                {"received": type(raw).__name__},
            )

        return self._normalize_mapping(raw)

    def normalize(self, raw: Any) -> SearchRequest:
        """Normalize raw input, raising ValidationError only for unparseable payloads"""
        decoded = self.decode(raw)
        if isinstance(decoded, ValidationError):
            raise decoded
        return decoded

    # Coercions shared with lead writers so stored values match normalized filters

    def coerce_text(self, value: Any) -> Optional[str]:
        return self._clean_text(value)

    def coerce_state(self, value: Any) -> Optional[str]:
        return self._normalize_state(value)

    def coerce_enum(self, enum_cls: Type[Enum], value: Any) -> Optional[Enum]:
        return self._parse_enum(enum_cls, value)

    def coerce_price_level(self, value: Any) -> Optional[PriceLevel]:
        return self._parse_price_level(value)

    def _normalize_mapping(self, raw: Mapping) -> SearchRequest:
        values = self._flatten(raw)

        filters = self._build_filters(values)
        pagination = Pagination(
            page=self._clamp_page(self._parse_positive_int(values.get("page"))),
            limit=self._clamp_limit(self._parse_positive_int(values.get("limit"))),
        )
        sort = SortSpec(
            field=self._parse_choice(values.get("sort_by"), SORTABLE_FIELDS, DEFAULT_SORT_FIELD),
            direction=self._parse_choice(values.get("sort_order"), SORT_DIRECTIONS, DEFAULT_SORT_DIRECTION),
        )

        return SearchRequest(filter=filters, pagination=pagination, sort=sort)

    def _flatten(self, raw: Mapping) -> Dict[str, Any]:
        """Canonicalize keys and merge a nested `filters` object under the top level"""
        values: Dict[str, Any] = {}

        nested = raw.get("filters")
        sources = [nested, raw] if isinstance(nested, Mapping) else [raw]

        for source in sources:
            # Sorted so that keys differing only in casing resolve the same way every time
            for key, value in sorted(source.items(), key=lambda item: str(item[0])):
                canonical_key = self._canonical_key(key)
                if canonical_key == "filters":
                    continue
                if isinstance(value, (list, tuple)):
                    value = value[-1] if value else None
                if value is None:
                    continue
                values[canonical_key] = value

        return values

    def _canonical_key(self, key: Any) -> str:
        normalized = re.sub(r"[\s-]+", "_", str(key).strip().lower())
        return KEY_ALIASES.get(normalized, normalized)

    def _build_filters(self, values: Dict[str, Any]) -> SearchFilter:
        filters: Dict[str, Any] = {}

        for field in LOWERCASE_FIELDS:
            text = self._clean_text(values.get(field))
            if text:
                filters[field] = text.lower()

        state = self._normalize_state(values.get("state"))
        if state:
            filters["state"] = state

        for field in BOOLEAN_FIELDS:
            flag = self._parse_bool(values.get(field))
            if flag is not None:
                filters[field] = flag

        for field, enum_cls in ENUM_FIELDS.items():
            member = self._parse_enum(enum_cls, values.get(field))
            if member is not None:
                filters[field] = member

        price_level = self._parse_price_level(values.get("price_level"))
        if price_level is not None:
            filters["price_level"] = price_level

        for field in RATING_FIELDS:
            rating = self._parse_number(values.get(field))
            if rating is not None:
                filters[field] = min(max(rating, MIN_RATING), MAX_RATING)

        for field in DATETIME_FIELDS:
            moment = self._parse_datetime(values.get(field))
            if moment is not None:
                filters[field] = moment

        self._order_bounds(filters, "min_rating", "max_rating")
        self._order_bounds(filters, "created_after", "created_before")

        return SearchFilter(**filters)

    def _order_bounds(self, filters: Dict[str, Any], lower: str, upper: str) -> None:
        if lower in filters and upper in filters and filters[lower] > filters[upper]:
            logger.debug(f"Swapping inverted bounds {lower}/{upper}")
            filters[lower], filters[upper] = filters[upper], filters[lower]

    def _clean_text(self, value: Any) -> Optional[str]:
        if value is None or isinstance(value, (bool, Mapping)):
            return None
        try:
            text = str(value)
        except ValueError:
            # ints past the interpreter's digit limit
            return None
        text = re.sub(r"\s+", " ", text).strip()
        return text[:MAX_TEXT_LENGTH].strip() or None

    def _normalize_state(self, value: Any) -> Optional[str]:
        text = self._clean_text(value)
        if not text:
            return None
        upper = text.upper()
        return US_STATE_CODES.get(upper, upper)

    def _parse_bool(self, value: Any) -> Optional[bool]:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            text = value.strip().lower()
            if text in TRUE_VALUES:
                return True
            if text in FALSE_VALUES:
                return False
        return None

    def _parse_enum(self, enum_cls: Type[Enum], value: Any) -> Optional[Enum]:
        text = self._clean_text(value)
        if not text:
            return None
        wanted = text.replace(" ", "_").lower()
        for member in enum_cls:
            if wanted in (member.value.lower(), member.name.lower()):
                return member
        return None

    def _parse_price_level(self, value: Any) -> Optional[PriceLevel]:
        level = self._parse_number(value)
        if level is not None:
            index = int(round(min(max(level, 0), len(PRICE_LEVELS) - 1)))
            return PRICE_LEVELS[index]

        member = self._parse_enum(PriceLevel, value)
        if member is not None:
            return member

        # Bare names such as "moderate"
        text = self._clean_text(value)
        if text:
            return self._parse_enum(PriceLevel, f"PRICE_LEVEL_{text}")
        return None

    def _parse_number(self, value: Any) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value.strip() if isinstance(value, str) else value)
        except (TypeError, ValueError, OverflowError):
            return None
        return number if math.isfinite(number) else None

    def _parse_positive_int(self, value: Any) -> Optional[int]:
        number = self._parse_number(value)
        if number is None or not number.is_integer() or number < 1:
            return None
        return int(number)

    def _clamp_page(self, page: Optional[int]) -> int:
        if page is None or page > MAX_PAGE:
            return DEFAULT_PAGE
        return page

    def _clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return DEFAULT_LIMIT
        return min(limit, MAX_LIMIT)

    def _parse_choice(self, value: Any, choices, default: str) -> str:
        text = self._clean_text(value)
        if text and text.lower() in choices:
            return text.lower()
        return default

    def _parse_datetime(self, value: Any) -> Optional[str]:
        if isinstance(value, datetime):
            moment = value
        else:
            text = self._clean_text(value)
            if not text:
                return None
            try:
                moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None

        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(timezone.utc).isoformat()


_default_normalizer = FilterNormalizer()


def decode_search_input(raw: Any) -> Union[SearchRequest, ValidationError]:
    return _default_normalizer.decode(raw)


def normalize(raw: Any) -> SearchRequest:
    return _default_normalizer.normalize(raw)
