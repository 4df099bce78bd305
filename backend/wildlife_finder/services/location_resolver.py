import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Union

from wildlife_finder import config
from wildlife_finder.models import DisambiguationOption, Location
from wildlife_finder.services import gazetteer
from wildlife_finder.services.collaborators import AmbiguityChecker, Geocoder
from wildlife_finder.services.input_classifier import extract_location_phrase

logger = logging.getLogger(__name__)

LEADING_LOCATIVE = re.compile(
    r"^(?:i\s+(?:am|live)\s+in|i\s+am\s+from|im\s+in|im\s+from|in|near|around|from)\s+",
    re.IGNORECASE,
)
_OPTION_NUMBER = re.compile(r"^(?:option|number|no\.?|#)?\s*(\d+)$", re.IGNORECASE)

TOO_SHORT_MESSAGE = "Location must be at least 2 characters long."
TOO_LONG_MESSAGE = "Location input is too long. Please use a shorter location name."
NOT_A_LOCATION_MESSAGE = "Please provide a location such as a city, state, or country name."


@dataclass
class ResolvedLocation:
    location: Location
    query: str


@dataclass
class NeedsDisambiguation:
    options: List[DisambiguationOption]
    query: str


@dataclass
class NotFound:
    message: str
    query: str = ""


ResolveResult = Union[ResolvedLocation, NeedsDisambiguation, NotFound]


def sanitize(phrase: str) -> str:
    text = re.sub(r"[^\w\s,.-]", "", phrase.strip())
    text = text.replace("_", " ")
    return re.sub(r"\s+", " ", text).strip()


def strip_locative(text: str) -> str:
    stripped = LEADING_LOCATIVE.sub("", text, count=1).strip()
    return stripped or text


def title_case(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split(" "))


def is_united_states(country: Optional[str]) -> bool:
    lower = (country or "").lower()
    return "united states" in lower or lower in {"usa", "us"}


def preferred_display_name(location: Location) -> str:
    if is_united_states(location.country) and location.city and location.state:
        return f"{location.city}, {location.state}, {location.country}"
    if location.city and location.country and not location.state:
        return f"{location.city}, {location.country}"
    if location.state and location.country and not location.city:
        return f"{location.state}, {location.country}"
    return location.display_name


def normalize_location(location: Location) -> Location:
    return location.model_copy(update={"display_name": preferred_display_name(location)})


def alternative_queries(query: str, limit: int = 3) -> List[str]:
    if "," not in query:
        alternatives = [
            f"{query}, USA",
            f"{query}, United States",
            f"{query}, Canada",
            f"{query}, United Kingdom",
            f"{query}, Australia",
        ]
    else:
        parts = [part.strip() for part in query.split(",") if part.strip()]
        alternatives = [f"{parts[0]} {parts[1]}", f"{parts[1]}, {parts[0]}"] if len(parts) == 2 else []
    return alternatives[: max(0, min(limit, 3))]


def select_option(reply: str, options: List[DisambiguationOption]) -> Optional[DisambiguationOption]:
    """Pick the option a user meant: exact name, then containment, then a 1-based number."""
    text = re.sub(r"\s+", " ", reply.replace("*", "")).strip().strip(".!").lower()
    if not text or not options:
        return None

    for option in options:
        if text == option.display_name.lower():
            return option

    if len(text) >= 3:
        for option in options:
            fields = [option.display_name, option.region or "", option.country]
            for value in (item.lower() for item in fields if item):
                if text in value or value in text:
                    return option

    number = _OPTION_NUMBER.match(text)
    if number:
        index = int(number.group(1)) - 1
        if 0 <= index < len(options):
            return options[index]
    return None


@dataclass
class LocationResolver:
    geocoder: Geocoder
    ambiguity_checker: Optional[AmbiguityChecker] = None
    max_retries: int = config.MAX_GEOCODE_RETRIES
    ambiguous_places: dict = field(default_factory=lambda: gazetteer.AMBIGUOUS_PLACES)

    def resolve(self, phrase: str) -> ResolveResult:
        cleaned = sanitize(phrase)
        extracted = (extract_location_phrase(cleaned) or strip_locative(cleaned)).strip(" ,.")
        rejection = self._validate(extracted)
        if rejection:
            return NotFound(message=rejection, query=extracted)

        key = extracted.lower()
        display = title_case(extracted)

        static_options = self.ambiguous_places.get(key)
        if static_options:
            return NeedsDisambiguation(
                options=[DisambiguationOption(**option) for option in static_options],
                query=display,
            )

        if "," not in key and len(key.split()) <= 2:
            options = self._semantic_options(display)
            if len(options) >= 2:
                return NeedsDisambiguation(options=options, query=display)

        search_query = gazetteer.COUNTRY_CANONICAL_NAMES.get(key, display)
        location = self.geocoder.geocode(search_query)
        if location is None:
            for alternative in alternative_queries(display, limit=self.max_retries):
                location = self.geocoder.geocode(alternative)
                if location is not None:
                    logger.info("Geocoded %r via alternative query %r", display, alternative)
                    return ResolvedLocation(location=normalize_location(location), query=alternative)
            return NotFound(
                message=f'Unable to find "{display}". Please try a different format like "City, State" or "City, Country".',
                query=display,
            )

        return ResolvedLocation(location=normalize_location(location), query=search_query)

    def resolve_option(self, option: DisambiguationOption) -> ResolveResult:
        location = self.geocoder.geocode(option.search_query)
        if location is None:
            return NotFound(
                message=f"Unable to find location data for {option.display_name}. Please try a different location.",
                query=option.search_query,
            )
        return ResolvedLocation(location=normalize_location(location), query=option.search_query)

    def _validate(self, cleaned: str) -> Optional[str]:
        if len(cleaned) < config.MIN_LOCATION_LENGTH:
            return TOO_SHORT_MESSAGE
        if len(cleaned) > config.MAX_LOCATION_LENGTH:
            return TOO_LONG_MESSAGE
        if gazetteer.matches_any(cleaned, gazetteer.NON_LOCATION_PATTERNS):
            return NOT_A_LOCATION_MESSAGE
        return None

    def _semantic_options(self, display: str) -> List[DisambiguationOption]:
        if self.ambiguity_checker is None:
            return []
        try:
            verdict = self.ambiguity_checker.classify_ambiguity(display)
        except Exception:
            logger.warning("Ambiguity check failed for %r; treating as unambiguous", display, exc_info=True)
            return []
        if not verdict.ambiguous:
            return []
        return list(verdict.options)
