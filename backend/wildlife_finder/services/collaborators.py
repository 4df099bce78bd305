import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import httpx

from wildlife_finder import config
from wildlife_finder.models import DisambiguationOption, Location, Organization, Species
from wildlife_finder.services import gazetteer

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "worldwide"


class CollaboratorError(RuntimeError):
    """An external service failed or timed out during a turn."""

    def __init__(self, collaborator: str, detail: str = "") -> None:
        self.collaborator = collaborator
        self.detail = detail
        super().__init__(f"{collaborator} failed: {detail}" if detail else f"{collaborator} failed")


@dataclass
class AmbiguityVerdict:
    ambiguous: bool
    options: List[DisambiguationOption] = field(default_factory=list)


class Geocoder(Protocol):
    def geocode(self, phrase: str) -> Optional[Location]: ...


class AmbiguityChecker(Protocol):
    def classify_ambiguity(self, phrase: str) -> AmbiguityVerdict: ...


class InputTypeClassifier(Protocol):
    def classify_input_type(self, message: str) -> str: ...


class SpeciesSource(Protocol):
    def fetch_species_for_location(self, location: Location) -> List[Species]: ...


class OrganizationFinder(Protocol):
    def fetch_organizations(self, animal_name: str, scope_name: str) -> List[Organization]: ...


def _http_client(timeout: float) -> httpx.Client:
    return httpx.Client(
        timeout=httpx.Timeout(timeout, connect=5.0),
        headers={"User-Agent": config.GEOCODER_USER_AGENT},
        follow_redirects=True,
    )


class NominatimGeocoder:
    """OpenStreetMap Nominatim search, first result wins."""

    def __init__(
        self,
        base_url: str = config.NOMINATIM_URL,
        client: Optional[httpx.Client] = None,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url
        self._owns_client = client is None
        self._client = client or _http_client(timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def geocode(self, phrase: str) -> Optional[Location]:
        params = {
            "q": phrase,
            "format": "json",
            "limit": 3,
            "addressdetails": 1,
            "accept-language": "en",
        }
        response = self._client.get(self.base_url, params=params)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, list) or not data:
            logger.info("No geocoding results for %r", phrase)
            return None

        selected = data[0]
        # Country lookups go through the formal name; prefer the country-level polygon.
        if phrase in gazetteer.COUNTRY_CANONICAL_NAMES.values():
            country_level = next(
                (
                    item
                    for item in data
                    if item.get("type") == "administrative" and self._safe_rank(item) <= 8
                ),
                None,
            )
            if country_level:
                selected = country_level

        return self._to_location(selected, phrase)

    @staticmethod
    def _safe_rank(item: Dict[str, Any]) -> int:
        try:
            return int(item.get("place_rank", 99))
        except (TypeError, ValueError):
            return 99

    @staticmethod
    def _to_location(item: Dict[str, Any], phrase: str) -> Location:
        address = item.get("address") or {}
        return Location(
            lat=float(item["lat"]),
            lon=float(item["lon"]),
            display_name=str(item.get("display_name") or phrase),
            city=address.get("city") or address.get("town") or address.get("village"),
            state=address.get("state"),
            country=address.get("country"),
        )


class INaturalistSpeciesSource:
    """Threatened species observed within a radius of the location."""

    ICONIC_TAXA = "Mammalia,Aves,Reptilia,Amphibia"

    def __init__(
        self,
        base_url: str = config.INATURALIST_URL,
        client: Optional[httpx.Client] = None,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
        radius_km: int = 50,
        limit: int = config.SPECIES_CANDIDATE_LIMIT,
    ) -> None:
        self.base_url = base_url
        self.radius_km = radius_km
        self.limit = limit
        self._owns_client = client is None
        self._client = client or _http_client(timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def fetch_species_for_location(self, location: Location) -> List[Species]:
        params = {
            "lat": location.lat,
            "lng": location.lon,
            "radius": self.radius_km,
            "per_page": self.limit * 3,
            "iconic_taxa": self.ICONIC_TAXA,
            "threatened": "true",
            "locale": "en",
        }
        response = self._client.get(self.base_url, params=params)
        response.raise_for_status()
        payload = response.json()
        results = payload.get("results") if isinstance(payload, dict) else None

        species: List[Species] = []
        for item in results or []:
            taxon = item.get("taxon") if isinstance(item, dict) else None
            if not isinstance(taxon, dict):
                continue
            scientific_name = str(taxon.get("name") or "").strip()
            common_name = str(taxon.get("preferred_common_name") or scientific_name).strip()
            if not common_name:
                continue
            species.append(
                Species(
                    common_name=common_name,
                    scientific_name=scientific_name,
                    conservation_status=conservation_status_label(taxon.get("conservation_status")),
                )
            )

        if not species:
            logger.info("iNaturalist returned no species near %s; using regional fallback", location.display_name)
            return fallback_species_for(location)
        return species


def conservation_status_label(raw: Any) -> str:
    if not raw:
        return "Unknown"
    if isinstance(raw, dict):
        code = str(raw.get("status") or "").strip().upper()
        if code in gazetteer.IUCN_STATUS_LABELS:
            return gazetteer.IUCN_STATUS_LABELS[code]
        status_name = str(raw.get("status_name") or "").strip()
        return status_name.title() if status_name else "Unknown"
    code = str(raw).strip().upper()
    return gazetteer.IUCN_STATUS_LABELS.get(code, str(raw).strip() or "Unknown")


def fallback_species_for(location: Location) -> List[Species]:
    state = (location.state or "").lower()
    display = location.display_name.lower()
    if "nevada" in state or "las vegas" in display:
        key = "nevada"
    elif "colorado" in state:
        key = "colorado"
    else:
        key = "default"
    return [
        Species(common_name=common_name, scientific_name=scientific_name)
        for common_name, scientific_name in gazetteer.FALLBACK_SPECIES[key]
    ]


def is_us_scope(scope_name: str) -> bool:
    lower = scope_name.lower()
    if any(marker in lower for marker in gazetteer.US_SCOPE_MARKERS):
        return True
    parts = [part.strip() for part in lower.split(",")]
    return any(part in gazetteer.US_STATES for part in parts)


class DirectoryOrganizationFinder:
    """Well-known national and international organizations; never fails."""

    def fetch_organizations(self, animal_name: str, scope_name: str) -> List[Organization]:
        if scope_name != GLOBAL_SCOPE and is_us_scope(scope_name):
            entries = gazetteer.NATIONAL_US_ORGANIZATIONS + gazetteer.INTERNATIONAL_ORGANIZATIONS[:1]
        else:
            entries = gazetteer.INTERNATIONAL_ORGANIZATIONS
        return [Organization(**entry) for entry in entries]
