import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

PLACEHOLDER_API_KEYS = {"replace-with-openai-key", "your-openai-api-key", "changeme"}


def normalize_env_value(value: str) -> str:
    normalized = value.strip()
    if len(normalized) >= 2 and normalized[0] == normalized[-1] and normalized[0] in {"'", '"'}:
        normalized = normalized[1:-1].strip()
    return normalized


def read_int_env(name: str, default: int, min_value: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("%s=%r is not an integer; using %s", name, raw, default)
        return default
    if value < min_value:
        return default
    return value


def read_float_env(name: str, default: float, min_value: float = 0.0, max_value: float = 1.0) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        logger.warning("%s=%r is not a number; using %s", name, raw, default)
        return default
    if value <= min_value or value > max_value:
        return default
    return value


def read_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_openai_api_key() -> str:
    api_key = normalize_env_value(os.getenv("OPENAI_API_KEY", ""))

    if not api_key:
        key_file = normalize_env_value(os.getenv("OPENAI_API_KEY_FILE", ""))
        if key_file:
            try:
                api_key = normalize_env_value(Path(key_file).read_text(encoding="utf-8"))
            except OSError:
                logger.warning("OPENAI_API_KEY_FILE is set but unreadable.")

    if api_key.lower() in PLACEHOLDER_API_KEYS:
        return ""
    return api_key


@dataclass(frozen=True)
class FuzzyMatchSettings:
    """Thresholds for the token-overlap species match."""

    min_ratio: float = 0.7
    min_hits: int = 2
    prefix_length: int = 4
    min_contain_length: int = 4
    min_token_length: int = 3

    @classmethod
    def from_env(cls) -> "FuzzyMatchSettings":
        return cls(
            min_ratio=read_float_env("FUZZY_MATCH_RATIO", 0.7),
            min_hits=read_int_env("FUZZY_MIN_HITS", 2),
            prefix_length=read_int_env("FUZZY_PREFIX_LENGTH", 4),
            min_contain_length=read_int_env("FUZZY_MIN_CONTAIN_LENGTH", 4),
            min_token_length=read_int_env("FUZZY_MIN_TOKEN_LENGTH", 3),
        )


OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")
SESSION_DB_PATH = normalize_env_value(os.getenv("SESSION_DB_PATH", ""))

HTTP_TIMEOUT_SECONDS = read_int_env("HTTP_TIMEOUT_SECONDS", 10)
NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/search")
INATURALIST_URL = os.getenv("INATURALIST_URL", "https://api.inaturalist.org/v1/observations/species_counts")
GEOCODER_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "WildlifeFinder/1.0")

MAX_DISPLAYED_SPECIES = read_int_env("MAX_DISPLAYED_SPECIES", 8)
MAX_DISPLAYED_ORGANIZATIONS = read_int_env("MAX_DISPLAYED_ORGANIZATIONS", 5)
SPECIES_CANDIDATE_LIMIT = read_int_env("SPECIES_CANDIDATE_LIMIT", 8)

MIN_LOCATION_LENGTH = read_int_env("MIN_LOCATION_LENGTH", 2)
MAX_LOCATION_LENGTH = read_int_env("MAX_LOCATION_LENGTH", 100)
MIN_ANIMAL_NAME_LENGTH = read_int_env("MIN_ANIMAL_NAME_LENGTH", 3)
MAX_ANIMAL_MESSAGE_LENGTH = read_int_env("MAX_ANIMAL_MESSAGE_LENGTH", 100)
MAX_GEOCODE_RETRIES = read_int_env("MAX_GEOCODE_RETRIES", 3)

TURN_TELEMETRY_ENABLED = read_bool_env("TURN_TELEMETRY_ENABLED", True)
