import re
from dataclasses import dataclass, field
from typing import Callable, List, Literal, Optional, Tuple

from wildlife_finder import config
from wildlife_finder.config import FuzzyMatchSettings
from wildlife_finder.models import Species
from wildlife_finder.services import gazetteer

MatchStatus = Literal["matched", "no-match", "non-animal-input"]

_TRAILING_PARENTHETICAL = re.compile(r"\s*\([^()]*\)\s*$")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


@dataclass
class SpeciesMatch:
    status: MatchStatus
    species: Optional[Species] = None
    strategy: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.status == "matched"


def strip_status_suffix(text: str) -> str:
    """'Florida Panther (Endangered)' -> 'Florida Panther'."""
    return _TRAILING_PARENTHETICAL.sub("", text).strip()


def normalize_name(text: str) -> str:
    return re.sub(r"\s+", " ", _NON_ALNUM.sub("", text.lower())).strip()


def tokenize(text: str, min_length: int = 3) -> List[str]:
    return [token for token in _TOKEN_SPLIT.split(text.lower()) if len(token) >= min_length]


def dedupe_species(species: List[Species]) -> List[Species]:
    unique: List[Species] = []
    seen: set[str] = set()
    for item in species:
        key = normalize_name(item.common_name)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def _names(candidate: Species) -> List[str]:
    return [name for name in (candidate.common_name, candidate.scientific_name) if name and name.strip()]


def _exact(message: str, candidate: Species) -> bool:
    text = message.strip().lower()
    bare_text = strip_status_suffix(text)
    for name in _names(candidate):
        lower = name.strip().lower()
        if text == lower or bare_text == lower or bare_text == strip_status_suffix(lower):
            return True
    return False


def _normalized(message: str, candidate: Species) -> bool:
    text = normalize_name(strip_status_suffix(message))
    if not text:
        return False
    return any(text == normalize_name(strip_status_suffix(name)) for name in _names(candidate))


def _substring(message: str, candidate: Species) -> bool:
    text = strip_status_suffix(message).strip().lower()
    name = strip_status_suffix(candidate.common_name).strip().lower()
    if not text or not name:
        return False
    return name in text or text in name


@dataclass
class SpeciesMatcher:
    """Matches a user reply against the species list shown in the previous turn.

    Strategies run in priority order across the whole list: exact, normalized,
    substring, then fuzzy token overlap. Within a strategy the first candidate
    in list order wins.
    """

    fuzzy: FuzzyMatchSettings = field(default_factory=FuzzyMatchSettings.from_env)
    max_message_length: int = config.MAX_ANIMAL_MESSAGE_LENGTH
    min_message_length: int = config.MIN_ANIMAL_NAME_LENGTH

    def match(self, message: str, candidates: List[Species]) -> SpeciesMatch:
        if self.is_non_animal_input(message):
            return SpeciesMatch(status="non-animal-input")

        strategies: List[Tuple[str, Callable[[str, Species], bool]]] = [
            ("exact", _exact),
            ("normalized", _normalized),
            ("substring", _substring),
            ("fuzzy", self._fuzzy),
        ]
        for name, strategy in strategies:
            for candidate in candidates:
                if strategy(message, candidate):
                    return SpeciesMatch(status="matched", species=candidate, strategy=name)
        return SpeciesMatch(status="no-match")

    def is_non_animal_input(self, message: str) -> bool:
        text = message.strip()
        if len(text) < self.min_message_length or len(text) > self.max_message_length:
            return True
        return gazetteer.matches_any(text, gazetteer.NON_ANIMAL_PATTERNS)

    def token_overlap(self, message: str, candidate_name: str) -> Tuple[int, float]:
        """Return (hits, ratio) for the fuzzy strategy."""
        settings = self.fuzzy
        message_tokens = tokenize(strip_status_suffix(message), settings.min_token_length)
        candidate_tokens = tokenize(strip_status_suffix(candidate_name), settings.min_token_length)
        if not message_tokens or not candidate_tokens:
            return 0, 0.0

        hits = 0
        for token in message_tokens:
            if any(self._tokens_agree(token, other) for other in candidate_tokens):
                hits += 1
        return hits, hits / max(len(message_tokens), len(candidate_tokens))

    def _tokens_agree(self, left: str, right: str) -> bool:
        if left == right:
            return True
        settings = self.fuzzy
        if min(len(left), len(right)) >= settings.min_contain_length and (left in right or right in left):
            return True
        prefix = settings.prefix_length
        return len(left) >= prefix and len(right) >= prefix and left[:prefix] == right[:prefix]

    def _fuzzy(self, message: str, candidate: Species) -> bool:
        hits, ratio = self.token_overlap(message, candidate.common_name)
        return ratio >= self.fuzzy.min_ratio and hits >= self.fuzzy.min_hits
