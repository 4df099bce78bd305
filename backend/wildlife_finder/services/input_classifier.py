import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from wildlife_finder.models import InputKind
from wildlife_finder.services import gazetteer
from wildlife_finder.services.collaborators import InputTypeClassifier

logger = logging.getLogger(__name__)

LOCATIVE_PATTERN = re.compile(
    r"(?:^|\b)(?:i\s+(?:am|live)\s+in|i\s+am\s+from|in|near|around|from)\s+([a-z][^.!?]*)",
    re.IGNORECASE,
)
CITY_REGION_PATTERN = re.compile(r"^[a-z][a-z .'-]*,\s*[a-z][a-z .'-]*$", re.IGNORECASE)
_PREFIX_ANIMAL_PATTERN = re.compile(
    r"\b(?:{prefixes})\s+(?:{animals})s?\b".format(
        prefixes="|".join(sorted(gazetteer.DESCRIPTIVE_PREFIXES)),
        animals="|".join(sorted(gazetteer.ANIMAL_NAMES)),
    ),
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    predicate: Callable[[str], bool]
    verdict: InputKind
    uses_gazetteer: bool = False


def _clean(message: str) -> str:
    text = re.sub(r"[^\w\s,.'-]", " ", message)
    return re.sub(r"\s+", " ", text).strip()


def is_filler(message: str) -> bool:
    return gazetteer.matches_any(_clean(message), gazetteer.FILLER_PATTERNS)


def has_locative_phrase(message: str) -> bool:
    return bool(LOCATIVE_PATTERN.search(message))


def extract_location_phrase(message: str) -> Optional[str]:
    """The place named after a locative: 'animals near Reno, Nevada' -> 'Reno, Nevada'."""
    match = LOCATIVE_PATTERN.search(message)
    if not match:
        return None
    phrase = match.group(1).strip(" ,.")
    return phrase or None


def is_city_region(message: str) -> bool:
    return bool(CITY_REGION_PATTERN.match(message))


def is_known_region(message: str) -> bool:
    return gazetteer.is_known_region(message.rstrip("."))


def is_known_animal(message: str) -> bool:
    text = message.lower().rstrip(".")
    if " " not in text:
        if text in gazetteer.EXCLUDED_ANIMAL_WORDS:
            return False
        singular = text[:-1] if text.endswith("s") else text
        return text in gazetteer.ANIMAL_NAMES or singular in gazetteer.ANIMAL_NAMES
    return bool(_PREFIX_ANIMAL_PATTERN.search(text))


DEFAULT_RULES: List[ClassificationRule] = [
    ClassificationRule("locative_phrase", has_locative_phrase, "LOCATION"),
    ClassificationRule("city_region", is_city_region, "LOCATION"),
    ClassificationRule("known_region", is_known_region, "LOCATION", uses_gazetteer=True),
    ClassificationRule("known_animal", is_known_animal, "ANIMAL", uses_gazetteer=True),
]


class InputClassifier:
    """Decides whether a free-form message names a place or an animal.

    Heuristic rules run in order and the first match wins. Only when none of
    them fires is the semantic classifier consulted; without one the message
    is treated as a location.
    """

    def __init__(
        self,
        semantic_classifier: Optional[InputTypeClassifier] = None,
        rules: Optional[List[ClassificationRule]] = None,
    ) -> None:
        self.semantic_classifier = semantic_classifier
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def classify(self, message: str, has_known_gazetteer: bool = True) -> InputKind:
        verdict, _ = self.explain(message, has_known_gazetteer=has_known_gazetteer)
        return verdict

    def explain(self, message: str, has_known_gazetteer: bool = True) -> Tuple[InputKind, str]:
        """Like classify, but also names the rule that decided."""
        text = _clean(message)
        if is_filler(text):
            return "AMBIGUOUS", "filler"

        for rule in self.rules:
            if rule.uses_gazetteer and not has_known_gazetteer:
                continue
            if rule.predicate(text):
                return rule.verdict, rule.name

        return self._semantic_verdict(text), "semantic_fallback"

    def looks_like_location(self, message: str) -> bool:
        text = _clean(message)
        if is_filler(text):
            return False
        return any(
            rule.predicate(text) for rule in self.rules if rule.verdict == "LOCATION"
        )

    def looks_like_animal(self, message: str) -> bool:
        text = _clean(message)
        if is_filler(text) or has_locative_phrase(text):
            return False
        return is_known_animal(text)

    def _semantic_verdict(self, text: str) -> InputKind:
        classifier = self.semantic_classifier
        if classifier is None or not getattr(classifier, "available", True):
            return "LOCATION"
        try:
            verdict = str(classifier.classify_input_type(text) or "").strip().upper()
        except Exception:
            logger.warning("Semantic input classifier failed; defaulting to LOCATION", exc_info=True)
            return "LOCATION"
        if verdict.startswith("ANIMAL"):
            return "ANIMAL"
        return "LOCATION"
