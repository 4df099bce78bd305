import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from stub_collaborators import FLORIDA_SPECIES, NEVADA_SPECIES
from wildlife_finder.config import FuzzyMatchSettings
from wildlife_finder.models import Species
from wildlife_finder.services.species_matcher import SpeciesMatcher, dedupe_species, strip_status_suffix


def _matcher(**overrides) -> SpeciesMatcher:
    return SpeciesMatcher(fuzzy=FuzzyMatchSettings(**overrides))


def test_exact_common_name_never_reaches_fuzzy():
    matcher = _matcher()
    for species in FLORIDA_SPECIES + NEVADA_SPECIES:
        result = matcher.match(species.common_name, FLORIDA_SPECIES + NEVADA_SPECIES)
        assert result.matched
        assert result.strategy == "exact"
        assert result.species.common_name == species.common_name


def test_scientific_name_matches_exactly():
    result = _matcher().match("Puma concolor coryi", FLORIDA_SPECIES)
    assert result.strategy == "exact"
    assert result.species.common_name == "Florida Panther"


def test_status_suffix_is_ignored():
    assert strip_status_suffix("Florida Panther (Endangered)") == "Florida Panther"

    result = _matcher().match("Florida Panther (Endangered)", FLORIDA_SPECIES)
    assert result.matched
    assert result.strategy == "exact"
    assert result.species.common_name == "Florida Panther"


def test_normalized_match_ignores_case_and_punctuation():
    candidates = [Species(common_name="Black-footed Ferret")]
    result = _matcher().match("black footed ferret", candidates)
    assert result.matched
    assert result.species.common_name == "Black-footed Ferret"

    result = _matcher().match("BLACK-FOOTED FERRET!", candidates)
    assert result.strategy == "normalized"


def test_substring_match_accepts_partial_names():
    result = _matcher().match("panther", FLORIDA_SPECIES)
    assert result.matched
    assert result.strategy == "substring"
    assert result.species.common_name == "Florida Panther"


def test_fuzzy_match_accepts_typos():
    result = _matcher().match("Florda Panthr", FLORIDA_SPECIES)
    assert result.matched
    assert result.strategy == "fuzzy"
    assert result.species.common_name == "Florida Panther"


def test_fuzzy_match_rejects_single_shared_word():
    candidates = [Species(common_name="Gray Wolf")]
    result = _matcher().match("Red Wolf", candidates)
    assert result.status == "no-match"


def test_fuzzy_thresholds_are_configurable():
    candidates = [Species(common_name="Gray Wolf")]
    result = _matcher(min_hits=1, min_ratio=0.5).match("Red Wolf", candidates)
    assert result.matched
    assert result.strategy == "fuzzy"


def test_earlier_candidate_wins_within_a_strategy():
    candidates = [Species(common_name="Desert Tortoise"), Species(common_name="Gopher Tortoise")]
    result = _matcher().match("tortoise", candidates)
    assert result.species.common_name == "Desert Tortoise"


def test_greetings_and_commands_are_not_animals():
    matcher = _matcher()
    for message in ["hello", "hi", "thanks", "show me more", "where am I", "go back", "ok"]:
        assert matcher.match(message, NEVADA_SPECIES).status == "non-animal-input", message


def test_overlong_message_is_not_an_animal():
    assert _matcher().match("fox " * 30, NEVADA_SPECIES).status == "non-animal-input"


def test_token_overlap_reports_hits_and_ratio():
    hits, ratio = _matcher().token_overlap("florda panther", "Florida Panther")
    assert hits == 2
    assert ratio == 1.0

    assert _matcher().token_overlap("ox", "Kit Fox") == (0, 0.0)


def test_dedupe_species_keeps_first_occurrence():
    species = [
        Species(common_name="Kit Fox", conservation_status="Vulnerable"),
        Species(common_name="kit fox"),
        Species(common_name="  "),
        Species(common_name="Gila Monster"),
    ]
    unique = dedupe_species(species)
    assert [item.common_name for item in unique] == ["Kit Fox", "Gila Monster"]
    assert unique[0].conservation_status == "Vulnerable"


def test_containment_length_is_independent_of_prefix_length():
    assert _matcher(prefix_length=5)._tokens_agree("tort", "tortoise") is True
    assert _matcher(prefix_length=5, min_contain_length=5)._tokens_agree("tort", "tortoise") is False
    assert _matcher(prefix_length=4)._tokens_agree("florda", "florida") is True
    assert _matcher(prefix_length=5)._tokens_agree("florda", "florida") is False


def test_fuzzy_contain_length_reads_env(monkeypatch):
    monkeypatch.setenv("FUZZY_PREFIX_LENGTH", "5")
    monkeypatch.setenv("FUZZY_MIN_CONTAIN_LENGTH", "6")
    settings = FuzzyMatchSettings.from_env()
    assert settings.prefix_length == 5
    assert settings.min_contain_length == 6
