import json
import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from stub_collaborators import (
    FLORIDA_SPECIES,
    StubGeocoder,
    StubOrganizationFinder,
    StubSpeciesSource,
    build_test_engine,
)
from wildlife_finder.services.outcomes import (
    DisambiguationPrompt,
    NeedsAnimalLocation,
    NeedsLocation,
    ShowOrganizations,
    ShowSpecies,
    TurnFailed,
)
from wildlife_finder.services.response_formatter import UNAVAILABLE_MESSAGE


def _telemetry_payloads(caplog):
    payloads = []
    for record in caplog.records:
        message = record.getMessage()
        if message.startswith("turn_telemetry="):
            payloads.append(json.loads(message.split("=", 1)[1]))
    return payloads


def test_las_vegas_lists_nearby_species_in_one_turn():
    engine = build_test_engine()

    result = engine.handle_message("Las Vegas", "s1")

    assert isinstance(result.outcome, ShowSpecies)
    assert result.stage == "awaiting-animal"
    assert result.session.location.display_name == "Las Vegas, Nevada, United States"
    assert "Here are endangered and protected animals near Las Vegas, Nevada, United States:" in result.response
    assert "1. Desert Tortoise (Vulnerable)" in result.response
    assert "2. Kit Fox\n" in result.response
    assert [species.common_name for species in result.session.species_candidates] == [
        "Desert Tortoise",
        "Kit Fox",
        "Gila Monster",
    ]


def test_greeting_at_start_asks_for_location():
    engine = build_test_engine()

    result = engine.handle_message("hello", "s1")

    assert isinstance(result.outcome, NeedsLocation)
    assert result.outcome.reason == "welcome"
    assert result.stage == "awaiting-location"
    assert "Where are you located?" in result.response


def test_paris_requires_disambiguation_then_resolves_selected_option():
    geocoder = StubGeocoder()
    engine = build_test_engine(geocoder=geocoder)

    first = engine.handle_message("Paris", "s1")
    assert isinstance(first.outcome, DisambiguationPrompt)
    assert first.stage == "disambiguation"
    assert "**1.** Paris, France" in first.response
    assert "**2.** Paris, Texas" in first.response
    assert geocoder.calls == []

    second = engine.handle_message("2", "s1")
    assert isinstance(second.outcome, ShowSpecies)
    assert second.stage == "awaiting-animal"
    assert geocoder.calls == ["Paris, Texas, USA"]
    assert second.session.location.display_name == "Paris, Texas, United States"
    assert second.session.disambiguation_options == []


def test_disambiguation_accepts_option_name():
    engine = build_test_engine()
    engine.handle_message("Paris", "s1")

    result = engine.handle_message("Paris, France", "s1")

    assert result.stage == "awaiting-animal"
    assert result.session.location.display_name == "Paris, France"


def test_unrecognized_disambiguation_reply_reshows_options():
    engine = build_test_engine()
    engine.handle_message("Paris", "s1")

    result = engine.handle_message("the other one", "s1")

    assert isinstance(result.outcome, DisambiguationPrompt)
    assert result.outcome.unresolved is True
    assert result.stage == "disambiguation"
    assert "I didn't catch which place you meant." in result.response
    assert len(result.session.disambiguation_options) == 2


def test_florida_panther_with_status_suffix_completes_with_organizations():
    organizations = StubOrganizationFinder()
    engine = build_test_engine(organization_finder=organizations)

    listed = engine.handle_message("Naples, Florida", "s1")
    assert listed.stage == "awaiting-animal"
    assert "1. Florida Panther (Endangered)" in listed.response

    result = engine.handle_message("Florida Panther (Endangered)", "s1")

    assert isinstance(result.outcome, ShowOrganizations)
    assert result.stage == "completed"
    assert organizations.calls == [("Florida Panther", "Naples, Florida, United States")]
    assert result.session.selected_animal.common_name == "Florida Panther"
    assert result.session.species_candidates == []
    assert (
        "Here are conservation organizations near Naples, Florida, United States "
        "that help protect the Florida Panther:"
    ) in result.response
    assert "1. **Florida Panther Recovery Fund**" in result.response


def test_greeting_while_choosing_animal_keeps_the_list():
    organizations = StubOrganizationFinder()
    engine = build_test_engine(organization_finder=organizations)
    engine.handle_message("Las Vegas", "s1")

    result = engine.handle_message("hello", "s1")

    assert isinstance(result.outcome, ShowSpecies)
    assert result.outcome.reason == "non-animal-input"
    assert result.stage == "awaiting-animal"
    assert result.response.startswith("That doesn't look like an animal name.")
    assert len(result.session.species_candidates) == 3
    assert organizations.calls == []


def test_unmatched_animal_reply_prompts_to_choose_from_list():
    engine = build_test_engine()
    engine.handle_message("Las Vegas", "s1")

    result = engine.handle_message("Snow Leopard", "s1")

    assert result.outcome.reason == "no-match"
    assert result.stage == "awaiting-animal"
    assert "I couldn't match that to an animal on the list." in result.response


def test_new_location_while_choosing_animal_starts_over_in_same_turn():
    species_source = StubSpeciesSource()
    engine = build_test_engine(species_source=species_source)
    engine.handle_message("Las Vegas", "s1")

    result = engine.handle_message("Naples, Florida", "s1")

    assert isinstance(result.outcome, ShowSpecies)
    assert result.stage == "awaiting-animal"
    assert result.session.location.city == "Naples"
    assert [s.common_name for s in result.session.species_candidates] == [s.common_name for s in FLORIDA_SPECIES]
    assert len(species_source.calls) == 2


def test_location_without_species_stays_awaiting_location():
    engine = build_test_engine()

    result = engine.handle_message("Denver, Colorado", "s1")

    assert isinstance(result.outcome, NeedsLocation)
    assert result.outcome.reason == "no-species"
    assert result.stage == "awaiting-location"
    assert result.session.location is None
    assert "I couldn't find protected species near Denver, Colorado, United States." in result.response


def test_unknown_place_is_reported_and_stage_kept():
    engine = build_test_engine()
    engine.handle_message("hello", "s1")

    result = engine.handle_message("Atlantis", "s1")

    assert result.outcome.reason == "not-found"
    assert result.stage == "awaiting-location"
    assert 'Unable to find "Atlantis"' in result.response


def test_duplicate_species_are_collapsed_before_listing():
    duplicated = FLORIDA_SPECIES + [FLORIDA_SPECIES[0].model_copy(update={"common_name": "florida panther"})]
    engine = build_test_engine(species_source=StubSpeciesSource(by_city={"Naples": duplicated}))

    result = engine.handle_message("Naples, Florida", "s1")

    assert len(result.session.species_candidates) == 3


def test_any_message_after_completion_resets_and_reset_is_idempotent():
    engine = build_test_engine()
    engine.handle_message("Las Vegas", "s1")
    engine.handle_message("Kit Fox", "s1")

    after = engine.handle_message("thanks", "s1")
    assert isinstance(after.outcome, NeedsLocation)
    assert after.outcome.reason == "restart"
    assert after.stage == "awaiting-location"
    assert after.session.location is None
    assert after.session.selected_animal is None
    assert after.session.species_candidates == []

    first = engine.reset("s1")
    second = engine.reset("s1")
    assert first.session.model_dump() == second.session.model_dump()
    assert second.stage == "awaiting-location"


def test_restart_command_clears_progress():
    engine = build_test_engine()
    engine.handle_message("Las Vegas", "s1")

    result = engine.handle_message("start over", "s1")

    assert result.stage == "awaiting-location"
    assert result.session.species_candidates == []
    assert "Let's start a new search." in result.response


def test_collaborator_failure_leaves_stored_session_untouched(caplog):
    engine = build_test_engine(species_source=StubSpeciesSource(error=RuntimeError("iNaturalist timed out")))
    engine.handle_message("hello", "s1")
    before = engine.session_store.get("s1").model_dump()

    with caplog.at_level(logging.ERROR, logger="wildlife_finder.services.conversation"):
        result = engine.handle_message("Las Vegas", "s1")

    assert isinstance(result.outcome, TurnFailed)
    assert result.outcome.collaborator == "species_source"
    assert result.failed is True
    assert result.response == UNAVAILABLE_MESSAGE
    assert engine.session_store.get("s1").model_dump() == before
    assert any("Turn failed for session s1" in record.getMessage() for record in caplog.records)


def test_failed_first_turn_stores_fresh_session():
    engine = build_test_engine(species_source=StubSpeciesSource(error=RuntimeError("boom")))

    result = engine.handle_message("Las Vegas", "new-session")

    assert result.failed is True
    stored = engine.session_store.get("new-session")
    assert stored.stage == "initial"
    assert stored.location is None


def test_organization_failure_keeps_species_list():
    engine = build_test_engine(organization_finder=StubOrganizationFinder(error=ConnectionError("down")))
    engine.handle_message("Las Vegas", "s1")

    result = engine.handle_message("Kit Fox", "s1")

    assert result.failed is True
    stored = engine.session_store.get("s1")
    assert stored.stage == "awaiting-animal"
    assert len(stored.species_candidates) == 3


def test_animal_first_worldwide_completes_with_global_organizations():
    organizations = StubOrganizationFinder()
    engine = build_test_engine(organization_finder=organizations)

    first = engine.handle_message("Bald Eagle", "s1")
    assert isinstance(first.outcome, NeedsAnimalLocation)
    assert first.stage == "awaiting-animal-location"
    assert first.session.mode == "animal-first"
    assert first.session.pending_animal.common_name == "Bald Eagle"
    assert "**Bald Eagle**" in first.response

    result = engine.handle_message("worldwide", "s1")
    assert result.stage == "completed"
    assert result.outcome.global_scope is True
    assert organizations.calls == [("Bald Eagle", "worldwide")]
    assert "working worldwide to protect the Bald Eagle" in result.response


def test_animal_first_with_location_skips_species_lookup():
    organizations = StubOrganizationFinder()
    species_source = StubSpeciesSource()
    engine = build_test_engine(organization_finder=organizations, species_source=species_source)
    engine.handle_message("Bald Eagle", "s1")

    result = engine.handle_message("Denver, Colorado", "s1")

    assert result.stage == "completed"
    assert organizations.calls == [("Bald Eagle", "Denver, Colorado, United States")]
    assert species_source.calls == []
    assert result.session.pending_animal is None


def test_animal_first_disambiguation_completes_with_organizations():
    organizations = StubOrganizationFinder()
    engine = build_test_engine(organization_finder=organizations)
    engine.handle_message("Bald Eagle", "s1")

    prompt = engine.handle_message("Paris", "s1")
    assert prompt.stage == "disambiguation"
    assert prompt.session.mode == "animal-first"

    result = engine.handle_message("1", "s1")
    assert result.stage == "completed"
    assert organizations.calls == [("Bald Eagle", "Paris, France")]


def test_animal_first_refined_animal_uses_global_scope():
    organizations = StubOrganizationFinder()
    engine = build_test_engine(organization_finder=organizations)
    engine.handle_message("Bald Eagle", "s1")

    result = engine.handle_message("golden eagle", "s1")

    assert result.stage == "completed"
    assert organizations.calls == [("Golden Eagle", "worldwide")]


def test_animal_first_unknown_place_asks_again():
    engine = build_test_engine()
    engine.handle_message("Bald Eagle", "s1")

    result = engine.handle_message("Atlantis", "s1")

    assert isinstance(result.outcome, NeedsAnimalLocation)
    assert result.outcome.retry is True
    assert result.stage == "awaiting-animal-location"
    assert result.session.pending_animal.common_name == "Bald Eagle"


def test_sessions_are_independent():
    engine = build_test_engine()

    engine.handle_message("Las Vegas", "a")
    other = engine.handle_message("hello", "b")

    assert other.stage == "awaiting-location"
    assert engine.session_store.get("a").stage == "awaiting-animal"


def test_blank_message_is_rejected():
    engine = build_test_engine()

    with pytest.raises(ValueError):
        engine.handle_message("   ", "s1")
    assert engine.session_store.get("s1") is None


def test_turn_telemetry_line_per_turn(caplog):
    engine = build_test_engine()
    engine.telemetry_enabled = True

    with caplog.at_level(logging.INFO, logger="wildlife_finder.services.conversation"):
        engine.handle_message("Las Vegas", "s1")
        engine.handle_message("Kit Fox", "s1")

    payloads = _telemetry_payloads(caplog)
    assert len(payloads) == 2
    assert payloads[0]["stage_before"] == "initial"
    assert payloads[0]["stage_after"] == "awaiting-animal"
    assert payloads[0]["outcome"] == "ShowSpecies"
    assert payloads[0]["rule"] == "semantic_fallback"
    assert payloads[1]["match_status"] == "matched"
    assert payloads[1]["strategy"] == "exact"
    assert payloads[1]["message_length"] == len("Kit Fox")


def test_turn_telemetry_can_be_disabled(caplog):
    engine = build_test_engine()
    engine.telemetry_enabled = False

    with caplog.at_level(logging.INFO, logger="wildlife_finder.services.conversation"):
        engine.handle_message("Las Vegas", "s1")

    assert _telemetry_payloads(caplog) == []


def test_location_inside_a_sentence_is_resolved_on_first_turn():
    geocoder = StubGeocoder()
    engine = build_test_engine(geocoder=geocoder)

    result = engine.handle_message("Show me animals near Naples, Florida", "s1")

    assert result.stage == "awaiting-animal"
    assert geocoder.calls == ["Naples, Florida"]
    assert result.session.location.display_name == "Naples, Florida, United States"


def test_sentence_naming_new_location_replaces_species_list():
    geocoder = StubGeocoder()
    engine = build_test_engine(geocoder=geocoder)
    engine.handle_message("Las Vegas", "s1")

    result = engine.handle_message("animals in Naples, Florida", "s1")

    assert isinstance(result.outcome, ShowSpecies)
    assert result.stage == "awaiting-animal"
    assert geocoder.calls[-1] == "Naples, Florida"
    assert [s.common_name for s in result.session.species_candidates] == [s.common_name for s in FLORIDA_SPECIES]
