import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from stub_collaborators import StubInputTypeClassifier
from wildlife_finder.services.input_classifier import InputClassifier, extract_location_phrase


def test_filler_messages_are_ambiguous():
    classifier = InputClassifier()
    for message in ["hello", "hi", "thanks!", "ok", "help me out", "42"]:
        assert classifier.classify(message) == "AMBIGUOUS", message


def test_locative_phrase_and_city_region_are_locations():
    classifier = InputClassifier()
    assert classifier.explain("I live in Boise") == ("LOCATION", "locative_phrase")
    assert classifier.explain("near Tucson") == ("LOCATION", "locative_phrase")
    assert classifier.explain("Denver, Colorado") == ("LOCATION", "city_region")


def test_known_regions_are_locations():
    classifier = InputClassifier()
    assert classifier.explain("Nevada") == ("LOCATION", "known_region")
    assert classifier.explain("kenya") == ("LOCATION", "known_region")


def test_known_animals_are_animals():
    classifier = InputClassifier()
    assert classifier.explain("bears") == ("ANIMAL", "known_animal")
    assert classifier.explain("Bald Eagle") == ("ANIMAL", "known_animal")
    assert classifier.explain("striped skunk") == ("ANIMAL", "known_animal")


def test_generic_animal_words_are_not_animal_names():
    classifier = InputClassifier()
    verdict, rule = classifier.explain("wildlife")
    assert rule == "semantic_fallback"
    assert verdict == "LOCATION"


def test_gazetteer_rules_can_be_skipped():
    semantic = StubInputTypeClassifier(verdict="LOCATION")
    classifier = InputClassifier(semantic_classifier=semantic)

    verdict, rule = classifier.explain("Bald Eagle", has_known_gazetteer=False)

    assert verdict == "LOCATION"
    assert rule == "semantic_fallback"
    assert semantic.calls == ["Bald Eagle"]


def test_semantic_classifier_decides_unmatched_messages():
    semantic = StubInputTypeClassifier(verdict="ANIMAL")
    classifier = InputClassifier(semantic_classifier=semantic)

    assert classifier.classify("Okapi") == "ANIMAL"
    assert classifier.classify("Nevada") == "LOCATION"
    assert semantic.calls == ["Okapi"]


def test_semantic_classifier_failure_defaults_to_location(caplog):
    classifier = InputClassifier(semantic_classifier=StubInputTypeClassifier(error=TimeoutError("slow")))

    assert classifier.classify("Okapi") == "LOCATION"
    assert "Semantic input classifier failed" in caplog.text


def test_looks_like_location_ignores_semantic_fallback():
    semantic = StubInputTypeClassifier(verdict="LOCATION")
    classifier = InputClassifier(semantic_classifier=semantic)

    assert classifier.looks_like_location("Denver, Colorado") is True
    assert classifier.looks_like_location("in Reno") is True
    assert classifier.looks_like_location("Snow Leopard") is False
    assert classifier.looks_like_location("hello") is False
    assert semantic.calls == []


def test_looks_like_animal():
    classifier = InputClassifier()
    assert classifier.looks_like_animal("golden eagle") is True
    assert classifier.looks_like_animal("wolf") is True
    assert classifier.looks_like_animal("eagles near Denver") is False
    assert classifier.looks_like_animal("Paris") is False


def test_extract_location_phrase():
    assert extract_location_phrase("Show me animals near Denver, Colorado") == "Denver, Colorado"
    assert extract_location_phrase("I live in Boise.") == "Boise"
    assert extract_location_phrase("Denver, Colorado") is None
